"""Utility functions and constants for afcsync."""

import logging
from typing import BinaryIO, Callable, Optional

from .exceptions import ChannelError, CopyIOError

logger = logging.getLogger(__name__)

# =============================================================================
# Constants for file operations
# =============================================================================

# Chunk size for stream copies (64 KB)
DEFAULT_CHUNK_SIZE: int = 64 * 1024

# Upper bound on random filename candidates per allocation
DEFAULT_MAX_ATTEMPTS: int = 1000

# Root of the device's bucketed music storage
DEFAULT_MUSIC_ROOT: str = "/iTunes_Control/Music"

# Directories that make up the device's library database
DEFAULT_IMPORTANT_DIRECTORIES: tuple[str, ...] = (
    "/iTunes_Control/Artwork",
    "/iTunes_Control/Device",
    "/iTunes_Control/iTunes",
)


# =============================================================================
# Stream copying
# =============================================================================


def copy_stream(
    source: BinaryIO,
    destination: BinaryIO,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    progress_callback: Optional[Callable[[int], None]] = None,
) -> int:
    """Copy a readable stream into a writable stream in bounded chunks.

    Args:
        source: Readable binary stream
        destination: Writable binary stream
        chunk_size: Maximum number of bytes read per iteration
        progress_callback: Optional callback(bytes_copied_so_far)

    Returns:
        Total number of bytes copied

    Raises:
        CopyIOError: If reading or writing fails. The destination is left
            with whatever was written before the failure.
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")

    total = 0
    while True:
        try:
            chunk = source.read(chunk_size)
        except (OSError, ChannelError) as e:
            raise CopyIOError(f"Read failed after {total} bytes: {e}") from e
        if not chunk:
            break
        try:
            destination.write(chunk)
        except (OSError, ChannelError) as e:
            raise CopyIOError(f"Write failed after {total} bytes: {e}") from e
        total += len(chunk)
        if progress_callback:
            progress_callback(total)
    return total


# =============================================================================
# Path utilities
# =============================================================================


def join_device_path(base: str, name: str) -> str:
    """Join a device directory path and an entry name.

    Examples:
        >>> join_device_path("/iTunes_Control", "iTunes")
        '/iTunes_Control/iTunes'
        >>> join_device_path("/", "iTunes_Control")
        '/iTunes_Control'
    """
    if not base or base == "/":
        return f"/{name}"
    return f"{base.rstrip('/')}/{name}"


def normalize_device_path(path: str) -> str:
    """Normalize a device path to an absolute path without trailing slash."""
    path = path.replace("\\", "/").strip()
    parts = [p for p in path.split("/") if p and p != "."]
    return "/" + "/".join(parts)


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Human-readable size string (e.g., "1.5 MB")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.1f} MB"
    else:
        return f"{size_bytes / (1024 * 1024 * 1024):.1f} GB"
