"""Recursive directory mirroring between the local filesystem and a device."""

import logging
import time
from typing import Callable, Optional

from .allocator import UnusedNameAllocator, extension_for
from .channel import DeviceFileChannel, LocalDirectoryChannel
from .classifier import list_directory
from .exceptions import AllocationError, ChannelError, CopyError, CopyIOError
from .models import CopyDirection, Entry, FailedEntry, ListingFilter, MirrorResult
from .utils import DEFAULT_CHUNK_SIZE, copy_stream, join_device_path

logger = logging.getLogger(__name__)

FileCopiedCallback = Callable[[str, str, int], None]


class DirectoryMirror:
    """Copies a directory tree from one side to the other.

    Traversal is iterative and depth-first: the files of a directory are
    copied in listing order, then its subdirectories are visited in listing
    order. A failing file is recorded and its siblings are still copied; a
    directory that cannot be listed is recorded and its subtree skipped.

    Files copied to the device are not stored under their source name but
    under a name from :class:`UnusedNameAllocator`.
    """

    def __init__(
        self,
        local: LocalDirectoryChannel,
        allocator: Optional[UnusedNameAllocator] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        on_file_copied: Optional[FileCopiedCallback] = None,
    ):
        """Initialize the mirror.

        Args:
            local: Channel for the local side of the transfer
            allocator: Name allocator for files copied to the device
            chunk_size: Chunk size for stream copies
            on_file_copied: Optional callback(source, destination, size)
                invoked after each copied file
        """
        self.local = local
        self.allocator = allocator or UnusedNameAllocator()
        self.chunk_size = chunk_size
        self.on_file_copied = on_file_copied

    def copy_direction(
        self,
        channel: DeviceFileChannel,
        source_root: str,
        dest_root: str,
        direction: CopyDirection,
    ) -> MirrorResult:
        """Mirror ``source_root`` into ``dest_root``.

        Args:
            channel: Device channel, borrowed for the duration of the call
            source_root: Root of the tree to copy
            dest_root: Root the tree is reproduced under
            direction: Which side is the source

        Returns:
            Result listing copied and failed entries
        """
        if direction == CopyDirection.FROM_DEVICE:
            source: DeviceFileChannel = channel
            dest: DeviceFileChannel = self.local
        else:
            source = self.local
            dest = channel

        result = MirrorResult(
            source_root=source_root, dest_root=dest_root, direction=direction
        )
        start = time.time()
        listing_filter = ListingFilter.mirror_default()
        stack = [(source_root, dest_root)]

        while stack:
            source_dir, dest_dir = stack.pop()

            if direction == CopyDirection.FROM_DEVICE:
                try:
                    self.local.make_directory(dest_dir)
                except ChannelError as e:
                    logger.warning(f"Skipping {source_dir}: {e}")
                    result.failed.append(FailedEntry(source_dir, e))
                    continue

            try:
                entries = list_directory(source, source_dir, listing_filter)
            except ChannelError as e:
                logger.warning(f"Cannot list {source_dir}, skipping subtree: {e}")
                result.failed.append(FailedEntry(source_dir, e))
                continue

            subdirectories = []
            for entry in entries:
                if entry.is_dir:
                    subdirectories.append(
                        (entry.path, join_device_path(dest_dir, entry.name))
                    )
                elif entry.is_file:
                    self._copy_file(source, dest, entry, dest_dir, direction, result)

            # Reversed so the first listed subdirectory is popped first
            stack.extend(reversed(subdirectories))

        logger.debug(
            f"Mirrored {source_root} -> {dest_root}: {len(result.copied)} copied, "
            f"{len(result.failed)} failed in {time.time() - start:.2f}s"
        )
        return result

    def _copy_file(
        self,
        source: DeviceFileChannel,
        dest: DeviceFileChannel,
        entry: Entry,
        dest_dir: str,
        direction: CopyDirection,
        result: MirrorResult,
    ) -> None:
        """Copy one file, recording success or failure in ``result``."""
        dest_path = None
        try:
            if direction == CopyDirection.TO_DEVICE:
                dest_path = self.allocator.allocate(dest, extension_for(entry.name))
            else:
                dest_path = join_device_path(dest_dir, entry.name)

            logger.debug(f"Copying {entry.path} -> {dest_path}")
            with source.open_read(entry.path) as reader:
                with dest.open_write(dest_path) as writer:
                    size = copy_stream(reader, writer, self.chunk_size)
        except (AllocationError, ChannelError, CopyError) as e:
            logger.warning(f"Failed to copy {entry.path}: {e}")
            result.failed.append(FailedEntry(entry.path, e))
            return
        except OSError as e:
            error = CopyIOError(f"Failed to close {dest_path}: {e}", path=dest_path)
            logger.warning(f"Failed to copy {entry.path}: {error}")
            result.failed.append(FailedEntry(entry.path, error))
            return

        result.copied.append((entry.path, dest_path))
        result.bytes_copied += size
        if self.on_file_copied:
            self.on_file_copied(entry.path, dest_path, size)

    def copy_from_device(
        self, channel: DeviceFileChannel, device_root: str, local_root: str
    ) -> MirrorResult:
        return self.copy_direction(
            channel, device_root, local_root, CopyDirection.FROM_DEVICE
        )

    def copy_to_device(
        self, channel: DeviceFileChannel, local_root: str, device_root: str
    ) -> MirrorResult:
        return self.copy_direction(
            channel, local_root, device_root, CopyDirection.TO_DEVICE
        )
