"""Allocate unused filenames in the device's bucketed music storage.

The device spreads its files over numbered bucket directories
(``/iTunes_Control/Music/F00``, ``F01``, ...) and names each file with a
fixed prefix and a random number. New files copied onto the device follow
the same convention instead of reusing their source paths.
"""

import logging
import random
from typing import Optional, Protocol

from .channel import DeviceFileChannel
from .exceptions import BucketVanishedError, ExhaustedAttemptsError, NoBucketsError
from .models import NameAllocation
from .utils import DEFAULT_MAX_ATTEMPTS, DEFAULT_MUSIC_ROOT

logger = logging.getLogger(__name__)

FILENAME_PREFIX = "libgpod"
DEFAULT_EXTENSION = "mp3"
RANDOM_NAME_MAX = 999999
MAX_BUCKETS = 100


class RandomSource(Protocol):
    def randrange(self, stop: int) -> int: ...


def extension_for(filename: str) -> str:
    """Return the lower-cased extension of ``filename`` without the dot.

    Examples:
        >>> extension_for("Track 01.MP3")
        'mp3'
        >>> extension_for("README")
        ''
    """
    name = filename.rsplit("/", 1)[-1]
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[-1].lower()


class UnusedNameAllocator:
    """Picks a random bucket and a collision-free filename inside it.

    Examples:
        >>> allocator = UnusedNameAllocator(rng=random.Random(42))
        >>> path = allocator.allocate(channel, "m4a")
        >>> path.startswith("/iTunes_Control/Music/F")
        True
    """

    def __init__(
        self,
        rng: Optional[RandomSource] = None,
        music_root: str = DEFAULT_MUSIC_ROOT,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ):
        """Initialize the allocator.

        Args:
            rng: Random source with a ``randrange(stop)`` method
            music_root: Directory holding the bucket directories
            max_attempts: Maximum number of filename candidates per allocation
        """
        if max_attempts <= 0:
            raise ValueError(f"max_attempts must be positive, got {max_attempts}")
        self.rng = rng if rng is not None else random.Random()
        self.music_root = music_root.rstrip("/")
        self.max_attempts = max_attempts

    def bucket_path(self, index: int) -> str:
        return f"{self.music_root}/F{index:02d}"

    def count_buckets(self, channel: DeviceFileChannel) -> int:
        """Count consecutive bucket directories starting at ``F00``."""
        count = 0
        while count < MAX_BUCKETS and channel.exists(self.bucket_path(count)):
            count += 1
        return count

    def allocate(self, channel: DeviceFileChannel, extension_hint: str = "") -> str:
        """Return a device path that does not exist yet.

        Args:
            channel: Device channel to probe
            extension_hint: Extension for the new file, without the dot

        Returns:
            Absolute device path inside one of the bucket directories

        Raises:
            NoBucketsError: If the device has no bucket directories
            BucketVanishedError: If the chosen bucket disappeared meanwhile
            ExhaustedAttemptsError: If every candidate name was taken
        """
        total = self.count_buckets(channel)
        if total <= 0:
            raise NoBucketsError(
                f"No 'F..' directories found under {self.music_root}",
                path=self.music_root,
            )

        bucket = self.bucket_path(self.rng.randrange(total))
        state = NameAllocation(bucket_directory=bucket)
        if not channel.exists(state.bucket_directory):
            raise BucketVanishedError(
                f"Music directory doesn't exist: {state.bucket_directory}",
                path=state.bucket_directory,
            )

        extension = extension_hint.lstrip(".").lower() or DEFAULT_EXTENSION

        for attempt in range(1, self.max_attempts + 1):
            number = self.rng.randrange(RANDOM_NAME_MAX)
            state.candidate_name = f"{FILENAME_PREFIX}{number:06d}.{extension}"
            if not channel.exists(state.path):
                logger.debug(
                    f"Allocated {state.path} after {attempt} attempt(s) "
                    f"({total} bucket(s))"
                )
                return state.path

        raise ExhaustedAttemptsError(
            f"No unused filename in {state.bucket_directory} "
            f"after {self.max_attempts} attempts",
            path=state.bucket_directory,
            attempts=self.max_attempts,
        )
