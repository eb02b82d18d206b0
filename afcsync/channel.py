"""Device file channel interface and a filesystem-backed implementation.

The transfer engine only talks to a device through the small capability
interface defined by :class:`DeviceFileChannel`. How the channel reaches the
device (USB pairing, service discovery, wire framing) is not its concern.

:class:`LocalDirectoryChannel` exposes a directory on the local filesystem
through the same interface. It is used for the local side of every transfer
and for devices whose filesystem is mounted locally.
"""

import logging
import os
import shutil
import stat
from pathlib import Path
from typing import Any, BinaryIO, Optional, Protocol, Union

from .exceptions import ChannelError, ChannelUnavailableError
from .utils import normalize_device_path

logger = logging.getLogger(__name__)

DISK_USAGE_DOMAIN = "com.apple.disk_usage"


class DeviceFileChannel(Protocol):
    """Capabilities the transfer engine needs from a device.

    Absence is reported as data (``None`` / ``False``); failures are raised
    as :class:`ChannelError`.
    """

    def check_connection(self) -> None:
        """Raise ChannelUnavailableError if the device cannot be reached."""
        ...

    def read_property(self, key: str, domain: Optional[str] = None) -> Optional[Any]:
        """Read a device-scoped property, ``None`` if it is not set."""
        ...

    def read_directory(self, path: str) -> list[str]:
        """Return raw entry names of a directory, possibly with ``.``/``..``."""
        ...

    def get_file_info(self, path: str, key: str) -> Optional[str]:
        """Return one metadata value for ``path``, ``None`` if unavailable."""
        ...

    def exists(self, path: str) -> bool:
        ...

    def open_read(self, path: str) -> BinaryIO:
        ...

    def open_write(self, path: str) -> BinaryIO:
        ...


_IFMT_TOKENS = (
    (stat.S_ISREG, "S_IFREG"),
    (stat.S_ISDIR, "S_IFDIR"),
    (stat.S_ISLNK, "S_IFLNK"),
    (stat.S_ISCHR, "S_IFCHR"),
    (stat.S_ISBLK, "S_IFBLK"),
    (stat.S_ISFIFO, "S_IFIFO"),
    (stat.S_ISSOCK, "S_IFSOCK"),
)


def _ifmt_token(mode: int) -> Optional[str]:
    for check, token in _IFMT_TOKENS:
        if check(mode):
            return token
    return None


class LocalDirectoryChannel:
    """File channel rooted at a local directory.

    Device-style absolute paths (``/iTunes_Control/iTunes``) are resolved
    below ``root``. Paths that would escape the root are rejected.

    Examples:
        >>> channel = LocalDirectoryChannel(Path("/media/ipod"))
        >>> channel.get_file_info("/iTunes_Control", "st_ifmt")
        'S_IFDIR'
    """

    def __init__(
        self,
        root: Union[str, Path],
        properties: Optional[dict[str, Any]] = None,
    ):
        """Initialize the channel.

        Args:
            root: Directory that plays the role of the filesystem root
            properties: Device properties, keyed by ``"domain/key"`` or by
                plain ``key`` for the default domain
        """
        self.root = Path(root)
        self.properties = dict(properties or {})

    def __repr__(self) -> str:
        return f"LocalDirectoryChannel({str(self.root)!r})"

    def _resolve(self, path: str) -> Path:
        normalized = normalize_device_path(path)
        parts = [p for p in normalized.split("/") if p]
        if ".." in parts:
            raise ChannelError(f"Path escapes channel root: {path}", path=path)
        return self.root.joinpath(*parts)

    def check_connection(self) -> None:
        """Raise ChannelUnavailableError if the root is not a usable directory."""
        if not self.root.is_dir():
            raise ChannelUnavailableError(
                f"Device root is not a directory: {self.root}", path=str(self.root)
            )

    def read_property(self, key: str, domain: Optional[str] = None) -> Optional[Any]:
        lookup = f"{domain}/{key}" if domain else key
        if lookup in self.properties:
            return self.properties[lookup]

        if domain == DISK_USAGE_DOMAIN:
            try:
                usage = shutil.disk_usage(self.root)
            except OSError as e:
                logger.debug(f"Disk usage unavailable for {self.root}: {e}")
                return None
            return {
                "TotalDiskCapacity": usage.total,
                "TotalDataCapacity": usage.total,
                "AmountDataAvailable": usage.free,
            }.get(key)
        return None

    def read_directory(self, path: str) -> list[str]:
        target = self._resolve(path)
        try:
            names = sorted(os.listdir(target))
        except (OSError, ValueError) as e:
            raise ChannelError(f"Cannot read directory {path}: {e}", path=path) from e
        return [".", ".."] + names

    def file_info(self, path: str) -> Optional[dict[str, str]]:
        """Return all metadata of ``path`` as strings, ``None`` if it is missing.

        Symlinks are reported as links, never followed.
        """
        try:
            st = self._resolve(path).lstat()
        except (OSError, ValueError, ChannelError):
            # ValueError: names the OS cannot represent, e.g. embedded NUL
            return None

        token = _ifmt_token(st.st_mode)
        if token is None:
            return None

        info = {
            "st_ifmt": token,
            "st_size": str(st.st_size),
            "st_nlink": str(st.st_nlink),
            "st_mtime": str(st.st_mtime_ns),
        }
        blocks = getattr(st, "st_blocks", None)
        if blocks is not None:
            info["st_blocks"] = str(blocks)
        birthtime = getattr(st, "st_birthtime", None)
        if birthtime is not None:
            info["st_birthtime"] = str(int(birthtime * 1_000_000_000))
        return info

    def get_file_info(self, path: str, key: str) -> Optional[str]:
        info = self.file_info(path)
        if info is None:
            return None
        return info.get(key)

    def exists(self, path: str) -> bool:
        return self.get_file_info(path, "st_ifmt") is not None

    def open_read(self, path: str) -> BinaryIO:
        try:
            return open(self._resolve(path), "rb")
        except (OSError, ValueError) as e:
            raise ChannelError(f"Cannot open {path} for reading: {e}", path=path) from e

    def open_write(self, path: str) -> BinaryIO:
        try:
            return open(self._resolve(path), "wb")
        except (OSError, ValueError) as e:
            raise ChannelError(f"Cannot open {path} for writing: {e}", path=path) from e

    def make_directory(self, path: str) -> None:
        """Create ``path`` and any missing parents."""
        try:
            self._resolve(path).mkdir(parents=True, exist_ok=True)
        except (OSError, ValueError) as e:
            raise ChannelError(f"Cannot create directory {path}: {e}", path=path) from e
