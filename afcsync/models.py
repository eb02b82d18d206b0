"""Data models for directory entries, listings and transfer results."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class EntryKind(str, Enum):
    """Kind of a filesystem node, derived from its ``st_ifmt`` metadata."""

    FILE = "file"
    """Regular file (S_IFREG)"""

    DIRECTORY = "directory"
    """Directory (S_IFDIR)"""

    SYMLINK = "symlink"
    """Symbolic link (S_IFLNK)"""

    UNKNOWN = "unknown"
    """Metadata missing, failed, or an unsupported node type"""

    @classmethod
    def from_ifmt(cls, token: Optional[str]) -> "EntryKind":
        """Map a raw ``st_ifmt`` token to an entry kind.

        Args:
            token: Raw value reported by the device, e.g. ``"S_IFREG"``

        Returns:
            Matching kind, ``UNKNOWN`` for anything unrecognised or missing
        """
        if token is None:
            return cls.UNKNOWN
        return _IFMT_KINDS.get(token.strip(), cls.UNKNOWN)


_IFMT_KINDS = {
    "S_IFREG": EntryKind.FILE,
    "S_IFDIR": EntryKind.DIRECTORY,
    "S_IFLNK": EntryKind.SYMLINK,
}

ALL_KINDS = frozenset({EntryKind.FILE, EntryKind.DIRECTORY, EntryKind.SYMLINK})


@dataclass(frozen=True)
class Entry:
    """A directory entry as seen during one traversal step."""

    path: str
    """Absolute device-style path (forward slashes)"""

    kind: EntryKind
    """Entry kind, ``UNKNOWN`` when not classified"""

    @property
    def name(self) -> str:
        """Last path component."""
        return self.path.rstrip("/").rsplit("/", 1)[-1]

    @property
    def is_file(self) -> bool:
        return self.kind == EntryKind.FILE

    @property
    def is_dir(self) -> bool:
        return self.kind == EntryKind.DIRECTORY


@dataclass(frozen=True)
class ListingFilter:
    """Controls which entries a directory listing returns."""

    include_hidden: bool = True
    """Keep names starting with a dot"""

    include_dot_entries: bool = True
    """Keep the ``.`` and ``..`` pseudo entries"""

    kind_mask: frozenset = ALL_KINDS
    """Entry kinds to keep"""

    def __post_init__(self) -> None:
        # Accept any iterable of kinds, store a frozenset
        object.__setattr__(self, "kind_mask", frozenset(self.kind_mask))

    @property
    def is_unfiltered(self) -> bool:
        """True when the filter keeps every raw name."""
        return (
            self.include_hidden
            and self.include_dot_entries
            and self.kind_mask >= ALL_KINDS
        )

    @classmethod
    def unfiltered(cls) -> "ListingFilter":
        return cls()

    @classmethod
    def mirror_default(cls) -> "ListingFilter":
        """Filter used when mirroring: files and directories, no symlinks."""
        return cls(
            include_hidden=True,
            include_dot_entries=False,
            kind_mask=frozenset({EntryKind.FILE, EntryKind.DIRECTORY}),
        )

    @classmethod
    def directories_only(cls, include_hidden: bool = True) -> "ListingFilter":
        return cls(
            include_hidden=include_hidden,
            include_dot_entries=False,
            kind_mask=frozenset({EntryKind.DIRECTORY}),
        )


class CopyDirection(str, Enum):
    """Which side is the source for a whole session."""

    TO_DEVICE = "to_device"
    """Local tree is copied onto the device"""

    FROM_DEVICE = "from_device"
    """Device tree is copied into the local root"""


class TransferState(str, Enum):
    """Lifecycle of a transfer session."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    COMPLETED = "completed"
    COMPLETED_WITH_ERRORS = "completed_with_errors"


@dataclass
class NameAllocation:
    """Ephemeral state while picking a device filename for one file."""

    bucket_directory: str
    candidate_name: str = ""

    @property
    def path(self) -> str:
        return f"{self.bucket_directory.rstrip('/')}/{self.candidate_name}"


@dataclass
class FailedEntry:
    """A file that could not be copied, or a directory that could not be listed."""

    path: str
    error: Exception

    @property
    def reason(self) -> str:
        return str(self.error) or type(self.error).__name__


@dataclass
class MirrorResult:
    """Outcome of mirroring one source tree."""

    source_root: str
    dest_root: str
    direction: CopyDirection
    copied: list[tuple[str, str]] = field(default_factory=list)
    """(source path, destination path) for each copied file"""

    failed: list[FailedEntry] = field(default_factory=list)
    bytes_copied: int = 0

    @property
    def ok(self) -> bool:
        """True if no entry failed."""
        return not self.failed

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_root": self.source_root,
            "dest_root": self.dest_root,
            "direction": self.direction.value,
            "copied": [{"source": s, "destination": d} for s, d in self.copied],
            "failed": [{"path": f.path, "error": f.reason} for f in self.failed],
            "bytes_copied": self.bytes_copied,
            "ok": self.ok,
        }


@dataclass
class SessionResult:
    """Aggregate outcome of a transfer session."""

    session_id: str
    direction: CopyDirection
    state: TransferState = TransferState.NOT_STARTED
    results: dict[str, MirrorResult] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.state == TransferState.COMPLETED

    @property
    def files_copied(self) -> int:
        return sum(len(r.copied) for r in self.results.values())

    @property
    def files_failed(self) -> int:
        return sum(len(r.failed) for r in self.results.values())

    @property
    def bytes_copied(self) -> int:
        return sum(r.bytes_copied for r in self.results.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "direction": self.direction.value,
            "state": self.state.value,
            "success": self.success,
            "files_copied": self.files_copied,
            "files_failed": self.files_failed,
            "bytes_copied": self.bytes_copied,
            "directories": {k: v.to_dict() for k, v in self.results.items()},
        }
