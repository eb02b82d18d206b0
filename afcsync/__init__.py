"""afcsync - Mirror a music library between a local directory and a device."""

from .allocator import UnusedNameAllocator, extension_for
from .channel import DeviceFileChannel, LocalDirectoryChannel
from .classifier import (
    classify,
    count_children,
    file_size,
    list_directory,
    query_metadata,
)
from .exceptions import (
    AfcSyncConfigError,
    AfcSyncError,
    AllocationError,
    BucketVanishedError,
    ChannelError,
    ChannelUnavailableError,
    CopyError,
    CopyIOError,
    ExhaustedAttemptsError,
    MetadataError,
    NoBucketsError,
)
from .mirror import DirectoryMirror
from .models import (
    CopyDirection,
    Entry,
    EntryKind,
    FailedEntry,
    ListingFilter,
    MirrorResult,
    SessionResult,
    TransferState,
)
from .session import NullProgressSink, ProgressSink, TransferSession
from .utils import copy_stream

__all__ = [
    "DeviceFileChannel",
    "LocalDirectoryChannel",
    "classify",
    "count_children",
    "file_size",
    "list_directory",
    "query_metadata",
    "UnusedNameAllocator",
    "extension_for",
    "DirectoryMirror",
    "TransferSession",
    "ProgressSink",
    "NullProgressSink",
    "copy_stream",
    "CopyDirection",
    "Entry",
    "EntryKind",
    "FailedEntry",
    "ListingFilter",
    "MirrorResult",
    "SessionResult",
    "TransferState",
    "AfcSyncError",
    "AfcSyncConfigError",
    "ChannelError",
    "ChannelUnavailableError",
    "MetadataError",
    "CopyError",
    "CopyIOError",
    "AllocationError",
    "NoBucketsError",
    "BucketVanishedError",
    "ExhaustedAttemptsError",
]
