"""Exception hierarchy for afcsync."""

from typing import Optional


class AfcSyncError(Exception):
    """Base exception for all afcsync errors."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.path = path


class AfcSyncConfigError(AfcSyncError):
    """Configuration file is missing, unreadable or invalid."""


class ChannelError(AfcSyncError):
    """The device channel returned a protocol-level failure."""


class ChannelUnavailableError(ChannelError):
    """The device channel could not be established.

    Fatal for a whole transfer session: no directory can proceed.
    """


class MetadataError(AfcSyncError):
    """A metadata query for a single entry failed."""


class CopyError(AfcSyncError):
    """Copying a single file failed."""


class CopyIOError(CopyError):
    """A read or write failed in the middle of a file.

    The destination is left truncated and must be copied again wholesale.
    """


class AllocationError(AfcSyncError):
    """No unused device filename could be allocated."""


class NoBucketsError(AllocationError):
    """The device has no bucket directories."""


class BucketVanishedError(AllocationError):
    """The chosen bucket directory no longer exists."""


class ExhaustedAttemptsError(AllocationError):
    """Every generated candidate filename was already taken."""

    def __init__(self, message: str, path: Optional[str] = None, attempts: int = 0):
        super().__init__(message, path)
        self.attempts = attempts
