"""Transfer sessions: mirror a set of top-level directories in one direction."""

import logging
import threading
import time
import uuid
from collections.abc import Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Optional, Protocol, Union

from .allocator import UnusedNameAllocator
from .channel import DeviceFileChannel, LocalDirectoryChannel
from .exceptions import ChannelUnavailableError
from .mirror import DirectoryMirror, FileCopiedCallback
from .models import CopyDirection, SessionResult, TransferState
from .utils import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_IMPORTANT_DIRECTORIES,
    normalize_device_path,
)

logger = logging.getLogger(__name__)


class ProgressSink(Protocol):
    """Receives the two lifecycle notifications of a session."""

    def on_task_started(self, task_id: str) -> None: ...

    def on_transfer_finished(self, success: bool) -> None: ...


class NullProgressSink:
    """Progress sink that ignores all notifications."""

    def on_task_started(self, task_id: str) -> None:
        pass

    def on_transfer_finished(self, success: bool) -> None:
        pass


class TransferSession:
    """One user-initiated mirror operation between a device and a local root.

    The session borrows a device channel for the duration of :meth:`run` and
    mirrors each top-level directory in the given order. The same device-style
    path is used on both sides, e.g. ``/iTunes_Control/iTunes`` on the device
    corresponds to ``<local_root>/iTunes_Control/iTunes``. A failure inside one
    directory never stops the others; only an unreachable channel aborts the
    whole session.

    Examples:
        >>> session = TransferSession("00008030-001A", Path("~/ipod-backup"))
        >>> result = session.run(channel)
        >>> result.state
        <TransferState.COMPLETED: 'completed'>
    """

    def __init__(
        self,
        device_id: str,
        local_root: Union[str, Path],
        top_level_directories: Sequence[str] = DEFAULT_IMPORTANT_DIRECTORIES,
        direction: CopyDirection = CopyDirection.FROM_DEVICE,
        session_id: Optional[str] = None,
        allocator: Optional[UnusedNameAllocator] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        on_file_copied: Optional[FileCopiedCallback] = None,
    ):
        """Initialize a transfer session.

        Args:
            device_id: Identifier of the device (for logging and output)
            local_root: Local directory mirroring the device root
            top_level_directories: Device-style directories to mirror, in order
            direction: Copy direction for the whole session
            session_id: Session identifier, generated if not given
            allocator: Name allocator for files copied to the device
            chunk_size: Chunk size for stream copies
            on_file_copied: Optional callback(source, destination, size)
        """
        self.device_id = device_id
        self.local_root = Path(local_root).expanduser()
        self.top_level_directories = [
            normalize_device_path(d) for d in top_level_directories
        ]
        self.direction = CopyDirection(direction)
        self.session_id = session_id or uuid.uuid4().hex
        self.allocator = allocator
        self.chunk_size = chunk_size
        self.on_file_copied = on_file_copied
        self.state = TransferState.NOT_STARTED
        self._running = threading.Lock()

    def __repr__(self) -> str:
        return (
            f"TransferSession(id={self.session_id!r}, device={self.device_id!r}, "
            f"direction={self.direction.value}, state={self.state.value})"
        )

    def run(
        self,
        channel: DeviceFileChannel,
        progress: Optional[ProgressSink] = None,
    ) -> SessionResult:
        """Mirror every top-level directory, blocking until done.

        Args:
            channel: Device channel, exclusively used by this session
            progress: Sink for the start and finish notifications

        Returns:
            Aggregate result with one MirrorResult per top-level directory

        Raises:
            ChannelError: If the channel is unavailable. The finish
                notification has already been sent with ``success=False``.
            RuntimeError: If the session is already running

        Any other error that aborts the session is re-raised after the
        finish notification has been sent with ``success=False``.
        """
        if not self._running.acquire(blocking=False):
            raise RuntimeError(f"Session {self.session_id} is already running")
        try:
            return self._run(channel, progress or NullProgressSink())
        finally:
            self._running.release()

    def _run(self, channel: DeviceFileChannel, progress: ProgressSink) -> SessionResult:
        result = SessionResult(session_id=self.session_id, direction=self.direction)
        self.state = TransferState.RUNNING
        result.state = self.state
        progress.on_task_started(self.session_id)

        try:
            final = self._mirror_all(channel, result)
        except ChannelUnavailableError as e:
            logger.error(f"Device {self.device_id} unavailable: {e}")
            self._finish(result, progress, TransferState.COMPLETED_WITH_ERRORS)
            raise
        except Exception as e:
            logger.error(f"Session {self.session_id} aborted: {e}")
            self._finish(result, progress, TransferState.COMPLETED_WITH_ERRORS)
            raise

        self._finish(result, progress, final)
        return result

    def _mirror_all(
        self, channel: DeviceFileChannel, result: SessionResult
    ) -> TransferState:
        channel.check_connection()

        logger.info(
            f"Session {self.session_id}: {self.direction.value} "
            f"({len(self.top_level_directories)} directories, device {self.device_id})"
        )
        start = time.time()
        mirror = DirectoryMirror(
            LocalDirectoryChannel(self.local_root),
            allocator=self.allocator,
            chunk_size=self.chunk_size,
            on_file_copied=self.on_file_copied,
        )

        for directory in self.top_level_directories:
            mirror_result = mirror.copy_direction(
                channel, directory, directory, self.direction
            )
            result.results[directory] = mirror_result
            if not mirror_result.ok:
                logger.warning(
                    f"{directory}: {len(mirror_result.failed)} entry(ies) failed"
                )

        failed = result.files_failed
        final = (
            TransferState.COMPLETED_WITH_ERRORS if failed else TransferState.COMPLETED
        )
        logger.info(
            f"Session {self.session_id} finished in {time.time() - start:.2f}s: "
            f"{result.files_copied} copied, {failed} failed"
        )
        return final

    def _finish(
        self, result: SessionResult, progress: ProgressSink, state: TransferState
    ) -> None:
        self.state = state
        result.state = state
        progress.on_transfer_finished(state == TransferState.COMPLETED)

    def start(
        self,
        channel: DeviceFileChannel,
        progress: Optional[ProgressSink] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ) -> "Future[SessionResult]":
        """Run the session on a dedicated worker thread.

        Args:
            channel: Device channel, exclusively used by this session
            progress: Sink for the start and finish notifications
            executor: Executor to submit to; a single-thread executor is
                created when omitted

        Returns:
            Future resolving to the session result
        """
        if executor is not None:
            return executor.submit(self.run, channel, progress)

        worker = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=f"afcsync-{self.session_id[:8]}"
        )
        try:
            return worker.submit(self.run, channel, progress)
        finally:
            # Pending work still runs; the thread exits once it is done
            worker.shutdown(wait=False)
