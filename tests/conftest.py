"""Shared fixtures: an in-memory device channel with failure injection."""

import io
import tempfile
from pathlib import Path
from typing import Any, Optional

import pytest

from afcsync.exceptions import ChannelError, ChannelUnavailableError


class FailingReader(io.BytesIO):
    """Readable stream that raises after the first chunk."""

    def __init__(self, data: bytes):
        super().__init__(data)
        self._reads = 0

    def read(self, size: Optional[int] = -1) -> bytes:
        self._reads += 1
        if self._reads > 1:
            raise OSError("read error")
        return super().read(size)


class RecordingWriter(io.BytesIO):
    """Writable stream that stores its content in the channel on close."""

    def __init__(self, channel: "FakeChannel", path: str, fail: bool = False):
        super().__init__()
        self._channel = channel
        self._path = path
        self._fail = fail

    def write(self, data: Any) -> int:
        if self._fail:
            raise OSError(f"write error on {self._path}")
        return super().write(data)

    def close(self) -> None:
        if not self.closed:
            self._channel.files[self._path] = self.getvalue()
            self._channel._add(self._path)
        super().close()


class FakeChannel:
    """In-memory device channel.

    Directories and files are kept in insertion order, which is the order
    ``read_directory`` reports them in.
    """

    def __init__(self) -> None:
        self.dirs: set[str] = {"/"}
        self.files: dict[str, bytes] = {}
        self.special: dict[str, str] = {}
        self.properties: dict[str, Any] = {}
        self.connected = True
        self.fail_list: set[str] = set()
        self.fail_metadata: set[str] = set()
        self.fail_read: set[str] = set()
        self.fail_write: set[str] = set()
        self.fail_write_calls: set[int] = set()
        self.write_calls = 0
        self.metadata_queries: list[str] = []
        self.exists_calls: list[str] = []
        self._order: list[str] = []

    # -- tree building ------------------------------------------------------

    def _add(self, path: str) -> None:
        if path not in self._order:
            self._order.append(path)

    def mkdir(self, path: str) -> None:
        parts = [p for p in path.split("/") if p]
        for i in range(1, len(parts) + 1):
            sub = "/" + "/".join(parts[:i])
            if sub not in self.dirs:
                self.dirs.add(sub)
                self._add(sub)

    def add_file(self, path: str, data: bytes = b"") -> None:
        parent = path.rsplit("/", 1)[0] or "/"
        self.mkdir(parent)
        self.files[path] = data
        self._add(path)

    def add_special(self, path: str, token: str) -> None:
        parent = path.rsplit("/", 1)[0] or "/"
        self.mkdir(parent)
        self.special[path] = token
        self._add(path)

    def remove(self, path: str) -> None:
        self.dirs.discard(path)
        self.files.pop(path, None)
        self.special.pop(path, None)
        if path in self._order:
            self._order.remove(path)

    def files_under(self, prefix: str) -> dict[str, bytes]:
        prefix = prefix.rstrip("/") + "/"
        return {p: d for p, d in self.files.items() if p.startswith(prefix)}

    # -- DeviceFileChannel --------------------------------------------------

    def check_connection(self) -> None:
        if not self.connected:
            raise ChannelUnavailableError("Device not connected")

    def read_property(self, key: str, domain: Optional[str] = None) -> Optional[Any]:
        return self.properties.get(f"{domain}/{key}" if domain else key)

    def read_directory(self, path: str) -> list[str]:
        if path in self.fail_list or path not in self.dirs:
            raise ChannelError(f"Cannot read directory {path}", path=path)
        prefix = "/" if path == "/" else path + "/"
        names = [
            p[len(prefix) :]
            for p in self._order
            if p.startswith(prefix) and "/" not in p[len(prefix) :]
        ]
        return [".", ".."] + names

    def _ifmt(self, path: str) -> Optional[str]:
        if path in self.dirs:
            return "S_IFDIR"
        if path in self.files:
            return "S_IFREG"
        return self.special.get(path)

    def get_file_info(self, path: str, key: str) -> Optional[str]:
        self.metadata_queries.append(path)
        if path in self.fail_metadata:
            raise ChannelError(f"Metadata query failed for {path}", path=path)
        if key == "st_ifmt":
            return self._ifmt(path)
        if key == "st_size" and path in self.files:
            return str(len(self.files[path]))
        return None

    def exists(self, path: str) -> bool:
        self.exists_calls.append(path)
        return self._ifmt(path) is not None

    def open_read(self, path: str) -> io.BytesIO:
        if path not in self.files:
            raise ChannelError(f"No such file {path}", path=path)
        if path in self.fail_read:
            return FailingReader(self.files[path])
        return io.BytesIO(self.files[path])

    def open_write(self, path: str) -> RecordingWriter:
        parent = path.rsplit("/", 1)[0] or "/"
        if parent not in self.dirs:
            raise ChannelError(f"Parent directory missing for {path}", path=path)
        self.write_calls += 1
        fail = path in self.fail_write or self.write_calls in self.fail_write_calls
        return RecordingWriter(self, path, fail=fail)


class SequenceRandom:
    """Random source returning a fixed sequence of values."""

    def __init__(self, values: list[int]):
        self.values = list(values)
        self.calls: list[int] = []

    def randrange(self, stop: int) -> int:
        self.calls.append(stop)
        value = self.values.pop(0)
        assert 0 <= value < stop
        return value


class RecordingSink:
    """Progress sink that records every notification."""

    def __init__(self) -> None:
        self.events: list[tuple[str, Any]] = []

    def on_task_started(self, task_id: str) -> None:
        self.events.append(("started", task_id))

    def on_transfer_finished(self, success: bool) -> None:
        self.events.append(("finished", success))


@pytest.fixture
def channel():
    """Create an empty in-memory device channel."""
    return FakeChannel()


@pytest.fixture
def sink():
    """Create a recording progress sink."""
    return RecordingSink()


@pytest.fixture
def sequence_random():
    """Provide the fixed-sequence random source class."""
    return SequenceRandom


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)
