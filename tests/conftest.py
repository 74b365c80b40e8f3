"""Pytest configuration and fixtures."""

import sys
import threading
import time
import uuid
from collections.abc import Callable, Iterator
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from fastapi.testclient import TestClient

from reloader.config import Settings
from reloader.errors import ClientConnectionError
from reloader.reloader import Reloader


class CallbackRecorder:
    """Rebuild callback that counts its calls and can be told to fail."""

    def __init__(self, fail_times: int = 0) -> None:
        self.calls = 0
        self.fail_times = fail_times
        self._lock = threading.Lock()

    def __call__(self) -> None:
        with self._lock:
            self.calls += 1
            if self.calls <= self.fail_times:
                raise RuntimeError(f"rebuild failed on call {self.calls}")


class FakeConnection:
    """In-memory stand-in for a client connection."""

    def __init__(self, fail: bool = False) -> None:
        self.id = uuid.uuid4().hex
        self.fail = fail
        self.sent: list[str] = []
        self.closed = False

    def send(self, payload: str, timeout: float = 5.0) -> None:
        if self.fail or self.closed:
            raise ClientConnectionError("connection closed by peer")
        self.sent.append(payload)

    def close(self, timeout: float = 5.0) -> None:
        self.closed = True


def poll(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    """Wait until predicate holds or timeout elapses."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


@pytest.fixture
def wait_until() -> Callable[..., None]:
    """Assert that a condition becomes true within a timeout."""

    def _wait(predicate: Callable[[], bool], timeout: float = 5.0) -> None:
        assert poll(predicate, timeout), "condition not met before timeout"

    return _wait


@pytest.fixture
def settings() -> Settings:
    """Create test settings."""
    return Settings(
        host="127.0.0.1",
        port=0,
        enable_logging=True,
        debug=True,
        send_timeout=2.0,
        shutdown_timeout=2.0,
    )


@pytest.fixture
def recorder() -> CallbackRecorder:
    """Rebuild callback recording its invocations."""
    return CallbackRecorder()


@pytest.fixture
def make_reloader(settings: Settings) -> Iterator[Callable[..., Reloader]]:
    """Factory for reloaders bound to free ports, closed after the test."""
    created: list[Reloader] = []

    def _make(callback: Callable[[], None], **options: object) -> Reloader:
        reloader = Reloader(callback, settings=settings, **options)
        created.append(reloader)
        return reloader

    yield _make

    for reloader in created:
        reloader.close()


@pytest.fixture
def reloader(make_reloader: Callable[..., Reloader], recorder: CallbackRecorder) -> Reloader:
    """Running reloader using the recording callback."""
    return make_reloader(recorder)


@pytest.fixture
def client(reloader: Reloader) -> TestClient:
    """Create test client for the reloader's own app."""
    assert reloader.app is not None
    return TestClient(reloader.app)


@pytest.fixture
def views(tmp_path: Path) -> Path:
    """Template directory with one existing page."""
    views = tmp_path / "views"
    views.mkdir()
    (views / "a.html").write_text("<p>a</p>")
    (views / "b.html").write_text("<p>b</p>")
    return views
