"""End-to-end reloader tests: filesystem change to browser notification."""

import os
import socket
import time
from collections.abc import Callable
from pathlib import Path

import pytest
from conftest import CallbackRecorder, FakeConnection
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from reloader.errors import ConstructionError, FilesystemError
from reloader.events.types import ChangeEvent, ChangeKind
from reloader.reloader import Reloader


def _touch(path: Path) -> None:
    os.utime(path, None)


def test_touch_rebuilds_once_and_broadcasts(
    reloader: Reloader,
    recorder: CallbackRecorder,
    client: TestClient,
    views: Path,
    wait_until: Callable[..., None],
) -> None:
    """Touching a watched page runs the callback once and notifies clients."""
    reloader.add(views)

    with client.websocket_connect("/ws") as ws:
        wait_until(lambda: reloader.connection_count == 1)
        _touch(views / "a.html")

        wait_until(lambda: recorder.calls >= 1)
        assert ws.receive_text().endswith("a.html")

    time.sleep(0.5)
    assert recorder.calls == 1


def test_closed_client_is_removed_without_affecting_others(
    reloader: Reloader,
    client: TestClient,
    views: Path,
    wait_until: Callable[..., None],
) -> None:
    """A client closing its side is unregistered; the rest still get updates."""
    reloader.add(views)

    with client.websocket_connect("/ws") as keep:
        with client.websocket_connect("/ws"):
            wait_until(lambda: reloader.connection_count == 2)
        wait_until(lambda: reloader.connection_count == 1)

        _touch(views / "b.html")
        assert keep.receive_text().endswith("b.html")
        assert reloader.connection_count == 1


def test_dead_connection_pruned_during_broadcast(
    reloader: Reloader,
    client: TestClient,
    views: Path,
    wait_until: Callable[..., None],
) -> None:
    """A connection whose send fails is dropped while live clients are served."""
    reloader.add(views)
    dead = FakeConnection(fail=True)

    with client.websocket_connect("/ws") as ws:
        wait_until(lambda: reloader.connection_count == 1)
        reloader.app.state.registry.register(dead)
        assert reloader.connection_count == 2

        _touch(views / "a.html")
        assert ws.receive_text().endswith("a.html")
        wait_until(lambda: reloader.connection_count == 1)
        assert dead.closed


def test_add_nonexistent_path_leaves_targets_alone(reloader: Reloader, views: Path) -> None:
    """Registering a missing path fails and changes nothing."""
    resolved = reloader.add(views)

    with pytest.raises(FilesystemError) as exc_info:
        reloader.add("/does/not/exist")

    assert exc_info.value.reason == "not_found"
    assert reloader.watched_paths == (resolved,)


def test_ignored_suffix_does_not_rebuild(
    reloader: Reloader, recorder: CallbackRecorder, views: Path
) -> None:
    """Files outside the reload-worthy suffixes are ignored."""
    script = views / "main.py"
    script.write_text("print('hi')")
    reloader.add(views)

    _touch(script)
    time.sleep(1.0)
    assert recorder.calls == 0


def test_accept_all_rebuilds_on_any_file(
    make_reloader: Callable[..., Reloader],
    views: Path,
    wait_until: Callable[..., None],
) -> None:
    """The permissive policy accepts every suffix."""
    recorder = CallbackRecorder()
    reloader = make_reloader(recorder, accept_all_events=True)
    script = views / "main.py"
    script.write_text("print('hi')")
    reloader.add(views)

    _touch(script)
    wait_until(lambda: recorder.calls >= 1)


def test_failing_callback_does_not_stop_the_loop(
    make_reloader: Callable[..., Reloader],
    views: Path,
    wait_until: Callable[..., None],
) -> None:
    """A raising callback is absorbed and later events are still handled."""
    recorder = CallbackRecorder(fail_times=1)
    reloader = make_reloader(recorder)
    reloader.add(views)
    client = TestClient(reloader.app)

    with client.websocket_connect("/ws") as ws:
        wait_until(lambda: reloader.connection_count == 1)
        _touch(views / "a.html")
        assert ws.receive_text().endswith("a.html")
        assert reloader.callback_failures == 1

        _touch(views / "b.html")
        assert ws.receive_text().endswith("b.html")

    assert recorder.calls >= 2


def test_events_processed_in_arrival_order(
    reloader: Reloader,
    client: TestClient,
    wait_until: Callable[..., None],
) -> None:
    """Events from the watch set are broadcast in the order they arrive."""
    assert reloader._watch_set is not None
    with client.websocket_connect("/ws") as ws:
        wait_until(lambda: reloader.connection_count == 1)
        for name in ("one.html", "two.css", "three.html"):
            reloader._watch_set.put(ChangeEvent(path=f"/v/{name}", kind=ChangeKind.MODIFIED))

        received = [ws.receive_text() for _ in range(3)]

    assert received == ["/v/one.html", "/v/two.css", "/v/three.html"]


def test_close_stops_callbacks_and_closes_clients(
    reloader: Reloader,
    recorder: CallbackRecorder,
    client: TestClient,
    views: Path,
    wait_until: Callable[..., None],
) -> None:
    """After close, changes are ignored and clients see the socket close."""
    reloader.add(views)

    with client.websocket_connect("/ws") as ws:
        wait_until(lambda: reloader.connection_count == 1)
        reloader.close()

        assert reloader.connection_count == 0
        with pytest.raises(WebSocketDisconnect):
            ws.receive_text()

    _touch(views / "a.html")
    time.sleep(1.0)
    assert recorder.calls == 0


def test_close_twice_is_harmless(reloader: Reloader) -> None:
    """Calling close again does nothing."""
    reloader.close()
    reloader.close()
    assert reloader.is_closed


def test_add_after_close_fails(reloader: Reloader, views: Path) -> None:
    """A closed reloader accepts no new targets."""
    reloader.close()
    with pytest.raises(FilesystemError):
        reloader.add(views)


def test_template_function_returns_script(reloader: Reloader) -> None:
    """The LiveReload template function yields the rendered script."""
    script = reloader.template_functions()["LiveReload"]()
    assert script == reloader.reload_script()
    assert f"+ {reloader.port} +" in script


def test_instances_do_not_share_endpoints(
    make_reloader: Callable[..., Reloader], wait_until: Callable[..., None]
) -> None:
    """Two reloaders own separate servers and registries."""
    first = make_reloader(CallbackRecorder())
    second = make_reloader(CallbackRecorder())
    assert first.port != second.port

    with TestClient(first.app).websocket_connect("/ws"):
        wait_until(lambda: first.connection_count == 1)
        assert second.connection_count == 0


def test_custom_ws_path(
    make_reloader: Callable[..., Reloader], wait_until: Callable[..., None]
) -> None:
    """The endpoint path is configurable and embedded in the script."""
    reloader = make_reloader(CallbackRecorder(), ws_path="/__reload")
    assert '"/__reload"' in reloader.reload_script()

    with TestClient(reloader.app).websocket_connect("/__reload"):
        wait_until(lambda: reloader.connection_count == 1)


def test_unknown_option_rejected() -> None:
    """Misspelled options fail loudly instead of being ignored."""
    with pytest.raises(TypeError):
        Reloader(lambda: None, 0, enable_loging=True)


def test_port_in_use_raises_construction_error() -> None:
    """Failing to bind the endpoint is a construction error."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        sock.listen()
        port = sock.getsockname()[1]

        with pytest.raises(ConstructionError) as exc_info:
            Reloader(lambda: None, port, host="127.0.0.1", startup_timeout=5.0)

    assert isinstance(exc_info.value.__cause__, OSError)


def test_option_values_are_validated(make_reloader: Callable[..., Reloader]) -> None:
    """Constructor options go through the same coercion as settings."""
    reloader = make_reloader(CallbackRecorder(), debounce_ms="100")
    assert reloader.settings.debounce_ms == 100
    assert reloader.settings.enable_logging is True


def test_invalid_option_value_raises_construction_error() -> None:
    """An option that cannot be coerced is rejected up front."""
    with pytest.raises(ConstructionError):
        Reloader(lambda: None, 0, debounce_ms="soon")


def test_handler_error_does_not_stop_the_loop(
    reloader: Reloader,
    client: TestClient,
    monkeypatch: pytest.MonkeyPatch,
    wait_until: Callable[..., None],
) -> None:
    """An unexpected error while handling one event leaves later events flowing."""
    assert reloader._watch_set is not None
    accepts = reloader._filter.accepts
    seen: list[str] = []

    def flaky_accepts(event: ChangeEvent, now: float | None = None) -> bool:
        seen.append(event.path)
        if len(seen) == 1:
            raise RuntimeError("filter exploded")
        return accepts(event, now)

    monkeypatch.setattr(reloader._filter, "accepts", flaky_accepts)

    with client.websocket_connect("/ws") as ws:
        wait_until(lambda: reloader.connection_count == 1)
        reloader._watch_set.put(ChangeEvent(path="/v/one.html", kind=ChangeKind.MODIFIED))
        reloader._watch_set.put(ChangeEvent(path="/v/two.html", kind=ChangeKind.MODIFIED))

        assert ws.receive_text() == "/v/two.html"

    assert seen == ["/v/one.html", "/v/two.html"]


def test_logging_disabled_is_silent(
    capsys: pytest.CaptureFixture[str],
    views: Path,
    wait_until: Callable[..., None],
) -> None:
    """With logging off nothing is written from construction through close."""
    recorder = CallbackRecorder(fail_times=1)
    reloader = Reloader(recorder, 0, host="127.0.0.1", enable_logging=False)
    try:
        reloader.add(views)
        with TestClient(reloader.app).websocket_connect("/ws") as ws:
            wait_until(lambda: reloader.connection_count == 1)
            _touch(views / "a.html")
            assert ws.receive_text().endswith("a.html")
        wait_until(lambda: reloader.connection_count == 0)
    finally:
        reloader.close()

    assert reloader.callback_failures == 1
    captured = capsys.readouterr()
    assert captured.out == ""
    assert captured.err == ""
