"""Health and script endpoint tests."""

from pathlib import Path

from fastapi.testclient import TestClient

from reloader.reloader import Reloader


def test_liveness_returns_200(client: TestClient) -> None:
    """Liveness endpoint returns 200 OK."""
    response = client.get("/health/live")
    assert response.status_code == 200


def test_liveness_returns_status(client: TestClient) -> None:
    """Liveness endpoint returns alive status and counts."""
    response = client.get("/health/live")
    data = response.json()
    assert data["status"] == "alive"
    assert data["connections"] == 0
    assert data["watching"] == []


def test_liveness_lists_watched_paths(
    client: TestClient, reloader: Reloader, views: Path
) -> None:
    """Watched paths show up in the liveness payload."""
    resolved = reloader.add(views)
    data = client.get("/health/live").json()
    assert data["watching"] == [resolved]


def test_script_endpoint_serves_javascript(client: TestClient, reloader: Reloader) -> None:
    """The client script is served as JavaScript bound to the real port."""
    response = client.get("/livereload.js")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/javascript")
    assert str(reloader.port) in response.text
    assert "<script" not in response.text
