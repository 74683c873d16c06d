"""Integration tests for the assembled application.

The app is created with ``create_app()`` and driven through the real
lifespan, with roots under a temporary directory and a small Python script
standing in for the download tool.
"""

import json
import sys
import textwrap
import time
from pathlib import Path
from typing import Any, Dict, Iterator, List

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from homedash.api.events import WS_CLOSE_UNAUTHORIZED
from homedash.main import create_app
from homedash.services.event_bus import get_event_bus
from homedash.services.job_controller import get_job_controller

TARGET = "https://open.spotify.com/playlist/37i9dQZF1DXcBWIGoYBM5M"

FAKE_TOOL = """
import sys, time
if "--version" in sys.argv:
    print("fake-tool 4.2.0")
    sys.exit(0)
if "slow" in sys.argv[1]:
    time.sleep(1)
print("Processing query")
print("rate limited", file=sys.stderr)
"""


@pytest.fixture
def roots(tmp_path: Path) -> Dict[str, Path]:
    browser_root = tmp_path / "files"
    (browser_root / "Documents").mkdir(parents=True)
    (browser_root / "Documents" / "report.pdf").write_bytes(b"%PDF-1.4 test")
    (browser_root / "readme.txt").write_text("hello")

    media_root = tmp_path / "music"
    (media_root / "Artist" / "Album").mkdir(parents=True)
    (media_root / "Artist" / "Album" / "Song.mp3").write_bytes(b"ID3" + b"\x00" * 64)

    tool = tmp_path / "fake_tool.py"
    tool.write_text(textwrap.dedent(FAKE_TOOL))

    (tmp_path / "outside.txt").write_text("secret")

    return {
        "browser": browser_root,
        "media": media_root,
        "tool": tool,
        "registry": tmp_path / "data" / "services.json",
    }


@pytest.fixture
def configure_env(monkeypatch: pytest.MonkeyPatch, roots: Dict[str, Path]) -> None:
    monkeypatch.setenv("APP_STORAGE_BROWSER_ROOT", str(roots["browser"]))
    monkeypatch.setenv("APP_STORAGE_MEDIA_ROOT", str(roots["media"]))
    monkeypatch.setenv("APP_STORAGE_REGISTRY_PATH", str(roots["registry"]))
    monkeypatch.setenv("APP_JOBS_COMMAND", json.dumps([sys.executable, str(roots["tool"])]))
    monkeypatch.setenv("APP_MONITORING_STATUS_CHECK_TIMEOUT", "1")
    monkeypatch.setenv("APP_LOGGING_LEVEL", "WARNING")


@pytest.fixture
def client(configure_env: None) -> Iterator[TestClient]:
    with TestClient(create_app()) as test_client:
        yield test_client


def wait_until_idle(timeout: float = 10.0) -> None:
    deadline = time.monotonic() + timeout
    while get_job_controller().is_running():
        if time.monotonic() > deadline:
            raise AssertionError("job did not finish in time")
        time.sleep(0.05)


def receive_until_finished(websocket: Any) -> List[Dict[str, str]]:
    messages = []
    while True:
        message = websocket.receive_json()
        messages.append(message)
        if message["event"] in ("job:finished", "job:spawn_error"):
            return messages


class TestHealth:
    """Tests for the health endpoints."""

    def test_health_all_components(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert set(data["components"]) == {"downloader", "browser_root", "media_root", "event_bus"}
        assert data["components"]["downloader"]["version"] == "fake-tool 4.2.0"

    def test_health_unhealthy_without_roots(
        self, monkeypatch: pytest.MonkeyPatch, configure_env: None
    ) -> None:
        monkeypatch.delenv("APP_STORAGE_BROWSER_ROOT")

        with TestClient(create_app()) as client:
            health = client.get("/health")
            readiness = client.get("/readiness")

        assert health.status_code == 503
        assert health.json()["components"]["browser_root"]["status"] == "unhealthy"
        assert readiness.status_code == 503
        assert readiness.json()["ready"] is False

    def test_liveness_and_readiness(self, client: TestClient) -> None:
        assert client.get("/liveness").json() == {"status": "alive"}
        assert client.get("/readiness").json()["ready"] is True


class TestFiles:
    """Tests for the file browser endpoints."""

    def test_browse_root(self, client: TestClient) -> None:
        response = client.get("/api/files/browse")

        assert response.status_code == 200
        entries = response.json()
        assert [e["name"] for e in entries] == ["Documents", "readme.txt"]
        assert entries[0] == {
            "name": "Documents",
            "type": "folder",
            "path": "Documents",
            "modified": entries[0]["modified"],
        }
        assert entries[1]["size"] == 5

    def test_browse_subdirectory(self, client: TestClient) -> None:
        response = client.get("/api/files/browse", params={"path": "/Documents"})

        assert [e["path"] for e in response.json()] == ["Documents/report.pdf"]

    def test_browse_escape_denied(self, client: TestClient) -> None:
        response = client.get("/api/files/browse", params={"path": "../"})

        assert response.status_code == 403
        assert response.json()["error_code"] == "ACCESS_DENIED"

    def test_browse_missing_directory(self, client: TestClient) -> None:
        response = client.get("/api/files/browse", params={"path": "nope"})

        assert response.status_code == 404

    def test_download_file(self, client: TestClient) -> None:
        response = client.get("/api/files/download", params={"path": "Documents/report.pdf"})

        assert response.status_code == 200
        assert response.content == b"%PDF-1.4 test"
        assert 'filename="report.pdf"' in response.headers["content-disposition"]

    def test_download_requires_path(self, client: TestClient) -> None:
        response = client.get("/api/files/download")

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_PATH"

    def test_download_outside_root_denied(self, client: TestClient) -> None:
        response = client.get("/api/files/download", params={"path": "../outside.txt"})

        assert response.status_code == 403
        assert "secret" not in response.text


class TestMedia:
    """Tests for the media library endpoints."""

    def test_catalog(self, client: TestClient) -> None:
        response = client.get("/api/media/catalog")

        assert response.status_code == 200
        assert response.json() == [
            {
                "path": "Artist/Album/Song.mp3",
                "title": "Song",
                "artist": "Artist",
                "album": "Album",
            }
        ]

    def test_stream(self, client: TestClient) -> None:
        response = client.get("/api/media/stream", params={"path": "Artist/Album/Song.mp3"})

        assert response.status_code == 200
        assert response.content.startswith(b"ID3")
        assert response.headers["content-type"] == "audio/mpeg"

    def test_stream_range_request(self, client: TestClient) -> None:
        response = client.get(
            "/api/media/stream",
            params={"path": "Artist/Album/Song.mp3"},
            headers={"Range": "bytes=0-2"},
        )

        assert response.status_code == 206
        assert response.content == b"ID3"

    def test_stream_missing_track(self, client: TestClient) -> None:
        response = client.get("/api/media/stream", params={"path": "Artist/none.mp3"})

        assert response.status_code == 404


class TestJobs:
    """Tests for the job endpoints and the event push channel."""

    def test_invalid_target_rejected(self, client: TestClient) -> None:
        response = client.post("/api/jobs", json={"target": "https://example.com/x"})

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_TARGET"
        assert client.get("/api/jobs/current").json() == {"state": "idle", "job": None}

    def test_missing_target_rejected(self, client: TestClient) -> None:
        response = client.post("/api/jobs", json={})

        assert response.status_code == 400

    def test_job_events_are_pushed(self, client: TestClient) -> None:
        with client.websocket_connect("/ws/events") as websocket:
            deadline = time.monotonic() + 5
            while get_event_bus().subscriber_count == 0 and time.monotonic() < deadline:
                time.sleep(0.01)

            response = client.post("/api/jobs", json={"target": TARGET})
            assert response.status_code == 202
            assert response.json()["job"]["state"] == "running"

            messages = receive_until_finished(websocket)

        assert messages[0] == {"event": "job:started", "data": TARGET}
        assert messages[-1] == {
            "event": "job:finished",
            "data": "Download process finished with code 0.",
        }
        logs = [m["data"] for m in messages if m["event"] == "job:log"]
        assert sorted(logs) == ["ERROR: rate limited", "Processing query"]

        current = client.get("/api/jobs/current").json()
        assert current["state"] == "succeeded"
        assert current["job"]["exit_code"] == 0

    def test_client_frames_do_not_drop_subscriber(self, client: TestClient) -> None:
        with client.websocket_connect("/ws/events") as websocket:
            deadline = time.monotonic() + 5
            while get_event_bus().subscriber_count == 0 and time.monotonic() < deadline:
                time.sleep(0.01)

            websocket.send_bytes(b"\x00\x01binary")
            websocket.send_text("ping")

            response = client.post("/api/jobs", json={"target": TARGET})
            assert response.status_code == 202

            messages = receive_until_finished(websocket)
            assert get_event_bus().subscriber_count == 1

        assert messages[0]["event"] == "job:started"
        assert messages[-1]["event"] == "job:finished"

    def test_second_job_conflicts(self, client: TestClient) -> None:
        first = client.post("/api/jobs", json={"target": "https://open.spotify.com/track/slow"})
        second = client.post("/api/jobs", json={"target": TARGET})
        wait_until_idle()

        assert first.status_code == 202
        assert second.status_code == 409
        assert second.json()["error_code"] == "JOB_ALREADY_RUNNING"

        third = client.post("/api/jobs", json={"target": TARGET})
        wait_until_idle()
        assert third.status_code == 202


class TestServices:
    """Tests for the service registry endpoints."""

    def test_crud(self, client: TestClient, roots: Dict[str, Path]) -> None:
        assert client.get("/api/services").json() == []

        created = client.post(
            "/api/services",
            json={"name": "Router", "url": "http://127.0.0.1:1", "icon": "router.svg"},
        )
        assert created.status_code == 201
        assert created.json()["status"] == "offline"
        assert created.json()["category"] == "Uncategorized"

        listed = client.get("/api/services").json()
        assert [s["name"] for s in listed] == ["Router"]
        assert json.loads(roots["registry"].read_text())[0]["url"] == "http://127.0.0.1:1"

        duplicate = client.post(
            "/api/services",
            json={"name": "router", "url": "http://127.0.0.1:2", "icon": "r.svg"},
        )
        assert duplicate.status_code == 409

        removed = client.delete("/api/services/Router")
        assert removed.json() == {"message": "Service removed."}
        assert client.delete("/api/services/Router").status_code == 404

    def test_missing_field(self, client: TestClient) -> None:
        response = client.post("/api/services", json={"name": "X", "url": "http://x.lan"})

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_INPUT"

    def test_invalid_url(self, client: TestClient) -> None:
        response = client.post(
            "/api/services", json={"name": "X", "url": "ftp://x.lan", "icon": "x.svg"}
        )

        assert response.status_code == 400


class TestStats:
    def test_host_stats(self, client: TestClient) -> None:
        response = client.get("/api/stats")

        assert response.status_code == 200
        data = response.json()
        assert set(data) == {"cpu", "ram", "disk", "temp"}
        assert all(isinstance(v, int) for v in data.values())


class TestAuthentication:
    """Tests with API keys configured."""

    @pytest.fixture
    def secured_client(
        self, monkeypatch: pytest.MonkeyPatch, configure_env: None
    ) -> Iterator[TestClient]:
        monkeypatch.setenv("APP_SECURITY_API_KEYS", '["s3cret-key"]')
        with TestClient(create_app()) as test_client:
            yield test_client

    def test_missing_key_rejected(self, secured_client: TestClient) -> None:
        response = secured_client.get("/api/files/browse")

        assert response.status_code == 401
        assert response.json()["error_code"] == "AUTH_FAILED"
        assert response.headers["www-authenticate"] == "ApiKey"

    def test_non_ascii_key_rejected(self, secured_client: TestClient) -> None:
        response = secured_client.get(
            "/api/files/browse", headers={"X-API-Key": "sécret".encode("latin-1")}
        )

        assert response.status_code == 401
        assert response.json()["error_code"] == "AUTH_FAILED"

    def test_valid_key_accepted(self, secured_client: TestClient) -> None:
        response = secured_client.get("/api/files/browse", headers={"X-API-Key": "s3cret-key"})

        assert response.status_code == 200

    def test_health_is_public(self, secured_client: TestClient) -> None:
        assert secured_client.get("/liveness").status_code == 200

    def test_websocket_requires_key(self, secured_client: TestClient) -> None:
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with secured_client.websocket_connect("/ws/events") as websocket:
                websocket.receive_json()

        assert exc_info.value.code == WS_CLOSE_UNAUTHORIZED

    def test_websocket_key_in_query(self, secured_client: TestClient) -> None:
        with secured_client.websocket_connect("/ws/events?api_key=s3cret-key"):
            pass


class TestRequestContext:
    def test_request_id_echoed(self, client: TestClient) -> None:
        response = client.get("/liveness", headers={"X-Request-ID": "req_abc123"})

        assert response.headers["X-Request-ID"] == "req_abc123"

    def test_request_id_generated(self, client: TestClient) -> None:
        response = client.get("/liveness")

        assert response.headers["X-Request-ID"].startswith("req_")

    def test_error_carries_request_id(self, client: TestClient) -> None:
        response = client.get(
            "/api/files/browse", params={"path": "../"}, headers={"X-Request-ID": "req_trace1"}
        )

        assert response.json()["request_id"] == "req_trace1"


class TestMetricsEndpoint:
    def test_metrics_exposed(self, client: TestClient) -> None:
        client.get("/liveness")

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "http_requests_total" in response.text
        assert 'endpoint="/liveness"' in response.text
