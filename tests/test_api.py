"""FastAPI endpoint tests for the REST and SSE interfaces.

Covers:
- GET /api/state, /api/teams, /api/processes: snapshot documents.
- GET /api/health: collector counters.
- GET /: dashboard HTML serving.
- CORS: only browsers on this machine are allowed.
- Lifespan: the app starts and stops a collector it manages, and leaves an
  externally started one alone.
- ``snapshot_stream``: SSE framing and disconnect handling.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, Generator, List

import pytest
from fastapi.testclient import TestClient

from team_lens.collector import Collector
from team_lens.config import MonitorConfig
from team_lens.main import create_app, snapshot_stream
from team_lens.models import ProcessInfo
from tests.helpers import SAMPLE_TEAM


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


class _FakeScanner:
    def scan(self) -> List[ProcessInfo]:
        return [ProcessInfo(pid=7, command="claude")]


@pytest.fixture()
def collector(config: MonitorConfig, sample_team: Dict[str, Path]) -> Generator[Collector, None, None]:
    """Provide a collector holding one published snapshot (not started)."""
    c = Collector(config=config, process_scanner=_FakeScanner())  # type: ignore[arg-type]
    c.refresh()
    yield c
    c.stop()


@pytest.fixture()
def client(collector: Collector) -> Generator[TestClient, None, None]:
    """Provide a TestClient whose app does not own the collector."""
    app = create_app(collector, manage_collector=False)
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c


# ---------------------------------------------------------------------------
# REST endpoints
# ---------------------------------------------------------------------------


class TestSnapshotEndpoints:
    def test_state(self, client: TestClient) -> None:
        response = client.get("/api/state")
        assert response.status_code == 200
        data = response.json()
        assert set(data) == {"teams", "processes", "updated_at"}
        assert data["processes"] == [{"pid": 7, "command": "claude"}]

        team = data["teams"][0]
        assert team["name"] == SAMPLE_TEAM
        writer = team["members"][0]
        assert writer["status"] == "working"
        assert writer["current_task"] == "Write docs"
        assert writer["last_tool_use"] == "Edit"
        assert writer["last_active_time"].startswith("2026-02-10T10:05:00")

    def test_unset_fields_are_omitted(self, client: TestClient) -> None:
        reviewer = client.get("/api/state").json()["teams"][0]["members"][2]
        assert reviewer["name"] == "reviewer"
        assert "current_task" not in reviewer
        assert "log_path" not in reviewer

    def test_teams(self, client: TestClient) -> None:
        response = client.get("/api/teams")
        assert response.status_code == 200
        teams = response.json()
        assert [t["name"] for t in teams] == [SAMPLE_TEAM]
        assert [t["id"] for t in teams[0]["tasks"]] == ["1", "2"]

    def test_processes(self, client: TestClient) -> None:
        response = client.get("/api/processes")
        assert response.status_code == 200
        assert [p["pid"] for p in response.json()] == [7]

    def test_reading_never_recomputes(self, client: TestClient, collector: Collector) -> None:
        before = collector.pass_count
        for _ in range(5):
            client.get("/api/state")
        assert collector.pass_count == before

    def test_state_is_read_only(self, client: TestClient) -> None:
        assert client.post("/api/state", json={}).status_code == 405


class TestHealthAndDashboard:
    def test_health(self, client: TestClient) -> None:
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "running": False, "passes": 1}

    def test_dashboard_served(self, client: TestClient) -> None:
        response = client.get("/")
        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]
        assert "/api/state/stream" in response.text


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------


class TestCors:
    @pytest.mark.parametrize(
        "origin",
        ["http://localhost:3000", "http://127.0.0.1:8080", "https://localhost", "http://[::1]:5173"],
    )
    def test_local_origins_allowed(self, client: TestClient, origin: str) -> None:
        response = client.get("/api/health", headers={"Origin": origin})
        assert response.headers.get("access-control-allow-origin") == origin

    @pytest.mark.parametrize(
        "origin",
        ["https://example.com", "http://localhost.evil.com", "http://192.168.1.20:3000"],
    )
    def test_remote_origins_rejected(self, client: TestClient, origin: str) -> None:
        response = client.get("/api/health", headers={"Origin": origin})
        assert "access-control-allow-origin" not in response.headers

    def test_preflight(self, client: TestClient) -> None:
        response = client.options(
            "/api/state",
            headers={"Origin": "http://localhost:3000", "Access-Control-Request-Method": "GET"},
        )
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "http://localhost:3000"

    def test_preflight_from_remote_origin(self, client: TestClient) -> None:
        response = client.options(
            "/api/state",
            headers={"Origin": "https://example.com", "Access-Control-Request-Method": "GET"},
        )
        assert response.status_code == 400


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


class TestLifespan:
    def test_managed_collector_is_started_and_stopped(self, config: MonitorConfig) -> None:
        collector = Collector(config=config, process_scanner=_FakeScanner())  # type: ignore[arg-type]
        with TestClient(create_app(collector)) as c:
            assert collector.is_running
            assert c.get("/api/health").json()["running"] is True
        assert not collector.is_running

    def test_running_collector_is_left_alone(self, config: MonitorConfig) -> None:
        collector = Collector(config=config, process_scanner=_FakeScanner())  # type: ignore[arg-type]
        collector.start()
        try:
            with TestClient(create_app(collector)):
                pass
            assert collector.is_running
        finally:
            collector.stop()


# ---------------------------------------------------------------------------
# SSE stream
# ---------------------------------------------------------------------------


class _DisconnectAfter:
    """``is_disconnected`` stand-in that reports a disconnect after N polls."""

    def __init__(self, polls: int) -> None:
        self.remaining = polls

    async def __call__(self) -> bool:
        if self.remaining <= 0:
            return True
        self.remaining -= 1
        return False


class TestSnapshotStream:
    @pytest.mark.asyncio
    async def test_frames_carry_snapshot(self, collector: Collector) -> None:
        frames = [f async for f in snapshot_stream(collector, 0.001, _DisconnectAfter(2))]

        assert frames[0].startswith(":")
        assert len(frames) == 3
        for frame in frames[1:]:
            assert frame.startswith("data: ")
            assert frame.endswith("\n\n")
            payload = json.loads(frame[len("data: "):])
            assert payload["teams"][0]["name"] == SAMPLE_TEAM

    @pytest.mark.asyncio
    async def test_stops_when_client_is_gone(self, collector: Collector) -> None:
        frames = [f async for f in snapshot_stream(collector, 0.001, _DisconnectAfter(0))]
        assert len(frames) == 1

    @pytest.mark.asyncio
    async def test_frames_follow_new_snapshots(self, collector: Collector, sample_team: Dict[str, Path]) -> None:
        stream = snapshot_stream(collector, 0.001, _DisconnectAfter(5))
        await stream.__anext__()
        first = json.loads((await stream.__anext__())[len("data: "):])
        assert len(first["teams"][0]["tasks"]) == 2

        (sample_team["tasks"] / "5.json").write_text('{"id": "5", "status": "pending"}', encoding="utf-8")
        collector.refresh()
        second = json.loads((await stream.__anext__())[len("data: "):])
        assert len(second["teams"][0]["tasks"]) == 3
        await stream.aclose()
