"""FastAPI application factory and SSE endpoint for TeamLens.

This module provides:

- ``create_app``: Factory function that builds a FastAPI application around a
  ``Collector``.
- ``/api/state`` (GET): the full snapshot.
- ``/api/teams`` (GET): just the teams.
- ``/api/processes`` (GET): just the Claude processes.
- ``/api/state/stream`` (GET): Server-Sent Events pushing the snapshot every
  ``stream_interval`` seconds.
- ``/api/health`` (GET): liveness and collector status.
- A minimal dashboard page at ``/``.

Every route only reads ``Collector.get_state()``; nothing here can trigger
a recomputation.

Example usage::

    from team_lens.collector import Collector
    from team_lens.main import create_app

    app = create_app(Collector())
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Awaitable, Callable

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, StreamingResponse

from team_lens import __version__
from team_lens.collector import Collector

logger = logging.getLogger(__name__)

# Browsers on this machine only.
LOCAL_ORIGIN_REGEX = r"^https?://(localhost|127\.0\.0\.1|\[::1\])(:\d+)?$"

_DASHBOARD_HTML = """<!doctype html>
<html>
<head><meta charset="utf-8"><title>TeamLens</title></head>
<body>
<h1>TeamLens</h1>
<pre id="state">connecting...</pre>
<script>
const source = new EventSource("/api/state/stream");
source.onmessage = (e) => {
  document.getElementById("state").textContent =
    JSON.stringify(JSON.parse(e.data), null, 2);
};
</script>
</body>
</html>
"""


async def snapshot_stream(
    collector: Collector,
    interval: float,
    is_disconnected: Callable[[], Awaitable[bool]],
) -> AsyncGenerator[str, None]:
    """Yield SSE frames carrying the current snapshot until the client leaves.

    Args:
        collector: Source of snapshots.
        interval: Seconds between frames.
        is_disconnected: Coroutine function reporting client disconnects,
            normally ``Request.is_disconnected``.
    """
    yield ": TeamLens SSE stream connected\n\n"
    while True:
        if await is_disconnected():
            logger.debug("SSE client disconnected")
            break
        try:
            payload = json.dumps(collector.get_state().to_api_dict())
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to serialize snapshot for SSE: %s", exc)
        else:
            yield f"data: {payload}\n\n"
        try:
            await asyncio.sleep(interval)
        except asyncio.CancelledError:
            break


def create_app(collector: Collector, manage_collector: bool = True) -> FastAPI:
    """Create and configure the TeamLens FastAPI application.

    Args:
        collector: The collector whose snapshots are served.
        manage_collector: When ``True`` the app lifespan starts the collector
            if it is not already running, and stops it on shutdown if (and
            only if) it started it.

    Returns:
        A fully configured :class:`fastapi.FastAPI` application instance.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Tie the collector lifecycle to the app lifespan."""
        started_here = False
        if manage_collector and not collector.is_running:
            collector.start()
            started_here = True
        logger.info("TeamLens FastAPI application started")
        yield
        if started_here:
            collector.stop()
        logger.info("TeamLens FastAPI application shutdown")

    app = FastAPI(
        title="TeamLens",
        description="Live view of local Claude agent teams",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.collector = collector

    # ---------------------------------------------------------------------------
    # CORS middleware
    # ---------------------------------------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=LOCAL_ORIGIN_REGEX,
        allow_credentials=False,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
    )

    # ---------------------------------------------------------------------------
    # API Routes
    # ---------------------------------------------------------------------------

    @app.get("/api/state/stream", response_class=StreamingResponse)
    async def stream_state(request: Request) -> StreamingResponse:
        """Server-Sent Events endpoint pushing the snapshot periodically.

        Each frame is a JSON-encoded ``data:`` line holding the same document
        as ``/api/state``.
        """
        source: Collector = request.app.state.collector
        return StreamingResponse(
            snapshot_stream(source, source.config.stream_interval, request.is_disconnected),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "X-Accel-Buffering": "no",
                "Connection": "keep-alive",
            },
        )

    @app.get("/api/state")
    async def get_state(request: Request) -> JSONResponse:
        """Return the full snapshot: teams, processes and ``updated_at``."""
        source: Collector = request.app.state.collector
        return JSONResponse(content=source.get_state().to_api_dict())

    @app.get("/api/teams")
    async def get_teams(request: Request) -> JSONResponse:
        source: Collector = request.app.state.collector
        return JSONResponse(content=source.get_state().to_api_dict().get("teams", []))

    @app.get("/api/processes")
    async def get_processes(request: Request) -> JSONResponse:
        source: Collector = request.app.state.collector
        return JSONResponse(content=source.get_state().to_api_dict().get("processes", []))

    @app.get("/api/health")
    async def health_check(request: Request) -> JSONResponse:
        """Simple health check endpoint.

        Returns:
            A JSON object with ``status: ok`` plus collector counters.
        """
        source: Collector = request.app.state.collector
        return JSONResponse(
            content={
                "status": "ok",
                "running": source.is_running,
                "passes": source.pass_count,
            }
        )

    # ---------------------------------------------------------------------------
    # Dashboard
    # ---------------------------------------------------------------------------

    @app.get("/", response_class=HTMLResponse)
    async def serve_dashboard() -> HTMLResponse:
        return HTMLResponse(content=_DASHBOARD_HTML)

    return app
