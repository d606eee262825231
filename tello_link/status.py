"""Link status reporting for tello-link."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional

from aiohttp import web

from .state import TelemetrySnapshot

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ComponentStatus:
    name: str
    healthy: bool
    detail: Optional[str] = None
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def as_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "healthy": self.healthy,
            "detail": self.detail,
            "updatedAt": self.updated_at.isoformat(timespec="seconds"),
        }


class StatusReporter:
    """Tracks link component statuses and the latest telemetry snapshot."""

    def __init__(self) -> None:
        self._status: Dict[str, ComponentStatus] = {}
        self._snapshot: Optional[TelemetrySnapshot] = None
        self._snapshot_at: Optional[datetime] = None
        self._lock = asyncio.Lock()

    async def update(
        self, name: str, healthy: bool, detail: Optional[str] = None
    ) -> None:
        async with self._lock:
            self._status[name] = ComponentStatus(
                name=name, healthy=healthy, detail=detail
            )

    async def record_snapshot(self, snapshot: TelemetrySnapshot) -> None:
        async with self._lock:
            self._snapshot = snapshot
            self._snapshot_at = datetime.now(timezone.utc)

    async def snapshot(self) -> Dict[str, object]:
        async with self._lock:
            components = [status.as_dict() for status in self._status.values()]

        overall = "ok" if all(item["healthy"] for item in components) else "degraded"
        return {"status": overall, "components": components}

    async def latest_state(self) -> Optional[Dict[str, object]]:
        async with self._lock:
            if self._snapshot is None or self._snapshot_at is None:
                return None
            return {
                "state": self._snapshot.as_dict(),
                "receivedAt": self._snapshot_at.isoformat(timespec="seconds"),
            }


class StatusServer:
    """Minimal HTTP server exposing `/healthz` and `/state`."""

    def __init__(self, reporter: StatusReporter, host: str, port: int) -> None:
        self._reporter = reporter
        self._host = host
        self._port = port
        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None

    async def start(self) -> None:
        app = web.Application()
        app.router.add_get("/healthz", self._handle_health)
        app.router.add_get("/state", self._handle_state)

        self._runner = web.AppRunner(app)
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self._host, self._port)
        await self._site.start()
        LOGGER.info(
            "Status endpoint listening on http://%s:%s/healthz", self._host, self._port
        )

    async def stop(self) -> None:
        with contextlib.suppress(Exception):
            if self._site is not None:
                await self._site.stop()
        if self._runner is not None:
            await self._runner.cleanup()
        self._site = None
        self._runner = None

    async def _handle_health(self, request: web.Request) -> web.Response:
        snapshot = await self._reporter.snapshot()
        status = 200 if snapshot["status"] == "ok" else 503
        return web.json_response(snapshot, status=status)

    async def _handle_state(self, request: web.Request) -> web.Response:
        state = await self._reporter.latest_state()
        if state is None:
            return web.json_response({"error": "no telemetry received yet"}, status=404)
        return web.json_response(state)
