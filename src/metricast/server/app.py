"""FastAPI application factory: the /metrics WebSocket route and its lifespan."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, WebSocket, status
from fastapi.responses import JSONResponse

from metricast.config import BROADCAST_INTERVAL_SECONDS, MetricastConfig
from metricast.core.broadcaster import BroadcastScheduler
from metricast.core.lifecycle import SubscriberWatcher
from metricast.core.pm2 import Pm2Client
from metricast.core.provider import MetricsProvider
from metricast.core.registry import ConnectionRegistry
from metricast.core.snapshot import SnapshotBuilder
from metricast.core.subscriber import Subscriber
from metricast.errors import UpgradeFailed

logger = logging.getLogger("metricast.server")


def build_snapshot_builder(config: MetricastConfig) -> SnapshotBuilder:
    """Wire the psutil provider and (if enabled) pm2 into a builder."""
    pm2 = (
        Pm2Client(config.pm2.command, timeout=config.pm2.timeout_seconds)
        if config.pm2.enabled
        else None
    )
    return SnapshotBuilder(MetricsProvider(), pm2, disk_path=config.metrics.disk_path)


def _upgrade_error(request: Request) -> str:
    connection = request.headers.get("connection", "")
    tokens = {t.strip().lower() for t in connection.split(",")}
    if "upgrade" not in tokens:
        return "the client is not using the websocket protocol: 'upgrade' token not found in 'Connection' header"
    if request.headers.get("upgrade", "").lower() != "websocket":
        return "the client is not using the websocket protocol: 'websocket' token not found in 'Upgrade' header"
    return "websocket upgrade was not completed"


def _client_label(websocket: WebSocket) -> str:
    if websocket.client is None:
        return "unknown"
    return f"{websocket.client.host}:{websocket.client.port}"


def create_app(
    config: MetricastConfig | None = None,
    *,
    builder: SnapshotBuilder | None = None,
    interval: float = BROADCAST_INTERVAL_SECONDS,
) -> FastAPI:
    """Create the web app. The registry and scheduler live on ``app.state``.

    Args:
        config: Optional pre-loaded config. If None, loads from cwd.
        builder: Snapshot builder to use instead of the psutil/pm2 one.
        interval: Seconds between broadcast ticks.
    """
    _config = config or MetricastConfig.load()
    registry = ConnectionRegistry()
    watcher = SubscriberWatcher(registry)
    scheduler = BroadcastScheduler(
        registry,
        builder or build_snapshot_builder(_config),
        interval=interval,
        send_timeout=_config.broadcast.send_timeout_seconds,
        skip_when_idle=_config.broadcast.skip_when_idle,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        scheduler.start()
        try:
            yield
        finally:
            await scheduler.stop()
            for subscriber in await registry.members():
                await registry.remove(subscriber)
                await subscriber.close()

    app = FastAPI(title="metricast", lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None)
    app.state.config = _config
    app.state.registry = registry
    app.state.scheduler = scheduler

    @app.exception_handler(UpgradeFailed)
    async def upgrade_failed_handler(request: Request, exc: UpgradeFailed) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": str(exc), "message": UpgradeFailed.message},
        )

    @app.get("/metrics")
    async def metrics_http(request: Request) -> JSONResponse:
        # A plain HTTP request here means the WebSocket handshake did not happen.
        raise UpgradeFailed(_upgrade_error(request))

    @app.websocket("/metrics")
    async def metrics_stream(websocket: WebSocket) -> None:
        try:
            await websocket.accept()
        except (RuntimeError, OSError) as exc:
            logger.warning("%s: %s", UpgradeFailed.message, exc)
            return

        subscriber = Subscriber(websocket, _client_label(websocket))
        await registry.add(subscriber)
        await watcher.watch(subscriber)

    return app
