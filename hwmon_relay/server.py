from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
import json
import logging
from typing import Any, AsyncIterator

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from hwmon_relay.builder import SnapshotBuilder
from hwmon_relay.config import AppConfig
from hwmon_relay.delta import DeltaPublisher
from hwmon_relay.errors import Unauthorized
from hwmon_relay.fanout import SubscriptionManager
from hwmon_relay.models import Partition
from hwmon_relay.mqtt_client import MqttPublisher, MqttSink
from hwmon_relay.partitions import PartitionStore
from hwmon_relay.schema import validate_partitions

API_KEY_HEADER = "x-api-key"
# Companion agent endpoints are reachable from the configured CORS origin only
OPEN_PATHS = frozenset({"/partitions"})

logger = logging.getLogger(__name__)


def check_credential(expected: str | None, provided: str | None) -> None:
    if expected is None:
        return
    if not provided:
        raise Unauthorized("Missing API key.")
    if provided != expected:
        raise Unauthorized("Invalid API key.")


def parse_auth_message(text: str) -> str | None:
    """Pull the shared secret out of a WebSocket handshake message.

    Accepts ``{"type": "auth", "apiKey": "..."}`` (``token`` works too) or
    the bare key as plain text.
    """
    try:
        message = json.loads(text)
    except json.JSONDecodeError:
        return text.strip() or None
    if isinstance(message, dict):
        credential = message.get("apiKey") or message.get("token")
        return str(credential) if credential else None
    if isinstance(message, str):
        return message or None
    return None


class WebSocketConnection:
    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket

    async def send(self, message: dict[str, Any]) -> None:
        await self.websocket.send_json(message)


class QueueConnection:
    """Buffers messages for a streaming response; a full queue applies backpressure."""

    def __init__(self, maxsize: int = 16) -> None:
        self.queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=maxsize)

    async def send(self, message: dict[str, Any]) -> None:
        await self.queue.put(message)


def format_sse(message: dict[str, Any]) -> str:
    return f"data: {json.dumps(message)}\n\n"


def create_app(
    config: AppConfig,
    builder: SnapshotBuilder,
    store: PartitionStore,
    manager: SubscriptionManager | None = None,
    mqtt_publisher: MqttPublisher | None = None,
) -> FastAPI:
    api_key = config.server.api_key
    if manager is None:
        manager = SubscriptionManager(builder, DeltaPublisher(), config.publish.interval_s)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if api_key is None:
            logger.warning("No API key configured; inbound requests are not authenticated.")
        if mqtt_publisher is not None:
            mqtt_publisher.connect()
            await manager.subscribe(MqttSink(mqtt_publisher))
        try:
            yield
        finally:
            await manager.close_all()
            if mqtt_publisher is not None:
                mqtt_publisher.disconnect()

    app = FastAPI(title="hwmon-relay", version="0.1.0", lifespan=lifespan)
    app.state.manager = manager
    app.state.store = store

    @app.middleware("http")
    async def require_api_key(request: Request, call_next):
        if request.url.path not in OPEN_PATHS and request.method != "OPTIONS":
            try:
                check_credential(api_key, request.headers.get(API_KEY_HEADER))
            except Unauthorized as exc:
                client_host = getattr(request.client, "host", None)
                logger.warning("Unauthorized request to %s from %s: %s", request.url.path, client_host, exc)
                return JSONResponse(status_code=403, content={"error": "Unauthorized"})
        return await call_next(request)

    # Added last so it wraps the key check and answers preflight requests itself
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_methods=["*"],
        allow_headers=["x-api-key", "Content-Type", "Authorization"],
        expose_headers=["x-api-key"],
    )

    @app.get("/health")
    async def health():
        return {"status": "ok", "subscribers": manager.active}

    @app.get("/stats")
    async def stats():
        snapshot = await builder.build_async()
        if snapshot is None:
            return JSONResponse(status_code=503, content={"error": "Failed to fetch system stats"})
        return snapshot.to_dict()

    @app.get("/stream")
    async def stream():
        connection = QueueConnection()

        async def events() -> AsyncIterator[str]:
            state = await manager.subscribe(connection)
            try:
                while not state.closed:
                    yield format_sse(await connection.queue.get())
            finally:
                await manager.unsubscribe(state)

        return StreamingResponse(
            events(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        await websocket.accept()
        if api_key is not None:
            try:
                check_credential(api_key, parse_auth_message(await websocket.receive_text()))
            except Unauthorized as exc:
                client_host = getattr(websocket.client, "host", None)
                logger.warning("Rejected WebSocket client %s: %s", client_host, exc)
                await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Unauthorized")
                return
            except WebSocketDisconnect:
                return
        state = await manager.subscribe(WebSocketConnection(websocket))
        try:
            # Nothing is expected from the client after the handshake; reading
            # keeps the socket serviced and surfaces the disconnect.
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass
        finally:
            await manager.unsubscribe(state)

    @app.post("/partitions")
    async def push_partitions(request: Request):
        try:
            body = await request.json()
        except ValueError:
            return JSONResponse(status_code=400, content={"error": "Body is not valid JSON"})
        errors = validate_partitions(body)
        if errors:
            return JSONResponse(
                status_code=400,
                content={"error": "Invalid partition payload", "details": errors},
            )
        partitions = [Partition.from_dict(item) for item in body["partitions"]]
        store.set(partitions)
        logger.debug("Stored %s partitions from companion agent.", len(partitions))
        return {"status": "ok", "count": len(partitions)}

    @app.get("/partitions")
    async def get_partitions():
        return {"partitions": [partition.to_dict() for partition in store.get() or ()]}

    return app
