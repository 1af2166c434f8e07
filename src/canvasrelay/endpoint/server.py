"""FastAPI server for the canvas relay.

Rendering clients hold a WebSocket on ``/ws`` and receive commands as
they are submitted. Clients that cannot hold a socket use the pull
endpoints instead. The MCP tool layer is mounted at ``/mcp``.

    WS   /ws?sessionId=...          push channel
    GET  /health                    -> HealthResponse
    GET  /stats                     -> ledger stats + recent commands
    GET  /commands/pending          -> pending commands, oldest first
    POST /commands                  <- {"commands": "...", "sessionId": "..."}
    POST /commands/{id}/consume     -> {"type": "consume-ack", ...}
    POST /command-status            <- {"commandId": "...", "status": "executed"}
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from contextlib import AsyncExitStack, asynccontextmanager
from typing import AsyncIterator, Literal

import uvicorn
from fastapi import FastAPI, HTTPException, Query, WebSocket
from pydantic import BaseModel, ConfigDict, Field

from canvasrelay.config.settings import GCConfig, Settings
from canvasrelay.domain.models import (
    CanvasCommandMessage,
    CommandPayload,
    ConsumeAckMessage,
    DeliveryMode,
)
from canvasrelay.endpoint.channel import DEFAULT_QUEUE_SIZE, WebSocketChannel
from canvasrelay.endpoint.mcp_sessions import MCPSessionMiddleware
from canvasrelay.relay.gc import GarbageCollector
from canvasrelay.relay.hub import CanvasHub, StatusSnapshot, SubmitResult
from canvasrelay.validation import CommandValidationError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------

class SubmitRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    commands: str = Field(description="DSL commands, one per line")
    session_id: str | None = Field(default=None, alias="sessionId")


class CommandStatusRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    command_id: str = Field(alias="commandId")
    status: Literal["executed", "error"]
    error: str | None = None


class StatusUpdateResponse(BaseModel):
    success: bool


class HealthResponse(BaseModel):
    status: str = "ok"
    connected_clients: int = 0
    sessions: int = 0
    delivery_mode: DeliveryMode = DeliveryMode.PUSH


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app(
    hub: CanvasHub | None = None,
    delivery_mode: DeliveryMode = DeliveryMode.PUSH,
    outbound_queue_size: int = DEFAULT_QUEUE_SIZE,
    gc_config: GCConfig | None = None,
    enable_mcp: bool = True,
    mcp_name: str = "canvas-relay",
    view_url: str = "http://localhost:3100",
) -> FastAPI:
    """Create the relay application.

    Args:
        hub: Optional pre-built CanvasHub (for testing).
        delivery_mode: Delivery mode for a hub built here.
        outbound_queue_size: Per-client outbound buffer before the client
            is dropped as unresponsive.
        gc_config: Purge and sweep schedules. Defaults apply if None.
        enable_mcp: Whether to mount the MCP streamable-HTTP app at /mcp.
        mcp_name: Server name advertised to MCP clients.
        view_url: URL quoted back to callers in tool results.
    """
    if hub is None:
        hub = CanvasHub(delivery_mode=delivery_mode)
    gc_config = gc_config or GCConfig()

    mcp_server = None
    if enable_mcp:
        from canvasrelay.mcp.server import create_server

        mcp_server = create_server(hub, name=mcp_name, view_url=view_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        gc = GarbageCollector(
            ledger=app.state.hub.ledger,
            sessions=app.state.hub.sessions,
            connections=app.state.hub.connections,
            purge_interval=gc_config.purge_interval,
            command_max_age=gc_config.command_max_age,
            sweep_interval=gc_config.sweep_interval,
            session_timeout=gc_config.session_timeout,
            active_window=gc_config.active_window,
        )
        app.state.gc = gc
        async with AsyncExitStack() as stack:
            if mcp_server is not None:
                await stack.enter_async_context(mcp_server.session_manager.run())
            gc.start()
            logger.info("Canvas relay started (mode=%s)", app.state.hub.delivery_mode.value)
            try:
                yield
            finally:
                await gc.stop()
        logger.info("Canvas relay stopped")

    app = FastAPI(
        title="canvasrelay",
        description="Real-time relay of drawing commands to canvas clients",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.hub = hub
    app.state.gc = None

    @app.get("/health")
    async def health_check() -> HealthResponse:
        h: CanvasHub = app.state.hub
        return HealthResponse(
            status="ok",
            connected_clients=h.connections.count(),
            sessions=h.sessions.count(),
            delivery_mode=h.delivery_mode,
        )

    @app.get("/stats")
    async def get_stats() -> StatusSnapshot:
        h: CanvasHub = app.state.hub
        return h.status_snapshot()

    # -------------------------------------------------------------------
    # Submission and pull fallback
    # -------------------------------------------------------------------

    @app.post("/commands")
    async def submit_commands(request: SubmitRequest) -> SubmitResult:
        h: CanvasHub = app.state.hub
        try:
            return h.submit(request.commands, session_id=request.session_id)
        except CommandValidationError as e:
            raise HTTPException(status_code=400, detail=e.errors) from e

    @app.get("/commands/pending")
    async def list_pending() -> list[CommandPayload]:
        h: CanvasHub = app.state.hub
        return [CanvasCommandMessage.from_command(c).data for c in h.pending()]

    @app.post("/commands/{command_id}/consume")
    async def consume_command(command_id: str) -> ConsumeAckMessage:
        h: CanvasHub = app.state.hub
        return ConsumeAckMessage(command_id=command_id, success=h.consume(command_id))

    @app.post("/command-status")
    async def command_status(request: CommandStatusRequest) -> StatusUpdateResponse:
        h: CanvasHub = app.state.hub
        updated = h.update_status(request.command_id, request.status, request.error)
        return StatusUpdateResponse(success=updated)

    # -------------------------------------------------------------------
    # Push channel
    # -------------------------------------------------------------------

    @app.websocket("/ws")
    async def canvas_socket(
        websocket: WebSocket,
        session_id: str | None = Query(default=None, alias="sessionId"),
    ) -> None:
        h: CanvasHub = app.state.hub
        await websocket.accept()

        client_id = str(uuid.uuid4())
        channel = WebSocketChannel(
            websocket,
            client_id,
            max_queue=outbound_queue_size,
            on_failure=lambda: h.disconnect_client(client_id),
        )
        writer = asyncio.create_task(channel.run())
        h.connect_client(channel, session_id=session_id, client_id=client_id)

        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                raw = message.get("text") or message.get("bytes")
                if raw:
                    h.handle_client_message(client_id, raw)
        finally:
            h.disconnect_client(client_id)
            channel.close()
            await writer

    if mcp_server is not None:
        app.add_middleware(MCPSessionMiddleware, hub=hub)
        app.mount("/", mcp_server.streamable_http_app())

    return app


def create_app_from_settings(settings: Settings) -> FastAPI:
    return create_app(
        delivery_mode=settings.relay.delivery_mode,
        outbound_queue_size=settings.relay.outbound_queue_size,
        gc_config=settings.gc,
        enable_mcp=settings.mcp.enabled,
        mcp_name=settings.mcp.name,
        view_url=settings.server.view_url,
    )


# ---------------------------------------------------------------------------
# Standalone entry point
# ---------------------------------------------------------------------------

def main(host: str = "127.0.0.1", port: int = 3100) -> None:
    """Run the relay server with default settings."""
    app = create_app(view_url=f"http://localhost:{port}")
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
