"""ASGI middleware mirroring MCP transport sessions into the relay.

The streamable-HTTP transport assigns a session id in the
``mcp-session-id`` response header of the initialize request and ends
the session with a ``DELETE`` carrying that header. This middleware
observes both and opens or closes the matching relay session. It is a
plain ASGI wrapper so streamed (SSE) responses pass through untouched.
"""

from __future__ import annotations

import logging

from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from canvasrelay.relay.hub import CanvasHub

logger = logging.getLogger(__name__)

SESSION_HEADER = "mcp-session-id"


class MCPSessionMiddleware:
    def __init__(self, app: ASGIApp, hub: CanvasHub, path: str = "/mcp") -> None:
        self.app = app
        self.hub = hub
        self.path = path.rstrip("/") or "/"

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["path"].rstrip("/") != self.path:
            await self.app(scope, receive, send)
            return

        method = scope["method"]
        request_session = Headers(scope=scope).get(SESSION_HEADER)
        status_code = 0

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
                response_session = Headers(raw=message.get("headers", [])).get(SESSION_HEADER)
                if (
                    response_session
                    and status_code < 400
                    and response_session not in self.hub.sessions
                ):
                    self.hub.open_session(response_session)
            await send(message)

        await self.app(scope, receive, send_wrapper)

        if method == "DELETE" and request_session and status_code < 400:
            logger.debug("MCP transport closed session %s", request_session)
            self.hub.close_session(request_session)
