"""FastMCP server setup.

The server is mounted into the FastAPI app and served over the
streamable-HTTP transport at ``/mcp``, sharing the relay hub and event
loop with the WebSocket endpoint.
"""

from __future__ import annotations

from mcp.server.fastmcp import FastMCP

from canvasrelay.mcp.tools import register_tools
from canvasrelay.relay.hub import CanvasHub

__all__ = ["create_server"]

INSTRUCTIONS = (
    "Draws on a live HTML canvas. Call draw_canvas with one command per line, "
    "e.g. clear() or fr(10,10;20,20)."
)


def create_server(
    hub: CanvasHub,
    *,
    name: str = "canvas-relay",
    view_url: str = "http://localhost:3100",
) -> FastMCP:
    """Create the MCP server and register its tools against ``hub``."""
    server = FastMCP(name, instructions=INSTRUCTIONS)
    register_tools(server, hub, view_url)
    return server
