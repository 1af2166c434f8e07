"""MCP tool definitions.

``draw_canvas_impl`` holds the logic and is testable without an MCP
transport; ``register_tools()`` wraps it with the FastMCP decorator.
"""

from __future__ import annotations

from mcp.server.fastmcp import Context, FastMCP
from mcp.server.fastmcp.exceptions import ToolError

from canvasrelay.relay.hub import CanvasHub, SubmitResult
from canvasrelay.validation import CommandValidationError

SESSION_HEADER = "mcp-session-id"

DRAW_CANVAS_DESCRIPTION = (
    "Draw on the HTML canvas using DSL commands. Commands are pushed to "
    "connected canvas pages in real time over WebSocket, or queued until a "
    "page connects."
)


def format_summary(result: SubmitResult, commands: str, view_url: str) -> str:
    """Build the caller-facing status text for a submission."""
    if result.delivered:
        status = f"Commands sent to {result.delivered_count} connected client(s)."
    elif result.connected_clients > 0:
        status = (
            f"{result.connected_clients} client(s) connected but none accepted the "
            "commands. Commands queued."
        )
    else:
        status = (
            "No clients connected. Commands queued and will execute when the "
            "canvas page connects."
        )
    stats = result.stats
    return (
        f"{status}\n\n"
        f"**Command ID:** {result.command_id}\n\n"
        f"**Commands:**\n```\n{commands}\n```\n\n"
        f"**Command Stats:** {stats.total} total, {stats.pending} pending, "
        f"{stats.sent} sent, {stats.executed} executed, {stats.error} error\n\n"
        f"**View the results:** {view_url}"
    )


def format_validation_errors(errors: list[str]) -> str:
    return (
        "DSL Validation Errors:\n"
        + "\n".join(errors)
        + "\n\nPlease check your command syntax and try again."
    )


def draw_canvas_impl(
    hub: CanvasHub,
    commands: str,
    *,
    session_id: str | None = None,
    view_url: str = "http://localhost:3100",
) -> str:
    """Submit drawing commands and describe the outcome.

    Raises:
        CommandValidationError: If the commands are rejected.
    """
    result = hub.submit(commands, session_id=session_id)
    return format_summary(result, commands, view_url)


def session_id_from_context(ctx: Context) -> str | None:
    """Read the transport session id from the current HTTP request."""
    try:
        request_context = ctx.request_context
    except ValueError:
        # Called outside a request, e.g. directly through FastMCP.call_tool
        return None
    request = getattr(request_context, "request", None)
    if request is None:
        return None
    return request.headers.get(SESSION_HEADER)


def register_tools(server: FastMCP, hub: CanvasHub, view_url: str) -> None:
    """Register all tools with the FastMCP server."""

    @server.tool(name="draw_canvas", description=DRAW_CANVAS_DESCRIPTION)
    async def draw_canvas(commands: str, ctx: Context) -> str:
        try:
            return draw_canvas_impl(
                hub,
                commands,
                session_id=session_id_from_context(ctx),
                view_url=view_url,
            )
        except CommandValidationError as e:
            raise ToolError(format_validation_errors(e.errors)) from e
