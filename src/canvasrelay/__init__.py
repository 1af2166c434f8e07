"""canvasrelay -- real-time relay of drawing commands to canvas clients.

Callers submit drawing instructions through an MCP tool or HTTP; the
relay records each one in a ledger, pushes it to every connected canvas
page over WebSocket, and tracks its delivery and consumption until it is
acknowledged and eventually garbage-collected.
"""

__version__ = "0.1.0"
