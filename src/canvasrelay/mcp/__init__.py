"""MCP tool-invocation layer for canvasrelay."""
