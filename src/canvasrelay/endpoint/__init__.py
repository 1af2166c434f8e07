"""HTTP and WebSocket surface of the canvas relay."""
