"""HTTP/WebSocket service around the schemagraph pipeline."""
