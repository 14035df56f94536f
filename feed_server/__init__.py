"""Mock trade producer served over a plain websocket."""
