from __future__ import annotations

from typing import Any, Dict

WELCOME_TEXT = "Connected to Trading WebSocket Server"


def make_welcome(ts_ms: int, message: str = WELCOME_TEXT) -> Dict[str, Any]:
    return {
        "type": "welcome",
        "message": message,
        "timestamp": ts_ms,
    }
