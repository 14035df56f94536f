from __future__ import annotations

import os

from feed_core.env import env_float, env_int, env_list

# Handshake budget per transport attempt
CONNECT_TIMEOUT_S = env_float("FEED_CONNECT_TIMEOUT_S", 5.0)

BUFFER_CAPACITY = env_int("FEED_BUFFER_CAPACITY", 100)

SOCKETIO_EVENTS = env_list("FEED_SOCKETIO_EVENTS", ("tradeCreated", "trade", "data", "message"))
SOCKETIO_TRANSPORTS = env_list("FEED_SOCKETIO_TRANSPORTS", ("websocket", "polling"))

# Raw websocket keepalive
WS_PING_INTERVAL_S = env_float("FEED_WS_PING_INTERVAL_S", 20.0)
WS_PING_TIMEOUT_S = env_float("FEED_WS_PING_TIMEOUT_S", 20.0)
WS_CLOSE_TIMEOUT_S = env_float("FEED_WS_CLOSE_TIMEOUT_S", 5.0)
WS_MAX_QUEUE = env_int("FEED_WS_MAX_QUEUE", 256)

DEFAULT_URL = os.getenv("FEED_URL", "ws://localhost:8080")
LOG_LEVEL = os.getenv("FEED_LOG_LEVEL", "INFO")
