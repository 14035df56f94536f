from __future__ import annotations

import os

from feed_core.env import env_float, env_int

HOST = os.getenv("FEED_SERVER_HOST", "0.0.0.0")
PORT = env_int("FEED_SERVER_PORT", 8080)

# Delay before each trade after the welcome message
MIN_DELAY_S = env_float("FEED_SERVER_MIN_DELAY_S", 1.0)
MAX_DELAY_S = env_float("FEED_SERVER_MAX_DELAY_S", 3.0)

SCHEMA = os.getenv("FEED_SERVER_SCHEMA", "standard").strip().lower()
LOG_LEVEL = os.getenv("FEED_SERVER_LOG_LEVEL", "INFO")
