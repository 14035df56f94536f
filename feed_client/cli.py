from __future__ import annotations

import asyncio
import logging
import os
from typing import Optional

from feed_client import settings
from feed_client.formatting import format_trade
from feed_client.session import FeedSession
from feed_client.state import ConnectionState
from feed_core.buffer import FilterCriteria
from feed_core.logging_config import setup_logging
from feed_core.types import Trade

log = logging.getLogger("feed_client.cli")


def _criteria_from_env() -> FilterCriteria:
    sides_raw = os.getenv("FILTER_SIDES")
    sides: Optional[list] = None
    if sides_raw is not None:
        sides = [s.strip().lower() for s in sides_raw.split(",") if s.strip()]
    return FilterCriteria.from_form(
        symbol=os.getenv("FILTER_SYMBOL", ""),
        exchange=os.getenv("FILTER_EXCHANGE", ""),
        price_min=os.getenv("FILTER_PRICE_MIN", ""),
        price_max=os.getenv("FILTER_PRICE_MAX", ""),
        size_min=os.getenv("FILTER_SIZE_MIN", ""),
        size_max=os.getenv("FILTER_SIZE_MAX", ""),
        sides=sides,
    )


async def run(url: str, criteria: FilterCriteria) -> int:
    closed = asyncio.Event()

    def _print(trade: Trade) -> None:
        if session.filters.matches(trade):
            print(format_trade(trade), flush=True)

    session = FeedSession(on_trade=_print)
    session.set_filters(criteria)
    session.machine.subscribe(
        lambda old, new, _m: closed.set() if new is ConnectionState.DISCONNECTED else None
    )

    print(f"Connecting to {url}")
    if not await session.connect(url):
        print(f"{session.status_text}: {session.last_error}")
        return 1
    print(f"{session.status_text}. Filters active: {session.active_filter_count}")
    try:
        await closed.wait()
    finally:
        await session.disconnect()
    print(session.status_text)
    return 0


def main() -> None:
    # Usage:
    # FEED_URL=ws://localhost:8080 FILTER_SYMBOL=btc FILTER_SIDES=buy python -m feed_client.cli
    setup_logging(level=settings.LOG_LEVEL, component="feed_client", to_file=False)
    try:
        code = asyncio.run(run(settings.DEFAULT_URL, _criteria_from_env()))
    except KeyboardInterrupt:
        code = 0
    raise SystemExit(code)


if __name__ == "__main__":
    main()
