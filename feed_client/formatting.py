from __future__ import annotations

from datetime import datetime

from feed_core.types import Trade


def format_time(ts_ms: int) -> str:
    """Local wall-clock time as HH:MM:SS.mmm."""
    dt = datetime.fromtimestamp(ts_ms // 1000)
    return dt.strftime("%H:%M:%S.") + f"{ts_ms % 1000:03d}"


def format_price(price: float) -> str:
    """USD with at least 2 and at most 8 fraction digits."""
    text = f"{abs(price):,.8f}".rstrip("0")
    whole, _, frac = text.partition(".")
    frac = frac.ljust(2, "0")
    sign = "-" if price < 0 else ""
    return f"{sign}${whole}.{frac}"


def format_trade(trade: Trade) -> str:
    return (
        f"{format_time(trade.timestamp)}  {trade.symbol:<10} {trade.side.value:<4} "
        f"{format_price(trade.price):>16} x {trade.size:<12.4f} @ {trade.exchange}"
    )
