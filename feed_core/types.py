from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Side(str, Enum):
    BUY = "buy"
    SELL = "sell"


@dataclass(frozen=True)
class Trade:
    id: str
    timestamp: int
    symbol: str
    price: float = 0.0
    size: float = 0.0
    side: Side = Side.BUY
    exchange: str = "unknown"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "symbol": self.symbol,
            "price": self.price,
            "size": self.size,
            "side": self.side.value,
            "exchange": self.exchange,
        }
