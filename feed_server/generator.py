from __future__ import annotations

import base64
import random
import time
import uuid
from typing import Any, Dict, Optional

SYMBOLS = ("BTC/USD", "ETH/USD", "SOL/USD", "ADA/USD", "DOT/USD", "AVAX/USD", "MATIC/USD")
EXCHANGES = ("Binance", "Coinbase", "Kraken", "Bybit", "OKX", "Gemini", "KuCoin")
SIDES = ("buy", "sell")

# Checked in order by substring; BTC is the fallback
BASE_PRICES = (
    ("ETH", 3500.0),
    ("SOL", 100.0),
    ("ADA", 0.5),
    ("DOT", 7.0),
    ("AVAX", 40.0),
    ("MATIC", 1.2),
)
DEFAULT_BASE_PRICE = 50000.0

TOKENS = (
    ("Pepe Classic", "PEPEC"),
    ("Moon Cat", "MCAT"),
    ("Based Frog", "BFROG"),
    ("Solana Doge", "SDOGE"),
)


def base_price(symbol: str) -> float:
    for needle, price in BASE_PRICES:
        if needle in symbol:
            return price
    return DEFAULT_BASE_PRICE


def _now_ms() -> int:
    return int(time.time() * 1000)


def generate_trade(rng: Optional[random.Random] = None) -> Dict[str, Any]:
    """Standard schema: {id, timestamp, symbol, price, size, side, exchange}."""
    rng = rng or random.Random()
    symbol = rng.choice(SYMBOLS)
    return {
        "id": str(uuid.UUID(int=rng.getrandbits(128), version=4)),
        "timestamp": _now_ms(),
        "symbol": symbol,
        "price": base_price(symbol) * (0.95 + rng.random() * 0.1),
        "size": rng.random() * 10 + 0.001,
        "side": rng.choice(SIDES),
        "exchange": rng.choice(EXCHANGES),
    }


def _fake_address(rng: random.Random, nbytes: int = 32) -> str:
    raw = bytes(rng.getrandbits(8) for _ in range(nbytes))
    return base64.b32encode(raw).decode("ascii").rstrip("=")


def generate_pump_trade(rng: Optional[random.Random] = None) -> Dict[str, Any]:
    """Alternate token-launch schema keyed by signature with sol/token amounts."""
    rng = rng or random.Random()
    name, symbol = rng.choice(TOKENS)
    sol_amount = rng.random() * 5 + 0.01
    market_cap = rng.random() * 100 + 20
    return {
        "signature": _fake_address(rng, 64),
        "timestamp": _now_ms(),
        "name": name,
        "symbol": symbol,
        "sol_amount": sol_amount,
        "token_amount": sol_amount * (rng.random() * 1_000_000 + 10_000),
        "usd_market_cap": market_cap * 150,
        "market_cap": market_cap,
        "is_buy": rng.random() < 0.5,
        "user": _fake_address(rng),
        "creator": _fake_address(rng),
        "nsfw": False,
    }


GENERATORS = {
    "standard": generate_trade,
    "pump": generate_pump_trade,
}


def get_generator(schema: str):
    try:
        return GENERATORS[schema]
    except KeyError:
        raise ValueError(f"unknown trade schema: {schema!r}") from None
