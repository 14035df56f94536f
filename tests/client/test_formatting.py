from __future__ import annotations

import re

import pytest

from feed_client.formatting import format_price, format_time, format_trade
from feed_core.types import Side, Trade


@pytest.mark.parametrize(
    "price,expected",
    [
        (0, "$0.00"),
        (5, "$5.00"),
        (1234.5, "$1,234.50"),
        (50123.456789, "$50,123.456789"),
        (0.123456789, "$0.12345679"),
    ],
)
def test_format_price(price, expected):
    assert format_price(price) == expected


def test_format_time_has_millis():
    assert re.fullmatch(r"\d{2}:\d{2}:\d{2}\.\d{3}", format_time(1_700_000_000_042))
    assert format_time(1_700_000_000_042).endswith(".042")


def test_format_trade_contains_fields():
    trade = Trade(id="a", timestamp=1_700_000_000_000, symbol="ETH/USD", price=3500.0, size=1.5, side=Side.SELL, exchange="Kraken")
    line = format_trade(trade)
    assert "ETH/USD" in line
    assert "sell" in line
    assert "$3,500.00" in line
    assert line.endswith("@ Kraken")
