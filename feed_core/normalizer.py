"""Normalize heterogeneous upstream payloads into canonical trades.

Upstream feeds are untrusted and shaped differently (the demo websocket
producer, Socket.IO demo servers, third-party token feeds). Each output field
is resolved by an ordered tuple of extraction rules; the first rule that yields
a value wins. Anything that cannot be decoded is discarded (``None``).
"""

from __future__ import annotations

import json
import logging
import math
import re
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from feed_core.types import Side, Trade

log = logging.getLogger("feed_core.normalizer")

# Socket.IO EVENT packet as seen on a raw websocket: 42["event", {...}]
_FRAME_RE = re.compile(r"^(\d{2})(\[.*\])$", re.DOTALL)

class DecodeError(ValueError):
    """Raised when a raw message cannot be turned into a JSON object."""


@dataclass(frozen=True)
class FieldRule:
    name: str
    extract: Callable[[Mapping[str, Any]], Any]

    def __call__(self, payload: Mapping[str, Any]) -> Any:
        return self.extract(payload)


def now_ms() -> int:
    return int(time.time() * 1000)


def _as_text(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        return value or None
    if isinstance(value, int):
        return str(value)
    return None


def _as_amount(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(amount) or amount < 0:
        return None
    return amount


def _as_millis(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        if not math.isfinite(value):
            return None
    except OverflowError:
        return None
    return int(value)


def _as_side(value: Any) -> Optional[Side]:
    if not isinstance(value, str):
        return None
    try:
        return Side(value.strip().lower())
    except ValueError:
        return None


def text_field(key: str) -> FieldRule:
    return FieldRule(key, lambda p: _as_text(p.get(key)))


def amount_field(key: str) -> FieldRule:
    return FieldRule(key, lambda p: _as_amount(p.get(key)))


def millis_field(key: str) -> FieldRule:
    return FieldRule(key, lambda p: _as_millis(p.get(key)))


def side_field(key: str) -> FieldRule:
    return FieldRule(key, lambda p: _as_side(p.get(key)))


def buy_flag(key: str) -> FieldRule:
    def _extract(payload: Mapping[str, Any]) -> Optional[Side]:
        flag = payload.get(key)
        if not isinstance(flag, bool):
            return None
        return Side.BUY if flag else Side.SELL

    return FieldRule(key, _extract)


def pair_symbol(name_key: str, quote: str = "USD") -> FieldRule:
    def _extract(payload: Mapping[str, Any]) -> Optional[str]:
        name = _as_text(payload.get(name_key))
        if name is None:
            return None
        return f"{name}/{quote}"

    return FieldRule(f"{name_key}/{quote}", _extract)


def constant(value: Any) -> FieldRule:
    return FieldRule(f"={value!r}", lambda _p: value)


def generated(factory: Callable[[], Any], name: str) -> FieldRule:
    return FieldRule(name, lambda _p: factory())


FIELD_RULES: Dict[str, Tuple[FieldRule, ...]] = {
    "id": (
        text_field("id"),
        text_field("signature"),
        generated(lambda: str(uuid.uuid4()), "uuid4"),
    ),
    "timestamp": (
        millis_field("timestamp"),
        generated(lambda: now_ms(), "now_ms"),
    ),
    "symbol": (
        text_field("symbol"),
        pair_symbol("name"),
        constant("UNK"),
    ),
    "price": (
        amount_field("price"),
        amount_field("sol_amount"),
        constant(0.0),
    ),
    "size": (
        amount_field("size"),
        amount_field("token_amount"),
        constant(0.0),
    ),
    "side": (
        side_field("side"),
        buy_flag("is_buy"),
        constant(Side.BUY),
    ),
    "exchange": (
        text_field("exchange"),
        constant("unknown"),
    ),
}


def resolve_field(field: str, payload: Mapping[str, Any]) -> Any:
    for rule in FIELD_RULES[field]:
        value = rule(payload)
        if value is not None:
            return value
    return None


def unwrap_frame(text: str) -> Optional[str]:
    """Return the JSON payload of a ``42["event", payload]`` frame, or None."""
    match = _FRAME_RE.match(text)
    if match is None:
        return None
    return match.group(2)


def decode_payload(raw: Any) -> Mapping[str, Any]:
    if isinstance(raw, Mapping):
        return raw
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError(f"undecodable bytes: {exc}") from exc
    if not isinstance(raw, str):
        raise DecodeError(f"unsupported payload type {type(raw).__name__}")

    text = raw.strip()
    frame = unwrap_frame(text)
    try:
        decoded = json.loads(frame if frame is not None else text)
    except ValueError as exc:
        raise DecodeError(f"invalid JSON: {exc}") from exc

    if frame is not None:
        if len(decoded) < 2 or not isinstance(decoded[0], str):
            raise DecodeError("frame without event payload")
        decoded = decoded[1]
    if not isinstance(decoded, Mapping):
        raise DecodeError(f"expected JSON object, got {type(decoded).__name__}")
    return decoded


def map_trade(payload: Mapping[str, Any]) -> Trade:
    return Trade(
        id=resolve_field("id", payload),
        timestamp=resolve_field("timestamp", payload),
        symbol=resolve_field("symbol", payload),
        price=resolve_field("price", payload),
        size=resolve_field("size", payload),
        side=resolve_field("side", payload),
        exchange=resolve_field("exchange", payload),
    )


def is_valid(trade: Trade) -> bool:
    return bool(trade.id) and bool(trade.timestamp) and bool(trade.symbol)


def normalize(raw: Any) -> Optional[Trade]:
    """Map ``raw`` to a Trade, or return None to discard the message."""
    try:
        payload = decode_payload(raw)
    except DecodeError as exc:
        log.debug("Discarding message: %s", exc)
        return None

    trade = map_trade(payload)
    if not is_valid(trade):
        log.debug("Discarding trade missing id/timestamp/symbol: %s", trade)
        return None
    return trade
