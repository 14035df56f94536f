from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, FrozenSet, Iterable, List, Optional

from feed_core.types import Side, Trade

DEFAULT_CAPACITY = 100

ALL_SIDES: FrozenSet[Side] = frozenset({Side.BUY, Side.SELL})

Predicate = Callable[[Trade], bool]


def _parse_bound(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _contains(needle: str, attr: str) -> Predicate:
    needle = needle.lower()
    return lambda t: needle in getattr(t, attr).lower()


def _in_range(lo: Optional[float], hi: Optional[float], attr: str) -> Predicate:
    def _check(t: Trade) -> bool:
        v = getattr(t, attr)
        if lo is not None and v < lo:
            return False
        if hi is not None and v > hi:
            return False
        return True

    return _check


@dataclass(frozen=True)
class FilterCriteria:
    symbol: str = ""
    exchange: str = ""
    price_min: Optional[float] = None
    price_max: Optional[float] = None
    size_min: Optional[float] = None
    size_max: Optional[float] = None
    sides: FrozenSet[Side] = field(default=ALL_SIDES)

    @classmethod
    def from_form(
        cls,
        symbol: str = "",
        exchange: str = "",
        price_min: Any = "",
        price_max: Any = "",
        size_min: Any = "",
        size_max: Any = "",
        sides: Optional[Iterable[str]] = None,
    ) -> "FilterCriteria":
        """Build criteria from form inputs; blank or unparseable bounds mean no bound."""
        return cls(
            symbol=(symbol or "").strip(),
            exchange=(exchange or "").strip(),
            price_min=_parse_bound(price_min),
            price_max=_parse_bound(price_max),
            size_min=_parse_bound(size_min),
            size_max=_parse_bound(size_max),
            sides=ALL_SIDES if sides is None else frozenset(Side(s) for s in sides),
        )

    def predicates(self) -> List[Predicate]:
        preds: List[Predicate] = []
        if self.symbol:
            preds.append(_contains(self.symbol, "symbol"))
        if self.price_min is not None or self.price_max is not None:
            preds.append(_in_range(self.price_min, self.price_max, "price"))
        if self.size_min is not None or self.size_max is not None:
            preds.append(_in_range(self.size_min, self.size_max, "size"))
        if self.sides != ALL_SIDES:
            sides = self.sides
            preds.append(lambda t: t.side in sides)
        if self.exchange:
            preds.append(_contains(self.exchange, "exchange"))
        return preds

    def matches(self, trade: Trade) -> bool:
        return all(p(trade) for p in self.predicates())

    @property
    def active_count(self) -> int:
        count = 0
        if self.symbol:
            count += 1
        if self.price_min is not None or self.price_max is not None:
            count += 1
        if self.size_min is not None or self.size_max is not None:
            count += 1
        if self.sides != ALL_SIDES:
            count += 1
        if self.exchange:
            count += 1
        return count


class FeedBuffer:
    """Newest-first bounded buffer of trades."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._trades: Deque[Trade] = deque(maxlen=capacity)

    def push(self, trade: Trade) -> None:
        # appendleft on a bounded deque evicts from the right (oldest)
        self._trades.appendleft(trade)

    def query(self, criteria: Optional[FilterCriteria] = None) -> List[Trade]:
        if criteria is None:
            return list(self._trades)
        preds = criteria.predicates()
        return [t for t in self._trades if all(p(t) for p in preds)]

    def clear(self) -> None:
        self._trades.clear()

    def __len__(self) -> int:
        return len(self._trades)

    def __iter__(self):
        return iter(self._trades)
