"""Trade model, normalization and buffering shared by the feed client and server."""

from .types import Side, Trade
from .normalizer import DecodeError, FIELD_RULES, FieldRule, normalize
from .buffer import DEFAULT_CAPACITY, FeedBuffer, FilterCriteria
from .scheduler import RandomDelayTask

__all__ = [
    "Side",
    "Trade",
    "DecodeError",
    "FIELD_RULES",
    "FieldRule",
    "normalize",
    "DEFAULT_CAPACITY",
    "FeedBuffer",
    "FilterCriteria",
    "RandomDelayTask",
]
