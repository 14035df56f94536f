from __future__ import annotations

from typing import Sequence

from feed_core.normalizer import DecodeError


class FeedError(Exception):
    """Base class for feed client errors."""


class AttemptError(FeedError):
    """A single transport attempt failed."""

    def __init__(self, kind: str, reason: str) -> None:
        super().__init__(f"{kind}: {type(self).__name__}: {reason}")
        self.kind = kind
        self.reason = reason


class ConnectTimeout(AttemptError):
    pass


class ConnectRefused(AttemptError):
    pass


class HandshakeFailed(AttemptError):
    pass


class ConnectError(FeedError):
    """Every transport attempt failed.

    Message format: ``connect to <url> failed: <attempt>; <attempt>`` where each
    attempt reads ``<kind>: <ErrorClass>: <reason>``.
    """

    def __init__(self, url: str, attempts: Sequence[AttemptError]) -> None:
        self.url = url
        self.attempts = tuple(attempts)
        detail = "; ".join(str(a) for a in self.attempts) or "no transports configured"
        super().__init__(f"connect to {url} failed: {detail}")


class TransportClosedUnexpectedly(FeedError):
    def __init__(self, kind: str, reason: str | None = None) -> None:
        super().__init__(f"{kind} transport closed by peer" + (f": {reason}" if reason else ""))
        self.kind = kind
        self.reason = reason


__all__ = [
    "FeedError",
    "AttemptError",
    "ConnectTimeout",
    "ConnectRefused",
    "HandshakeFailed",
    "ConnectError",
    "DecodeError",
    "TransportClosedUnexpectedly",
]
