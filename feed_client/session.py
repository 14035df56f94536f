from __future__ import annotations

import logging
from typing import Any, Callable, List, Mapping, Optional, Union

from feed_client import settings
from feed_client.errors import ConnectError
from feed_client.negotiator import ConnectionNegotiator
from feed_client.state import ConnectionState, ConnectionStateMachine, TransportKind
from feed_core.buffer import FeedBuffer, FilterCriteria
from feed_core.types import Trade


class FeedSession:
    """Control surface of the trade feed: owns the buffer and the negotiator.

    The negotiator emits normalized trades; the session pushes them into its
    buffer. ``trades`` is the buffer filtered by the current criteria.
    """

    def __init__(
        self,
        negotiator: Optional[ConnectionNegotiator] = None,
        buffer: Optional[FeedBuffer] = None,
        on_trade: Optional[Callable[[Trade], None]] = None,
    ) -> None:
        self.buffer = buffer or FeedBuffer(settings.BUFFER_CAPACITY)
        self.negotiator = negotiator or ConnectionNegotiator()
        self.negotiator.on_trade = self._push
        self.on_trade = on_trade
        self.filters = FilterCriteria()
        self.last_error: Optional[ConnectError] = None
        self._log = logging.getLogger("feed_client.session")

    @property
    def machine(self) -> ConnectionStateMachine:
        return self.negotiator.machine

    @property
    def connection_state(self) -> ConnectionState:
        return self.negotiator.state

    @property
    def connection_type(self) -> Optional[TransportKind]:
        return self.negotiator.transport_kind

    @property
    def trades(self) -> List[Trade]:
        return self.buffer.query(self.filters)

    @property
    def active_filter_count(self) -> int:
        return self.filters.active_count

    @property
    def status_text(self) -> str:
        state = self.connection_state
        if state is ConnectionState.CONNECTED and self.connection_type is not None:
            return f"Connected ({self.connection_type.value})"
        if state is ConnectionState.CONNECTING:
            return "Connecting..."
        if state is ConnectionState.ERROR:
            return "Connection Error"
        return "Disconnected"

    async def connect(self, url: str) -> bool:
        """Connect to ``url``; returns False on failure (recorded in ``last_error``) or when a
        disconnect abandons the handshake."""
        url = (url or "").strip()
        if not url:
            raise ValueError("url is required")
        self.last_error = None
        try:
            transport = await self.negotiator.connect(url)
        except ConnectError as exc:
            self.last_error = exc
            return False
        return transport is not None

    async def disconnect(self) -> None:
        await self.negotiator.disconnect()

    def clear(self) -> None:
        self.buffer.clear()
        self._log.info("Trade list cleared")

    def set_filters(self, criteria: Union[FilterCriteria, Mapping[str, Any], None]) -> FilterCriteria:
        if criteria is None:
            criteria = FilterCriteria()
        elif not isinstance(criteria, FilterCriteria):
            criteria = FilterCriteria.from_form(**criteria)
        self.filters = criteria
        return criteria

    def clear_filters(self) -> None:
        self.filters = FilterCriteria()

    def _push(self, trade: Trade) -> None:
        self.buffer.push(trade)
        if self.on_trade is not None:
            self.on_trade(trade)
