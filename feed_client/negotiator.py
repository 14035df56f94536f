"""Connection negotiation: Socket.IO first, raw websocket as fallback.

Precondition: ``connect`` is not called while a transport is active. Callers
disable their connect control while connecting/connected; the negotiator does
not check.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Callable, List, Optional, Sequence, Tuple, Type

from feed_client import settings
from feed_client.errors import (
    AttemptError,
    ConnectError,
    ConnectRefused,
    ConnectTimeout,
    HandshakeFailed,
    TransportClosedUnexpectedly,
)
from feed_client.state import ConnectionEvent, ConnectionState, ConnectionStateMachine, TransportKind
from feed_client.transports import SocketIOTransport, Transport, WebSocketTransport
from feed_core.normalizer import normalize
from feed_core.types import Trade

TransportFactory = Callable[..., Transport]

DEFAULT_TRANSPORTS: Sequence[Type[Transport]] = (SocketIOTransport, WebSocketTransport)


class ConnectionNegotiator:
    def __init__(
        self,
        on_trade: Optional[Callable[[Trade], None]] = None,
        machine: Optional[ConnectionStateMachine] = None,
        transport_factories: Sequence[TransportFactory] = DEFAULT_TRANSPORTS,
        timeout_s: float = settings.CONNECT_TIMEOUT_S,
    ) -> None:
        self.on_trade = on_trade
        self.machine = machine or ConnectionStateMachine()
        self.transport_factories = tuple(transport_factories)
        self.timeout_s = float(timeout_s)
        self._active: Optional[Transport] = None
        self._pending: Optional[Transport] = None
        self._early: List[Any] = []
        self._early_close: Optional[Tuple[Optional[str]]] = None
        self._generation = 0
        self._log = logging.getLogger("feed_client.negotiator")

    @property
    def state(self) -> ConnectionState:
        return self.machine.state

    @property
    def transport(self) -> Optional[Transport]:
        return self._active

    @property
    def transport_kind(self) -> Optional[TransportKind]:
        return self.machine.transport_kind

    async def connect(self, url: str) -> Optional[Transport]:
        """Open the first transport that completes its handshake.

        Raises ConnectError naming every attempt's failure when none succeed.
        Returns None when ``disconnect`` is called before a handshake completes.
        """
        self._generation += 1
        generation = self._generation
        self.machine.dispatch(ConnectionEvent.CONNECT)
        failures: List[AttemptError] = []

        for factory in self.transport_factories:
            transport = factory(on_message=self._handle_message, on_close=self._handle_close)
            self._pending = transport
            self._early = []
            self._early_close = None
            try:
                error = await self._attempt(transport, url)
            finally:
                self._pending = None
                early, self._early = self._early, []
                early_close, self._early_close = self._early_close, None
            if generation != self._generation:
                self._log.info("Connect to %s abandoned by disconnect", url)
                if error is None:
                    with contextlib.suppress(Exception):
                        await transport.close()
                return None
            if error is None:
                self._active = transport
                self.machine.dispatch(ConnectionEvent.OPEN, kind=transport.kind)
                self._log.info("Connected to %s via %s", url, transport.kind.value)
                for raw in early:
                    self._handle_message(transport, raw)
                if early_close is not None:
                    self._handle_close(transport, early_close[0])
                return transport
            self._log.warning("Transport attempt failed: %s", error)
            failures.append(error)

        err = ConnectError(url, failures)
        self.machine.dispatch(ConnectionEvent.ERROR, error=err)
        self._log.error("%s", err)
        raise err

    async def _attempt(self, transport: Transport, url: str) -> Optional[AttemptError]:
        kind = transport.kind.value
        try:
            await asyncio.wait_for(transport.open(url), timeout=self.timeout_s)
            return None
        except asyncio.TimeoutError:
            error: AttemptError = ConnectTimeout(kind, f"no handshake within {int(self.timeout_s * 1000)} ms")
        except ConnectionRefusedError as exc:
            error = ConnectRefused(kind, str(exc) or "connection refused")
        except Exception as exc:
            error = HandshakeFailed(kind, str(exc) or type(exc).__name__)
        # Stale attempt: tear it down so a late resolution is never promoted.
        with contextlib.suppress(Exception):
            await transport.close()
        return error

    async def disconnect(self) -> None:
        """Close the active or handshaking transport, if any. Safe to call repeatedly."""
        self._generation += 1
        pending, self._pending = self._pending, None
        if pending is not None:
            with contextlib.suppress(Exception):
                await pending.close()
        transport, self._active = self._active, None
        if transport is not None:
            with contextlib.suppress(Exception):
                await transport.close()
            self._log.info("Disconnected %s transport", transport.kind.value)
        self.machine.dispatch(ConnectionEvent.USER_DISCONNECT)

    def _handle_message(self, transport: Transport, raw: Any) -> None:
        if transport is self._pending:
            # Delivered before the handshake returned; replayed on promotion.
            self._early.append(raw)
            return
        if transport is not self._active:
            return
        trade = normalize(raw)
        if trade is None:
            return
        self.machine.dispatch(ConnectionEvent.MESSAGE)
        if self.on_trade is not None:
            try:
                self.on_trade(trade)
            except Exception:
                self._log.exception("Trade callback error (id=%s)", trade.id)

    def _handle_close(self, transport: Transport, reason: Optional[str]) -> None:
        if transport is self._pending:
            self._early_close = (reason,)
            return
        if transport is not self._active:
            return
        self._active = None
        err = TransportClosedUnexpectedly(transport.kind.value, reason)
        self._log.warning("%s", err)
        self.machine.dispatch(ConnectionEvent.CLOSE, error=err)
