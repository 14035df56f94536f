from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from feed_client.errors import FeedError


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class ConnectionEvent(str, Enum):
    CONNECT = "connect"
    OPEN = "open"
    MESSAGE = "message"
    ERROR = "error"
    CLOSE = "close"
    USER_DISCONNECT = "user_disconnect"


class TransportKind(str, Enum):
    SOCKETIO = "socket.io"
    WEBSOCKET = "websocket"


_S = ConnectionState
_E = ConnectionEvent

TRANSITIONS: Dict[Tuple[ConnectionState, ConnectionEvent], ConnectionState] = {
    (_S.DISCONNECTED, _E.CONNECT): _S.CONNECTING,
    (_S.ERROR, _E.CONNECT): _S.CONNECTING,
    (_S.CONNECTING, _E.OPEN): _S.CONNECTED,
    (_S.CONNECTING, _E.ERROR): _S.ERROR,
    (_S.CONNECTED, _E.MESSAGE): _S.CONNECTED,
    (_S.CONNECTED, _E.CLOSE): _S.DISCONNECTED,
    (_S.DISCONNECTED, _E.USER_DISCONNECT): _S.DISCONNECTED,
    (_S.CONNECTING, _E.USER_DISCONNECT): _S.DISCONNECTED,
    (_S.CONNECTED, _E.USER_DISCONNECT): _S.DISCONNECTED,
    (_S.ERROR, _E.USER_DISCONNECT): _S.DISCONNECTED,
}

StateListener = Callable[[ConnectionState, ConnectionState, "ConnectionStateMachine"], None]


class ConnectionStateMachine:
    """Connection state driven only by ``ConnectionEvent`` dispatches.

    Pairs missing from ``TRANSITIONS`` are ignored and leave the state as is.
    """

    def __init__(self) -> None:
        self.state = ConnectionState.DISCONNECTED
        self.transport_kind: Optional[TransportKind] = None
        self.error: Optional[FeedError] = None
        self._listeners: List[StateListener] = []
        self._log = logging.getLogger("feed_client.state")

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def dispatch(
        self,
        event: ConnectionEvent,
        *,
        kind: Optional[TransportKind] = None,
        error: Optional[FeedError] = None,
    ) -> ConnectionState:
        old = self.state
        new = TRANSITIONS.get((old, event))
        if new is None:
            self._log.debug("Ignoring event=%s in state=%s", event.value, old.value)
            return old

        if event is ConnectionEvent.CONNECT:
            self.error = None
            self.transport_kind = None
        elif event is ConnectionEvent.OPEN:
            self.transport_kind = kind
        elif event is ConnectionEvent.ERROR:
            self.error = error
            self.transport_kind = None
        elif event in (ConnectionEvent.CLOSE, ConnectionEvent.USER_DISCONNECT):
            self.transport_kind = None
            self.error = error

        self.state = new
        if new is not old:
            self._log.info("Connection state %s -> %s (event=%s)", old.value, new.value, event.value)
            self._notify(old, new)
        return new

    def _notify(self, old: ConnectionState, new: ConnectionState) -> None:
        for listener in list(self._listeners):
            try:
                listener(old, new, self)
            except Exception:
                self._log.exception("State listener error (%s -> %s)", old.value, new.value)
