from __future__ import annotations

import asyncio
import contextlib
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional, Sequence

import socketio  # type: ignore
from websockets.asyncio.client import connect as ws_connect  # type: ignore
from websockets.exceptions import ConnectionClosed  # type: ignore

from feed_client import settings
from feed_client.state import TransportKind

MessageCallback = Callable[["Transport", Any], None]
CloseCallback = Callable[["Transport", Optional[str]], None]


class Transport(ABC):
    """One persistent connection that forwards raw payloads to callbacks.

    ``open`` returns once the connection is usable and raises on failure.
    ``close`` is idempotent and never reports through ``on_close``; only a
    peer-side closure does.
    """

    kind: TransportKind

    def __init__(self, on_message: MessageCallback, on_close: CloseCallback) -> None:
        self.on_message = on_message
        self.on_close = on_close
        self._closing = False
        self._log = logging.getLogger(f"feed_client.transports.{self.kind.value}")

    @abstractmethod
    async def open(self, url: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def close(self) -> None:
        raise NotImplementedError

    def _deliver(self, payload: Any) -> None:
        try:
            self.on_message(self, payload)
        except Exception:
            self._log.exception("Message callback error")

    def _closed_by_peer(self, reason: Optional[str]) -> None:
        if self._closing:
            return
        self._closing = True
        try:
            self.on_close(self, reason)
        except Exception:
            self._log.exception("Close callback error")


def websocket_url(url: str) -> str:
    """Map http(s) URLs to ws(s); other schemes pass through."""
    if url.startswith("https://"):
        return "wss://" + url[len("https://"):]
    if url.startswith("http://"):
        return "ws://" + url[len("http://"):]
    return url


class WebSocketTransport(Transport):
    kind = TransportKind.WEBSOCKET

    def __init__(
        self,
        on_message: MessageCallback,
        on_close: CloseCallback,
        ping_interval_s: float = settings.WS_PING_INTERVAL_S,
        ping_timeout_s: float = settings.WS_PING_TIMEOUT_S,
        close_timeout_s: float = settings.WS_CLOSE_TIMEOUT_S,
        max_queue: int = settings.WS_MAX_QUEUE,
    ) -> None:
        super().__init__(on_message, on_close)
        self.ping_interval_s = ping_interval_s if ping_interval_s > 0 else None
        self.ping_timeout_s = ping_timeout_s if ping_timeout_s > 0 else None
        self.close_timeout_s = max(0.0, float(close_timeout_s))
        self.max_queue = max(1, int(max_queue))
        self._ws = None
        self._reader: Optional[asyncio.Task] = None

    async def open(self, url: str) -> None:
        # open_timeout is left to the negotiator's budget
        self._ws = await ws_connect(
            websocket_url(url),
            open_timeout=None,
            ping_interval=self.ping_interval_s,
            ping_timeout=self.ping_timeout_s,
            close_timeout=self.close_timeout_s,
            max_queue=self.max_queue,
        )
        self._reader = asyncio.get_running_loop().create_task(self._read_loop())

    async def _read_loop(self) -> None:
        ws = self._ws
        if ws is None:
            return
        reason: Optional[str] = None
        try:
            async for msg in ws:
                self._deliver(msg)
        except ConnectionClosed as exc:
            reason = str(exc)
        except Exception as exc:
            self._log.exception("WebSocket read error")
            reason = str(exc)
        if reason is None:
            code = getattr(ws, "close_code", None)
            text = getattr(ws, "close_reason", None)
            reason = f"code={code} reason={text or ''}".strip()
        self._closed_by_peer(reason)

    async def close(self) -> None:
        self._closing = True
        ws, self._ws = self._ws, None
        reader, self._reader = self._reader, None
        if ws is not None:
            with contextlib.suppress(Exception):
                await ws.close()
        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await reader


class SocketIOTransport(Transport):
    kind = TransportKind.SOCKETIO

    def __init__(
        self,
        on_message: MessageCallback,
        on_close: CloseCallback,
        events: Sequence[str] = settings.SOCKETIO_EVENTS,
        transports: Sequence[str] = settings.SOCKETIO_TRANSPORTS,
        wait_timeout_s: float = settings.CONNECT_TIMEOUT_S,
    ) -> None:
        super().__init__(on_message, on_close)
        self.events = tuple(events)
        self.transports = list(transports)
        self.wait_timeout_s = wait_timeout_s
        self._client: Optional[socketio.AsyncClient] = None

    def _make_client(self) -> socketio.AsyncClient:
        # One attempt only; reconnect policy belongs to the caller
        return socketio.AsyncClient(reconnection=False, logger=False, engineio_logger=False)

    def _event_handler(self, event: str):
        async def _handler(*args):
            self._log.debug("Socket.IO event=%s", event)
            self._deliver(args[0] if args else None)

        return _handler

    async def _handle_disconnect(self, *args) -> None:
        reason = str(args[0]) if args else None
        self._closed_by_peer(reason)

    async def open(self, url: str) -> None:
        client = self._make_client()
        self._client = client
        for event in self.events:
            client.on(event, self._event_handler(event))
        client.on("disconnect", self._handle_disconnect)
        # connect() waits for the namespace connect acknowledgment
        await client.connect(
            url,
            transports=self.transports,
            wait=True,
            wait_timeout=self.wait_timeout_s,
        )

    async def close(self) -> None:
        self._closing = True
        client, self._client = self._client, None
        if client is not None:
            with contextlib.suppress(Exception):
                await client.disconnect()
