from __future__ import annotations

import asyncio
import json

import pytest

from feed_client.errors import ConnectError, ConnectRefused, ConnectTimeout, HandshakeFailed, TransportClosedUnexpectedly
from feed_client.negotiator import ConnectionNegotiator
from feed_client.state import ConnectionState, TransportKind
from tests.client.fakes import factory

URL = "ws://feed.example:8080"

TRADE = {
    "id": "abc",
    "timestamp": 1_700_000_000_000,
    "symbol": "BTC/USD",
    "price": 50_100.5,
    "size": 0.25,
    "side": "buy",
    "exchange": "Binance",
}


def _negotiator(sio: str, ws: str, created: list, trades: list | None = None, timeout_s: float = 0.05, **kw):
    return ConnectionNegotiator(
        on_trade=None if trades is None else trades.append,
        transport_factories=(
            factory(TransportKind.SOCKETIO, sio, created, **kw),
            factory(TransportKind.WEBSOCKET, ws, created),
        ),
        timeout_s=timeout_s,
    )


def test_default_timeout_is_five_seconds():
    assert ConnectionNegotiator().timeout_s == 5.0


def test_socketio_handshake_preferred():
    created = []
    neg = _negotiator("ok", "ok", created)
    states = []
    neg.machine.subscribe(lambda old, new, _m: states.append(new))

    transport = asyncio.run(neg.connect(URL))

    assert transport.kind is TransportKind.SOCKETIO
    assert neg.state is ConnectionState.CONNECTED
    assert neg.transport_kind is TransportKind.SOCKETIO
    assert neg.transport is transport
    assert len(created) == 1
    assert states == [ConnectionState.CONNECTING, ConnectionState.CONNECTED]


def test_falls_back_to_websocket_when_handshake_fails():
    created = []
    neg = _negotiator("fail", "ok", created)

    transport = asyncio.run(neg.connect(URL))

    assert transport.kind is TransportKind.WEBSOCKET
    assert neg.state is ConnectionState.CONNECTED
    assert neg.transport_kind is TransportKind.WEBSOCKET
    sio, ws = created
    assert sio.closed
    assert ws.url == URL


def test_falls_back_to_websocket_when_handshake_times_out():
    created = []
    neg = _negotiator("hang", "ok", created)

    asyncio.run(neg.connect(URL))

    assert neg.transport_kind is TransportKind.WEBSOCKET
    assert created[0].closed


def test_both_timeouts_report_combined_error():
    created = []
    neg = _negotiator("hang", "hang", created)
    states = []
    neg.machine.subscribe(lambda old, new, _m: states.append(new))

    with pytest.raises(ConnectError) as excinfo:
        asyncio.run(neg.connect(URL))

    err = excinfo.value
    assert neg.state is ConnectionState.ERROR
    assert neg.machine.error is err
    assert neg.transport is None
    assert [type(a) for a in err.attempts] == [ConnectTimeout, ConnectTimeout]
    msg = str(err)
    assert msg.startswith(f"connect to {URL} failed: ")
    assert "socket.io: ConnectTimeout: no handshake within 50 ms" in msg
    assert "websocket: ConnectTimeout: no handshake within 50 ms" in msg
    assert states == [ConnectionState.CONNECTING, ConnectionState.ERROR]
    assert all(t.closed for t in created)


def test_refused_and_failed_attempts_are_classified():
    created = []
    neg = _negotiator("fail", "refuse", created)

    with pytest.raises(ConnectError) as excinfo:
        asyncio.run(neg.connect(URL))

    sio_err, ws_err = excinfo.value.attempts
    assert isinstance(sio_err, HandshakeFailed)
    assert isinstance(ws_err, ConnectRefused)
    assert "namespace connect rejected" in str(excinfo.value)
    assert "Connect call failed" in str(excinfo.value)


def test_reconnect_after_error_is_allowed():
    created = []
    neg = _negotiator("fail", "fail", created)
    with pytest.raises(ConnectError):
        asyncio.run(neg.connect(URL))

    neg.transport_factories = (factory(TransportKind.WEBSOCKET, "ok", created),)
    asyncio.run(neg.connect(URL))
    assert neg.state is ConnectionState.CONNECTED
    assert neg.machine.error is None


def test_messages_are_normalized_in_order():
    created, trades = [], []
    neg = _negotiator("ok", "ok", created, trades)
    transport = asyncio.run(neg.connect(URL))

    transport.emit(json.dumps({"type": "welcome", "message": "hi", "timestamp": 1}))
    transport.emit(json.dumps(TRADE))
    transport.emit("garbage")
    transport.emit(dict(TRADE, id="def", side="sell"))

    welcome, *rest = trades
    assert welcome.symbol == "UNK"
    assert welcome.timestamp == 1
    assert [t.id for t in rest] == ["abc", "def"]
    assert neg.state is ConnectionState.CONNECTED


def test_messages_before_handshake_returns_are_kept():
    created, trades = [], []
    neg = _negotiator("ok", "ok", created, trades, early=[json.dumps(TRADE)])

    asyncio.run(neg.connect(URL))

    assert [t.id for t in trades] == ["abc"]


def test_stale_transport_is_never_promoted():
    created, trades = [], []
    neg = _negotiator("hang", "ok", created, trades)
    asyncio.run(neg.connect(URL))
    stale, active = created

    stale.emit(json.dumps(TRADE))
    stale.peer_close()

    assert trades == []
    assert neg.transport is active
    assert neg.state is ConnectionState.CONNECTED


@pytest.mark.parametrize("sio", ["ok", "fail"])
def test_server_close_moves_to_disconnected(sio):
    created = []
    neg = _negotiator(sio, "ok", created)
    transport = asyncio.run(neg.connect(URL))

    transport.peer_close("code=1001 reason=going away")

    assert neg.state is ConnectionState.DISCONNECTED
    assert neg.transport is None
    assert neg.transport_kind is None
    assert isinstance(neg.machine.error, TransportClosedUnexpectedly)
    assert "going away" in str(neg.machine.error)


def test_disconnect_is_idempotent():
    created = []
    neg = _negotiator("ok", "ok", created)

    async def _run():
        transport = await neg.connect(URL)
        await neg.disconnect()
        await neg.disconnect()
        return transport

    transport = asyncio.run(_run())

    assert transport.closed
    assert neg.transport is None
    assert neg.transport_kind is None
    assert neg.state is ConnectionState.DISCONNECTED
    # close callbacks after a user disconnect are ignored
    transport.peer_close()
    assert neg.state is ConnectionState.DISCONNECTED
    assert neg.machine.error is None


def test_trade_callback_errors_are_contained():
    created = []

    def _boom(_trade):
        raise RuntimeError("consumer failed")

    neg = _negotiator("ok", "ok", created)
    neg.on_trade = _boom
    transport = asyncio.run(neg.connect(URL))

    transport.emit(json.dumps(TRADE))
    assert neg.state is ConnectionState.CONNECTED


def test_disconnect_during_handshake_drops_the_transport():
    created, trades = [], []

    async def _run():
        gate = asyncio.Event()
        neg = ConnectionNegotiator(
            on_trade=trades.append,
            transport_factories=(factory(TransportKind.WEBSOCKET, "ok", created, early=[json.dumps(TRADE)], gate=gate),),
            timeout_s=1.0,
        )
        task = asyncio.ensure_future(neg.connect(URL))
        while not created:
            await asyncio.sleep(0)
        await neg.disconnect()
        gate.set()
        result = await task
        created[0].emit(json.dumps(TRADE))
        return neg, result

    neg, result = asyncio.run(_run())

    assert result is None
    assert neg.state is ConnectionState.DISCONNECTED
    assert neg.transport is None
    assert created[0].closed
    assert trades == []


def test_disconnect_during_failing_handshake_skips_remaining_attempts():
    created = []
    neg = _negotiator("hang", "ok", created)

    async def _run():
        task = asyncio.ensure_future(neg.connect(URL))
        while not created:
            await asyncio.sleep(0)
        await neg.disconnect()
        return await task

    assert asyncio.run(_run()) is None
    assert len(created) == 1
    assert neg.state is ConnectionState.DISCONNECTED
    assert neg.machine.error is None
