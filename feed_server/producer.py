from __future__ import annotations

import asyncio
import json
import logging
import random
import time
from typing import Any, Callable, Dict, Optional

import websockets

from feed_core.logging_config import setup_logging
from feed_core.scheduler import RandomDelayTask
from feed_server import settings
from feed_server.generator import get_generator
from feed_server.protocols import make_welcome

log = logging.getLogger("feed_server.producer")

TradeGenerator = Callable[[Optional[random.Random]], Dict[str, Any]]


def _now_ms() -> int:
    return int(time.time() * 1000)


def _peer(ws: Any) -> str:
    addr = getattr(ws, "remote_address", None)
    if isinstance(addr, tuple) and addr:
        return f"{addr[0]}:{addr[1]}" if len(addr) > 1 else str(addr[0])
    return str(addr) if addr else "unknown"


async def _send_json(ws: Any, payload: Dict[str, Any]) -> None:
    await ws.send(json.dumps(payload, ensure_ascii=False))


class TradeProducer:
    """Per connection: a welcome message, then one trade after each random delay."""

    def __init__(
        self,
        generator: TradeGenerator,
        min_delay_s: float = settings.MIN_DELAY_S,
        max_delay_s: float = settings.MAX_DELAY_S,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.generator = generator
        self.min_delay_s = min_delay_s
        self.max_delay_s = max_delay_s
        self.rng = rng or random.Random()
        self.connections = 0

    async def _send_trade(self, ws: Any, peer: str) -> None:
        trade = self.generator(self.rng)
        try:
            await _send_json(ws, trade)
        except websockets.ConnectionClosed:
            log.debug("Client %s closed before trade could be sent", peer)
            return
        log.info(
            "Sent trade: %s %s %.2f @ %s",
            trade.get("symbol"),
            trade.get("side", "buy" if trade.get("is_buy") else "sell"),
            float(trade.get("price", trade.get("sol_amount", 0.0))),
            trade.get("exchange", "unknown"),
        )

    async def handler(self, ws: Any) -> None:
        peer = _peer(ws)
        self.connections += 1
        log.info("New client connected from %s", peer)
        try:
            await _send_json(ws, make_welcome(_now_ms()))
        except websockets.ConnectionClosed:
            log.info("Client %s disconnected", peer)
            return

        task = RandomDelayTask(
            lambda: self._send_trade(ws, peer),
            self.min_delay_s,
            self.max_delay_s,
            rng=self.rng,
            name=f"trades-{peer}",
        )
        task.start()
        try:
            await ws.wait_closed()
        finally:
            await task.wait_cancelled()
            log.info("Client %s disconnected", peer)


async def _run_server(host: str, port: int, producer: TradeProducer) -> None:
    async with websockets.serve(producer.handler, host, port):
        await asyncio.Future()


def main() -> None:
    setup_logging(level=settings.LOG_LEVEL, component="feed_server")
    producer = TradeProducer(get_generator(settings.SCHEMA))
    log.info("Trading WebSocket server listening on ws://%s:%s (schema=%s)", settings.HOST, settings.PORT, settings.SCHEMA)
    try:
        asyncio.run(_run_server(settings.HOST, settings.PORT, producer))
    except KeyboardInterrupt:
        log.info("Shutting down WebSocket server")


if __name__ == "__main__":
    main()
