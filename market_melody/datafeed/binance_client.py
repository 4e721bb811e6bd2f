"""
Binance spot bookTicker WebSocket client with async orchestration.

Handles:
1. Live SUBSCRIBE / UNSUBSCRIBE on a single raw-stream connection
2. Receive-side throttle (minimum gap between processed events)
3. Dropping malformed messages and quotes for symbols no longer subscribed
4. Optional reconnect that resumes the existing subscriptions

Performance notes:
- Uses orjson for JSON parsing
- Minimal logging in hot path
- All I/O is non-blocking (pure asyncio)
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable

import aiohttp
import orjson

from ..engine.normalizer import normalize
from ..types import MalformedQuoteError, Quote

logger = logging.getLogger(__name__)

# Binance spot raw-stream endpoint; streams are added with SUBSCRIBE
WS_URL = "wss://stream.binance.com:9443/ws"
RECEIVE_INTERVAL_MS = 100


def stream_name(symbol: str) -> str:
    return f"{symbol.lower()}@bookTicker"


class ReceiveThrottle:
    """
    Minimum interval between processed stream events.

    Independent of the playback rate limit: this one bounds stats and UI
    churn, the playback one bounds audio density.
    """

    __slots__ = ('interval', '_last')

    def __init__(self, interval_ms: float = RECEIVE_INTERVAL_MS) -> None:
        self.interval = interval_ms / 1000
        self._last: float | None = None

    def allow(self, now: float) -> bool:
        """True if an event arriving at `now` should be processed."""
        if self._last is not None and now - self._last < self.interval:
            return False
        self._last = now
        return True

    def reset(self) -> None:
        self._last = None


class BookTickerClient:
    """
    Async Binance client for best bid/ask streams.

    Usage:
        client = BookTickerClient(on_quote=handle)
        await client.subscribe("BTCUSDT")
        await client.run()
    """

    def __init__(
        self,
        on_quote: Callable[[Quote], None],
        receive_interval_ms: float = RECEIVE_INTERVAL_MS,
        reconnect: bool = False,
        reconnect_delay: float = 2.0,
        ws_url: str = WS_URL,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.on_quote = on_quote
        self.reconnect = reconnect
        self.reconnect_delay = reconnect_delay
        self.ws_url = ws_url
        self.throttle = ReceiveThrottle(receive_interval_ms)
        self._clock = clock

        # handle -> symbol (uppercase)
        self._subscriptions: dict[int, str] = {}
        self._next_id = 1
        self._ws: aiohttp.ClientWebSocketResponse | None = None

        # State
        self._running = False
        self.connected = False

        # Rolling event rate tracking
        self._event_count: int = 0
        self._event_count_last: int = 0
        self._rate_calc_time: float = clock()
        self.events_per_sec: float = 0.0

    @property
    def symbols(self) -> set[str]:
        return set(self._subscriptions.values())

    def _request_id(self) -> int:
        request_id = self._next_id
        self._next_id += 1
        return request_id

    async def _send(self, method: str, symbols: list[str]) -> None:
        if self._ws is None or self._ws.closed:
            return
        await self._ws.send_json({
            "method": method,
            "params": [stream_name(s) for s in symbols],
            "id": self._request_id(),
        })

    async def subscribe(self, symbol: str) -> int:
        """
        Subscribe to a symbol's bookTicker stream.

        Returns a handle for unsubscribe(). Takes effect on the live
        connection immediately, or when run() connects.
        """
        symbol = symbol.upper()
        handle = self._request_id()
        self._subscriptions[handle] = symbol
        await self._send("SUBSCRIBE", [symbol])
        logger.info("Subscribed %s (handle %d)", symbol, handle)
        return handle

    async def unsubscribe(self, handle: int) -> None:
        """Drop a subscription. Unknown handles are ignored."""
        symbol = self._subscriptions.pop(handle, None)
        if symbol is None:
            return
        if symbol not in self._subscriptions.values():
            await self._send("UNSUBSCRIBE", [symbol])
        logger.info("Unsubscribed %s (handle %d)", symbol, handle)

    async def run(self) -> None:
        """
        Main run loop. Connects and dispatches quotes until stopped.

        Without reconnect, returns after the first disconnect.
        """
        self._running = True

        async with aiohttp.ClientSession() as session:
            while self._running:
                try:
                    await self._run_connection(session)
                except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as e:
                    logger.error("Stream error: %s", e)
                finally:
                    self.connected = False
                    self._ws = None

                if not (self._running and self.reconnect):
                    break
                logger.info("Reconnecting in %.1fs", self.reconnect_delay)
                await asyncio.sleep(self.reconnect_delay)

        self._running = False

    async def _run_connection(self, session: aiohttp.ClientSession) -> None:
        async with session.ws_connect(self.ws_url, heartbeat=30.0) as ws:
            self._ws = ws
            self.connected = True
            logger.info("Connected to %s", self.ws_url)

            # Resume everything subscribed so far (first connect or reconnect)
            if self._subscriptions:
                await self._send("SUBSCRIBE", sorted(self.symbols))

            async for msg in ws:
                if not self._running:
                    break

                if msg.type == aiohttp.WSMsgType.TEXT:
                    self._handle_ws_message(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    logger.error("WebSocket error: %s", ws.exception())
                    break

            logger.warning("Disconnected from %s", self.ws_url)

    def _handle_ws_message(self, raw: str | bytes) -> None:
        """
        Handle incoming WebSocket message.

        HOT PATH - called for every message (~10-100+ per second).
        """
        try:
            data = orjson.loads(raw)
        except orjson.JSONDecodeError:
            logger.warning("Dropping non-JSON message: %.80r", raw)
            return

        # Control responses: {"result": null, "id": 1} / {"code": 2, "msg": "..."}
        if isinstance(data, dict) and "id" in data and "result" in data:
            logger.debug("Request %s acknowledged", data["id"])
            return
        if isinstance(data, dict) and "code" in data and "msg" in data:
            logger.warning("Stream request failed: %s (%s)", data["msg"], data["code"])
            return

        try:
            quote = normalize(data)
        except MalformedQuoteError as e:
            logger.warning("Dropping malformed quote: %s", e)
            return

        # In-flight messages for an instrument we already left
        if quote.symbol and quote.symbol not in self.symbols:
            return

        now = self._clock()
        if not self.throttle.allow(now):
            return

        self._event_count += 1
        rate_elapsed = now - self._rate_calc_time
        if rate_elapsed >= 1.0:
            self.events_per_sec = (self._event_count - self._event_count_last) / rate_elapsed
            self._event_count_last = self._event_count
            self._rate_calc_time = now

        if self._running:
            self.on_quote(quote)

    def stop(self) -> None:
        """Signal the client to stop. No quotes are dispatched afterwards."""
        self._running = False
