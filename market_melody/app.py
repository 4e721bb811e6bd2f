"""
Session controller: wires the stream, the note pipeline and the tone generator.

Owns the lifecycle the UI drives:
- start(): fresh tone generator + fresh session, subscribe, run the feed
- stop(): dispose the tone generator, drop the session, close the feed
- switch_instrument(): fresh session for the new symbol, move the subscription
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable

from .audio.tone import ToneGenerator, create_tone_generator
from .config import MelodyConfig
from .datafeed.binance_client import BookTickerClient
from .engine.scheduler import PlaybackScheduler
from .engine.session import SessionState
from .types import EMPTY_QUOTE, Flash, PlayedNote, Quote, TickerSnapshot

logger = logging.getLogger(__name__)

SNAPSHOT_QUEUE_SIZE = 5


class MelodyController:
    """
    Start/stop and instrument selection for one listening session.

    Thread-safety: NOT thread-safe. All calls on the event loop thread.
    """

    def __init__(
        self,
        config: MelodyConfig,
        tone_factory: Callable[[], ToneGenerator] | None = None,
        client: BookTickerClient | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self.symbol = config.symbol.upper()
        self._tone_factory = tone_factory or self._default_tone_factory
        self._clock = clock

        self.client = client or BookTickerClient(
            on_quote=self.handle_quote,
            receive_interval_ms=config.receive_interval_ms,
            reconnect=config.reconnect,
            reconnect_delay=config.reconnect_delay,
        )

        self.session: SessionState | None = None
        self.tone: ToneGenerator | None = None
        self.scheduler: PlaybackScheduler | None = None
        self.last_note: PlayedNote | None = None
        self._handle: int | None = None
        self._feed_task: asyncio.Task | None = None
        self._last_quote: Quote = EMPTY_QUOTE
        self._flashes: tuple[Flash, ...] = ()

        # Output queue for UI
        self.snapshot_queue: asyncio.Queue[TickerSnapshot] = asyncio.Queue(maxsize=SNAPSHOT_QUEUE_SIZE)

    def _default_tone_factory(self) -> ToneGenerator:
        cfg = self.config
        return create_tone_generator(
            envelope=cfg.envelope,
            shape=cfg.shape,
            base_volume_db=cfg.base_volume_db,
            silent=cfg.silent,
        )

    @property
    def playing(self) -> bool:
        return self.session is not None

    @property
    def feed_task(self) -> asyncio.Task | None:
        return self._feed_task

    async def start(self) -> None:
        """
        Start listening to the selected symbol.

        Raises ToneGeneratorError if the audio device cannot be opened.
        """
        if self.playing:
            return

        # Never reuse a disposed generator
        self.tone = self._tone_factory()
        self.scheduler = PlaybackScheduler(
            self.tone,
            arbitration=self.config.arbitration,
            min_interval=self.config.min_sound_interval,
            duration=self.config.note_duration,
            gain_db=self.config.note_gain_db,
        )
        self.session = SessionState.fresh(self.symbol)
        self.last_note = None
        self._last_quote = EMPTY_QUOTE
        self._flashes = ()

        self.client.throttle.reset()
        self._handle = await self.client.subscribe(self.symbol)
        self._feed_task = asyncio.create_task(self._run_feed())
        logger.info("Started %s", self.symbol)
        self._push_snapshot()

    async def _run_feed(self) -> None:
        try:
            await self.client.run()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Feed crashed")
        finally:
            self._push_snapshot()

    async def stop(self) -> None:
        """Stop playback. Session state is discarded."""
        if not self.playing:
            return

        # Synchronous part: nothing may touch state or audio after this
        self.session = None
        self.scheduler = None
        tone, self.tone = self.tone, None
        if tone is not None:
            tone.dispose()
        self.client.stop()

        task, self._feed_task = self._feed_task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        if self._handle is not None:
            await self.client.unsubscribe(self._handle)
            self._handle = None

        logger.info("Stopped %s", self.symbol)
        self._push_snapshot()

    async def toggle(self) -> None:
        if self.playing:
            await self.stop()
        else:
            await self.start()

    async def switch_instrument(self, symbol: str) -> None:
        """
        Select a new instrument.

        While playing, the session is replaced with a fresh one and the
        subscription moves to the new symbol.
        """
        symbol = symbol.upper()
        if symbol == self.symbol:
            return

        logger.info("Switching %s -> %s", self.symbol, symbol)
        self.symbol = symbol
        self.last_note = None
        self._last_quote = EMPTY_QUOTE
        self._flashes = ()

        if self.playing:
            self.session = SessionState.fresh(symbol)
            self.client.throttle.reset()
            old_handle = self._handle
            self._handle = await self.client.subscribe(symbol)
            if old_handle is not None:
                await self.client.unsubscribe(old_handle)

        self._push_snapshot()

    def handle_quote(self, quote: Quote) -> None:
        """Stream callback: one processed quote."""
        session = self.session
        if session is None or self.scheduler is None or self.tone is None:
            return
        if quote.symbol and quote.symbol != session.symbol:
            return

        now = self._clock()
        effects = session.on_quote(quote, now, self.config.mapping, self.config.delta_mode)

        note = self.scheduler.schedule_playback(session.playback, effects.event, self.tone.now())
        if note is not None:
            self.last_note = note

        refreshed = {f.side for f in effects.flashes}
        self._flashes = tuple(
            f for f in self._flashes if f.expires_at > now and f.side not in refreshed
        ) + effects.flashes
        self._last_quote = quote
        self._push_snapshot()

    def snapshot(self) -> TickerSnapshot:
        return TickerSnapshot(
            symbol=self.symbol,
            quote=self._last_quote,
            flashes=self._flashes,
            last_note=self.last_note,
            connected=self.client.connected,
            playing=self.playing,
            events_per_sec=self.client.events_per_sec,
        )

    def _push_snapshot(self) -> None:
        """Non-blocking put; drops the oldest snapshot when the UI lags."""
        snapshot = self.snapshot()
        try:
            self.snapshot_queue.put_nowait(snapshot)
        except asyncio.QueueFull:
            self.snapshot_queue.get_nowait()
            self.snapshot_queue.put_nowait(snapshot)
