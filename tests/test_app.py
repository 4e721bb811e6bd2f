"""
Tests for MelodyController lifecycle and instrument switching.

The stream client is replaced by an in-memory fake; quotes are delivered by
calling handle_quote() the way the client's hot path does.
"""

import asyncio

import pytest

from market_melody.app import MelodyController
from market_melody.config import MelodyConfig
from market_melody.datafeed.binance_client import ReceiveThrottle
from market_melody.engine.notes import NOTE_SCALE, cold_start_index
from market_melody.types import Side, ToneGeneratorError

from conftest import RecordingToneGenerator, make_quote


class FakeClient:
    def __init__(self):
        self.throttle = ReceiveThrottle()
        self.connected = False
        self.events_per_sec = 0.0
        self.subscriptions = {}
        self.log = []
        self.stopped = False
        self._next = 1
        self._release = asyncio.Event()

    @property
    def symbols(self):
        return set(self.subscriptions.values())

    async def subscribe(self, symbol):
        handle = self._next
        self._next += 1
        self.subscriptions[handle] = symbol
        self.log.append(("subscribe", symbol))
        return handle

    async def unsubscribe(self, handle):
        symbol = self.subscriptions.pop(handle, None)
        self.log.append(("unsubscribe", symbol))

    async def run(self):
        self.stopped = False
        self.connected = True
        try:
            await self._release.wait()
        finally:
            self.connected = False

    def stop(self):
        self.stopped = True


class ToneFactory:
    def __init__(self):
        self.created = []

    def __call__(self):
        tone = RecordingToneGenerator()
        self.created.append(tone)
        return tone


@pytest.fixture
def factory():
    return ToneFactory()


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def controller(factory, fake_client):
    return MelodyController(MelodyConfig(symbol="BTCUSDT"), tone_factory=factory, client=fake_client, clock=lambda: 50.0)


def warm_up(controller, quotes):
    """Deliver bid sizes one tick at a time, advancing the audio clock."""
    for qty in quotes:
        controller.tone.clock += 1.0
        controller.handle_quote(make_quote(qty, 0.0))


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_start_stop(self, controller, factory, fake_client):
        assert not controller.playing
        await controller.start()
        await asyncio.sleep(0)

        assert controller.playing
        assert len(factory.created) == 1
        assert fake_client.log == [("subscribe", "BTCUSDT")]
        assert fake_client.connected

        tone = controller.tone
        await controller.stop()

        assert not controller.playing
        assert tone.disposed
        assert controller.tone is None
        assert fake_client.stopped
        assert fake_client.subscriptions == {}
        assert controller.feed_task is None

    @pytest.mark.asyncio
    async def test_restart_uses_new_tone_generator(self, controller, factory):
        await controller.start()
        await controller.stop()
        await controller.start()
        assert len(factory.created) == 2
        assert factory.created[0].disposed
        assert not factory.created[1].disposed
        assert controller.tone is factory.created[1]
        await controller.stop()

    @pytest.mark.asyncio
    async def test_no_mutation_after_stop(self, controller):
        await controller.start()
        tone = controller.tone
        await controller.stop()
        controller.handle_quote(make_quote(5.0, 5.0))
        assert tone.calls == []
        assert controller.session is None

    @pytest.mark.asyncio
    async def test_start_twice_is_noop(self, controller, factory):
        await controller.start()
        await controller.start()
        assert len(factory.created) == 1
        await controller.stop()

    @pytest.mark.asyncio
    async def test_tone_failure_on_start(self, fake_client):
        def broken():
            raise ToneGeneratorError("no device")

        c = MelodyController(MelodyConfig(), tone_factory=broken, client=fake_client)
        with pytest.raises(ToneGeneratorError):
            await c.start()
        assert not c.playing
        assert fake_client.log == []

    @pytest.mark.asyncio
    async def test_toggle(self, controller):
        await controller.toggle()
        assert controller.playing
        await controller.toggle()
        assert not controller.playing


class TestQuotes:

    @pytest.mark.asyncio
    async def test_quote_plays_note(self, controller):
        await controller.start()
        controller.handle_quote(make_quote(1.0, 0.0))

        assert len(controller.tone.calls) == 1
        freq, duration, start, amplitude = controller.tone.calls[0]
        assert freq == NOTE_SCALE[cold_start_index(Side.BID, len(NOTE_SCALE))]
        assert start == controller.tone.clock
        assert controller.last_note.side is Side.BID
        await controller.stop()

    @pytest.mark.asyncio
    async def test_snapshot_reflects_quote(self, controller):
        await controller.start()
        controller.handle_quote(make_quote(1.0, 2.0, bid_price=10.0, ask_price=11.0))
        controller.handle_quote(make_quote(1.0, 2.0, bid_price=10.5, ask_price=11.0))

        snap = controller.snapshot()
        assert snap.symbol == "BTCUSDT"
        assert snap.quote.bid_price == 10.5
        assert snap.playing
        assert [f.side for f in snap.flashes] == [Side.BID]
        await controller.stop()

    @pytest.mark.asyncio
    async def test_snapshot_queue_bounded(self, controller):
        await controller.start()
        for i in range(20):
            controller.handle_quote(make_quote(float(i), 0.0))
        assert controller.snapshot_queue.qsize() <= 5
        await controller.stop()

    @pytest.mark.asyncio
    async def test_foreign_symbol_ignored(self, controller):
        await controller.start()
        controller.handle_quote(make_quote(1.0, 1.0, symbol="ETHUSDT"))
        assert controller.tone.calls == []
        assert controller.session.stats.size(Side.BID) == 0
        await controller.stop()


class TestSwitchInstrument:

    @pytest.mark.asyncio
    async def test_switch_clears_history(self, controller, fake_client):
        await controller.start()
        warm_up(controller, [1.0, 3.0, 4.0, 8.0, 9.0])
        assert controller.session.stats.size(Side.BID) == 5

        await controller.switch_instrument("ethusdt")

        session = controller.session
        assert session.symbol == "ETHUSDT"
        assert session.stats.size(Side.BID) == session.stats.size(Side.ASK) == 0
        assert session.playback.last_play_time == 0.0
        assert fake_client.log[-2:] == [("subscribe", "ETHUSDT"), ("unsubscribe", "BTCUSDT")]
        assert fake_client.symbols == {"ETHUSDT"}

        # Fresh history: the next note is the cold-start fallback
        controller.tone.clock += 1.0
        controller.handle_quote(make_quote(100.0, 0.0, symbol="ETHUSDT"))
        assert controller.tone.calls[-1][0] == NOTE_SCALE[cold_start_index(Side.BID, len(NOTE_SCALE))]
        await controller.stop()

    @pytest.mark.asyncio
    async def test_old_symbol_quotes_do_not_leak(self, controller):
        await controller.start()
        await controller.switch_instrument("ETHUSDT")
        controller.handle_quote(make_quote(5.0, 5.0, symbol="BTCUSDT"))
        assert controller.session.stats.size(Side.BID) == 0
        await controller.stop()

    @pytest.mark.asyncio
    async def test_switch_while_stopped(self, controller, fake_client):
        await controller.switch_instrument("SOLUSDT")
        assert controller.symbol == "SOLUSDT"
        assert fake_client.log == []
        await controller.start()
        assert controller.session.symbol == "SOLUSDT"
        assert fake_client.log == [("subscribe", "SOLUSDT")]
        await controller.stop()

    @pytest.mark.asyncio
    async def test_same_symbol_keeps_session(self, controller):
        await controller.start()
        warm_up(controller, [1.0, 2.0])
        session = controller.session
        await controller.switch_instrument("btcusdt")
        assert controller.session is session
        await controller.stop()
