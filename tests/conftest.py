import pytest

from market_melody.types import Quote, ToneGeneratorError


def make_quote(bid_qty, ask_qty, bid_price=100.0, ask_price=100.5, symbol="BTCUSDT"):
    """Helper to build a Quote with only the fields a test cares about."""
    return Quote(
        bid_price=bid_price,
        bid_qty=bid_qty,
        ask_price=ask_price,
        ask_qty=ask_qty,
        symbol=symbol,
    )


class RecordingToneGenerator:
    """Tone generator stand-in that records every play() call."""

    def __init__(self, fail=False):
        self.calls = []
        self.fail = fail
        self.disposed = False
        self.clock = 10.0

    def now(self):
        return self.clock

    def play(self, frequency, duration, start_time, amplitude):
        if self.disposed:
            raise ToneGeneratorError("disposed")
        if self.fail:
            raise ToneGeneratorError("voice limit reached")
        self.calls.append((frequency, duration, start_time, amplitude))

    def dispose(self):
        self.disposed = True


class FakeWebSocket:
    """Stands in for aiohttp.ClientWebSocketResponse when testing subscriptions."""

    def __init__(self):
        self.sent = []
        self.closed = False

    async def send_json(self, data):
        self.sent.append(data)


@pytest.fixture
def tone():
    return RecordingToneGenerator()


@pytest.fixture
def failing_tone():
    return RecordingToneGenerator(fail=True)


@pytest.fixture
def fake_ws():
    return FakeWebSocket()
