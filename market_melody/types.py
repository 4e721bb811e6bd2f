"""
Data types for Market Melody.

Performance notes:
- Using NamedTuple for immutable, memory-efficient structures
- Mutable per-session state lives in engine/session.py, not here
"""

from __future__ import annotations

from enum import Enum
from typing import NamedTuple


class MelodyError(Exception):
    """Base class for all Market Melody errors."""


class MalformedQuoteError(MelodyError, ValueError):
    """A stream message could not be parsed into a Quote."""


class ToneGeneratorError(MelodyError):
    """The audio device or tone generator failed."""


class Side(Enum):
    BID = "bid"
    ASK = "ask"

    @property
    def other(self) -> Side:
        return Side.ASK if self is Side.BID else Side.BID


class Quote(NamedTuple):
    """Best bid/ask snapshot from the bookTicker stream."""
    bid_price: float
    bid_qty: float
    ask_price: float
    ask_qty: float
    symbol: str = ""
    update_id: int = 0

    def qty(self, side: Side) -> float:
        return self.bid_qty if side is Side.BID else self.ask_qty

    def price(self, side: Side) -> float:
        return self.bid_price if side is Side.BID else self.ask_price


EMPTY_QUOTE = Quote(0.0, 0.0, 0.0, 0.0)


class SideStats(NamedTuple):
    """Population mean / std-dev of one side's quantity window."""
    mean: float = 0.0
    std_dev: float = 0.0


class TickEvent(NamedTuple):
    """
    Per-tick playback candidates.

    A frequency is only meaningful when the matching delta is positive.
    """
    bid_delta: float
    ask_delta: float
    bid_frequency: float = 0.0
    ask_frequency: float = 0.0

    def delta(self, side: Side) -> float:
        return self.bid_delta if side is Side.BID else self.ask_delta

    def frequency(self, side: Side) -> float:
        return self.bid_frequency if side is Side.BID else self.ask_frequency


class PlayedNote(NamedTuple):
    """A note that was handed to the tone generator."""
    side: Side
    quantity: float
    frequency: float
    start_time: float    # Audio-clock seconds
    duration: float
    amplitude: float


class Flash(NamedTuple):
    """UI highlight for a side whose price moved, valid until expires_at."""
    side: Side
    expires_at: float    # time.monotonic() seconds


class TickEffects(NamedTuple):
    """
    Everything one processed quote produced.

    Returned by SessionState.on_quote(); the controller executes the
    playback request and forwards the rest to the UI.
    """
    quote: Quote
    bid_delta: float
    ask_delta: float
    event: TickEvent
    flashes: tuple[Flash, ...]


class TickerSnapshot(NamedTuple):
    """
    Complete ticker state for UI rendering.

    Pushed to the UI queue once per processed quote.
    """
    symbol: str
    quote: Quote
    flashes: tuple[Flash, ...]
    last_note: PlayedNote | None
    connected: bool
    playing: bool
    events_per_sec: float
