"""
Per-instrument session state and the quote handler.

on_quote() is the only place stream data mutates a session. It returns the
side effects of the tick (playback candidates, UI flashes) instead of acting
on them, so the controller decides what to execute.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..types import EMPTY_QUOTE, Flash, Quote, Side, TickEffects, TickEvent
from .normalizer import DeltaMode, changed_sides, quantity_delta
from .notes import MappingMode, map_to_note, map_to_note_banded
from .scheduler import PlaybackState
from .stats import RollingStats

FLASH_DURATION = 0.5  # Seconds


@dataclass(slots=True)
class SessionState:
    """
    Everything accumulated for one selected instrument.

    Replaced wholesale on instrument switch; never merged.
    """
    symbol: str
    previous_quote: Quote = EMPTY_QUOTE
    stats: RollingStats = field(default_factory=RollingStats)
    playback: PlaybackState = field(default_factory=PlaybackState)

    @classmethod
    def fresh(cls, symbol: str) -> SessionState:
        return cls(symbol=symbol.upper())

    def frequency_for(self, side: Side, quantity: float, mode: MappingMode) -> float:
        """Pitch for a quantity against this side's current history."""
        if mode is MappingMode.BANDS:
            return map_to_note_banded(quantity)
        return map_to_note(side, quantity, self.stats.stats(side), self.stats.size(side))

    def on_quote(
        self,
        quote: Quote,
        now: float,
        mapping: MappingMode = MappingMode.ZSCORE,
        delta_mode: DeltaMode = DeltaMode.DIFFERENCE,
    ) -> TickEffects:
        """
        Process one quote.

        Every positive delta is recorded first, whether or not it ends up
        being played, then notes are mapped against the updated history.

        Args:
            quote: Normalized quote
            now: Monotonic seconds, used for flash expiry
        """
        previous = self.previous_quote
        deltas = {side: quantity_delta(quote, previous, side, delta_mode) for side in Side}

        for side, delta in deltas.items():
            if delta > 0:
                self.stats.observe(side, delta)

        frequencies = {
            side: self.frequency_for(side, delta, mapping) if delta > 0 else 0.0
            for side, delta in deltas.items()
        }

        # The first quote has nothing to compare prices against
        flashes: tuple[Flash, ...] = ()
        if previous is not EMPTY_QUOTE:
            flashes = tuple(
                Flash(side, now + FLASH_DURATION) for side in changed_sides(quote, previous)
            )

        self.previous_quote = quote

        return TickEffects(
            quote=quote,
            bid_delta=deltas[Side.BID],
            ask_delta=deltas[Side.ASK],
            event=TickEvent(
                bid_delta=deltas[Side.BID],
                ask_delta=deltas[Side.ASK],
                bid_frequency=frequencies[Side.BID],
                ask_frequency=frequencies[Side.ASK],
            ),
            flashes=flashes,
        )
