"""
Playback arbitration and rate limiting.

One note at most per tick, and no two notes closer than MIN_TIME_BETWEEN_SOUNDS
on the audio clock. When both sides added size on the same tick only the
preferred side plays; the preference is then re-drawn.

This limiter is independent of the stream client's receive throttle.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from ..types import PlayedNote, Side, TickEvent

if TYPE_CHECKING:
    from ..audio.tone import ToneGenerator

logger = logging.getLogger(__name__)

MIN_TIME_BETWEEN_SOUNDS = 0.125   # Audio-clock seconds
NOTE_DURATION = 0.15              # Seconds
NOTE_GAIN_DB = -12.0


def db_to_amplitude(db: float) -> float:
    return 10 ** (db / 20)


class Arbitration(Enum):
    """How the next preferred side is chosen after a contested tick."""
    RANDOM = "random"
    ALTERNATE = "alternate"


@dataclass(slots=True)
class PlaybackState:
    """Mutated only by PlaybackScheduler."""
    last_play_time: float = 0.0
    next_preferred_side: Side = Side.BID


class PlaybackScheduler:
    """
    Decides whether and which side plays for a tick, then triggers the tone.

    Thread-safety: NOT thread-safe. Designed for single-threaded async use.
    """

    def __init__(
        self,
        tone: ToneGenerator,
        arbitration: Arbitration = Arbitration.RANDOM,
        min_interval: float = MIN_TIME_BETWEEN_SOUNDS,
        duration: float = NOTE_DURATION,
        gain_db: float = NOTE_GAIN_DB,
        rng: random.Random | None = None,
    ) -> None:
        self.tone = tone
        self.arbitration = arbitration
        self.min_interval = min_interval
        self.duration = duration
        self.amplitude = db_to_amplitude(gain_db)
        self._rng = rng or random.Random()

    def choose_side(self, state: PlaybackState, event: TickEvent) -> Side | None:
        """Side that would play for this event, ignoring the rate limit."""
        bid = event.bid_delta > 0
        ask = event.ask_delta > 0
        if bid and ask:
            return state.next_preferred_side
        if bid:
            return Side.BID
        if ask:
            return Side.ASK
        return None

    def schedule_playback(
        self,
        state: PlaybackState,
        event: TickEvent,
        clock_time: float,
    ) -> PlayedNote | None:
        """
        Play at most one note for this tick.

        Returns the note played, or None if nothing was played. Tone
        generator failures are logged and reported as None.
        """
        side = self.choose_side(state, event)
        if side is None:
            return None

        # Hard rate limit: no sound and no state change
        if clock_time - state.last_play_time < self.min_interval:
            return None

        frequency = event.frequency(side)
        try:
            self.tone.play(frequency, self.duration, clock_time, self.amplitude)
        except Exception as e:
            logger.warning("Tone playback failed (%s Hz): %s", frequency, e)
            return None

        state.last_play_time = clock_time
        if event.bid_delta > 0 and event.ask_delta > 0:
            state.next_preferred_side = self._next_preference(side)

        return PlayedNote(
            side=side,
            quantity=event.delta(side),
            frequency=frequency,
            start_time=clock_time,
            duration=self.duration,
            amplitude=self.amplitude,
        )

    def _next_preference(self, played: Side) -> Side:
        if self.arbitration is Arbitration.ALTERNATE:
            return played.other
        return self._rng.choice((Side.BID, Side.ASK))
