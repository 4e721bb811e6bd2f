"""
Rolling order-size statistics per book side.

HOT PATH: observe() is called for every processed quote with a positive delta
(at most ~10 per second after the receive throttle).

Strategy:
1. Bounded deque per side gives O(1) FIFO eviction
2. Mean / std-dev recomputed over the whole window with numpy on each insert;
   the window is small (100) so the full pass is cheaper than bookkeeping
   for an incremental variance
"""

from __future__ import annotations

import math
from collections import deque

import numpy as np

from ..types import Side, SideStats

MAX_HISTORY_SIZE = 100


class RollingStats:
    """
    Per-side quantity windows with population mean and std-dev.

    Thread-safety: NOT thread-safe. Designed for single-threaded async use.
    """

    __slots__ = ('max_size', '_windows', '_stats')

    def __init__(self, max_size: int = MAX_HISTORY_SIZE) -> None:
        self.max_size = max_size
        self._windows: dict[Side, deque[float]] = {
            side: deque(maxlen=max_size) for side in Side
        }
        self._stats: dict[Side, SideStats] = {side: SideStats() for side in Side}

    def observe(self, side: Side, quantity: float) -> None:
        """
        Record a positive quantity for one side and refresh its stats.

        Non-positive or non-finite quantities are ignored.
        """
        if not quantity > 0 or not math.isfinite(quantity):
            return

        window = self._windows[side]
        window.append(quantity)  # deque(maxlen) evicts the oldest

        values = np.fromiter(window, dtype=np.float64, count=len(window))
        self._stats[side] = SideStats(
            mean=float(values.mean()),
            std_dev=float(values.std()),  # ddof=0: population
        )

    def stats(self, side: Side) -> SideStats:
        return self._stats[side]

    def window(self, side: Side) -> tuple[float, ...]:
        """Window contents, oldest first."""
        return tuple(self._windows[side])

    def size(self, side: Side) -> int:
        return len(self._windows[side])

    def clear(self) -> None:
        """Clear both sides."""
        for side in Side:
            self._windows[side].clear()
            self._stats[side] = SideStats()
