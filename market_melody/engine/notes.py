"""
Order size to pitch mapping.

The scale is split at its midpoint: asks play in the lower half, bids in the
upper half. Within a half, the z-score of the new size against that side's
recent history picks the note. Ask indices are inverted so that unusually
large sell size sounds lower, mirroring bids around the midpoint.
"""

from __future__ import annotations

import math
from enum import Enum

from ..types import Side, SideStats

# A minor pentatonic, D3 .. C6
NOTE_SCALE: tuple[float, ...] = (
    146.83,   # D3
    164.81,   # E3
    196.00,   # G3
    220.00,   # A3
    261.63,   # C4
    293.66,   # D4
    329.63,   # E4
    392.00,   # G4
    440.00,   # A4
    523.25,   # C5
    587.33,   # D5
    659.25,   # E5
    783.99,   # G5
    880.00,   # A5
    1046.50,  # C6
)

# Ten-note scale used by the threshold-band mapping
LEGACY_SCALE: tuple[float, ...] = (
    220.00, 261.63, 293.66, 329.63, 392.00,
    440.00, 523.25, 587.33, 659.25, 783.99,
)

Z_CLAMP = 2.0
MIN_WARM_SAMPLES = 2


class MappingMode(Enum):
    ZSCORE = "zscore"
    BANDS = "bands"


def cold_start_index(side: Side, n: int) -> int:
    """Fallback index used until a side has enough history."""
    return math.floor((0.75 if side is Side.BID else 0.25) * n)


def note_index(
    side: Side,
    quantity: float,
    stats: SideStats,
    window_size: int,
    n: int = len(NOTE_SCALE),
) -> int:
    """
    Index into an n-note scale for a quantity on one side.

    Raises ValueError for NaN or infinite quantities.
    """
    if not math.isfinite(quantity):
        raise ValueError(f"quantity must be finite, got {quantity!r}")

    if window_size < MIN_WARM_SAMPLES:
        return cold_start_index(side, n)

    std_dev = stats.std_dev if stats.std_dev != 0 else 1.0
    z = (quantity - stats.mean) / std_dev
    z = max(-Z_CLAMP, min(Z_CLAMP, z))
    t = (z + Z_CLAMP) / (2 * Z_CLAMP)

    half = n // 2
    if side is Side.BID:
        index = half + math.floor(t * (n - half))
        return max(half, min(n - 1, index))

    index = math.floor((1.0 - t) * half)
    return max(0, min(half - 1, index))


def map_to_note(
    side: Side,
    quantity: float,
    stats: SideStats,
    window_size: int,
    scale: tuple[float, ...] = NOTE_SCALE,
) -> float:
    """Frequency from `scale` for a quantity on one side."""
    return scale[note_index(side, quantity, stats, window_size, len(scale))]


def banded_index(quantity: float) -> int:
    """
    Threshold-band index into LEGACY_SCALE.

    Side-independent and history-free: tiny orders wrap through the first
    notes, larger orders climb logarithmically.
    """
    if not math.isfinite(quantity):
        raise ValueError(f"quantity must be finite, got {quantity!r}")

    if quantity < 0.1:
        index = math.floor(quantity * 20) % 2
    elif quantity < 1:
        index = math.floor(quantity * 4) % 4
    elif quantity < 10:
        index = 2 + math.floor(math.log2(quantity) * 2)
    elif quantity < 100:
        index = 5 + math.floor(math.log10(quantity))
    else:
        index = 8

    return max(0, min(len(LEGACY_SCALE) - 1, index))


def map_to_note_banded(quantity: float) -> float:
    return LEGACY_SCALE[banded_index(quantity)]
