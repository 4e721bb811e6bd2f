"""
bookTicker message normalization.

Binance pushes `{"u": 400900217, "s": "BNBUSDT", "b": "25.3519", "B": "31.21",
"a": "25.3652", "A": "40.66"}` on every top-of-book change. Prices and sizes
arrive as decimal strings; they are parsed to float since the values only
drive perceptual mapping.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Any

import orjson

from ..types import MalformedQuoteError, Quote, Side

# Accepted key spellings: exchange short keys first, then long names
_FIELDS = (
    ("bid_price", "b"),
    ("bid_qty", "B"),
    ("ask_price", "a"),
    ("ask_qty", "A"),
)


class DeltaMode(Enum):
    """How a side's signal quantity is derived from consecutive quotes."""
    DIFFERENCE = "difference"    # Only size added since the previous quote
    RAW = "raw"                  # Absolute resting size, no differencing


def _parse_decimal(value: Any, field: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise MalformedQuoteError(f"{field}: expected decimal string, got {type(value).__name__}")
    try:
        number = float(value)
    except ValueError:
        raise MalformedQuoteError(f"{field}: not a decimal: {value!r}") from None
    if not math.isfinite(number) or number < 0:
        raise MalformedQuoteError(f"{field}: out of range: {value!r}")
    return number


def normalize(raw: dict | str | bytes) -> Quote:
    """
    Parse a raw bookTicker update into a Quote.

    Accepts decoded dicts or JSON text, with or without the combined-stream
    envelope `{stream, data}`.

    Raises MalformedQuoteError if a required field is missing or invalid.
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            raise MalformedQuoteError(f"invalid JSON: {e}") from None

    if not isinstance(raw, dict):
        raise MalformedQuoteError(f"expected object, got {type(raw).__name__}")

    payload = raw.get("data", raw) if "stream" in raw else raw
    if not isinstance(payload, dict):
        raise MalformedQuoteError("stream envelope without object payload")

    values = []
    for long_key, short_key in _FIELDS:
        if short_key in payload:
            value = payload[short_key]
        elif long_key in payload:
            value = payload[long_key]
        else:
            raise MalformedQuoteError(f"missing field {short_key!r}")
        values.append(_parse_decimal(value, long_key))

    symbol = payload.get("s", payload.get("symbol", ""))
    update_id = payload.get("u", payload.get("update_id", 0))

    return Quote(
        bid_price=values[0],
        bid_qty=values[1],
        ask_price=values[2],
        ask_qty=values[3],
        symbol=str(symbol).upper(),
        update_id=update_id if isinstance(update_id, int) else 0,
    )


def quantity_delta(
    current: Quote,
    previous: Quote,
    side: Side,
    mode: DeltaMode = DeltaMode.DIFFERENCE,
) -> float:
    """
    Signal quantity for one side.

    DIFFERENCE: only increases in resting size count as new orders, so
    decreases and unchanged sizes yield 0.
    """
    if mode is DeltaMode.RAW:
        return current.qty(side)
    return max(0.0, current.qty(side) - previous.qty(side))


def changed_sides(current: Quote, previous: Quote) -> tuple[Side, ...]:
    """Sides whose price moved since the previous quote."""
    return tuple(side for side in Side if current.price(side) != previous.price(side))
