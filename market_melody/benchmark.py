#!/usr/bin/env python3
"""
Micro-benchmark for Market Melody performance.

Tests:
1. Quote normalization throughput
2. Rolling stats insertion throughput
3. Full tick pipeline (on_quote + scheduling)
4. Note rendering speed

Usage:
    python -m market_melody.benchmark
"""

from __future__ import annotations

import random
import time
from statistics import mean, stdev

from .audio.tone import SilentToneGenerator, render_note
from .engine.normalizer import normalize
from .engine.scheduler import PlaybackScheduler
from .engine.session import SessionState
from .engine.stats import RollingStats
from .types import Side


def generate_mock_ticks(count: int, symbol: str = "BTCUSDT", base_price: float = 60000.0, seed: int | None = None) -> list[dict]:
    """Generate mock bookTicker messages with random-walk sizes."""
    rng = random.Random(seed)
    bid_qty, ask_qty = 1.0, 1.0
    ticks = []

    for i in range(count):
        bid_qty = max(0.0, bid_qty + rng.uniform(-0.5, 0.6))
        ask_qty = max(0.0, ask_qty + rng.uniform(-0.5, 0.6))
        mid = base_price + rng.uniform(-5, 5)
        ticks.append({
            'u': i + 1,
            's': symbol,
            'b': f"{mid - 0.01:.2f}",
            'B': f"{bid_qty:.8f}",
            'a': f"{mid + 0.01:.2f}",
            'A': f"{ask_qty:.8f}",
        })

    return ticks


def benchmark_normalize(iterations: int = 100000) -> None:
    """Benchmark quote normalization."""
    print("\n=== Normalize Benchmark ===")

    ticks = generate_mock_ticks(iterations)

    start = time.perf_counter()
    for t in ticks:
        normalize(t)
    elapsed = time.perf_counter() - start

    rate = iterations / elapsed
    print(f"  Quotes parsed: {iterations:,}")
    print(f"  Time: {elapsed*1000:.1f}ms")
    print(f"  Rate: {rate:,.0f} quotes/sec")
    print(f"  Per quote: {elapsed/iterations*1_000_000:.2f}µs")


def benchmark_rolling_stats(iterations: int = 100000) -> None:
    """Benchmark stats insertion with a full window."""
    print("\n=== Rolling Stats Benchmark ===")

    stats = RollingStats()
    values = [random.uniform(0.01, 10) for _ in range(iterations)]

    start = time.perf_counter()
    for v in values:
        stats.observe(Side.BID, v)
    elapsed = time.perf_counter() - start

    rate = iterations / elapsed
    print(f"  Observations: {iterations:,}")
    print(f"  Time: {elapsed*1000:.1f}ms")
    print(f"  Rate: {rate:,.0f} obs/sec")
    print(f"  Per obs: {elapsed/iterations*1_000_000:.2f}µs")


def benchmark_tick_pipeline(iterations: int = 50000) -> None:
    """Benchmark on_quote + scheduling (the per-event work)."""
    print("\n=== Tick Pipeline Benchmark ===")

    quotes = [normalize(t) for t in generate_mock_ticks(iterations)]
    session = SessionState.fresh("BTCUSDT")
    tone = SilentToneGenerator()
    scheduler = PlaybackScheduler(tone)

    start = time.perf_counter()
    for i, q in enumerate(quotes):
        effects = session.on_quote(q, i * 0.1)
        scheduler.schedule_playback(session.playback, effects.event, i * 0.1)
    elapsed = time.perf_counter() - start

    rate = iterations / elapsed
    print(f"  Ticks processed: {iterations:,}")
    print(f"  Notes played: {tone.played:,}")
    print(f"  Time: {elapsed*1000:.1f}ms")
    print(f"  Rate: {rate:,.0f} ticks/sec")


def benchmark_render_note(iterations: int = 500) -> None:
    """Benchmark ADSR note rendering."""
    print("\n=== Note Rendering Benchmark ===")

    times = []
    for _ in range(iterations):
        start = time.perf_counter()
        render_note(440.0, 0.15, 0.25)
        times.append(time.perf_counter() - start)

    avg_time = mean(times) * 1000
    std_time = stdev(times) * 1000

    print(f"  Iterations: {iterations}")
    print(f"  Avg time: {avg_time:.3f}ms")
    print(f"  Std dev: {std_time:.3f}ms")
    print(f"  Notes/sec possible: {1000/avg_time:,.0f}")


def main() -> None:
    """Run all benchmarks."""
    print("=" * 60)
    print("Market Melody Performance Benchmark")
    print("=" * 60)

    benchmark_normalize()
    benchmark_rolling_stats()
    benchmark_tick_pipeline()
    benchmark_render_note()

    print("\n" + "=" * 60)
    print("Benchmark complete.")
    print("=" * 60)


if __name__ == "__main__":
    main()
