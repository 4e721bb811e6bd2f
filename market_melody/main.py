#!/usr/bin/env python3
"""
Market Melody - listen to the top of a Binance order book.

Usage:
    python -m market_melody.main BTCUSDT
    python -m market_melody.main ETHUSDT --config melody.yaml --headless

Controls:
    space - Start/stop the music
    t     - Toggle light/dark theme
    q     - Quit
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from .catalog import CATALOG, is_listed
from .config import ConfigError, MelodyConfig, Settings, load_config
from .log import setup_logger
from .types import ToneGeneratorError

logger = logging.getLogger(__name__)


async def main(config: MelodyConfig, headless: bool) -> None:
    """Main entry point - runs data feed and UI concurrently."""

    # Import here to avoid slow startup for --help
    from .app import MelodyController

    controller = MelodyController(config)

    if headless:
        await run_headless(controller)
        return

    from .ui.ticker_view import run_ui

    settings = Settings(config.settings_path).load()
    try:
        # Run UI (blocks until quit)
        await run_ui(controller, settings)
    finally:
        await controller.stop()


async def run_headless(controller) -> None:
    """Play until the feed ends or Ctrl-C."""
    await controller.start()
    try:
        while controller.playing and controller.feed_task is not None and not controller.feed_task.done():
            snapshot = await controller.snapshot_queue.get()
            if snapshot.last_note is not None:
                note = snapshot.last_note
                logger.debug("%s %s %.2f Hz", snapshot.symbol, note.side.value, note.frequency)
    finally:
        await controller.stop()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Market Melody - sonify Binance best bid/ask updates",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m market_melody.main BTCUSDT
    python -m market_melody.main ETHBTC --mapping bands --arbitration alternate
    python -m market_melody.main SOLUSDT --headless --silent --log-level DEBUG
        """
    )

    parser.add_argument(
        "symbol",
        nargs="?",
        default=None,
        help="Trading symbol (default: BTCUSDT)"
    )

    parser.add_argument(
        "--config",
        default=None,
        help="YAML config file"
    )

    parser.add_argument(
        "--mapping",
        choices=["zscore", "bands"],
        default=None,
        help="Note mapping: z-score half-scale split or legacy size bands (default: zscore)"
    )

    parser.add_argument(
        "--delta-mode",
        choices=["difference", "raw"],
        default=None,
        help="Signal: size added since last quote, or raw resting size (default: difference)"
    )

    parser.add_argument(
        "--arbitration",
        choices=["random", "alternate"],
        default=None,
        help="Side choice when both sides add size on one tick (default: random)"
    )

    parser.add_argument(
        "--reconnect",
        action="store_true",
        default=None,
        help="Reconnect when the stream drops"
    )

    parser.add_argument(
        "--headless",
        action="store_true",
        help="No TUI; play audio and log to stderr"
    )

    parser.add_argument(
        "--silent",
        action="store_true",
        default=None,
        help="Do not open an audio device (notes are only logged)"
    )

    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--log-file",
        default=None,
        help="Log file used while the TUI is running (default: market_melody.log)"
    )

    return parser


def resolve_config(args: argparse.Namespace) -> MelodyConfig:
    """YAML file first, then CLI flags on top."""
    from .engine.normalizer import DeltaMode
    from .engine.notes import MappingMode
    from .engine.scheduler import Arbitration

    config = load_config(args.config)
    return config.replace(
        symbol=args.symbol.upper() if args.symbol else None,
        mapping=MappingMode(args.mapping) if args.mapping else None,
        delta_mode=DeltaMode(args.delta_mode) if args.delta_mode else None,
        arbitration=Arbitration(args.arbitration) if args.arbitration else None,
        reconnect=args.reconnect,
        silent=args.silent,
        log_level=args.log_level,
        log_file=args.log_file,
    )


def cli() -> None:
    """CLI entry point."""
    args = build_parser().parse_args()

    try:
        config = resolve_config(args)
    except ConfigError as e:
        print(f"Config error: {e}", file=sys.stderr)
        sys.exit(2)

    setup_logger("market_melody", config.log_level, None if args.headless else config.log_file)

    if not is_listed(config.symbol):
        logger.warning("%s is not in the catalog of %d pairs", config.symbol, len(CATALOG))

    # Run
    try:
        asyncio.run(main(config, args.headless))
    except KeyboardInterrupt:
        print("\nShutdown requested.")
        sys.exit(0)
    except ToneGeneratorError as e:
        print(f"Audio error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    cli()
