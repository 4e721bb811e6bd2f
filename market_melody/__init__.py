"""
Market Melody - ambient sonification of Binance best bid/ask updates.

Architecture:
- datafeed/: bookTicker WebSocket subscription and receive throttle
- engine/: quote normalization, rolling size stats, note mapping, playback arbitration
- audio/: ADSR tone generator
- ui/: bid/ask ticker (Textual TUI)
"""

__version__ = "0.1.0"
