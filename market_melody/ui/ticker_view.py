"""
Ticker TUI using Textual.

Displays:
- Top: status bar (symbol, connection, events/s, last note)
- Middle: instrument selector and start/stop button
- Bottom: bid / ask columns that flash when their price moves

Performance notes:
- Redraws on each snapshot plus a 10 Hz tick to expire flashes
- Minimal widget tree updates
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING

from rich.console import RenderableType
from rich.table import Table
from rich.text import Text

from textual.app import App, ComposeResult
from textual.containers import Horizontal
from textual.widgets import Button, Footer, Select, Static

from ..catalog import CATALOG, is_listed
from ..types import Side, ToneGeneratorError

if TYPE_CHECKING:
    from ..app import MelodyController
    from ..config import Settings
    from ..types import Flash, TickerSnapshot

logger = logging.getLogger(__name__)

BID_COLOR = "#22c55e"      # Green
ASK_COLOR = "#ef4444"      # Red
HEADER_COLOR = "#94a3b8"

TEXTUAL_THEMES = {"dark": "textual-dark", "light": "textual-light"}


def format_qty(qty: float) -> str:
    """Format quantity for display."""
    if qty >= 1000:
        return f"{qty/1000:.1f}K"
    return f"{qty:.2f}"


def format_price(price: float) -> str:
    return f"{price:.2f}"


def is_flashing(flashes: tuple[Flash, ...], side: Side, now: float) -> bool:
    return any(f.side is side and f.expires_at > now for f in flashes)


def button_label(playing: bool) -> str:
    return f"{'Stop' if playing else 'Start'} Market Music"


class QuoteTicker(Static):
    """Bid and ask columns."""

    DEFAULT_CSS = """
    QuoteTicker {
        width: 100%;
        height: auto;
        padding: 1 2;
    }
    """

    def __init__(self) -> None:
        super().__init__()
        self._snapshot: TickerSnapshot | None = None

    def update_snapshot(self, snapshot: TickerSnapshot) -> None:
        self._snapshot = snapshot
        self.refresh()

    def _column(self, side: Side, now: float) -> Text:
        snap = self._snapshot
        color = BID_COLOR if side is Side.BID else ASK_COLOR
        style = f"bold reverse {color}" if is_flashing(snap.flashes, side, now) else f"bold {color}"

        text = Text()
        text.append(f"{side.name.title()}\n", style=HEADER_COLOR)
        text.append(f"{format_price(snap.quote.price(side))}\n", style=style)
        text.append(f"Qty: {format_qty(snap.quote.qty(side))}", style="dim")
        return text

    def render(self) -> RenderableType:
        if self._snapshot is None or not self._snapshot.playing:
            return Text("Press space to start the music", style="dim")

        now = time.monotonic()
        table = Table(show_header=False, box=None, padding=(0, 4), expand=True)
        table.add_column(justify="center")
        table.add_column(justify="center")
        table.add_row(self._column(Side.BID, now), self._column(Side.ASK, now))
        return table


class StatusBar(Static):
    """Status bar showing symbol, connection state and the last note."""

    DEFAULT_CSS = """
    StatusBar {
        dock: top;
        height: 1;
        padding: 0 2;
    }
    """

    def __init__(self) -> None:
        super().__init__()
        self._snapshot: TickerSnapshot | None = None

    def update_snapshot(self, snapshot: TickerSnapshot) -> None:
        self._snapshot = snapshot
        self.refresh()

    def render(self) -> RenderableType:
        if self._snapshot is None:
            return Text("♫ Market Melody", style="bold")

        snap = self._snapshot
        if not snap.playing:
            state = Text("stopped", style="dim")
        elif snap.connected:
            state = Text("live", style=BID_COLOR)
        else:
            state = Text("disconnected", style=ASK_COLOR)

        parts = [
            Text("♫ ", style="bold"),
            Text(f" {snap.symbol} ", style="bold white on #1e40af"),
            Text("  "),
            state,
            Text("  │  ", style="dim"),
            Text("Events/s: ", style="dim"),
            Text(f"{snap.events_per_sec:.1f}", style="cyan"),
        ]
        if snap.last_note is not None:
            note = snap.last_note
            color = BID_COLOR if note.side is Side.BID else ASK_COLOR
            parts += [
                Text("  │  ", style="dim"),
                Text("Note: ", style="dim"),
                Text(f"{note.frequency:.2f} Hz ({note.side.value} +{format_qty(note.quantity)})", style=color),
            ]

        result = Text()
        for p in parts:
            result.append(p)
        return result


class MelodyApp(App):
    """Main Market Melody application."""

    CSS = """
    #controls {
        height: auto;
        padding: 1 2;
    }

    #symbol {
        width: 40;
    }
    """

    BINDINGS = [
        ("space", "toggle_playback", "Start/Stop"),
        ("t", "toggle_theme", "Theme"),
        ("q", "quit", "Quit"),
    ]

    def __init__(self, controller: MelodyController, settings: Settings) -> None:
        super().__init__()
        self.controller = controller
        self.settings = settings
        self._status_bar: StatusBar | None = None
        self._ticker: QuoteTicker | None = None

    def compose(self) -> ComposeResult:
        self._status_bar = StatusBar()
        self._ticker = QuoteTicker()

        options = [(f"{inst.group}: {inst.label}", inst.symbol) for inst in CATALOG]
        if not is_listed(self.controller.symbol):
            options.insert(0, (self.controller.symbol, self.controller.symbol))

        yield self._status_bar
        yield Horizontal(
            Select(
                options,
                value=self.controller.symbol,
                allow_blank=False,
                id="symbol",
            ),
            Button(button_label(self.controller.playing), id="toggle"),
            id="controls",
        )
        yield self._ticker
        yield Footer()

    async def on_mount(self) -> None:
        """Apply the saved theme and start the snapshot consumer."""
        self.theme = TEXTUAL_THEMES[self.settings.theme]
        self.set_interval(0.1, self._expire_flashes)
        self.run_worker(self._consume_snapshots(), exclusive=True)

    async def _consume_snapshots(self) -> None:
        """Consume snapshots from the queue and update UI."""
        while True:
            try:
                snapshot = await asyncio.wait_for(
                    self.controller.snapshot_queue.get(),
                    timeout=1.0
                )

                if self._status_bar:
                    self._status_bar.update_snapshot(snapshot)
                if self._ticker:
                    self._ticker.update_snapshot(snapshot)
                self.query_one("#toggle", Button).label = button_label(snapshot.playing)

            except asyncio.TimeoutError:
                continue
            except asyncio.CancelledError:
                break

    def _expire_flashes(self) -> None:
        if self._ticker:
            self._ticker.refresh()

    async def on_select_changed(self, event: Select.Changed) -> None:
        if isinstance(event.value, str):
            await self.controller.switch_instrument(event.value)

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "toggle":
            await self.action_toggle_playback()

    async def action_toggle_playback(self) -> None:
        try:
            await self.controller.toggle()
        except ToneGeneratorError as e:
            logger.error("Cannot start audio: %s", e)
            self.notify(str(e), title="Audio unavailable", severity="error")

    def action_toggle_theme(self) -> None:
        try:
            theme = self.settings.toggle_theme()
        except OSError as e:
            logger.warning("Could not save settings: %s", e)
            theme = self.settings.theme
        self.theme = TEXTUAL_THEMES[theme]

    async def on_unmount(self) -> None:
        await self.controller.stop()


async def run_ui(controller: MelodyController, settings: Settings) -> None:
    """Run the TUI application."""
    app = MelodyApp(controller, settings)
    await app.run_async()
