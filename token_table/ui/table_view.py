"""
Token table TUI using Textual.

Displays:
- Top: category tabs with row counts, active sort and filter
- Middle: filter box
- Main: token rows; the 24h change cell flashes when the feed just moved it

This is a consumer of LiveTokenTable only: it builds a ViewSpec from key
presses, asks for a snapshot on every refresh, and hands the selected
token back for quick buy.

Performance notes:
- Renders at max ~10 FPS to avoid CPU waste
- Minimal widget tree updates
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import RenderableType
from rich.table import Table
from rich.text import Text

from textual.app import App, ComposeResult
from textual.containers import Container
from textual.widgets import Footer, Input, Static

from ..engine.live_table import toggle_sort
from ..types import Category, SortDirection, ViewSpec

if TYPE_CHECKING:
    from ..engine.live_table import LiveTokenTable
    from ..types import TableRow, TableSnapshot, Token

# Color scheme (dark theme)
GAIN_COLOR = "#22c55e"     # Green
LOSS_COLOR = "#ef4444"     # Red
TEXT_COLOR = "#d1d5db"
HEADER_COLOR = "#94a3b8"
ACTIVE_TAB = "bold white on #1e40af"
CURSOR_BG = "#1e293b"

REFRESH_INTERVAL_SEC = 0.1

# (field, header label) in display order; also the sort-key cycle order
COLUMNS = [
    ("name", "Token"),
    ("age", "Age"),
    ("market_cap", "MC"),
    ("liquidity", "Liq"),
    ("volume_24h", "Vol 24h"),
    ("holders", "Holders"),
    ("dev_holding_percent", "Dev%"),
    ("snipers_percent", "Snipers%"),
    ("pro_traders_percent", "Pro%"),
    ("transactions", "Txns"),
    ("buys", "Buys"),
    ("sells", "Sells"),
    ("price_change_24h", "24h"),
]
SORT_FIELDS = [field for field, _ in COLUMNS]


def format_number(num: float, decimals: int = 2) -> str:
    """Compact number: 1.50K, 2.00M, 3.10B."""
    if num >= 1e9:
        return f"{num / 1e9:.{decimals}f}B"
    elif num >= 1e6:
        return f"{num / 1e6:.{decimals}f}M"
    elif num >= 1e3:
        return f"{num / 1e3:.{decimals}f}K"
    return f"{num:.{decimals}f}"


def format_currency(num: float) -> str:
    return f"${format_number(num)}"


def format_percent(num: float) -> str:
    return f"{num:.2f}%"


def format_age(minutes: float) -> str:
    """Age in the largest whole unit: 45s, 12m, 3h, 2d."""
    if minutes < 1:
        return f"{int(minutes * 60)}s"
    if minutes < 60:
        return f"{int(minutes)}m"
    hours = int(minutes // 60)
    if hours < 24:
        return f"{hours}h"
    return f"{hours // 24}d"


def change_cell(row: TableRow) -> Text:
    """24h change with sign color; flashed while the row is highlighted."""
    value = row.token.price_change_24h
    color = GAIN_COLOR if value > 0 else LOSS_COLOR
    arrow = "▲" if value > 0 else "▼"
    text = f"{arrow} {format_percent(abs(value))}"

    if row.highlighted and row.previous_change is not None:
        moved_up = value > row.previous_change
        flash = GAIN_COLOR if moved_up else LOSS_COLOR
        return Text(text, style=f"bold black on {flash}")
    return Text(text, style=color)


class TokenTableView(Static):
    """Main token table widget."""

    DEFAULT_CSS = """
    TokenTableView {
        width: 100%;
        height: 100%;
    }
    """

    def __init__(self) -> None:
        super().__init__()
        self._snapshot: TableSnapshot | None = None
        self.cursor: int = 0

    def update_snapshot(self, snapshot: TableSnapshot) -> None:
        """Update with new table snapshot."""
        self._snapshot = snapshot
        if snapshot.rows:
            self.cursor = min(self.cursor, len(snapshot.rows) - 1)
        else:
            self.cursor = 0
        self.refresh()

    def move_cursor(self, step: int) -> None:
        if self._snapshot and self._snapshot.rows:
            self.cursor = max(0, min(self.cursor + step, len(self._snapshot.rows) - 1))
            self.refresh()

    def selected(self) -> Token | None:
        if not self._snapshot or not self._snapshot.rows:
            return None
        return self._snapshot.rows[self.cursor].token

    def render(self) -> RenderableType:
        """Render the token rows as a Rich Table."""
        if self._snapshot is not None and self._snapshot.load_error:
            return Text(f"Failed to load tokens: {self._snapshot.load_error}", style=LOSS_COLOR)
        if self._snapshot is None or self._snapshot.loading:
            return Text("Loading tokens...", style="dim")

        snap = self._snapshot
        if not snap.rows:
            return Text("No tokens match the filter", style="dim")

        table = Table(
            show_header=True,
            header_style=HEADER_COLOR,
            box=None,
            padding=(0, 1),
            collapse_padding=True,
        )

        view = snap.view
        for field, label in COLUMNS:
            if field == view.sort_field:
                label += " ↑" if view.sort_direction is SortDirection.ASC else " ↓"
            justify = "left" if field == "name" else "right"
            table.add_column(label, justify=justify, no_wrap=True)

        for i, row in enumerate(snap.rows):
            t = row.token
            table.add_row(
                Text.assemble((t.name, "bold white"), " ", (t.symbol, "dim")),
                format_age(t.age),
                format_currency(t.market_cap),
                format_currency(t.liquidity),
                format_currency(t.volume_24h),
                str(t.holders),
                format_percent(t.dev_holding_percent),
                format_percent(t.snipers_percent),
                format_percent(t.pro_traders_percent),
                str(t.transactions),
                Text(str(t.buys), style=GAIN_COLOR),
                Text(str(t.sells), style=LOSS_COLOR),
                change_cell(row),
                style=f"on {CURSOR_BG}" if i == self.cursor else TEXT_COLOR,
            )

        return table


class StatusBar(Static):
    """Tabs with counts, active sort/filter and feed rate."""

    DEFAULT_CSS = """
    StatusBar {
        dock: top;
        height: 3;
        padding: 0 2;
        background: #0f172a;
    }
    """

    def __init__(self) -> None:
        super().__init__()
        self._snapshot: TableSnapshot | None = None

    def update_snapshot(self, snapshot: TableSnapshot) -> None:
        self._snapshot = snapshot
        self.refresh()

    def render(self) -> RenderableType:
        if self._snapshot is None:
            return Text("Connecting...", style="dim")

        snap = self._snapshot
        result = Text()
        for category in Category:
            label = f" {category.label} ({snap.counts.get(category, 0)}) "
            style = ACTIVE_TAB if category is snap.view.category else "dim"
            result.append(label, style=style)
            result.append(" ")

        result.append("  │  ", style="dim")
        result.append("Sort: ", style="dim")
        result.append(f"{snap.view.sort_field} {snap.view.sort_direction.value}", style="cyan")
        if snap.view.filter_text:
            result.append("  Filter: ", style="dim")
            result.append(snap.view.filter_text, style="yellow")
        result.append("  │  ", style="dim")
        result.append("Updates/s: ", style="dim")
        result.append(f"{snap.mutations_per_sec:.2f}", style="cyan")
        return result


class TokenTableApp(App):
    """Main token table application."""

    AUTO_FOCUS = None

    CSS = """
    Screen {
        background: #0f172a;
    }

    #main-container {
        width: 100%;
        height: 100%;
        padding: 1 2;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("1", "tab('new-pairs')", "New Pairs"),
        ("2", "tab('final-stretch')", "Final Stretch"),
        ("3", "tab('migrated')", "Migrated"),
        ("t", "next_tab", "Next Tab"),
        ("s", "next_sort", "Sort Field"),
        ("d", "flip_direction", "Direction"),
        ("slash", "focus_filter", "Filter"),
        ("escape", "blur_filter", "Done"),
        ("up", "cursor(-1)", "Up"),
        ("down", "cursor(1)", "Down"),
        ("b", "quick_buy", "Quick Buy"),
    ]

    def __init__(self, table: LiveTokenTable) -> None:
        super().__init__()
        self.table = table
        self.view_spec = ViewSpec(category=table.tabs.active)
        self._status_bar: StatusBar | None = None
        self._table_view: TokenTableView | None = None

    def compose(self) -> ComposeResult:
        self._status_bar = StatusBar()
        self._table_view = TokenTableView()

        yield self._status_bar
        yield Input(placeholder="Filter by name or symbol ( / )", id="filter")
        yield Container(self._table_view, id="main-container")
        yield Footer()

    def on_mount(self) -> None:
        """Start the engine timers and the refresh loop."""
        self.table.start()
        self.set_interval(REFRESH_INTERVAL_SEC, self._refresh_view)
        self.set_focus(None)

    def on_unmount(self) -> None:
        self.table.stop()

    def _refresh_view(self) -> None:
        snapshot = self.table.snapshot(self.view_spec)
        if self._status_bar:
            self._status_bar.update_snapshot(snapshot)
        if self._table_view:
            self._table_view.update_snapshot(snapshot)

    def on_input_changed(self, event: Input.Changed) -> None:
        self.view_spec = self.view_spec._replace(filter_text=event.value)
        self._refresh_view()

    def action_tab(self, category: str) -> None:
        self.view_spec = self.view_spec._replace(category=self.table.tabs.set_active(category))
        self._refresh_view()

    def action_next_tab(self) -> None:
        self.view_spec = self.view_spec._replace(category=self.table.tabs.cycle())
        self._refresh_view()

    def action_next_sort(self) -> None:
        """Cycle sort columns, each new column starting ascending."""
        field = self.view_spec.sort_field
        i = SORT_FIELDS.index(field) if field in SORT_FIELDS else -1
        self.view_spec = toggle_sort(self.view_spec, SORT_FIELDS[(i + 1) % len(SORT_FIELDS)])
        self._refresh_view()

    def action_flip_direction(self) -> None:
        self.view_spec = toggle_sort(self.view_spec, self.view_spec.sort_field)
        self._refresh_view()

    def action_focus_filter(self) -> None:
        self.query_one("#filter", Input).focus()

    def action_blur_filter(self) -> None:
        self.set_focus(None)

    def action_cursor(self, step: int) -> None:
        if self._table_view:
            self._table_view.move_cursor(step)

    def action_quick_buy(self) -> None:
        token = self._table_view.selected() if self._table_view else None
        if token is None:
            return
        self.table.quick_buy(token)
        self.notify(f"Quick buy: {token.name} ({token.symbol}) @ {token.price:.8g}")


async def run_ui(table: LiveTokenTable) -> None:
    """Run the TUI application."""
    app = TokenTableApp(table)
    await app.run_async()
