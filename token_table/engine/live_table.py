"""
Live token table engine.

Wires the pieces together and is the only object a consumer talks to:

    source -> TokenStore <- MutationFeed -> ChangeTracker
                  |                              |
                  +---- project() ---------------+--> TableSnapshot

Timers:
1. One-shot load after load_delay_sec (simulated load latency)
2. Recurring feed tick every mutation_interval_sec, started once loaded

stop() cancels both; no mutation fires after it returns. A load that raises
leaves the table loading with load_error set; stop() then start() retries.
"""

from __future__ import annotations

import random
from typing import Callable, NamedTuple

from loguru import logger

from ..datafeed.sources import TokenSource
from ..datafeed.store import TokenStore
from ..types import (
    HIGHLIGHT_FIELD,
    Category,
    SortDirection,
    TableRow,
    TableSnapshot,
    Token,
    ViewSpec,
)
from .changes import DEFAULT_WINDOW_MS, ChangeTracker, change_key
from .feed import DEFAULT_MAX_PRICE_MOVE_PCT, DEFAULT_MAX_VOLUME_MOVE_PCT, MutationFeed
from .projector import project_view, resolve_sort_field
from .scheduler import Scheduler, TimerHandle

QuickBuyHandler = Callable[[Token], None]


class TableConfig(NamedTuple):
    load_delay_sec: float = 0.8
    mutation_interval_sec: float = 3.0
    highlight_window_ms: float = DEFAULT_WINDOW_MS
    max_price_move_pct: float = DEFAULT_MAX_PRICE_MOVE_PCT
    max_volume_move_pct: float = DEFAULT_MAX_VOLUME_MOVE_PCT


class TabController:
    """Which category is active. Filter and sort are not touched by tab switches."""

    __slots__ = ('_active',)

    def __init__(self, active: Category = Category.NEW_PAIRS) -> None:
        self._active = Category(active)

    @property
    def active(self) -> Category:
        return self._active

    def set_active(self, category: Category | str) -> Category:
        """Switch tabs. Raises ValueError for an unknown category name."""
        self._active = Category(category)
        return self._active

    def cycle(self) -> Category:
        """Move to the next tab, wrapping around."""
        order = list(Category)
        self._active = order[(order.index(self._active) + 1) % len(order)]
        return self._active


def toggle_sort(view: ViewSpec, field: str) -> ViewSpec:
    """
    Header-click behavior: same field flips direction, a new field sorts ascending.

    Raises InvalidSortFieldError for an unknown field.
    """
    field = resolve_sort_field(field)
    if resolve_sort_field(view.sort_field) == field:
        return view._replace(sort_field=field, sort_direction=SortDirection(view.sort_direction).flipped())
    return view._replace(sort_field=field, sort_direction=SortDirection.ASC)


class LiveTokenTable:
    """
    Live-updating categorized token table.

    Usage:
        table = LiveTokenTable(RandomTokenSource(), AsyncioScheduler())
        table.start()
        snap = table.snapshot(ViewSpec(category=table.tabs.active, filter_text="pepe"))
        ...
        table.stop()
    """

    def __init__(
        self,
        source: TokenSource,
        scheduler: Scheduler,
        rng: random.Random | None = None,
        config: TableConfig = TableConfig(),
        tabs: TabController | None = None,
        on_quick_buy: QuickBuyHandler | None = None,
    ) -> None:
        if not config.mutation_interval_sec > 0:
            raise ValueError(
                f"mutation_interval_sec must be > 0, got {config.mutation_interval_sec}"
            )

        self.source = source
        self.scheduler = scheduler
        self.config = config
        self.on_quick_buy = on_quick_buy

        # Core components
        self.store = TokenStore()
        self.tracker = ChangeTracker()
        self.tabs = tabs or TabController()
        self.feed = MutationFeed(
            self.store,
            self.tracker,
            self.tabs,
            clock=scheduler.now_ms,
            rng=rng,
            max_price_move_pct=config.max_price_move_pct,
            max_volume_move_pct=config.max_volume_move_pct,
        )

        # State
        self._running = False
        self._loading = True
        self._load_error: str | None = None
        self._load_timer: TimerHandle | None = None
        self._feed_timer: TimerHandle | None = None

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def load_error(self) -> str | None:
        return self._load_error

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Schedule the initial load; the feed starts once it completes."""
        if self._running:
            return
        self._running = True

        if self._loading:
            self._load_timer = self.scheduler.call_later(self.config.load_delay_sec, self._load)
        else:
            self._start_feed()
        logger.info(f"[TABLE] Started (active tab: {self.tabs.active.value})")

    def stop(self) -> None:
        """Cancel both timers. Safe to call more than once."""
        if not self._running:
            return
        self._running = False

        for timer in (self._load_timer, self._feed_timer):
            if timer is not None:
                timer.cancel()
        self._load_timer = None
        self._feed_timer = None
        logger.info(f"[TABLE] Stopped after {self.feed.tick_count} ticks")

    def _load(self) -> None:
        self._load_timer = None
        try:
            batches = {c: self.source.fetch_batch(c) for c in Category}
            for category, tokens in batches.items():
                self.store.load(category, tokens)
        except Exception as e:
            self._load_error = f"{type(e).__name__}: {e}"
            logger.exception("[TABLE] Initial load failed")
            return

        self._load_error = None
        self._loading = False

        if self._running:
            self._start_feed()

    def _start_feed(self) -> None:
        self._feed_timer = self.scheduler.call_every(self.config.mutation_interval_sec, self.tick)

    def tick(self) -> Token | None:
        """One feed tick plus change-record cleanup."""
        updated = self.feed.tick()
        self.tracker.purge_expired(self.scheduler.now_ms(), self.config.highlight_window_ms)
        return updated

    # Consumer reads

    def previous_value(self, category: Category, token_id: str) -> float | None:
        """Previous price_change_24h while the highlight window is open."""
        return self.tracker.recent_value(
            change_key(category, token_id), HIGHLIGHT_FIELD,
            self.scheduler.now_ms(), self.config.highlight_window_ms,
        )

    def is_highlighted(self, category: Category, token_id: str) -> bool:
        return self.tracker.is_recent(
            change_key(category, token_id), HIGHLIGHT_FIELD,
            self.scheduler.now_ms(), self.config.highlight_window_ms,
        )

    def rows(self, view: ViewSpec) -> list[TableRow]:
        """
        Visible rows for a view, each paired with its highlight state.

        Raises InvalidSortFieldError for an unknown sort field.
        """
        tokens = project_view(self.store, view)
        category = Category(view.category)
        now_ms = self.scheduler.now_ms()
        window_ms = self.config.highlight_window_ms

        result: list[TableRow] = []
        for token in tokens:
            key = change_key(category, token.id)
            previous = self.tracker.recent_value(key, HIGHLIGHT_FIELD, now_ms, window_ms)
            result.append(TableRow(token, previous, previous is not None))
        return result

    def snapshot(self, view: ViewSpec) -> TableSnapshot:
        """Everything one UI refresh needs."""
        return TableSnapshot(
            view=view,
            rows=self.rows(view),
            loading=self._loading,
            counts=self.store.counts(),
            timestamp_ms=self.scheduler.now_ms(),
            mutations_per_sec=self.store.get_mutations_per_sec(),
            load_error=self._load_error,
        )

    def quick_buy(self, token: Token) -> None:
        """Hand a selected token to the quick-buy collaborator."""
        logger.info(f"[TABLE] Quick buy requested for {token.symbol} ({token.id})")
        if self.on_quick_buy is not None:
            self.on_quick_buy(token)
