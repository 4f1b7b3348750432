"""Tests for the tab controller and the live table engine."""

import random

import pytest

from token_table.datafeed.sources import JsonTokenSource, RandomTokenSource
from token_table.engine.changes import change_key
from token_table.engine.live_table import LiveTokenTable, TableConfig, TabController, toggle_sort
from token_table.engine.scheduler import ManualScheduler
from token_table.errors import InvalidSortFieldError
from token_table.types import Category, SortDirection, ViewSpec

from conftest import make_token

FIELD = "price_change_24h"


def _loaded(table: LiveTokenTable, sched: ManualScheduler) -> LiveTokenTable:
    table.start()
    sched.advance(table.config.load_delay_sec)
    return table


class _FlakySource:
    """Raises on fetch until fail is cleared."""

    def __init__(self) -> None:
        self.fail = True

    def fetch_batch(self, category: Category) -> list:
        if self.fail:
            raise ConnectionError("upstream unavailable")
        return [make_token(f"{category.value}-0")]


class TestTabController:
    def test_default_and_switch(self) -> None:
        tabs = TabController()
        assert tabs.active is Category.NEW_PAIRS
        assert tabs.set_active("migrated") is Category.MIGRATED
        assert tabs.active is Category.MIGRATED

    def test_unknown_category(self) -> None:
        with pytest.raises(ValueError):
            TabController().set_active("trending")

    def test_cycle_wraps(self) -> None:
        tabs = TabController(Category.FINAL_STRETCH)
        assert tabs.cycle() is Category.MIGRATED
        assert tabs.cycle() is Category.NEW_PAIRS


class TestToggleSort:
    def test_same_field_flips(self) -> None:
        view = ViewSpec(sort_field="age", sort_direction=SortDirection.ASC)
        assert toggle_sort(view, "age").sort_direction is SortDirection.DESC
        assert toggle_sort(toggle_sort(view, "age"), "age").sort_direction is SortDirection.ASC

    def test_new_field_starts_ascending(self) -> None:
        view = ViewSpec(sort_field="age", sort_direction=SortDirection.DESC)
        toggled = toggle_sort(view, "marketCap")
        assert toggled.sort_field == "market_cap"
        assert toggled.sort_direction is SortDirection.ASC

    def test_keeps_filter_and_category(self) -> None:
        view = ViewSpec(Category.MIGRATED, "pe", "age", SortDirection.ASC)
        toggled = toggle_sort(view, "holders")
        assert toggled.category is Category.MIGRATED
        assert toggled.filter_text == "pe"

    def test_unknown_field(self) -> None:
        with pytest.raises(InvalidSortFieldError):
            toggle_sort(ViewSpec(), "bogusField")


class TestLifecycle:
    def test_loads_after_delay(self, live_table: LiveTokenTable, sched: ManualScheduler) -> None:
        live_table.start()
        assert live_table.loading
        assert live_table.snapshot(ViewSpec()).rows == []

        sched.advance(0.5)
        assert live_table.loading

        sched.advance(0.5)
        assert not live_table.loading
        assert all(n == 20 for n in live_table.store.counts().values())

    def test_feed_ticks_on_interval(self, live_table: LiveTokenTable, sched: ManualScheduler) -> None:
        _loaded(live_table, sched)
        assert live_table.store.mutation_count == 0

        sched.advance(2.9)
        assert live_table.store.mutation_count == 0
        sched.advance(0.2)
        assert live_table.store.mutation_count == 1
        sched.advance(30.0)
        assert live_table.store.mutation_count == 11

    def test_stop_halts_both_timers(self, live_table: LiveTokenTable, sched: ManualScheduler) -> None:
        _loaded(live_table, sched)
        sched.advance(6.0)
        live_table.stop()
        count = live_table.store.mutation_count

        sched.advance(60.0)
        assert live_table.store.mutation_count == count
        assert sched.pending == 0
        assert not live_table.running

    def test_stop_before_load(self, live_table: LiveTokenTable, sched: ManualScheduler) -> None:
        live_table.start()
        live_table.stop()
        sched.advance(10.0)
        assert live_table.loading
        assert len(live_table.store) == 0

    def test_stop_is_idempotent(self, live_table: LiveTokenTable, sched: ManualScheduler) -> None:
        _loaded(live_table, sched)
        live_table.stop()
        live_table.stop()
        assert sched.pending == 0

    def test_restart_resumes_feed(self, live_table: LiveTokenTable, sched: ManualScheduler) -> None:
        _loaded(live_table, sched)
        live_table.stop()
        live_table.start()
        sched.advance(3.0)
        assert live_table.store.mutation_count == 1
        assert len(live_table.store) == 60

    def test_start_twice_schedules_once(self, live_table: LiveTokenTable, sched: ManualScheduler) -> None:
        live_table.start()
        live_table.start()
        assert sched.pending == 1

    def test_empty_source_ticks_are_noops(self, sched: ManualScheduler) -> None:
        table = _loaded(LiveTokenTable(JsonTokenSource({}), sched), sched)
        sched.advance(30.0)
        assert table.feed.tick_count == 10
        assert table.store.mutation_count == 0

    def test_failed_load_is_reported(self, sched: ManualScheduler) -> None:
        table = _loaded(LiveTokenTable(_FlakySource(), sched), sched)

        snap = table.snapshot(ViewSpec())
        assert snap.loading
        assert snap.load_error == "ConnectionError: upstream unavailable"
        assert snap.rows == []

        sched.advance(30.0)
        assert table.feed.tick_count == 0
        assert sched.pending == 0

    def test_restart_retries_failed_load(self, sched: ManualScheduler) -> None:
        source = _FlakySource()
        table = _loaded(LiveTokenTable(source, sched), sched)
        assert table.load_error is not None

        source.fail = False
        table.stop()
        _loaded(table, sched)

        assert not table.loading
        assert table.load_error is None
        assert table.snapshot(ViewSpec()).load_error is None
        assert len(table.store) == 3


class TestHighlight:
    def _single(self, sched: ManualScheduler) -> LiveTokenTable:
        source = JsonTokenSource({
            Category.NEW_PAIRS: [make_token("a", price_change_24h=5.0)],
            Category.MIGRATED: [make_token("m", price_change_24h=1.0)],
        })
        return _loaded(LiveTokenTable(source, sched, rng=random.Random(5)), sched)

    def test_row_highlight_window(self, sched: ManualScheduler) -> None:
        table = self._single(sched)
        sched.advance(3.0)

        row = table.rows(ViewSpec())[0]
        assert row.highlighted
        assert row.previous_change == 5.0
        assert row.token.price_change_24h != 5.0

        sched.advance(0.4)
        assert table.is_highlighted(Category.NEW_PAIRS, "a")

        sched.advance(0.2)
        row = table.rows(ViewSpec())[0]
        assert not row.highlighted
        assert row.previous_change is None
        assert table.previous_value(Category.NEW_PAIRS, "a") is None

    def test_expired_records_are_purged(self, sched: ManualScheduler) -> None:
        table = self._single(sched)
        sched.advance(3.0)
        assert (change_key(Category.NEW_PAIRS, "a"), FIELD) in table.tracker
        sched.advance(3.0)
        # next tick re-records "a", the old entry is gone either way
        assert len(table.tracker) == 1

    def test_tab_switch_keeps_other_records(self, sched: ManualScheduler) -> None:
        """Records for the old tab stay queryable until their own window ends."""
        table = self._single(sched)
        sched.advance(3.0)
        table.tabs.set_active(Category.MIGRATED)

        assert table.is_highlighted(Category.NEW_PAIRS, "a")
        assert table.previous_value(Category.NEW_PAIRS, "a") == 5.0

        sched.advance(3.0)
        assert table.is_highlighted(Category.MIGRATED, "m")
        assert not table.is_highlighted(Category.NEW_PAIRS, "a")
        assert table.store.find(Category.NEW_PAIRS, "a").price_change_24h != 5.0
        assert table.store.find(Category.MIGRATED, "m").price_change_24h != 1.0

    def test_custom_window(self, sched: ManualScheduler) -> None:
        source = JsonTokenSource({Category.NEW_PAIRS: [make_token("a")]})
        table = _loaded(
            LiveTokenTable(source, sched, config=TableConfig(highlight_window_ms=2000)), sched
        )
        sched.advance(4.5)
        assert table.is_highlighted(Category.NEW_PAIRS, "a")

    def test_shared_id_across_categories_is_isolated(self, sched: ManualScheduler) -> None:
        source = JsonTokenSource({
            Category.NEW_PAIRS: [make_token("1", price_change_24h=5.0)],
            Category.MIGRATED: [make_token("1", price_change_24h=1.0)],
        })
        table = _loaded(LiveTokenTable(source, sched, rng=random.Random(5)), sched)
        sched.advance(3.0)

        new_row = table.rows(ViewSpec(Category.NEW_PAIRS))[0]
        assert new_row.highlighted
        assert new_row.previous_change == 5.0

        migrated_row = table.rows(ViewSpec(Category.MIGRATED))[0]
        assert not migrated_row.highlighted
        assert migrated_row.previous_change is None
        assert not table.is_highlighted(Category.MIGRATED, "1")
        assert table.previous_value(Category.MIGRATED, "1") is None


class TestConsumerReads:
    def test_snapshot_contents(self, live_table: LiveTokenTable, sched: ManualScheduler) -> None:
        _loaded(live_table, sched)
        view = ViewSpec(Category.FINAL_STRETCH, "", "market_cap", SortDirection.DESC)

        snap = live_table.snapshot(view)

        assert snap.view == view
        assert not snap.loading
        assert len(snap.rows) == 20
        assert snap.counts[Category.MIGRATED] == 20
        assert snap.timestamp_ms == sched.now_ms()
        caps = [r.token.market_cap for r in snap.rows]
        assert caps == sorted(caps, reverse=True)

    def test_snapshot_invalid_field(self, live_table: LiveTokenTable) -> None:
        with pytest.raises(InvalidSortFieldError):
            live_table.snapshot(ViewSpec(sort_field="bogusField"))

    def test_reads_do_not_mutate(self, live_table: LiveTokenTable, sched: ManualScheduler) -> None:
        _loaded(live_table, sched)
        before = live_table.store.get(Category.NEW_PAIRS)
        for _ in range(5):
            live_table.snapshot(ViewSpec(filter_text="e"))
        assert live_table.store.get(Category.NEW_PAIRS) == before
        assert live_table.store.mutation_count == 0

    def test_quick_buy_hands_token_over(self, sched: ManualScheduler) -> None:
        picked = []
        table = LiveTokenTable(RandomTokenSource(count=3, rng=random.Random(0)), sched,
                               on_quick_buy=picked.append)
        _loaded(table, sched)
        token = table.store.get(Category.NEW_PAIRS)[0]

        table.quick_buy(token)

        assert picked == [token]
        assert table.store.mutation_count == 0

    def test_quick_buy_without_handler(self, live_table: LiveTokenTable, sched: ManualScheduler) -> None:
        _loaded(live_table, sched)
        live_table.quick_buy(live_table.store.get(Category.NEW_PAIRS)[0])
