"""
Mutation feed - stands in for an upstream market-data stream.

Each tick perturbs at most one token of the currently active category:
- price moves by a uniform percentage in [-max_price_move_pct, +max_price_move_pct]
- price_change_24h accumulates that same percentage (cumulative drift)
- volume_24h moves by a uniform percentage in [-max_volume_move_pct, +max_volume_move_pct]

Selection is plain uniform sampling per tick; nothing guarantees every
token gets picked.
"""

from __future__ import annotations

import random
from typing import TYPE_CHECKING, Callable

from loguru import logger

from ..errors import NotFoundError
from ..types import HIGHLIGHT_FIELD, MutationDelta, Token
from .changes import change_key

if TYPE_CHECKING:
    from ..datafeed.store import TokenStore
    from .changes import ChangeTracker
    from .live_table import TabController

DEFAULT_MAX_PRICE_MOVE_PCT = 5.0
DEFAULT_MAX_VOLUME_MOVE_PCT = 5.0


class MutationFeed:
    """
    Random walk over the active category.

    The only writer of the store. Records the previous highlight value in
    the change tracker before every write.
    """

    def __init__(
        self,
        store: TokenStore,
        tracker: ChangeTracker,
        tabs: TabController,
        clock: Callable[[], float],
        rng: random.Random | None = None,
        max_price_move_pct: float = DEFAULT_MAX_PRICE_MOVE_PCT,
        max_volume_move_pct: float = DEFAULT_MAX_VOLUME_MOVE_PCT,
    ) -> None:
        self.store = store
        self.tracker = tracker
        self.tabs = tabs
        self.clock = clock
        self.rng = rng or random.Random()
        self.max_price_move_pct = max_price_move_pct
        self.max_volume_move_pct = max_volume_move_pct

        self.tick_count = 0
        self.skipped_ticks = 0

    def next_delta(self) -> MutationDelta:
        """Draw one bounded perturbation."""
        return MutationDelta(
            price_delta_pct=self.rng.uniform(-self.max_price_move_pct, self.max_price_move_pct),
            volume_delta_pct=self.rng.uniform(-self.max_volume_move_pct, self.max_volume_move_pct),
        )

    def tick(self) -> Token | None:
        """
        Run one feed tick.

        Returns the updated token, or None when the active category is
        empty or the picked token vanished.
        """
        self.tick_count += 1
        category = self.tabs.active
        tokens = self.store.get(category)
        if not tokens:
            return None

        token = self.rng.choice(tokens)
        return self.apply(token, self.next_delta())

    def apply(self, token: Token, delta: MutationDelta) -> Token | None:
        """Record the previous value of token, then write delta to the active category."""
        category = self.tabs.active
        try:
            current = self.store.find(category, token.id)
        except NotFoundError as e:
            self.skipped_ticks += 1
            logger.warning(f"[FEED] Skipping tick: {e}")
            return None

        self.tracker.record_previous(
            change_key(category, current.id),
            HIGHLIGHT_FIELD,
            getattr(current, HIGHLIGHT_FIELD),
            self.clock(),
        )
        updated = self.store.apply_mutation(category, current.id, delta)

        logger.debug(
            f"[FEED] {category.value} {updated.symbol} ({updated.id}): "
            f"price {delta.price_delta_pct:+.2f}% -> {updated.price:.8g}, "
            f"24h {current.price_change_24h:.2f}% -> {updated.price_change_24h:.2f}%"
        )
        return updated
