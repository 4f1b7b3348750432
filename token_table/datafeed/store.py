"""
Categorized token store - the single source of truth for the table.

HOT PATH: apply_mutation() is called on every feed tick; get() on every UI refresh.

Design:
1. One insertion-ordered list per category plus a dict id -> index for O(1) lookup
2. Tokens are immutable; a mutation swaps one list slot, so a reader sees
   either the whole old record or the whole new one
3. No sorted or derived state is kept here (see engine/projector.py)
"""

from __future__ import annotations

import time
import warnings
from typing import Iterable

from loguru import logger

from ..errors import NotFoundError, RangeViolation
from ..types import COUNT_FIELDS, Category, MutationDelta, Token

# Smallest price a mutation may produce
MIN_PRICE = 1e-12


class TokenStore:
    """
    Per-category token collections.

    Thread-safety: NOT thread-safe. Designed for single-threaded async use.
    """

    __slots__ = (
        '_tokens', '_index',
        '_mutation_count', '_mutation_start_time',
    )

    def __init__(self) -> None:
        # Core data: category -> ordered tokens, category -> {id: position}
        self._tokens: dict[Category, list[Token]] = {c: [] for c in Category}
        self._index: dict[Category, dict[str, int]] = {c: {} for c in Category}

        # Performance tracking
        self._mutation_count: int = 0
        self._mutation_start_time: float = time.perf_counter()

    def load(self, category: Category, tokens: Iterable[Token]) -> None:
        """
        Bulk-load one category, replacing whatever it held.

        A repeated id keeps the position of its first occurrence and the
        fields of its last. Tokens that break the price or count invariants
        are clamped onto them with a RangeViolation warning.
        """
        category = Category(category)
        rows: list[Token] = []
        index: dict[str, int] = {}

        for token in tokens:
            token = _within_invariants(token)
            pos = index.get(token.id)
            if pos is None:
                index[token.id] = len(rows)
                rows.append(token)
            else:
                rows[pos] = token

        self._tokens[category] = rows
        self._index[category] = index
        logger.info(f"[STORE] Loaded {len(rows)} tokens into {category.value}")

    def get(self, category: Category) -> list[Token]:
        """Tokens of one category in insertion order (a copy)."""
        return list(self._tokens[Category(category)])

    def find(self, category: Category, token_id: str) -> Token:
        """Look up one token. Raises NotFoundError."""
        category = Category(category)
        pos = self._index[category].get(token_id)
        if pos is None:
            raise NotFoundError(category.value, token_id)
        return self._tokens[category][pos]

    def apply_mutation(self, category: Category, token_id: str, delta: MutationDelta) -> Token:
        """
        Apply a perturbation to one token and return the new record.

        HOT PATH - called once per feed tick.

        Values that would break an invariant (price <= 0, negative volume or
        counts) are clamped and reported with a RangeViolation warning.

        Raises NotFoundError if token_id is not in category.
        """
        category = Category(category)
        pos = self._index[category].get(token_id)
        if pos is None:
            raise NotFoundError(category.value, token_id)

        old = self._tokens[category][pos]

        price = old.price * (1 + delta.price_delta_pct / 100)
        if price < MIN_PRICE:
            _clamped(token_id, "price", price, MIN_PRICE)
            price = MIN_PRICE

        volume = old.volume_24h * (1 + delta.volume_delta_pct / 100)
        if volume < 0:
            _clamped(token_id, "volume_24h", volume, 0.0)
            volume = 0.0

        counts = {}
        for field in COUNT_FIELDS:
            value = getattr(old, field) + getattr(delta, field)
            if value < 0:
                _clamped(token_id, field, value, 0)
                value = 0
            counts[field] = value

        new = old._replace(
            price=price,
            price_change_24h=old.price_change_24h + delta.price_delta_pct,
            volume_24h=volume,
            **counts,
        )

        # Single slot assignment - the swap is the commit point
        self._tokens[category][pos] = new
        self._mutation_count += 1
        return new

    def counts(self) -> dict[Category, int]:
        """Number of tokens per category."""
        return {c: len(rows) for c, rows in self._tokens.items()}

    def __len__(self) -> int:
        return sum(len(rows) for rows in self._tokens.values())

    @property
    def mutation_count(self) -> int:
        return self._mutation_count

    def get_mutations_per_sec(self) -> float:
        """Return mutation rate for status display."""
        elapsed = time.perf_counter() - self._mutation_start_time
        if elapsed < 0.001:
            return 0.0
        return self._mutation_count / elapsed

    def reset_perf_counters(self) -> None:
        """Reset performance counters."""
        self._mutation_count = 0
        self._mutation_start_time = time.perf_counter()


def _clamped(token_id: str, field: str, value: float, bound: float) -> None:
    logger.warning(f"[STORE] Clamped {field} of {token_id} from {value:.6g} to {bound}")
    warnings.warn(
        RangeViolation(f"{field} of {token_id} would be {value:.6g}, clamped to {bound}"),
        stacklevel=3,
    )


def _within_invariants(token: Token) -> Token:
    """Loaded token with price floored and counts made non-negative integers."""
    fixes = {}
    if not token.price >= MIN_PRICE:
        _clamped(token.id, "price", token.price, MIN_PRICE)
        fixes["price"] = MIN_PRICE

    for field in COUNT_FIELDS:
        value = getattr(token, field)
        if value < 0 or value != int(value):
            bound = max(0, int(value))
            _clamped(token.id, field, value, bound)
            fixes[field] = bound
        elif not isinstance(value, int):
            fixes[field] = int(value)

    return token._replace(**fixes) if fixes else token
