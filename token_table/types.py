"""
Data types for the token table.

Performance notes:
- Using NamedTuple for immutable, memory-efficient structures
- A Token is never edited in place; mutations build a new record with _replace()
"""

from __future__ import annotations

from enum import Enum
from typing import Any, NamedTuple


class Category(str, Enum):
    """Fixed token partitions. Tokens never move between categories."""
    NEW_PAIRS = "new-pairs"
    FINAL_STRETCH = "final-stretch"
    MIGRATED = "migrated"

    @property
    def label(self) -> str:
        return CATEGORY_LABELS[self]


CATEGORY_LABELS = {
    Category.NEW_PAIRS: "New Pairs",
    Category.FINAL_STRETCH: "Final Stretch",
    Category.MIGRATED: "Migrated",
}

PLATFORMS = ("pumpfun", "moonshot", "raydium")


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"

    def flipped(self) -> SortDirection:
        return SortDirection.DESC if self is SortDirection.ASC else SortDirection.ASC


class Token(NamedTuple):
    """One row of the table. Replaced wholesale on every mutation."""
    id: str
    name: str
    symbol: str
    contract_address: str
    logo: str
    age: float                  # Minutes since creation
    market_cap: float
    liquidity: float
    volume_24h: float
    holders: int
    dev_holding_percent: float  # 0-100
    snipers_percent: float      # 0-100
    pro_traders_percent: float  # 0-100
    transactions: int
    buys: int
    sells: int
    price: float                # Always > 0
    price_change_24h: float     # Signed, cumulative drift
    platform: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Token:
        """
        Build a Token from a mapping with camelCase or snake_case keys.

        Raises KeyError naming the first missing field, and ValueError for a
        non-positive price or a count that is negative or not a whole number.
        """
        values = {}
        for field in cls._fields:
            if field in data:
                values[field] = data[field]
            elif FIELD_TO_WIRE[field] in data:
                values[field] = data[FIELD_TO_WIRE[field]]
            else:
                raise KeyError(field)

        for field in COUNT_FIELDS:
            values[field] = _as_count(field, values[field])
        for field in NUMERIC_FIELDS - COUNT_FIELDS:
            values[field] = float(values[field])
        if not values["price"] > 0:
            raise ValueError(f"price must be > 0, got {values['price']!r}")
        for field in STRING_FIELDS:
            values[field] = str(values[field])
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        """Serialize with the camelCase keys used on the wire."""
        return {FIELD_TO_WIRE[field]: value for field, value in zip(self._fields, self)}


# camelCase names used by JSON feeds and accepted as sort fields
FIELD_TO_WIRE: dict[str, str] = {
    "id": "id",
    "name": "name",
    "symbol": "symbol",
    "contract_address": "contractAddress",
    "logo": "logo",
    "age": "age",
    "market_cap": "marketCap",
    "liquidity": "liquidity",
    "volume_24h": "volume24h",
    "holders": "holders",
    "dev_holding_percent": "devHoldingPercent",
    "snipers_percent": "snipersPercent",
    "pro_traders_percent": "proTradersPercent",
    "transactions": "transactions",
    "buys": "buys",
    "sells": "sells",
    "price": "price",
    "price_change_24h": "priceChange24h",
    "platform": "platform",
}
WIRE_TO_FIELD: dict[str, str] = {wire: field for field, wire in FIELD_TO_WIRE.items()}

STRING_FIELDS = frozenset({"id", "name", "symbol", "contract_address", "logo", "platform"})
COUNT_FIELDS = frozenset({"holders", "transactions", "buys", "sells"})
NUMERIC_FIELDS = frozenset(Token._fields) - STRING_FIELDS

# Field whose previous value drives the row highlight
HIGHLIGHT_FIELD = "price_change_24h"


class MutationDelta(NamedTuple):
    """
    Perturbation applied to a single token.

    Percentages are in percent units (5.0 == +5%). Count fields are
    signed increments.
    """
    price_delta_pct: float = 0.0
    volume_delta_pct: float = 0.0
    holders: int = 0
    transactions: int = 0
    buys: int = 0
    sells: int = 0


class ChangeRecord(NamedTuple):
    """Value observed right before the latest mutation of a (token, field)."""
    value: float
    timestamp_ms: float


class ViewSpec(NamedTuple):
    """Consumer-owned view parameters. Never persisted."""
    category: Category = Category.NEW_PAIRS
    filter_text: str = ""
    sort_field: str = "age"
    sort_direction: SortDirection = SortDirection.ASC


class TableRow(NamedTuple):
    """
    Complete row data for UI rendering.

    previous_change is the price_change_24h seen before the latest mutation,
    None when no recent change record exists.
    """
    token: Token
    previous_change: float | None
    highlighted: bool


class TableSnapshot(NamedTuple):
    """
    Complete table snapshot for UI rendering.

    Built on demand for every refresh.
    """
    view: ViewSpec
    rows: list[TableRow]
    loading: bool
    counts: dict[Category, int]
    timestamp_ms: float
    mutations_per_sec: float   # Performance metric
    load_error: str | None = None   # Set while the initial load is failing


def _as_count(field: str, value: Any) -> int:
    """Coerce a count field, rejecting negatives and fractions (12.7 is not 12)."""
    number = float(value)
    if number < 0 or not number.is_integer():
        raise ValueError(f"{field} must be a non-negative integer, got {value!r}")
    return int(value) if isinstance(value, int) else int(number)
