"""
View projection: filter + sort over the store.

Called on every UI refresh, so it stays a pure function:
- reads the store through get(), which returns a copy
- never touches the store, the change tracker, or any module state
- sorted() is stable; equal keys keep insertion order in both directions
"""

from __future__ import annotations

from operator import attrgetter

from ..datafeed.store import TokenStore
from ..errors import InvalidSortFieldError
from ..types import WIRE_TO_FIELD, Category, SortDirection, Token, ViewSpec


def resolve_sort_field(name: str) -> str:
    """
    Map a sort field name to the Token attribute.

    Accepts snake_case attribute names and the camelCase wire names.
    Raises InvalidSortFieldError for anything else.
    """
    if name in Token._fields:
        return name
    field = WIRE_TO_FIELD.get(name)
    if field is None:
        raise InvalidSortFieldError(name)
    return field


def matches_filter(token: Token, needle: str) -> bool:
    """Case-insensitive substring match on name or symbol. needle must be lowercased."""
    return needle in token.name.lower() or needle in token.symbol.lower()


def project(
    store: TokenStore,
    category: Category,
    filter_text: str,
    sort_field: str,
    sort_direction: SortDirection | str,
) -> list[Token]:
    """
    Visible rows of a category, filtered then sorted.

    Args:
        store: Token store to read from
        category: Category to show
        filter_text: Free text matched against name and symbol; empty shows all
        sort_field: Token field name (snake_case or camelCase)
        sort_direction: "asc" or "desc"

    Raises InvalidSortFieldError for an unknown field and ValueError for an
    unknown direction. Both are checked before the store is read.
    """
    field = resolve_sort_field(sort_field)
    direction = SortDirection(sort_direction)

    tokens = store.get(category)

    needle = filter_text.lower()
    if needle:
        tokens = [t for t in tokens if matches_filter(t, needle)]

    return sorted(
        tokens,
        key=attrgetter(field),
        reverse=direction is SortDirection.DESC,
    )


def project_view(store: TokenStore, view: ViewSpec) -> list[Token]:
    """project() with the parameters bundled in a ViewSpec."""
    return project(store, view.category, view.filter_text, view.sort_field, view.sort_direction)
