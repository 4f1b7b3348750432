"""Exceptions and warnings raised by the token table engine."""

from __future__ import annotations


class TokenTableError(Exception):
    """Base class for token table errors."""


class NotFoundError(TokenTableError, KeyError):
    """A token id is absent from the category it was looked up in."""

    def __init__(self, category: str, token_id: str) -> None:
        self.category = category
        self.token_id = token_id
        super().__init__(f"token {token_id!r} not found in {category}")

    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message
        return self.args[0]


class InvalidSortFieldError(TokenTableError, ValueError):
    """Sort field is not one of the Token fields."""

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"invalid sort field: {field!r}")


class RangeViolation(UserWarning):
    """A mutation would have broken a field invariant and was clamped."""
