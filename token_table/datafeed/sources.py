"""
Initial data sources for the token store.

A source hands the engine one batch of tokens per category, once, at load
time. The engine never validates ranges beyond the store invariants.

Provided:
1. RandomTokenSource - mock generator (pump.fun style meme tokens)
2. JsonTokenSource - bulk-load from a JSON document, a file, or an HTTP endpoint

Expected JSON format: {"new-pairs": [token, ...], "final-stretch": [...], "migrated": [...]}
Token keys may be camelCase (contractAddress, priceChange24h) or snake_case.
"""

from __future__ import annotations

import random
import string
from pathlib import Path
from typing import Protocol

import aiohttp
import orjson
from loguru import logger

from ..errors import TokenTableError
from ..types import PLATFORMS, Category, Token

LOGO_URL = "https://api.dicebear.com/7.x/shapes/svg?seed={name}"

BASE_NAMES = ("PEPE", "DOGE", "SHIB", "BONK", "WIF", "FLOKI", "SAMO", "WOJAK")

# Per-category ranges: age (minutes), market cap ($), liquidity ($)
CATEGORY_RANGES: dict[Category, dict[str, tuple[float, float]]] = {
    Category.NEW_PAIRS: {
        "age": (0.5, 30), "market_cap": (1_000, 50_000), "liquidity": (500, 10_000),
    },
    Category.FINAL_STRETCH: {
        "age": (30, 180), "market_cap": (20_000, 100_000), "liquidity": (5_000, 25_000),
    },
    Category.MIGRATED: {
        "age": (60, 360), "market_cap": (50_000, 500_000), "liquidity": (10_000, 100_000),
    },
}


class TokenSource(Protocol):
    """Anything that can hand over the initial rows of a category."""

    def fetch_batch(self, category: Category) -> list[Token]:
        ...


class RandomTokenSource:
    """
    Mock token generator.

    Usage:
        source = RandomTokenSource(count=20, rng=random.Random(7))
        tokens = source.fetch_batch(Category.NEW_PAIRS)
    """

    def __init__(self, count: int = 20, rng: random.Random | None = None) -> None:
        self.count = count
        self.rng = rng or random.Random()

    def fetch_batch(self, category: Category) -> list[Token]:
        category = Category(category)
        return [self.generate_token(category, i) for i in range(self.count)]

    def generate_token(self, category: Category, index: int) -> Token:
        """Generate one token. Ids are category-prefixed so they are unique across tabs."""
        rng = self.rng
        r = CATEGORY_RANGES[category]
        name = f"{rng.choice(BASE_NAMES)}{rng.randrange(9999)}"
        address = "".join(rng.choices(string.ascii_lowercase + string.digits, k=13))

        return Token(
            id=f"{category.value}-{index}",
            name=name,
            symbol=name[:4].upper(),
            contract_address=address,
            logo=LOGO_URL.format(name=name),
            age=rng.uniform(*r["age"]),
            market_cap=rng.uniform(*r["market_cap"]),
            liquidity=rng.uniform(*r["liquidity"]),
            volume_24h=rng.uniform(1_000, 100_000),
            holders=int(rng.uniform(10, 1_000)),
            dev_holding_percent=rng.uniform(0, 15),
            snipers_percent=rng.uniform(0, 25),
            pro_traders_percent=rng.uniform(5, 40),
            transactions=int(rng.uniform(50, 5_000)),
            buys=int(rng.uniform(25, 3_000)),
            sells=int(rng.uniform(20, 2_500)),
            price=rng.uniform(0.000001, 0.1),
            price_change_24h=rng.uniform(-50, 150),
            platform=rng.choice(PLATFORMS),
        )


class JsonTokenSource:
    """
    Token batches parsed from a JSON document.

    Categories missing from the document load as empty.
    """

    def __init__(self, batches: dict[Category, list[Token]]) -> None:
        self._batches = batches

    def fetch_batch(self, category: Category) -> list[Token]:
        return list(self._batches.get(Category(category), []))

    @classmethod
    def from_bytes(cls, raw: bytes | str) -> JsonTokenSource:
        """Parse a JSON document. Raises TokenTableError on malformed input."""
        try:
            data = orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            raise TokenTableError(f"invalid token JSON: {e}") from e

        if not isinstance(data, dict):
            raise TokenTableError("token JSON root must be an object keyed by category")

        batches: dict[Category, list[Token]] = {}
        for key, items in data.items():
            try:
                category = Category(key)
            except ValueError:
                raise TokenTableError(f"unknown category in token JSON: {key!r}") from None
            if not isinstance(items, list):
                raise TokenTableError(f"category {key!r} must hold a list of tokens")

            tokens = []
            for i, item in enumerate(items):
                try:
                    tokens.append(Token.from_dict(item))
                except KeyError as e:
                    raise TokenTableError(f"{key}[{i}]: missing field {e.args[0]!r}") from None
                except (TypeError, ValueError) as e:
                    raise TokenTableError(f"{key}[{i}]: {e}") from None
            batches[category] = tokens

        logger.info(
            "[SOURCE] Parsed "
            + ", ".join(f"{c.value}={len(t)}" for c, t in batches.items())
        )
        return cls(batches)

    @classmethod
    def from_file(cls, path: str | Path) -> JsonTokenSource:
        """Load a JSON document from disk."""
        return cls.from_bytes(Path(path).read_bytes())

    @classmethod
    async def fetch(
        cls,
        url: str,
        session: aiohttp.ClientSession | None = None,
    ) -> JsonTokenSource:
        """Fetch a JSON document over HTTP."""
        if session is None:
            async with aiohttp.ClientSession() as own_session:
                return await cls.fetch(url, own_session)

        logger.info(f"[SOURCE] Fetching tokens from {url}")
        async with session.get(url) as resp:
            resp.raise_for_status()
            data = await resp.read()
            return cls.from_bytes(data)
