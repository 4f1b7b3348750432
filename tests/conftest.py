"""Shared test fixtures."""

import random

import pytest

from token_table.datafeed.sources import RandomTokenSource
from token_table.datafeed.store import TokenStore
from token_table.engine.changes import ChangeTracker
from token_table.engine.feed import MutationFeed
from token_table.engine.live_table import LiveTokenTable, TabController
from token_table.engine.scheduler import ManualScheduler
from token_table.types import Category, Token


def make_token(token_id: str = "a", **overrides) -> Token:
    """A token with plausible defaults; override any field by keyword."""
    fields = dict(
        id=token_id,
        name=f"TOKEN{token_id}",
        symbol=f"T{token_id}".upper(),
        contract_address=f"addr-{token_id}",
        logo=f"https://logo.test/{token_id}.svg",
        age=10.0,
        market_cap=25_000.0,
        liquidity=5_000.0,
        volume_24h=10_000.0,
        holders=100,
        dev_holding_percent=5.0,
        snipers_percent=10.0,
        pro_traders_percent=20.0,
        transactions=500,
        buys=300,
        sells=200,
        price=0.01,
        price_change_24h=0.0,
        platform="pumpfun",
    )
    fields.update(overrides)
    return Token(**fields)


@pytest.fixture
def pair_store() -> TokenStore:
    """new-pairs holds PEPE1 (a) and DOGE2 (b)."""
    store = TokenStore()
    store.load(Category.NEW_PAIRS, [
        make_token("a", name="PEPE1", symbol="PEPE", price=0.01, price_change_24h=5.0),
        make_token("b", name="DOGE2", symbol="DOGE", price=0.02, price_change_24h=-3.0),
    ])
    return store


@pytest.fixture
def random_store() -> TokenStore:
    """20 random tokens per category, deterministic."""
    source = RandomTokenSource(count=20, rng=random.Random(42))
    store = TokenStore()
    for category in Category:
        store.load(category, source.fetch_batch(category))
    return store


@pytest.fixture
def sched() -> ManualScheduler:
    return ManualScheduler(start_ms=1_000.0)


@pytest.fixture
def feed(random_store: TokenStore, sched: ManualScheduler) -> MutationFeed:
    return MutationFeed(
        random_store, ChangeTracker(), TabController(), clock=sched.now_ms, rng=random.Random(7)
    )


@pytest.fixture
def live_table(sched: ManualScheduler) -> LiveTokenTable:
    return LiveTokenTable(
        RandomTokenSource(count=20, rng=random.Random(1)),
        sched,
        rng=random.Random(2),
    )
