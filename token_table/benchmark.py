#!/usr/bin/env python3
"""
Micro-benchmark for Token Table performance.

Tests:
1. Store mutation throughput
2. Feed tick throughput (pick + record previous + mutate)
3. View projection speed (filter + sort)
4. Full snapshot generation speed

Usage:
    python -m token_table.benchmark
"""

from __future__ import annotations

import random
import time
from statistics import mean, stdev

from .datafeed.sources import RandomTokenSource
from .datafeed.store import TokenStore
from .engine.changes import ChangeTracker
from .engine.feed import MutationFeed
from .engine.live_table import LiveTokenTable, TabController
from .engine.projector import project
from .engine.scheduler import ManualScheduler
from .types import Category, MutationDelta, SortDirection, ViewSpec


def make_store(count: int = 1000, seed: int = 1) -> TokenStore:
    """Build a store with count random tokens in every category."""
    source = RandomTokenSource(count=count, rng=random.Random(seed))
    store = TokenStore()
    for category in Category:
        store.load(category, source.fetch_batch(category))
    return store


def benchmark_mutations(iterations: int = 100000) -> float:
    """Benchmark store mutation throughput. Returns mutations/sec."""
    print("\n=== Store Mutation Benchmark ===")

    store = make_store()
    ids = [t.id for t in store.get(Category.NEW_PAIRS)]
    deltas = [
        (random.choice(ids), MutationDelta(random.uniform(-5, 5), random.uniform(-5, 5)))
        for _ in range(iterations)
    ]

    start = time.perf_counter()
    for token_id, delta in deltas:
        store.apply_mutation(Category.NEW_PAIRS, token_id, delta)
    elapsed = time.perf_counter() - start

    rate = iterations / elapsed
    print(f"  Mutations applied: {iterations:,}")
    print(f"  Time: {elapsed*1000:.1f}ms")
    print(f"  Rate: {rate:,.0f} mutations/sec")
    print(f"  Per mutation: {elapsed/iterations*1_000_000:.2f}µs")
    return rate


def benchmark_feed(iterations: int = 20000) -> float:
    """Benchmark feed ticks. Returns ticks/sec."""
    print("\n=== Feed Tick Benchmark ===")

    store = make_store()
    sched = ManualScheduler()
    feed = MutationFeed(store, ChangeTracker(), TabController(), clock=sched.now_ms,
                        rng=random.Random(2))

    start = time.perf_counter()
    for _ in range(iterations):
        feed.tick()
    elapsed = time.perf_counter() - start

    rate = iterations / elapsed
    print(f"  Ticks: {iterations:,}")
    print(f"  Time: {elapsed*1000:.1f}ms")
    print(f"  Rate: {rate:,.0f} ticks/sec")
    return rate


def benchmark_projection(iterations: int = 500) -> float:
    """Benchmark filter + sort. Returns calls/sec."""
    print("\n=== View Projection Benchmark ===")

    store = make_store()

    # Warm up
    for _ in range(10):
        project(store, Category.NEW_PAIRS, "pe", "market_cap", SortDirection.DESC)

    times = []
    for _ in range(iterations):
        start = time.perf_counter()
        project(store, Category.NEW_PAIRS, "pe", "market_cap", SortDirection.DESC)
        times.append(time.perf_counter() - start)

    avg_time = mean(times) * 1000
    std_time = stdev(times) * 1000 if len(times) > 1 else 0.0

    print(f"  Iterations: {iterations}")
    print(f"  Avg time: {avg_time:.3f}ms")
    print(f"  Std dev: {std_time:.3f}ms")
    print(f"  Rate: {1000/avg_time:,.0f} calls/sec")
    return 1000 / avg_time


def benchmark_full_snapshot(iterations: int = 200) -> float:
    """Benchmark full snapshot generation (what the UI needs). Returns max FPS."""
    print("\n=== Full Snapshot Generation Benchmark ===")

    sched = ManualScheduler()
    table = LiveTokenTable(RandomTokenSource(count=1000, rng=random.Random(3)), sched,
                           rng=random.Random(4))
    table.start()
    sched.advance(table.config.load_delay_sec)
    view = ViewSpec(sort_field="price_change_24h", sort_direction=SortDirection.DESC)

    times = []
    for _ in range(iterations):
        table.tick()
        start = time.perf_counter()
        table.snapshot(view)
        times.append(time.perf_counter() - start)
    table.stop()

    avg_time = mean(times) * 1000
    std_time = stdev(times) * 1000 if len(times) > 1 else 0.0

    print(f"  Iterations: {iterations}")
    print(f"  Avg time: {avg_time:.3f}ms")
    print(f"  Std dev: {std_time:.3f}ms")
    print(f"  Max FPS possible: {1000/avg_time:,.0f}")
    return 1000 / avg_time


def main() -> None:
    """Run all benchmarks."""
    print("=" * 60)
    print("Token Table Performance Benchmark")
    print("=" * 60)

    benchmark_mutations()
    benchmark_feed()
    benchmark_projection()
    benchmark_full_snapshot()

    print("\n" + "=" * 60)
    print("Benchmark complete.")
    print("=" * 60)


if __name__ == "__main__":
    main()
