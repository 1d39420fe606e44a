#!/usr/bin/env python3
"""
Benchmarks for the B-tree index.

This script measures:
 1. Full tree build times (random_btree_of_size) per order
 2. Tree shape statistics of a large random tree
 3. Per-operation cost (search, insert, delete) on trees of various sizes
 4. Range scan throughput
 5. Splits, borrows and merges per insert and delete, with their timings

Usage:
    python -m stats.benchmarks [--orders 2 16 64] [--sizes 100 1000 10000] [--trials T] [--seed S]
"""
import argparse
import time
import gc
from pprint import pprint
from dataclasses import asdict
from statistics import mean, variance

import numpy as np

from btree_index.btree import BTree
from btree_index.btree_base import BTreeBase, btree_stats_
from btree_index.profiling import STRUCTURAL_EVENTS, profiled
from tests.stats_btree import assert_invariants, random_btree_of_size, random_keys, occupancy


def bench_build(sizes: list, order: int, seed: int) -> None:
    """Measure random_btree_of_size for various sizes."""
    for n in sizes:
        t0 = time.perf_counter()
        _ = random_btree_of_size(n, order, seed=seed)
        elapsed = time.perf_counter() - t0
        print(f"[bench] random_btree_of_size({n}, t={order}): {elapsed:.4f}s")


def bench_stats(n: int, order: int, seed: int) -> None:
    """Build a single random tree and print its stats."""
    tree = random_btree_of_size(n, order, seed=seed)
    print(f"[bench] random_btree_of_size({n}, t={order}) stats:")
    stats = btree_stats_(tree)
    assert_invariants(tree, stats)
    pprint(asdict(stats))
    pprint(occupancy(tree))


def _timed(op, args_list) -> tuple:
    gc.collect()
    gc.disable()
    try:
        times = []
        for args in args_list:
            t0 = time.perf_counter()
            op(*args)
            times.append(time.perf_counter() - t0)
    finally:
        gc.enable()
    return mean(times), variance(times)


def measure_operations(n: int, order: int, trials: int, seed: int) -> dict:
    """
    Measure per-operation cost on a tree of exactly `n` items.
    Returns {op: (mean_time_s, variance_time_s)}.
    """
    tree = random_btree_of_size(n, order, seed=seed)
    present = [key for key, _ in tree.range()]
    rng = np.random.default_rng(seed)
    hits = [int(k) for k in rng.choice(present, size=min(trials, n), replace=False)]
    # keys of random_keys() stay below 1 << 24
    misses = [int(k) + (1 << 24) for k in random_keys(trials, seed=seed + 1)]

    results = {
        "search": _timed(tree.search, [(k,) for k in hits]),
        "insert": _timed(tree.insert, [(k, f"val{k}") for k in misses]),
        "delete": _timed(tree.delete, [(k,) for k in hits]),
    }
    return results


def bench_operations(sizes: list, order: int, trials: int, seed: int) -> None:
    """Run measure_operations for each size and print results."""
    for n in sizes:
        for op, (avg, var) in measure_operations(n, order, trials, seed).items():
            print(
                f"[bench] {op:<6} size {n:<7} t={order:<3} → avg {avg*1e6:8.2f} µs   σ²={var*1e12:8.2f} µs²"
            )


def bench_range(n: int, order: int, seed: int) -> None:
    """Time a full scan and a narrow scan."""
    tree = random_btree_of_size(n, order, seed=seed)
    t0 = time.perf_counter()
    count = sum(1 for _ in tree.range())
    elapsed = time.perf_counter() - t0
    print(f"[bench] full range scan of {count} items (t={order}): {elapsed:.4f}s")

    t0 = time.perf_counter()
    count = sum(1 for _ in tree.range(1 << 20, 1 << 21))
    elapsed = time.perf_counter() - t0
    print(f"[bench] narrow range scan of {count} items (t={order}): {elapsed:.6f}s")


def bench_rebalancing(n: int, order: int, trials: int, seed: int) -> None:
    """
    Build a tree of n keys and delete `trials` of them with profiling on,
    then print timings and how often each operation split, borrowed or merged.
    """
    keys = [int(k) for k in random_keys(n, seed=seed)]
    with profiled() as tracker:
        tree = BTree(order)
        for key in keys:
            tree.insert(key, f"val{key}")
        for key in keys[:trials]:
            tree.delete(key)
        print(BTreeBase.get_performance_report())

        for operation, metrics in sorted(tracker.metrics.items()):
            per_call = ", ".join(
                f"{event} {metrics.events_per_call(event):.4f}"
                for event in STRUCTURAL_EVENTS if metrics.events[event]
            )
            print(f"[bench] {operation:<18} t={order:<3} events/call: {per_call or 'none'}")


def main():
    parser = argparse.ArgumentParser(description="B-tree benchmarks")
    parser.add_argument("--orders", nargs='+', type=int, default=[2, 16, 64],
                        help="Minimum degrees to benchmark")
    parser.add_argument("--sizes", nargs='+', type=int, default=[100, 1000, 10_000],
                        help="Tree sizes for per-operation benchmarks")
    parser.add_argument("--trials", type=int, default=100,
                        help="Number of operations timed per size")
    parser.add_argument("--seed", type=int, default=42,
                        help="Seed for key generation")
    args = parser.parse_args()

    for order in args.orders:
        print(f"\n=== Full Build (t={order}) ===")
        bench_build([10, 100, 1000, 10_000, 100_000], order, args.seed)

        print(f"\n=== Tree Stats (t={order}) ===")
        bench_stats(100_000, order, args.seed)

        print(f"\n=== Per-Operation Benchmarks (t={order}) ===")
        bench_operations(args.sizes, order, args.trials, args.seed)

        print(f"\n=== Range Scans (t={order}) ===")
        bench_range(100_000, order, args.seed)

    for order in args.orders:
        print(f"\n=== Operation Breakdown (t={order}) ===")
        bench_rebalancing(args.sizes[-1], order, args.trials, args.seed)
    BTreeBase.reset_performance_metrics()


if __name__ == "__main__":
    main()
