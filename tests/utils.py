"""Utility functions for testing B-tree invariants."""

import logging
from btree_index.base import InvariantError
from btree_index.btree_base import (
    TREE_FLAGS,
    BTreeBase,
    Stats
)


def assert_tree_invariants_tc(tc, t: BTreeBase, stats: Stats) -> None:
    """TestCase version: use inside unittest.TestCase methods."""
    for flag in TREE_FLAGS:
        tc.assertTrue(
            getattr(stats, flag),
            f"Invariant failed: {flag} is False\n{t.print_structure()}"
        )

    if not t.is_empty():
        tc.assertGreater(
            stats.item_count, 0,
            f"Invariant failed: item_count={stats.item_count} ≤ 0 for non-empty tree"
        )
        tc.assertGreater(
            stats.height, 0,
            f"Invariant failed: height={stats.height} ≤ 0 for non-empty tree"
        )
        tc.assertEqual(
            stats.height, t.height(),
            f"Invariant failed: stats height={stats.height} ≠ height()={t.height()}"
        )
        tc.assertIsNotNone(
            stats.least_key,
            "Invariant failed: least_key is None for non-empty tree"
        )
        tc.assertIsNotNone(
            stats.greatest_key,
            "Invariant failed: greatest_key is None for non-empty tree"
        )
        tc.assertEqual(stats.least_key, t.min_item().key)
        tc.assertEqual(stats.greatest_key, t.max_item().key)
    else:
        tc.assertEqual(stats.item_count, 0)
        tc.assertTrue(t.root.is_leaf, "Empty tree must have a leaf root")


def assert_tree_invariants_raise(t: BTreeBase, stats: Stats) -> None:
    """Check all invariants, raising on the first failure."""
    for flag in TREE_FLAGS:
        if not getattr(stats, flag):
            logging.error(f"Invariant failed: {flag} is False")
            raise InvariantError(f"Invariant failed: {flag} is False")

    if not t.is_empty():
        if stats.item_count <= 0:
            raise InvariantError(f"Invariant failed: item_count={stats.item_count} ≤ 0 for non-empty tree")
        if stats.least_key is None or stats.greatest_key is None:
            raise InvariantError("Invariant failed: least/greatest key is None for non-empty tree")
