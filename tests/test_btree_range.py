"""Tests for ordered range iteration over B-trees"""
# pylint: skip-file

import random
import unittest

from btree_index.btree import BTree
from btree_index.btree_base import BTreeRange
from tests.btree.base import TreeTestCase


class TestRangeBounds(TreeTestCase):
    T = 3

    def setUp(self):
        super().setUp()
        self.keys = list(range(0, 200, 3))
        self.insert_all(self.keys)

    def _range_keys(self, *args, **kwargs):
        return [k for k, _ in self.tree.range(*args, **kwargs)]

    def test_full_range(self):
        self.assertEqual(self._range_keys(), self.keys)

    def test_bounds_are_inclusive(self):
        self.assertEqual(self._range_keys(30, 45), [30, 33, 36, 39, 42, 45])

    def test_bounds_between_keys(self):
        self.assertEqual(self._range_keys(31, 44), [33, 36, 39, 42])

    def test_single_key_range(self):
        self.assertEqual(list(self.tree.range(99, 99)), [(99, "val_99")])
        self.assertEqual(self._range_keys(100, 100), [])

    def test_open_bounds(self):
        self.assertEqual(self._range_keys(high=10), [0, 3, 6, 9])
        self.assertEqual(self._range_keys(low=190), [192, 195, 198])

    def test_bounds_outside_keyspace(self):
        self.assertEqual(self._range_keys(-100, 1000), self.keys)
        self.assertEqual(self._range_keys(500, 1000), [])
        self.assertEqual(self._range_keys(-100, -1), [])

    def test_low_greater_than_high_is_empty(self):
        self.assertEqual(self._range_keys(50, 10), [])

    def test_values_follow_keys(self):
        for key, value in self.tree.range(60, 90):
            self.assertEqual(value, f"val_{key}")

    def test_reverse(self):
        self.assertEqual(self._range_keys(30, 45, reverse=True), [45, 42, 39, 36, 33, 30])
        self.assertEqual(self._range_keys(reverse=True), self.keys[::-1])

    def test_reversed_view(self):
        view = self.tree.range(10, 20)
        self.assertEqual([k for k, _ in reversed(view)], [18, 15, 12])

    def test_matches_brute_force(self):
        rng = random.Random(3)
        for _ in range(200):
            low, high = sorted(rng.sample(range(-10, 210), 2))
            expected = [k for k in self.keys if low <= k <= high]
            self.assertEqual(self._range_keys(low, high), expected)


class TestRangeView(TreeTestCase):
    def setUp(self):
        super().setUp()
        self.insert_all(range(20))

    def test_range_is_lazy_view(self):
        view = self.tree.range(5, 8)
        self.assertIsInstance(view, BTreeRange)
        self.assertEqual((view.low, view.high, view.reverse), (5, 8, False))

    def test_range_is_restartable(self):
        view = self.tree.range(5, 8)
        first = list(view)
        second = list(view)
        self.assertEqual(first, second)
        self.assertEqual([k for k, _ in first], [5, 6, 7, 8])

    def test_restart_sees_later_changes(self):
        view = self.tree.range(5, 8)
        self.assertEqual(len(list(view)), 4)
        self.tree.delete(6)
        self.assertEqual([k for k, _ in view], [5, 7, 8])

    def test_insert_during_iteration_raises(self):
        it = iter(self.tree.range())
        next(it)
        self.tree.insert(100, "val_100")
        with self.assertRaises(RuntimeError):
            next(it)

    def test_delete_during_iteration_raises(self):
        it = iter(self.tree.range())
        next(it)
        self.tree.delete(15)
        with self.assertRaises(RuntimeError):
            next(it)

    def test_absent_delete_during_iteration_is_harmless(self):
        it = iter(self.tree.range(0, 3))
        next(it)
        self.assertFalse(self.tree.delete(1000))
        self.assertEqual([k for k, _ in it], [1, 2, 3])

    def test_value_replacement_during_iteration_allowed(self):
        seen = []
        for key, value in self.tree.range(0, 4):
            self.tree.insert(key + 1, "replaced")
            seen.append((key, value))
        self.assertEqual(seen[0], (0, "val_0"))
        self.assertEqual(seen[1:], [(1, "replaced"), (2, "replaced"), (3, "replaced"), (4, "replaced")])
        self.tree.insert(5, "val_5")
        for key in range(1, 5):
            self.tree.insert(key, f"val_{key}")

    def test_empty_tree_range(self):
        tree = BTree(2)
        self.assertEqual(list(tree.range()), [])
        self.assertEqual(list(tree.range(1, 2, reverse=True)), [])


class TestRangeRandomOrders(unittest.TestCase):
    def test_strictly_ascending_for_random_trees(self):
        rng = random.Random(5)
        for order in (2, 4, 9):
            with self.subTest(order=order):
                tree = BTree(order)
                keys = set(rng.sample(range(5000), 800))
                for key in keys:
                    tree.insert(key, -key)
                for key in rng.sample(sorted(keys), 300):
                    tree.delete(key)
                    keys.discard(key)
                low, high = 1000, 3500
                result = [k for k, _ in tree.range(low, high)]
                self.assertTrue(all(a < b for a, b in zip(result, result[1:])))
                self.assertEqual(set(result), {k for k in keys if low <= k <= high})


if __name__ == "__main__":
    unittest.main()
