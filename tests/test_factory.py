"""Tests for the order-specialized B-tree factory"""
# pylint: skip-file

import unittest

from btree_index.base import InvalidOrderError
from btree_index.btree import BTree
from btree_index.btree_base import InternalNode, LeafNode, btree_stats_
from btree_index.factory import make_btree_classes, create_btree


class TestFactory(unittest.TestCase):
    def test_classes_are_cached(self):
        first = make_btree_classes(4)
        second = make_btree_classes(4)
        self.assertIs(first[0], second[0])
        self.assertIs(first[1], second[1])
        self.assertIs(first[2], second[2])

    def test_class_names_and_order(self):
        BTreeT, LeafNodeT, InternalNodeT = make_btree_classes(5)
        self.assertEqual(BTreeT.__name__, "BTree_T5")
        self.assertEqual(LeafNodeT.__name__, "LeafNode_T5")
        self.assertEqual(InternalNodeT.__name__, "InternalNode_T5")
        self.assertEqual(BTreeT.ORDER, 5)
        self.assertTrue(issubclass(BTreeT, BTree))
        self.assertTrue(issubclass(LeafNodeT, LeafNode))
        self.assertTrue(issubclass(InternalNodeT, InternalNode))

    def test_distinct_orders_get_distinct_classes(self):
        self.assertIsNot(make_btree_classes(2)[0], make_btree_classes(3)[0])

    def test_create_btree(self):
        tree = create_btree(3)
        self.assertEqual(tree.order, 3)
        self.assertTrue(tree.is_empty())
        self.assertEqual(type(tree).__name__, "BTree_T3")

    def test_explicit_order_overrides_baked_order(self):
        BTreeT, _, _ = make_btree_classes(3)
        self.assertEqual(BTreeT(6).order, 6)

    def test_invalid_order(self):
        for t in (0, 1, 2.5):
            with self.subTest(t=t):
                with self.assertRaises(InvalidOrderError):
                    make_btree_classes(t)
                with self.assertRaises(InvalidOrderError):
                    create_btree(t)

    def test_nodes_use_specialized_classes(self):
        tree = create_btree(2)
        _, LeafNodeT, InternalNodeT = make_btree_classes(2)
        for key in range(30):
            tree.insert(key, key)

        level = [tree.root]
        while level:
            for node in level:
                expected = LeafNodeT if node.is_leaf else InternalNodeT
                self.assertIs(type(node), expected)
            level = [c for node in level if not node.is_leaf for c in node.children]
        self.assertTrue(btree_stats_(tree).node_kinds_match)

    def test_foreign_node_class_detected(self):
        tree = create_btree(2)
        for key in range(10):
            tree.insert(key, key)
        first_leaf = tree.root
        while not first_leaf.is_leaf:
            parent, first_leaf = first_leaf, first_leaf.children[0]
        parent.children[0] = LeafNode(list(first_leaf.keys), list(first_leaf.values))

        self.assertFalse(btree_stats_(tree).node_kinds_match)
        with self.assertLogs("btree_index.btree_base", level="ERROR"):
            self.assertFalse(tree.validate())


if __name__ == "__main__":
    unittest.main()
