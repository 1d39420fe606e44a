"""In-memory B-tree ordered index."""

from btree_index.base import (
    AbstractOrderedIndex,
    InvalidOrderError,
    InvariantError,
    Item,
    RetrievalResult,
)
from btree_index.btree_base import (
    BTreeBase,
    BTreeRange,
    InternalNode,
    LeafNode,
    Stats,
    btree_stats_,
)
from btree_index.btree import BTree
from btree_index.factory import make_btree_classes, create_btree

__version__ = "0.1.0"

__all__ = [
    "AbstractOrderedIndex",
    "BTree",
    "BTreeBase",
    "BTreeRange",
    "InternalNode",
    "InvalidOrderError",
    "InvariantError",
    "Item",
    "LeafNode",
    "RetrievalResult",
    "Stats",
    "btree_stats_",
    "create_btree",
    "make_btree_classes",
]
