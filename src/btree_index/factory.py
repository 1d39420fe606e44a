"""Factory for the creation of B-trees of a fixed order"""

from typing import Type, Tuple, Dict
import logging

from btree_index.base import check_order
from btree_index.btree import BTree
from btree_index.btree_base import LeafNode, InternalNode

# Configure logging
logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

# Cache for previously created classes to avoid recreating them
_class_cache: Dict[int, Tuple[Type[BTree], Type[LeafNode], Type[InternalNode]]] = {}


def make_btree_classes(t: int) -> Tuple[
    Type[BTree],
    Type[LeafNode],
    Type[InternalNode]
]:
    """
    Factory function to generate B-tree and node classes specialized for a minimum degree t.

    Returns:
        BTreeT          – subclass of BTree with ORDER=t, LeafClass=LeafNodeT, InternalClass=InternalNodeT.
        LeafNodeT       – subclass of LeafNode used for every leaf of a BTreeT.
        InternalNodeT   – subclass of InternalNode used for every internal node of a BTreeT.

    Raises:
        InvalidOrderError: If t is not an int >= 2.
    """
    check_order(t)

    if t in _class_cache:
        logger.debug(f"Using cached classes for t={t}")
        return _class_cache[t]

    logger.debug(f"Creating new classes for t={t}")

    # 1) Node classes, kept distinct per order so validate() can tell trees apart
    LeafNodeT = type(
        f"LeafNode_T{t}",
        (LeafNode,),
        {"__slots__": ()}
    )
    InternalNodeT = type(
        f"InternalNode_T{t}",
        (InternalNode,),
        {"__slots__": ()}
    )
    logger.debug(f"Created {LeafNodeT.__name__} and {InternalNodeT.__name__}")

    # 2) Tree class with the order baked in
    BTreeT = type(
        f"BTree_T{t}",
        (BTree,),
        {
            "ORDER": t,
            "LeafClass": LeafNodeT,
            "InternalClass": InternalNodeT,
            "__slots__": ()
        }
    )
    logger.debug(f"Created {BTreeT.__name__} with ORDER={t}")

    _class_cache[t] = (BTreeT, LeafNodeT, InternalNodeT)
    logger.debug(f"Cached classes for t={t}")

    return BTreeT, LeafNodeT, InternalNodeT


def create_btree(t: int) -> BTree:
    """
    Create a new empty B-tree with minimum degree t.

    Args:
        t (int): The minimum degree; nodes hold between t-1 and 2t-1 keys.

    Returns:
        A new empty tree of class BTree_T{t}
    """
    logger.debug(f"Creating new tree with t={t}")
    BTreeT, _, _ = make_btree_classes(t)
    tree = BTreeT()
    logger.debug(f"Created tree instance of type {type(tree).__name__}")
    return tree
