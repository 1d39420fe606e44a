"""B-tree base implementation"""

from __future__ import annotations
import bisect
import logging
from typing import Any, Iterator, List, Optional, Tuple, Type
from dataclasses import dataclass
import collections

from btree_index.base import (
    AbstractOrderedIndex,
    InvalidOrderError,
    InvariantError,
    Item,
    RetrievalResult,
    check_order,
)
from btree_index.profiling import (
    record_event,
    track_performance,
    PerformanceTracker
)

# Configure logging
logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter('%(asctime)s [%(levelname)s] %(message)s')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
# Prevent propagation to the root logger to avoid duplicate logs
logger.propagate = False

TREE_FLAGS = (
    "keys_in_order",
    "is_search_tree",
    "leaves_same_depth",
    "nodes_within_bounds",
    "children_match_keys",
    "values_aligned",
    "node_kinds_match",
    "size_consistent",
)


class BTreeNodeBase:
    """
    Base class for B-tree nodes.

    Both node kinds keep `keys` and `values` as parallel lists. Only
    InternalNode owns children; a LeafNode has no child slot at all.
    """
    __slots__ = ("keys", "values")

    is_leaf: bool

    def __init__(
        self,
        keys: Optional[List[Any]] = None,
        values: Optional[List[Any]] = None,
    ) -> None:
        self.keys: List[Any] = keys if keys is not None else []
        self.values: List[Any] = values if values is not None else []

    def find(self, key: Any) -> Tuple[int, bool]:
        """
        Binary search for key in this node.

        Returns:
            (index, found): index of key if found, otherwise the index of the
            first key greater than key (which is also the child to descend into).
        """
        keys = self.keys
        i = bisect.bisect_left(keys, key)
        return i, i < len(keys) and keys[i] == key

    def is_full(self, t: int) -> bool:
        return len(self.keys) >= 2 * t - 1

    def split(self, t: int) -> Tuple[Any, Any, BTreeNodeBase]:
        """
        Split a full node (2t-1 keys) around its median.

        The node keeps the lower t-1 keys, a new sibling of the same class
        receives the upper t-1 keys.

        Returns:
            (median_key, median_value, sibling)
        """
        keys, values = self.keys, self.values
        median_key, median_value = keys[t - 1], values[t - 1]
        sibling = type(self)(keys[t:], values[t:])
        del keys[t - 1:]
        del values[t - 1:]
        return median_key, median_value, sibling

    def absorb(self, sep_key: Any, sep_value: Any, right: BTreeNodeBase) -> None:
        """Append the separating entry and every entry of the right sibling."""
        self.keys.append(sep_key)
        self.keys.extend(right.keys)
        self.values.append(sep_value)
        self.values.extend(right.values)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(keys={self.keys!r})"


class LeafNode(BTreeNodeBase):
    __slots__ = ()

    is_leaf = True


class InternalNode(BTreeNodeBase):
    __slots__ = ("children",)

    is_leaf = False

    def __init__(
        self,
        keys: Optional[List[Any]] = None,
        values: Optional[List[Any]] = None,
        children: Optional[List[BTreeNodeBase]] = None,
    ) -> None:
        super().__init__(keys, values)
        self.children: List[BTreeNodeBase] = children if children is not None else []

    def split(self, t: int) -> Tuple[Any, Any, InternalNode]:
        median_key, median_value, sibling = super().split(t)
        sibling.children = self.children[t:]
        del self.children[t:]
        return median_key, median_value, sibling

    def absorb(self, sep_key: Any, sep_value: Any, right: InternalNode) -> None:
        super().absorb(sep_key, sep_value, right)
        self.children.extend(right.children)


class BTreeRange:
    """
    Lazy, restartable view over the entries of a B-tree with
    low <= key <= high. A bound of None leaves that side open.

    Every call to iter() starts a fresh traversal. Inserting a new key or
    deleting a key while a traversal is running makes the traversal raise
    RuntimeError on its next step; replacing the value of an existing key
    does not.
    """
    __slots__ = ("_tree", "low", "high", "reverse")

    def __init__(self, tree: BTreeBase, low: Any = None, high: Any = None, reverse: bool = False):
        self._tree = tree
        self.low = low
        self.high = high
        self.reverse = reverse

    def __iter__(self) -> Iterator[Tuple[Any, Any]]:
        tree = self._tree
        low, high = self.low, self.high
        if low is not None and high is not None and high < low:
            return

        version = tree._version
        if self.reverse:
            entries = tree._iter_range_reverse(tree._root, low, high)
        else:
            entries = tree._iter_range(tree._root, low, high)

        while True:
            if tree._version != version:
                raise RuntimeError("BTree changed size during iteration")
            try:
                entry = next(entries)
            except StopIteration:
                return
            yield entry

    def __reversed__(self) -> Iterator[Tuple[Any, Any]]:
        return iter(BTreeRange(self._tree, self.low, self.high, not self.reverse))

    def __repr__(self) -> str:
        cls = self.__class__.__name__
        return f"{cls}(low={self.low!r}, high={self.high!r}, reverse={self.reverse})"


class BTreeBase(AbstractOrderedIndex):
    """
    A B-tree of minimum degree `order` (t) holding unique, totally ordered keys.

    Every non-root node holds between t-1 and 2t-1 keys, every internal node
    with k keys has k+1 children and all leaves sit at the same depth. Both
    insert and delete repair the tree on the way down, so each operation walks
    a single root-to-leaf path.

    Attributes:
        order (int): The minimum degree t of the tree.
    """
    __slots__ = ("order", "_root", "_size", "_version")

    # A factory-made subclass bakes its order in here
    ORDER: Optional[int] = None
    LeafClass: Type[LeafNode] = LeafNode
    InternalClass: Type[InternalNode] = InternalNode

    def __init__(self, order: Optional[int] = None):
        if order is None:
            order = self.ORDER
        if order is None:
            raise InvalidOrderError(f"{type(self).__name__} requires an order")
        self.order: int = check_order(order)
        self._root: BTreeNodeBase = self.LeafClass()
        self._size: int = 0
        # Bumped on every structural change; running range traversals compare against it
        self._version: int = 0

    @property
    def root(self) -> BTreeNodeBase:
        return self._root

    def is_empty(self) -> bool:
        return self._size == 0

    def __len__(self) -> int:
        return self._size

    def height(self) -> int:
        """Number of node levels; 0 for an empty tree."""
        if self.is_empty():
            return 0
        h, node = 1, self._root
        while not node.is_leaf:
            node = node.children[0]
            h += 1
        return h

    def __str__(self):
        if self.is_empty():
            return f"Empty {self.__class__.__name__}(order={self.order})"
        return f"{self.__class__.__name__}(order={self.order}, size={self._size}, height={self.height()})"

    __repr__ = __str__

    # Public API
    @track_performance
    def search(self, key: Any) -> Optional[Any]:
        """
        Return the value stored under key, or None if key is absent.

        A stored None value is indistinguishable from absence here; use
        `key in tree` or retrieve() to tell them apart.
        """
        node, i = self._locate(key)
        return node.values[i] if node is not None else None

    def retrieve(self, key: Any) -> RetrievalResult:
        """
        Searches for the item with a matching key and its in-order successor.

        Iteratively descends one root-to-leaf path. The successor is either the
        next key in the node holding key, the minimum of the subtree right of
        it, or the closest greater separator seen on the way down.

        Args:
            key: The key to search for.

        Returns:
            RetrievalResult: Contains:
                found_item (Optional[Item]): The item stored under key, or None.
                next_item (Optional[Item]): The item with the next greater key, or None.
        """
        self._check_key(key, "retrieve")
        node = self._root
        next_item: Optional[Item] = None

        while True:
            i, found = node.find(key)
            if found:
                found_item = Item(node.keys[i], node.values[i])
                if not node.is_leaf:
                    next_item = self._min_item(node.children[i + 1])
                elif i + 1 < len(node.keys):
                    next_item = Item(node.keys[i + 1], node.values[i + 1])
                return RetrievalResult(found_item, next_item)

            if i < len(node.keys):
                next_item = Item(node.keys[i], node.values[i])
            if node.is_leaf:
                return RetrievalResult(None, next_item)
            node = node.children[i]

    @track_performance
    def insert(self, key: Any, value: Any = None) -> None:
        """
        Insert key with value. If key already exists its value is replaced
        in place and the shape of the tree does not change.

        Full nodes are split before the descent steps into them, so the parent
        always has room for the promoted median. Splitting a full root is the
        only way the tree grows in height.

        Raises:
            TypeError: If key is None.
        """
        self._check_key(key, "insert")
        node, i = self._locate(key)
        if node is not None:
            node.values[i] = value
            return

        t = self.order
        root = self._root
        if root.is_full(t):
            new_root = self.InternalClass([], [], [root])
            self._split_child(new_root, 0)
            self._root = new_root
            record_event("root_split")
            logger.debug("Root split, tree height is now %d", self.height())

        node = self._root
        while not node.is_leaf:
            i = bisect.bisect_left(node.keys, key)
            if node.children[i].is_full(t):
                self._split_child(node, i)
                if key > node.keys[i]:
                    i += 1
            node = node.children[i]

        i = bisect.bisect_left(node.keys, key)
        node.keys.insert(i, key)
        node.values.insert(i, value)
        self._size += 1
        self._version += 1

    @track_performance
    def delete(self, key: Any) -> bool:
        """
        Delete key from the tree.

        Before the descent steps into a child holding only t-1 keys the child
        is topped up: borrow from the left sibling, else from the right
        sibling, else merge with the right sibling (the left one for the last
        child). A key found in an internal node is replaced by its in-order
        predecessor when the left child can spare a key, otherwise by its
        successor when the right child can, otherwise both children are merged
        around it and the descent continues in the merged node.

        Returns:
            bool: True if key was removed, False if it was absent. Deleting an
            absent key leaves the tree untouched.
        """
        self._check_key(key, "delete")
        if self._locate(key)[0] is None:
            return False

        node = self._root
        while True:
            i, found = node.find(key)
            if node.is_leaf:
                del node.keys[i]
                del node.values[i]
                break

            if found:
                left, right = node.children[i], node.children[i + 1]
                if len(left.keys) >= self.order:
                    node.keys[i], node.values[i] = self._pop_max(left)
                    break
                if len(right.keys) >= self.order:
                    node.keys[i], node.values[i] = self._pop_min(right)
                    break
                self._merge_children(node, i)
                node = left
                continue

            node = self._fix_child(node, i)

        root = self._root
        if not root.is_leaf and not root.keys:
            self._root = root.children[0]
            record_event("root_collapse")
            logger.debug("Root collapsed, tree height is now %d", self.height())

        self._size -= 1
        self._version += 1
        return True

    def range(self, low: Any = None, high: Any = None, reverse: bool = False) -> BTreeRange:
        """
        Return a lazy view of the (key, value) pairs with low <= key <= high,
        in ascending key order (descending with reverse=True). None leaves a
        bound open. Subtrees entirely outside the bounds are never visited.
        """
        return BTreeRange(self, low, high, reverse)

    def min_item(self) -> Optional[Item]:
        """Return the item with the smallest key, or None for an empty tree."""
        return None if self.is_empty() else self._min_item(self._root)

    def max_item(self) -> Optional[Item]:
        """Return the item with the greatest key, or None for an empty tree."""
        if self.is_empty():
            return None
        node = self._root
        while not node.is_leaf:
            node = node.children[-1]
        return Item(node.keys[-1], node.values[-1])

    def clear(self) -> None:
        self._root = self.LeafClass()
        self._size = 0
        self._version += 1

    def validate(self) -> bool:
        """
        Recompute every structural invariant of the tree.

        Logs each failing invariant at ERROR level.

        Returns:
            bool: True if all invariants hold.
        """
        stats = btree_stats_(self)
        ok = True
        for flag in TREE_FLAGS:
            if not getattr(stats, flag):
                logger.error("Invariant failed: %s is False", flag)
                ok = False
        return ok

    @classmethod
    def get_performance_report(cls, sort_by: str = 'total_time') -> str:
        return PerformanceTracker.get_instance().report(sort_by)

    @classmethod
    def reset_performance_metrics(cls) -> None:
        PerformanceTracker.get_instance().reset()

    # Private Methods
    @staticmethod
    def _check_key(key: Any, op: str) -> None:
        if key is None:
            raise TypeError(f"{op}(): key must not be None")

    def _locate(self, key: Any) -> Tuple[Optional[BTreeNodeBase], int]:
        """Return (node, index) holding key, or (None, -1) if key is absent."""
        self._check_key(key, "search")
        node = self._root
        while True:
            i, found = node.find(key)
            if found:
                return node, i
            if node.is_leaf:
                return None, -1
            node = node.children[i]

    @staticmethod
    def _min_item(node: BTreeNodeBase) -> Item:
        while not node.is_leaf:
            node = node.children[0]
        return Item(node.keys[0], node.values[0])

    def _split_child(self, parent: InternalNode, i: int) -> None:
        """Split the full child parent.children[i] and hang the new sibling right after it."""
        child = parent.children[i]
        median_key, median_value, sibling = child.split(self.order)
        parent.keys.insert(i, median_key)
        parent.values.insert(i, median_value)
        parent.children.insert(i + 1, sibling)
        record_event("split")
        logger.debug("Split %s around key %r", type(child).__name__, median_key)

    def _fix_child(self, parent: InternalNode, i: int) -> BTreeNodeBase:
        """
        Make sure parent.children[i] holds at least t keys before the descent
        enters it. Returns the node to descend into, which is a merged node
        when a merge with the left sibling was needed.
        """
        t = self.order
        children = parent.children
        child = children[i]
        if len(child.keys) >= t:
            return child

        if i > 0 and len(children[i - 1].keys) >= t:
            self._borrow_from_left(parent, i)
            return child
        if i + 1 < len(children) and len(children[i + 1].keys) >= t:
            self._borrow_from_right(parent, i)
            return child
        if i + 1 < len(children):
            self._merge_children(parent, i)
            return child
        self._merge_children(parent, i - 1)
        return children[i - 1]

    def _borrow_from_left(self, parent: InternalNode, i: int) -> None:
        """Rotate the left sibling's last entry up through the parent into children[i]."""
        child, left = parent.children[i], parent.children[i - 1]
        child.keys.insert(0, parent.keys[i - 1])
        child.values.insert(0, parent.values[i - 1])
        parent.keys[i - 1] = left.keys.pop()
        parent.values[i - 1] = left.values.pop()
        if not child.is_leaf:
            child.children.insert(0, left.children.pop())
        record_event("borrow_left")
        logger.debug("Borrowed key %r from left sibling", parent.keys[i - 1])

    def _borrow_from_right(self, parent: InternalNode, i: int) -> None:
        """Rotate the right sibling's first entry up through the parent into children[i]."""
        child, right = parent.children[i], parent.children[i + 1]
        child.keys.append(parent.keys[i])
        child.values.append(parent.values[i])
        parent.keys[i] = right.keys.pop(0)
        parent.values[i] = right.values.pop(0)
        if not child.is_leaf:
            child.children.append(right.children.pop(0))
        record_event("borrow_right")
        logger.debug("Borrowed key %r from right sibling", parent.keys[i])

    def _merge_children(self, parent: InternalNode, i: int) -> None:
        """Merge children[i+1] and the separator parent.keys[i] into children[i]."""
        left = parent.children[i]
        right = parent.children.pop(i + 1)
        sep_key = parent.keys.pop(i)
        sep_value = parent.values.pop(i)
        left.absorb(sep_key, sep_value, right)
        record_event("merge")
        logger.debug("Merged siblings around key %r", sep_key)

    def _pop_max(self, node: BTreeNodeBase) -> Tuple[Any, Any]:
        """Remove and return the greatest entry of a subtree whose root holds at least t keys."""
        while not node.is_leaf:
            node = self._fix_child(node, len(node.keys))
        return node.keys.pop(), node.values.pop()

    def _pop_min(self, node: BTreeNodeBase) -> Tuple[Any, Any]:
        """Remove and return the smallest entry of a subtree whose root holds at least t keys."""
        while not node.is_leaf:
            node = self._fix_child(node, 0)
        return node.keys.pop(0), node.values.pop(0)

    def _iter_range(self, node: BTreeNodeBase, low: Any, high: Any) -> Iterator[Tuple[Any, Any]]:
        keys, values = node.keys, node.values
        lo = 0 if low is None else bisect.bisect_left(keys, low)
        hi = len(keys) if high is None else bisect.bisect_right(keys, high)

        if node.is_leaf:
            for j in range(lo, hi):
                yield keys[j], values[j]
            return

        children = node.children
        for j in range(lo, hi):
            yield from self._iter_range(children[j], low, high)
            yield keys[j], values[j]
        yield from self._iter_range(children[hi], low, high)

    def _iter_range_reverse(self, node: BTreeNodeBase, low: Any, high: Any) -> Iterator[Tuple[Any, Any]]:
        keys, values = node.keys, node.values
        lo = 0 if low is None else bisect.bisect_left(keys, low)
        hi = len(keys) if high is None else bisect.bisect_right(keys, high)

        if node.is_leaf:
            for j in reversed(range(lo, hi)):
                yield keys[j], values[j]
            return

        children = node.children
        yield from self._iter_range_reverse(children[hi], low, high)
        for j in reversed(range(lo, hi)):
            yield keys[j], values[j]
            yield from self._iter_range_reverse(children[j], low, high)

    def print_structure(self, indent: int = 0, max_depth: Optional[int] = None) -> str:
        """
        Render the tree one node per line, children indented below their
        parent. Each node is labelled with its path from the root.
        """
        prefix = ' ' * indent
        if self.is_empty():
            return f"{prefix}Empty {self.__class__.__name__}"

        result = []

        def _walk(node: BTreeNodeBase, depth: int, path: str) -> None:
            pad = prefix + ' ' * (4 * depth)
            kind = "Leaf" if node.is_leaf else "Internal"
            shown = ", ".join(Item(k).short_key() for k in node.keys)
            result.append(f"{pad}[{path}] {kind}({len(node.keys)} keys): {shown}")
            if node.is_leaf:
                return
            if max_depth is not None and depth >= max_depth:
                result.append(f"{pad}    ... (max depth reached)")
                return
            for i, child in enumerate(node.children):
                _walk(child, depth + 1, f"{path}-{i}")

        _walk(self._root, 0, "0")
        return "\n".join(result)


@dataclass
class Stats:
    height: int
    node_count: int
    leaf_count: int
    item_count: int
    least_key: Optional[Any]
    greatest_key: Optional[Any]
    keys_in_order: bool
    is_search_tree: bool
    leaves_same_depth: bool
    nodes_within_bounds: bool
    children_match_keys: bool
    values_aligned: bool
    node_kinds_match: bool
    size_consistent: bool


def btree_stats_(tree: BTreeBase) -> Stats:
    """
    Returns aggregated statistics and invariant flags for a B-tree in **O(n)** time.
    """
    root = tree.root

    # ---------- empty tree return ---------------------------------
    if root.is_leaf and not root.keys:
        return Stats(height              = 0,
                     node_count          = 0,
                     leaf_count          = 0,
                     item_count          = 0,
                     least_key           = None,
                     greatest_key        = None,
                     keys_in_order       = True,
                     is_search_tree      = True,
                     leaves_same_depth   = True,
                     nodes_within_bounds = True,
                     children_match_keys = True,
                     values_aligned      = not root.values,
                     node_kinds_match    = isinstance(root, tree.LeafClass),
                     size_consistent     = len(tree) == 0)

    stats = _subtree_stats(tree, root, True)
    stats.size_consistent = stats.item_count == len(tree)
    return stats


def _subtree_stats(tree: BTreeBase, node: BTreeNodeBase, is_root: bool) -> Stats:
    t = tree.order
    keys = node.keys
    n = len(keys)

    # The root of a non-empty tree needs one key, every other node t-1
    lower = 1 if is_root else t - 1
    node_class = tree.LeafClass if node.is_leaf else tree.InternalClass

    stats = Stats(
        height=1,
        node_count=1,
        leaf_count=0,
        item_count=n,
        least_key=keys[0] if keys else None,
        greatest_key=keys[-1] if keys else None,
        keys_in_order=all(a < b for a, b in zip(keys, keys[1:])),
        is_search_tree=True,
        leaves_same_depth=True,
        nodes_within_bounds=lower <= n <= 2 * t - 1,
        children_match_keys=True,
        values_aligned=len(node.values) == n,
        node_kinds_match=type(node) is node_class,
        size_consistent=True,
    )

    if node.is_leaf:
        stats.leaf_count = 1
        return stats

    children = node.children
    stats.children_match_keys = len(children) == n + 1
    if not children:
        return stats

    child_stats = [_subtree_stats(tree, child, False) for child in children]
    heights = {cs.height for cs in child_stats}
    stats.height = 1 + max(heights)
    stats.leaves_same_depth = len(heights) == 1

    for i, cs in enumerate(child_stats):
        stats.node_count += cs.node_count
        stats.leaf_count += cs.leaf_count
        stats.item_count += cs.item_count

        stats.keys_in_order &= cs.keys_in_order
        stats.is_search_tree &= cs.is_search_tree
        stats.leaves_same_depth &= cs.leaves_same_depth
        stats.nodes_within_bounds &= cs.nodes_within_bounds
        stats.children_match_keys &= cs.children_match_keys
        stats.values_aligned &= cs.values_aligned
        stats.node_kinds_match &= cs.node_kinds_match

        # children[i] must lie strictly between keys[i-1] and keys[i]
        if cs.greatest_key is not None and i < n and not cs.greatest_key < keys[i]:
            stats.is_search_tree = False
        if cs.least_key is not None and 0 < i <= n and not keys[i - 1] < cs.least_key:
            stats.is_search_tree = False

    # ----- LEAST / GREATEST -----
    if child_stats[0].least_key is not None:
        stats.least_key = child_stats[0].least_key
    if child_stats[-1].greatest_key is not None:
        stats.greatest_key = child_stats[-1].greatest_key

    return stats


def check_invariants(tree: BTreeBase) -> Stats:
    """
    Like BTreeBase.validate(), but raise on failure.

    Raises:
        InvariantError: Naming every invariant flag that does not hold.
    """
    stats = btree_stats_(tree)
    failed = [flag for flag in TREE_FLAGS if not getattr(stats, flag)]
    if failed:
        raise InvariantError(f"Invariant failed: {', '.join(failed)}\n{tree.print_structure()}")
    return stats


def collect_keys(tree: BTreeBase) -> List[Any]:
    """All keys of the tree in ascending order."""
    return [key for key, _ in tree.range()]


def node_key_counts(tree: BTreeBase) -> List[List[int]]:
    """Key count of every node, grouped by level from the root down (level order)."""
    if tree.is_empty():
        return []
    levels = []
    level = [tree.root]
    while level:
        levels.append([len(node.keys) for node in level])
        level = [child for node in level if not node.is_leaf for child in node.children]
    return levels


def format_pretty(tree: BTreeBase) -> str:
    """
    Format a B-tree so that all nodes on the same level appear on the same
    line, left to right, with every node padded to a common column width.
    """
    if tree.is_empty():
        return f"Empty {tree.__class__.__name__}"

    SEP = " | "
    layers_raw = collections.defaultdict(list)
    max_len = 0

    queue = collections.deque([(tree.root, 0)])
    while queue:
        node, depth = queue.popleft()
        text = SEP.join(Item(k).short_key() for k in node.keys)
        layers_raw[depth].append(text)
        max_len = max(max_len, len(text))
        if not node.is_leaf:
            queue.extend((child, depth + 1) for child in node.children)

    column_width = max_len + 2
    lines = []
    for depth in sorted(layers_raw):
        cells = "".join(f"[{txt}]".center(column_width + 2) for txt in layers_raw[depth])
        lines.append(f"Level {depth}: {cells.rstrip()}")
    return "\n".join(lines)


def print_pretty(tree: BTreeBase) -> None:
    """Print the tree level by level, see format_pretty()."""
    print(format_pretty(tree))
