"""B-tree ordered map"""

from collections.abc import Mapping
from typing import Any, Iterable, Iterator, Optional, Tuple, Union

from btree_index.btree_base import BTreeBase, BTreeRange

_MISSING = object()


class BTree(BTreeBase):
    """
    An in-memory ordered map backed by a B-tree of minimum degree `order`.

    Besides the index operations (insert, delete, search, range) it speaks the
    usual mapping protocol. Lookups through the dunder methods raise KeyError
    for absent keys, the index operations report absence through their return
    value instead.

        >>> tree = BTree(2)
        >>> tree.insert(10, "a")
        >>> tree[5] = "b"
        >>> list(tree.range(0, 100))
        [(5, 'b'), (10, 'a')]
    """
    __slots__ = ()

    def __init__(
        self,
        order: Optional[int] = None,
        items: Optional[Union[Mapping, Iterable[Tuple[Any, Any]]]] = None,
    ):
        super().__init__(order)
        if items is not None:
            self.update(items)

    @classmethod
    def from_items(cls, order: int, items: Union[Mapping, Iterable[Tuple[Any, Any]]]) -> "BTree":
        """Build a tree of the given order from a mapping or (key, value) pairs."""
        return cls(order, items)

    def __contains__(self, key: Any) -> bool:
        if key is None:
            return False
        return self._locate(key)[0] is not None

    def __getitem__(self, key: Any) -> Any:
        node, i = self._locate(key)
        if node is None:
            raise KeyError(key)
        return node.values[i]

    def __setitem__(self, key: Any, value: Any) -> None:
        self.insert(key, value)

    def __delitem__(self, key: Any) -> None:
        if not self.delete(key):
            raise KeyError(key)

    def __iter__(self) -> Iterator[Any]:
        for key, _ in self.range():
            yield key

    def __reversed__(self) -> Iterator[Any]:
        for key, _ in self.range(reverse=True):
            yield key

    def get(self, key: Any, default: Any = None) -> Any:
        if key is None:
            return default
        node, i = self._locate(key)
        return node.values[i] if node is not None else default

    def pop(self, key: Any, default: Any = _MISSING) -> Any:
        """
        Remove key and return its value. If key is absent return default, or
        raise KeyError when no default was given.
        """
        node, i = self._locate(key)
        if node is None:
            if default is _MISSING:
                raise KeyError(key)
            return default
        value = node.values[i]
        self.delete(key)
        return value

    def update(self, items: Union[Mapping, Iterable[Tuple[Any, Any]]]) -> None:
        if isinstance(items, Mapping):
            items = items.items()
        for key, value in items:
            self.insert(key, value)

    def keys(self) -> Iterator[Any]:
        return iter(self)

    def values(self) -> Iterator[Any]:
        for _, value in self.range():
            yield value

    def items(self) -> BTreeRange:
        return self.range()

    def __eq__(self, other) -> bool:
        if not isinstance(other, BTreeBase):
            return NotImplemented
        return len(self) == len(other) and list(self.range()) == list(other.range())

    __hash__ = None
