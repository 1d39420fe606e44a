from abc import ABC, abstractmethod

from typing import Any, NamedTuple, Optional, TypeVar, Generic, Iterable


class InvalidOrderError(ValueError):
    """Raised when a B-tree is constructed with a minimum degree below 2."""


class InvariantError(Exception):
    """Raised when a B-tree structural invariant is violated."""
    pass


class Item:
    """
    Represents an item (a key-value pair) stored in a B-tree.
    """
    __slots__ = ("key", "value")  # Define slots for memory efficiency

    def __init__(
            self,
            key: Any,
            value: Any = None
    ):
        """
        Initialize an Item.

        Parameters:
            key (Any): The item's key. Must be totally ordered with the other keys of the tree.
            value (Any): The item's value.
        """
        self.key = key
        self.value = value

    def short_key(self) -> str:
        """Create a short representation of the key for display purposes."""
        if isinstance(self.key, (bytes, bytearray)):
            s = self.key.hex()
        else:
            s = str(self.key)

        return s if len(s) <= 10 else f"{s[:3]}...{s[-3:]}"

    def __eq__(self, other) -> bool:
        if not isinstance(other, Item):
            return NotImplemented
        return self.key == other.key and self.value == other.value

    __hash__ = None

    def __repr__(self) -> str:
        cls = self.__class__.__name__
        return f"{cls}(key={self.key!r}, value={self.value!r})"

    def __str__(self):
        cls = self.__class__.__name__
        return f"{cls}(key={self.short_key()}, value={self.value})"


T = TypeVar("T", bound="AbstractOrderedIndex")


class AbstractOrderedIndex(ABC, Generic[T]):
    """
    Abstract base class for an ordered map over unique, totally ordered keys.
    """

    @abstractmethod
    def insert(self, key: Any, value: Any = None) -> None:
        """
        Insert a key with its value. An existing key has its value replaced.

        Parameters:
            key (Any): The key to insert.
            value (Any): The value associated with the key.
        """
        pass

    @abstractmethod
    def delete(self, key: Any) -> bool:
        """
        Delete the entry for the given key.

        Parameters:
            key (Any): The key of the entry to be deleted.

        Returns:
            bool: True if the key was present and removed, False otherwise.
        """
        pass

    @abstractmethod
    def search(self, key: Any) -> Optional[Any]:
        """
        Return the value stored under key, or None if the key is absent.
        """
        pass

    @abstractmethod
    def retrieve(self, key: Any) -> 'RetrievalResult':
        """
        Retrieve the item associated with the given key and its in-order successor.

        Parameters:
            key (Any): The key of the item to retrieve.

        Returns:
            RetrievalResult: A named tuple containing:
                - found_item: the Item stored under key, or None.
                - next_item: the Item with the smallest key greater than key,
                             or None if no such item exists.
        """
        pass

    @abstractmethod
    def range(self, low: Any = None, high: Any = None, reverse: bool = False) -> Iterable:
        """
        Return a lazy, restartable sequence of (key, value) pairs with
        low <= key <= high in ascending (or descending) key order.
        """
        pass


class RetrievalResult(NamedTuple):
    """
    A container for the result of a lookup in an AbstractOrderedIndex.

    Attributes:
        found_item (Optional[Item]):
            The item corresponding to the searched key if found;
            otherwise, None.
        next_item (Optional[Item]):
            The subsequent item in sorted order, which serves as a candidate for
            in-order traversal; None if no subsequent item exists.
    """
    found_item: Optional[Item]
    next_item: Optional[Item]


def check_order(t: int) -> int:
    """
    Validate the minimum degree t of a B-tree.

    Parameters:
        t (int): The minimum degree. Every non-root node holds between t-1 and 2t-1 keys.

    Returns:
        int: t, unchanged.

    Raises:
        InvalidOrderError: If t is not an int or is smaller than 2.
    """
    if isinstance(t, bool) or not isinstance(t, int):
        raise InvalidOrderError(f"order must be an int, got {type(t).__name__}")
    if t < 2:
        raise InvalidOrderError(f"order must be >= 2, got {t}")

    return t
