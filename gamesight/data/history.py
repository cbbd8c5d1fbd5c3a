"""Bounded frame history."""

from typing import Generic, Iterator, List, TypeVar

T = TypeVar("T")


class FrameHistory(Generic[T]):
    """
    Fixed-capacity sequence of recent frames (or anything else).

    Unlike a deque with maxlen, a full history does not silently drop
    its oldest entry; callers must remove before pushing.
    """

    def __init__(self, capacity: int):
        """
        Initialize history.

        Args:
            capacity: Maximum number of items held
        """
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._items: List[T] = []

    def push(self, item: T) -> None:
        """
        Append an item.

        Raises:
            OverflowError: If the history is already full
        """
        if self.is_full():
            raise OverflowError(f"history is full (capacity {self.capacity})")
        self._items.append(item)

    def remove(self, index: int) -> T:
        """
        Remove the item at `index`, shifting later items down.

        Raises:
            IndexError: If `index` is outside the held items
        """
        if not 0 <= index < len(self._items):
            raise IndexError(f"index {index} out of range for history of {len(self._items)}")
        return self._items.pop(index)

    def is_full(self) -> bool:
        return len(self._items) >= self.capacity

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)

    def __getitem__(self, index: int) -> T:
        if not 0 <= index < len(self._items):
            raise IndexError(f"index {index} out of range for history of {len(self._items)}")
        return self._items[index]

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._items))

    def __repr__(self) -> str:
        return f"FrameHistory(capacity={self.capacity}, len={len(self._items)})"
