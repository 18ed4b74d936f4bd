"""Generational arena used by the circuit and job registries.

Items live in numbered slots. Removing an item bumps the slot's generation,
so an :class:`ArenaKey` handed out before the removal never resolves again,
even after the slot is reused for a new item.
"""

import threading
from typing import Generic, Iterator, List, NamedTuple, Optional, Tuple, TypeVar

T = TypeVar("T")


class ArenaKey(NamedTuple):
    """Stable id of an arena entry."""
    index: int
    generation: int

    def __str__(self) -> str:
        return f"{self.index}v{self.generation}"


class _Slot(Generic[T]):
    __slots__ = ("generation", "value")

    def __init__(self) -> None:
        self.generation = 0
        self.value: Optional[T] = None


class Arena(Generic[T]):
    """Thread-safe slot map keyed by :class:`ArenaKey`.

    The arena lock guards structural changes only (insert, remove, lookup).
    Items carry their own locks for field access.
    """

    def __init__(self) -> None:
        self._slots: List[_Slot[T]] = []
        self._free: List[int] = []
        self._len = 0
        self._lock = threading.Lock()

    def insert(self, value: T) -> ArenaKey:
        with self._lock:
            if self._free:
                index = self._free.pop()
                slot = self._slots[index]
            else:
                index = len(self._slots)
                slot = _Slot()
                self._slots.append(slot)
            slot.value = value
            self._len += 1
            return ArenaKey(index, slot.generation)

    def _slot_for(self, key) -> Optional[_Slot[T]]:
        if not isinstance(key, tuple) or len(key) != 2:
            return None
        index, generation = key
        if not isinstance(index, int) or not 0 <= index < len(self._slots):
            return None
        slot = self._slots[index]
        if slot.generation != generation or slot.value is None:
            return None
        return slot

    def get(self, key) -> T:
        """Resolve ``key``.

        Raises:
            KeyError: If the key is stale or was never issued.
        """
        with self._lock:
            slot = self._slot_for(key)
            if slot is None:
                raise KeyError(key)
            return slot.value

    def __contains__(self, key) -> bool:
        with self._lock:
            return self._slot_for(key) is not None

    def remove(self, key) -> T:
        """Remove and return the item at ``key``.

        Raises:
            KeyError: If the key is stale or was never issued.
        """
        with self._lock:
            slot = self._slot_for(key)
            if slot is None:
                raise KeyError(key)
            value = slot.value
            slot.value = None
            slot.generation += 1
            self._free.append(key[0])
            self._len -= 1
            return value

    def items(self) -> List[Tuple[ArenaKey, T]]:
        """Snapshot of live ``(key, item)`` pairs in slot order."""
        with self._lock:
            return [
                (ArenaKey(i, slot.generation), slot.value)
                for i, slot in enumerate(self._slots)
                if slot.value is not None
            ]

    def keys(self) -> List[ArenaKey]:
        return [key for key, _ in self.items()]

    def values(self) -> List[T]:
        return [value for _, value in self.items()]

    def __iter__(self) -> Iterator[ArenaKey]:
        return iter(self.keys())

    def __len__(self) -> int:
        with self._lock:
            return self._len

    def clear(self) -> None:
        with self._lock:
            for index, slot in enumerate(self._slots):
                if slot.value is not None:
                    slot.value = None
                    slot.generation += 1
                    self._free.append(index)
            self._len = 0
