# prism/merge_agent/merge_cache.py
# Created: 2026-10-16
# Purpose: Bounded, thread-safe cache of successful model merges

from __future__ import annotations

import threading
from collections import OrderedDict
from typing import Generic, Hashable, Optional, Tuple, TypeVar


V = TypeVar("V")

MergeCacheKey = Tuple[str, str, str, str, str, float]


class BoundedCache(Generic[V]):
    """
    Insertion-ordered cache with FIFO eviction.

    Re-setting an existing key updates its value without moving it, so the
    oldest inserted key is always evicted first. Lookups are advisory; a miss
    just means the model is asked again.
    """

    def __init__(self, capacity: int = 100):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._items: "OrderedDict[Hashable, V]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> Optional[V]:
        with self._lock:
            return self._items.get(key)

    def set(self, key: Hashable, value: V) -> None:
        with self._lock:
            self._items[key] = value
            while len(self._items) > self.capacity:
                self._items.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


def merge_cache_key(
    framework_a: str,
    framework_b: str,
    question_a: str,
    question_b: str,
    theme: Optional[str],
    score: Optional[float],
) -> MergeCacheKey:
    return (framework_a, framework_b, question_a, question_b, theme or "", score or 0.0)


__all__ = ["BoundedCache", "MergeCacheKey", "merge_cache_key"]
