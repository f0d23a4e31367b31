"""
LRU cache of parsed expressions, keyed by source text.
"""

import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Optional

from .ast import AstNode


@dataclass
class CacheStats:
    """Counters for cache effectiveness."""

    hits: int = 0
    misses: int = 0
    evictions: int = 0


class ExpressionCache:
    """
    Capacity-bounded LRU cache mapping expression source text to its AST.

    A hit moves the entry to the most-recently-used position; inserting past
    capacity evicts the least-recently-used entry.
    """

    def __init__(self, capacity: int = 100):
        if capacity < 1:
            raise ValueError(f"Cache capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._entries: "OrderedDict[str, AstNode]" = OrderedDict()
        self._lock = threading.Lock()
        self.stats = CacheStats()

    @property
    def capacity(self) -> int:
        return self._capacity

    def get(self, source: str) -> Optional[AstNode]:
        with self._lock:
            ast = self._entries.get(source)
            if ast is None:
                self.stats.misses += 1
                return None
            self._entries.move_to_end(source)
            self.stats.hits += 1
            return ast

    def put(self, source: str, ast: AstNode) -> None:
        with self._lock:
            if source in self._entries:
                self._entries.move_to_end(source)
            self._entries[source] = ast
            while len(self._entries) > self._capacity:
                self._entries.popitem(last=False)
                self.stats.evictions += 1

    def get_or_compile(self, source: str, compile: Callable[[str], AstNode]) -> AstNode:
        """Returns the cached AST, compiling and inserting it on a miss."""
        ast = self.get(source)
        if ast is None:
            # Compile outside the lock; a concurrent duplicate compile is harmless
            ast = compile(source)
            self.put(source, ast)
        return ast

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, source: object) -> bool:
        with self._lock:
            return source in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
