from __future__ import annotations
import time
from typing import Any, Callable, Dict, Hashable, Optional, Tuple

class TTLCache:
    """Very small, process-local TTL cache. Safe for single-worker use."""
    def __init__(self, default_ttl: float = 30.0, max_items: int = 500, clock: Callable[[], float] = time.time):
        self._ttl = default_ttl
        self._max = max_items
        self._clock = clock
        self._store: Dict[Hashable, Tuple[float, Any]] = {}

    def get(self, key: Hashable) -> Optional[Any]:
        item = self._store.get(key)
        if not item:
            return None
        exp, val = item
        if exp < self._clock():
            self._store.pop(key, None)
            return None
        return val

    def set(self, key: Hashable, value: Any, ttl: Optional[float] = None) -> None:
        if key not in self._store and len(self._store) >= self._max:
            # drop the entry closest to expiry
            oldest = min(self._store.items(), key=lambda p: p[1][0])[0]
            self._store.pop(oldest, None)
        self._store[key] = (self._clock() + (ttl or self._ttl), value)

    def clear(self) -> None:
        self._store.clear()

    def __len__(self) -> int:
        return len(self._store)
