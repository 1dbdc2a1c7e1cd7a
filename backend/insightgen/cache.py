"""
In-process TTL store for view state (forecast panels, chat sessions).

State lives only as long as its view: deleting the view drops it, and views
nobody touches for VIEW_STATE_TTL_SECONDS expire.
"""

import os
import threading
import time
from typing import Any, Dict, Optional


VIEW_STATE_TTL_SECONDS = int(os.getenv("VIEW_STATE_TTL_SECONDS", "3600"))  # 1h


class _MemoryCache:
    def __init__(self):
        self.store: Dict[str, tuple[float, Any]] = {}
        self.lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        now = time.time()
        with self.lock:
            val = self.store.get(key)
            if not val:
                return None
            exp, data = val
            if exp < now:
                self.store.pop(key, None)
                return None
            return data

    def set(self, key: str, value: Any, ttl: int):
        now = time.time()
        with self.lock:
            self._evict_expired(now)
            self.store[key] = (now + ttl, value)

    def _evict_expired(self, now: float):
        # Views nobody reads again would otherwise never be dropped
        expired = [k for k, (exp, _) in self.store.items() if exp < now]
        for k in expired:
            del self.store[k]

    def __len__(self) -> int:
        with self.lock:
            return len(self.store)

    def delete(self, key: str) -> bool:
        with self.lock:
            return self.store.pop(key, None) is not None

    def clear(self):
        with self.lock:
            self.store.clear()


_memory_cache = _MemoryCache()


def _namespaced_key(ns: str, key: str) -> str:
    return f"{ns}:{key}"


def cache_get(ns: str, key: str) -> Optional[Any]:
    return _memory_cache.get(_namespaced_key(ns, key))


def cache_set(ns: str, key: str, value: Any, ttl_seconds: int = VIEW_STATE_TTL_SECONDS):
    _memory_cache.set(_namespaced_key(ns, key), value, ttl_seconds)


def cache_delete(ns: str, key: str) -> bool:
    return _memory_cache.delete(_namespaced_key(ns, key))


def cache_clear():
    _memory_cache.clear()
