"""Cache backend implementations."""

from __future__ import annotations

from threading import RLock
from typing import Any, Dict, Hashable, Optional, Protocol, Tuple


class CacheBackend(Protocol):
    def get(self, namespace: str, key: Hashable) -> Optional[Any]: ...

    def set(self, namespace: str, key: Hashable, value: Any) -> None: ...

    def delete(self, namespace: str, key: Hashable) -> None: ...

    def clear(self) -> None: ...


class NoOpCache:
    """Cache that never stores anything; every lookup misses."""

    def get(self, namespace: str, key: Hashable) -> Optional[Any]:
        return None

    def set(self, namespace: str, key: Hashable, value: Any) -> None:
        return None

    def delete(self, namespace: str, key: Hashable) -> None:
        return None

    def clear(self) -> None:
        return None


class InMemoryCache:
    """Process-local memoization table keyed by ``(namespace, key)``."""

    def __init__(self) -> None:
        self._store: Dict[Tuple[str, Hashable], Any] = {}
        self._lock = RLock()

    def get(self, namespace: str, key: Hashable) -> Optional[Any]:
        with self._lock:
            return self._store.get((namespace, key))

    def set(self, namespace: str, key: Hashable, value: Any) -> None:
        with self._lock:
            self._store[(namespace, key)] = value

    def delete(self, namespace: str, key: Hashable) -> None:
        with self._lock:
            self._store.pop((namespace, key), None)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)
