"""
Identity map ensuring a single in-memory instance per row.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple


def normalize_identifier(identifier: Any) -> Any:
    """
    Integer identifiers and their string form address the same object.
    """
    if isinstance(identifier, bool):
        return identifier
    if isinstance(identifier, int):
        return identifier
    if isinstance(identifier, str) and identifier.strip().lstrip("-").isdigit():
        return int(identifier)
    return identifier


class IdentityMap:
    """
    Stores objects keyed by (class, identifier) and the identifier of each
    registered object keyed by object identity.
    """

    def __init__(self) -> None:
        self._store: Dict[Tuple[type, Any], Any] = {}
        self._identifiers: Dict[int, Tuple[Any, Any]] = {}

    @staticmethod
    def _make_key(cls: type, identifier: Any) -> Tuple[type, Any]:
        return (cls, normalize_identifier(identifier))

    def register(self, obj: Any, identifier: Any) -> None:
        identifier = normalize_identifier(identifier)
        previous = self._identifiers.get(id(obj))
        if previous is not None and previous[1] != identifier:
            self._store.pop(self._make_key(obj.__class__, previous[1]), None)
        self._store[self._make_key(obj.__class__, identifier)] = obj
        self._identifiers[id(obj)] = (obj, identifier)

    def has_identifier(self, identifier: Any, cls: type) -> bool:
        return self._make_key(cls, identifier) in self._store

    def get_object_by_identifier(self, identifier: Any, cls: type) -> Optional[Any]:
        return self._store.get(self._make_key(cls, identifier))

    def has_object(self, obj: Any) -> bool:
        return id(obj) in self._identifiers

    def get_identifier_by_object(self, obj: Any) -> Optional[Any]:
        entry = self._identifiers.get(id(obj))
        return entry[1] if entry else None

    def unregister(self, obj: Any) -> None:
        entry = self._identifiers.pop(id(obj), None)
        if entry is None:
            return
        key = self._make_key(obj.__class__, entry[1])
        if self._store.get(key) is obj:
            del self._store[key]

    def clear(self) -> None:
        self._store.clear()
        self._identifiers.clear()

    def values(self) -> List[Any]:
        return list(self._store.values())

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, obj: Any) -> bool:
        return self.has_object(obj)
