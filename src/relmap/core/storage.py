"""
Order-preserving identity set used for to-many relation properties.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple


class ObjectStorage:
    """
    Holds domain objects in attach order, at most once per object identity.

    Positions are 1-based indexes into the current order. The storage keeps
    a modified flag and remembers where detached objects used to sit so the
    persistence backend can tell a moved relation from an untouched one.
    """

    def __init__(self, objects: Optional[Iterable[Any]] = None) -> None:
        self._storage: Dict[int, Tuple[Any, Any]] = {}
        self._removed_positions: Dict[int, int] = {}
        self._is_modified = False
        for obj in objects or ():
            self.attach(obj)

    # Container protocol --------------------------------------------------
    def __iter__(self) -> Iterator[Any]:
        return iter([entry[0] for entry in self._storage.values()])

    def __len__(self) -> int:
        return len(self._storage)

    def __contains__(self, obj: object) -> bool:
        return id(obj) in self._storage

    def __repr__(self) -> str:
        return f"<ObjectStorage {self.to_list()!r}>"

    def count(self) -> int:
        return len(self._storage)

    def contains(self, obj: object) -> bool:
        return obj in self

    # Mutation --------------------------------------------------------------
    def attach(self, obj: Any, information: Any = None) -> None:
        self._is_modified = True
        self._storage[id(obj)] = (obj, information)

    def detach(self, obj: Any) -> None:
        key = id(obj)
        if key not in self._storage:
            return
        self._is_modified = True
        self._removed_positions.setdefault(key, self._index_of(key))
        del self._storage[key]

    def add_all(self, objects: Iterable[Any]) -> None:
        for obj in list(objects):
            self.attach(obj)

    def remove_all(self, objects: Iterable[Any]) -> None:
        for obj in list(objects):
            self.detach(obj)

    def get_info(self, obj: Any) -> Any:
        entry = self._storage.get(id(obj))
        return entry[1] if entry else None

    def set_info(self, obj: Any, information: Any) -> None:
        if obj in self:
            self._storage[id(obj)] = (obj, information)

    # Position / dirty tracking ------------------------------------------
    def get_position(self, obj: Any) -> Optional[int]:
        key = id(obj)
        if key not in self._storage:
            return None
        return self._index_of(key)

    def is_relation_dirty(self, obj: Any) -> bool:
        """
        True when ``obj`` was detached and attached again at another position
        since the last clean state.
        """
        key = id(obj)
        if key not in self._storage or key not in self._removed_positions:
            return False
        return self._removed_positions[key] != self._index_of(key)

    def is_dirty(self) -> bool:
        return self._is_modified

    def memorize_clean_state(self) -> None:
        self._is_modified = False
        self._removed_positions.clear()

    def clean_copy(self) -> "ObjectStorage":
        """
        Snapshot of the current members in a clean state.
        """
        copy = ObjectStorage()
        copy._storage = dict(self._storage)
        return copy

    def to_list(self) -> List[Any]:
        return list(self)

    # Helpers ---------------------------------------------------------------
    def _index_of(self, key: int) -> int:
        for index, candidate in enumerate(self._storage, start=1):
            if candidate == key:
                return index
        raise KeyError(key)
