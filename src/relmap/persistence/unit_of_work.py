"""
Unit of Work collecting objects to persist between two commits.
"""

from __future__ import annotations

from typing import Any

from ..core.storage import ObjectStorage


class UnitOfWork:
    """
    Tracks added, explicitly updated and removed objects in call order.
    """

    def __init__(self) -> None:
        self.added = ObjectStorage()
        self.changed = ObjectStorage()
        self.removed = ObjectStorage()

    # Registration methods ----------------------------------------------
    def register_new(self, obj: Any) -> None:
        self.removed.detach(obj)
        self.added.attach(obj)

    def register_dirty(self, obj: Any) -> None:
        if obj not in self.added:
            self.changed.attach(obj)

    def register_deleted(self, obj: Any) -> None:
        if obj in self.added:
            self.added.detach(obj)
            return
        self.changed.detach(obj)
        self.removed.attach(obj)

    def is_empty(self) -> bool:
        return not (len(self.added) or len(self.changed) or len(self.removed))

    def clear(self) -> None:
        self.added = ObjectStorage()
        self.changed = ObjectStorage()
        self.removed = ObjectStorage()
