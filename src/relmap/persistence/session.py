"""
Session scoping the identity map and the reconstituted entities of one
persistence manager.
"""

from __future__ import annotations

from typing import Any, List, Optional

from ..core.storage import ObjectStorage
from ..utils import get_logger
from .identity_map import IdentityMap


class Session:
    """
    Knows every object loaded from or written to storage during its
    lifetime. Reconstituted entities are the objects built from rows; they
    are checked for changes on every commit.
    """

    def __init__(self) -> None:
        self.identity_map = IdentityMap()
        self._reconstituted = ObjectStorage()
        self.logger = get_logger("persistence.session")

    # Reconstituted entities ---------------------------------------------
    def register_reconstituted_entity(self, obj: Any) -> None:
        self._reconstituted.attach(obj)

    def unregister_reconstituted_entity(self, obj: Any) -> None:
        self._reconstituted.detach(obj)

    def get_reconstituted_entities(self) -> List[Any]:
        return self._reconstituted.to_list()

    def is_reconstituted(self, obj: Any) -> bool:
        return obj in self._reconstituted

    # Identity map -------------------------------------------------------
    def register_object(self, obj: Any, identifier: Any) -> None:
        self.identity_map.register(obj, identifier)

    def unregister_object(self, obj: Any) -> None:
        self.identity_map.unregister(obj)

    def has_object(self, obj: Any) -> bool:
        return self.identity_map.has_object(obj)

    def has_identifier(self, identifier: Any, cls: type) -> bool:
        return self.identity_map.has_identifier(identifier, cls)

    def get_object_by_identifier(self, identifier: Any, cls: type) -> Optional[Any]:
        return self.identity_map.get_object_by_identifier(identifier, cls)

    def get_identifier_by_object(self, obj: Any) -> Optional[Any]:
        return self.identity_map.get_identifier_by_object(obj)

    def destroy(self) -> None:
        self.logger.debug(
            "Destroying session holding %s objects", len(self.identity_map)
        )
        self.identity_map.clear()
        self._reconstituted = ObjectStorage()
