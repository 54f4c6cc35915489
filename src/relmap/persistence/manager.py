"""
Persistence manager: the entry point applications talk to.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from ..cache import CacheBackend, InMemoryCache
from ..config import PersistenceConfiguration
from ..core.domain import DomainObject
from ..errors import UnknownObjectError
from ..hooks import HookDispatcher
from ..metadata.factory import DataMapFactory
from ..metadata.tca import InMemoryTableConfiguration, TableConfiguration
from ..query.query import Query
from ..storage.base import ReferenceIndex, StorageBackend
from ..utils import commit_scope, get_logger, time_call
from .backend import PersistenceBackend
from .mapper import DataMapper
from .session import Session
from .unit_of_work import UnitOfWork


class PersistenceManager:
    """
    Collects added, updated and removed objects and writes them to storage
    on :meth:`persist_all`.

    One manager owns one session, so an object loaded twice through the same
    manager is the same Python object.
    """

    def __init__(
        self,
        storage: StorageBackend,
        table_configuration: Optional[TableConfiguration] = None,
        config: Optional[PersistenceConfiguration] = None,
        *,
        data_map_factory: Optional[DataMapFactory] = None,
        reference_index: Optional[ReferenceIndex] = None,
        hooks: Optional[HookDispatcher] = None,
        cache: Optional[CacheBackend] = None,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        self.storage = storage
        self.config = config or PersistenceConfiguration()
        self.data_map_factory = data_map_factory or DataMapFactory(
            table_configuration or InMemoryTableConfiguration(),
            self.config,
            cache=cache or InMemoryCache(),
        )
        self.hooks = hooks or HookDispatcher()
        self.session = Session()
        self.data_mapper = DataMapper(
            self.data_map_factory, self.session, storage, self.config, clock=clock
        )
        self.backend = PersistenceBackend(
            storage,
            self.session,
            self.data_mapper,
            self.config,
            hooks=self.hooks,
            reference_index=reference_index,
            clock=self.data_mapper.clock,
        )
        self.unit_of_work = UnitOfWork()
        self.logger = get_logger("persistence.manager")

    # ------------------------------------------------------------------ #
    # Context management
    # ------------------------------------------------------------------ #
    def __enter__(self) -> "PersistenceManager":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type:
            self.unit_of_work.clear()
        else:
            self.persist_all()

    # ------------------------------------------------------------------ #
    # Registration
    # ------------------------------------------------------------------ #
    def add(self, obj: DomainObject) -> None:
        self.unit_of_work.register_new(obj)

    def remove(self, obj: DomainObject) -> None:
        self.unit_of_work.register_deleted(obj)

    def update(self, obj: DomainObject) -> None:
        if self.is_new_object(obj):
            raise UnknownObjectError(
                f"The object of type '{obj.__class__.__name__}' given to update must be persisted already, "
                "but is new."
            )
        self.unit_of_work.register_dirty(obj)

    # ------------------------------------------------------------------ #
    def persist_all(self) -> None:
        uow = self.unit_of_work
        removed = uow.removed
        reconstituted = self.session.get_reconstituted_entities()

        roots = [obj for obj in uow.added if obj not in removed]
        roots.extend(obj for obj in reconstituted if obj not in removed and obj not in uow.added)

        changed = [obj for obj in uow.changed if obj not in removed]
        changed.extend(
            obj
            for obj in reconstituted
            if obj not in removed and obj not in uow.changed and obj.is_dirty()
        )

        self.backend.set_aggregate_root_objects(roots)
        self.backend.set_changed_entities(changed)
        self.backend.set_deleted_entities(removed)
        with commit_scope():
            self.logger.debug(
                "Persisting %s aggregate roots, %s changed and %s removed objects",
                len(roots),
                len(changed),
                len(removed),
            )
            with time_call("persistence.persist_all", self.logger):
                self.backend.commit()

        for obj in self.backend.inserted_objects:
            self.session.register_reconstituted_entity(obj)
        uow.clear()

    def create_query(self, cls: type) -> Query:
        return Query(cls, self.data_mapper)

    # ------------------------------------------------------------------ #
    # Lookups
    # ------------------------------------------------------------------ #
    def get_object_by_identifier(self, identifier: Any, cls: type) -> Optional[DomainObject]:
        return self.backend.get_object_by_identifier(identifier, cls)

    def get_identifier_by_object(self, obj: Any) -> Any:
        return self.backend.get_identifier_by_object(obj)

    def is_new_object(self, obj: Any) -> bool:
        return self.backend.is_new_object(obj)

    def get_object_count_by_query(self, query: Query) -> int:
        return self.backend.get_object_count_by_query(query)

    def get_object_data_by_query(self, query: Query) -> List[Dict[str, Any]]:
        return self.backend.get_object_data_by_query(query)

    def clear_state(self) -> None:
        """
        Forget every known object. Objects loaded afterwards are new
        instances.
        """
        self.unit_of_work.clear()
        self.session.destroy()
