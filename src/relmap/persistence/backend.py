"""
Persistence backend: writes an object graph to storage.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from ..config import PersistenceConfiguration
from ..core.domain import DomainObject, ValueObject
from ..core.lazy import is_lazy_loaded
from ..core.storage import ObjectStorage
from ..errors import IllegalRelationTypeError
from ..hooks import AFTER_INSERT, AFTER_PERSIST, AFTER_REMOVE, AFTER_UPDATE, END_INSERT, HookDispatcher
from ..metadata.datamap import ColumnMap, RelationKind
from ..query.expressions import Q
from ..query.query import Query
from ..storage.base import ReferenceIndex, StorageBackend
from ..utils import get_logger
from .mapper import DataMapper
from .session import Session


class PersistenceBackend:
    """
    Inserts, updates and removes rows for the objects handed over by the
    persistence manager.

    A commit walks every aggregate root and changed entity, persisting each
    reachable object once, then processes the deleted entities.
    """

    def __init__(
        self,
        storage: StorageBackend,
        session: Session,
        data_mapper: DataMapper,
        config: Optional[PersistenceConfiguration] = None,
        *,
        hooks: Optional[HookDispatcher] = None,
        reference_index: Optional[ReferenceIndex] = None,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        self.storage = storage
        self.session = session
        self.data_mapper = data_mapper
        self.config = config or PersistenceConfiguration()
        self.hooks = hooks or HookDispatcher()
        self.reference_index = reference_index
        self.clock = clock or (lambda: int(time.time()))
        self.logger = get_logger("persistence.backend")

        self.aggregate_root_objects = ObjectStorage()
        self.changed_entities = ObjectStorage()
        self.deleted_entities = ObjectStorage()
        self.inserted_objects: List[DomainObject] = []
        self._inserted_ids: Set[int] = set()
        self._visited: Set[int] = set()

    # Read access -------------------------------------------------------
    def get_object_count_by_query(self, query: Query) -> int:
        return query.count()

    def get_object_data_by_query(self, query: Query) -> List[Dict[str, Any]]:
        return query.get_rows()

    def get_identifier_by_object(self, obj: Any) -> Any:
        return self.session.get_identifier_by_object(obj)

    def get_object_by_identifier(self, identifier: Any, cls: type) -> Optional[DomainObject]:
        existing = self.session.get_object_by_identifier(identifier, cls)
        if existing is not None:
            return existing
        query = Query(cls, self.data_mapper)
        query.settings.respect_storage_page = False
        return query.matching(Q(uid=identifier)).execute().first()

    def is_new_object(self, obj: Any) -> bool:
        return self.get_identifier_by_object(obj) is None

    # Commit ------------------------------------------------------------
    def set_aggregate_root_objects(self, objects: Iterable[DomainObject]) -> None:
        self.aggregate_root_objects = ObjectStorage(objects)

    def set_changed_entities(self, entities: Iterable[DomainObject]) -> None:
        self.changed_entities = ObjectStorage(entities)

    def set_deleted_entities(self, entities: Iterable[DomainObject]) -> None:
        self.deleted_entities = ObjectStorage(entities)

    def commit(self) -> None:
        self.inserted_objects = []
        self._inserted_ids = set()
        self.persist_objects()
        self.process_deleted_objects()

    def persist_objects(self) -> None:
        self._visited = set()
        for obj in self.aggregate_root_objects:
            if obj.is_new():
                self.insert_object(obj)
            self.persist_object(obj)
        for obj in self.changed_entities:
            self.persist_object(obj)

    def persist_object(self, obj: DomainObject) -> None:
        if id(obj) in self._visited:
            return
        row: Dict[str, Any] = {}
        queue: List[DomainObject] = []
        data_map = self.data_mapper.get_data_map(obj.__class__)
        for property_name, value in obj.get_properties().items():
            if not data_map.is_persistable_property(property_name) or is_lazy_loaded(value):
                continue
            column_map = data_map.get_column_map(property_name)
            if isinstance(value, ObjectStorage):
                clean = obj._resolve_clean_lazy(property_name)
                cleared = (
                    len(value) == 0 and isinstance(clean, ObjectStorage) and len(clean) > 0
                )
                if obj.is_new() or value.is_dirty() or cleared:
                    self.persist_object_storage(value, obj, property_name, row)
                    value.memorize_clean_state()
                queue.extend(child for child in value if isinstance(child, DomainObject))
            elif isinstance(value, DomainObject):
                if obj.is_dirty(property_name):
                    if value.is_new():
                        self.insert_object(value, obj, property_name)
                    row[column_map.column_name] = self.data_mapper.get_plain_value(value)
                queue.append(value)
            elif obj.is_new() or obj.is_dirty(property_name):
                row[column_map.column_name] = self.data_mapper.get_plain_value(value, column_map)

        if row:
            self.update_object(obj, row)
        if row or id(obj) in self._inserted_ids:
            obj.memorize_clean_state()
        self._visited.add(id(obj))
        for queued in queue:
            self.persist_object(queued)
        self.hooks.fire(AFTER_PERSIST.name, obj)

    def persist_object_storage(
        self,
        object_storage: ObjectStorage,
        parent: DomainObject,
        property_name: str,
        row: Dict[str, Any],
    ) -> None:
        """
        Write membership and order of ``object_storage``.

        A member's relation is written when the member is new, was not in
        the clean state, was detached and attached again, or moved. The
        parent column receives the uid list for relations without a parent
        key and the number of related rows otherwise.
        """
        column_map = self._column_map(parent, property_name)
        for removed in self._get_removed_child_objects(parent, property_name):
            self.detach_object_from_parent_object(removed, parent, property_name)
            if column_map.relation_kind is RelationKind.HAS_MANY and column_map.cascade_remove:
                self.remove_entity(removed)

        clean = parent._resolve_clean_lazy(property_name)
        current_uids: List[Any] = []
        for position, child in enumerate(object_storage, start=1):
            if child.is_new():
                self.insert_object(child)
                self.attach_object_to_parent_object(child, parent, property_name, position)
            elif not isinstance(clean, ObjectStorage) or clean.get_position(child) is None:
                self.attach_object_to_parent_object(child, parent, property_name, position)
            elif (
                object_storage.is_relation_dirty(child)
                or clean.get_position(child) != position
            ):
                self.update_relation_of_object_to_parent_object(child, parent, property_name, position)
            current_uids.append(child.uid)

        if column_map.parent_key_field_name is None:
            row[column_map.column_name] = ",".join(str(uid) for uid in current_uids)
        else:
            row[column_map.column_name] = self.data_mapper.count_related(parent, property_name)

    def _get_removed_child_objects(self, parent: DomainObject, property_name: str) -> List[DomainObject]:
        clean = parent._resolve_clean_lazy(property_name)
        if not isinstance(clean, ObjectStorage):
            return []
        current = parent._get_raw_property(property_name)
        return [child for child in clean if not isinstance(current, ObjectStorage) or child not in current]

    # Relations ---------------------------------------------------------
    def attach_object_to_parent_object(
        self, obj: DomainObject, parent: DomainObject, property_name: str, sorting_position: int = 0
    ) -> None:
        column_map = self._column_map(parent, property_name)
        if column_map.relation_kind is RelationKind.HAS_MANY:
            self._attach_object_to_parent_object_relation_has_many(
                obj, parent, property_name, sorting_position
            )
        elif column_map.relation_kind is RelationKind.HAS_AND_BELONGS_TO_MANY:
            self.insert_relation_in_relation_table(obj, parent, property_name, sorting_position)

    def update_relation_of_object_to_parent_object(
        self, obj: DomainObject, parent: DomainObject, property_name: str, sorting_position: int = 0
    ) -> None:
        column_map = self._column_map(parent, property_name)
        if column_map.relation_kind is RelationKind.HAS_MANY:
            self._attach_object_to_parent_object_relation_has_many(
                obj, parent, property_name, sorting_position
            )
        elif column_map.relation_kind is RelationKind.HAS_AND_BELONGS_TO_MANY:
            self.update_relation_in_relation_table(obj, parent, property_name, sorting_position)

    def _attach_object_to_parent_object_relation_has_many(
        self, obj: DomainObject, parent: DomainObject, property_name: str, sorting_position: int = 0
    ) -> None:
        parent_map = self.data_mapper.get_data_map(parent.__class__)
        column_map = self._column_map(parent, property_name)
        if column_map.relation_kind is not RelationKind.HAS_MANY:
            raise IllegalRelationTypeError(
                f"Parent column relation type is {column_map.relation_kind.value} "
                f"but should be {RelationKind.HAS_MANY.value}"
            )
        row: Dict[str, Any] = {}
        if column_map.parent_key_field_name is not None:
            row.update(column_map.relation_table_match_fields)
            row[column_map.parent_key_field_name] = parent.uid
            if column_map.parent_table_field_name is not None:
                row[column_map.parent_table_field_name] = parent_map.table_name
        if column_map.child_sort_by_field_name:
            row[column_map.child_sort_by_field_name] = sorting_position
        if row:
            self.logger.debug(
                "Attaching %s to %s.%s at position %s",
                obj,
                parent,
                property_name,
                sorting_position,
            )
            self.update_object(obj, row)

    def detach_object_from_parent_object(
        self, obj: DomainObject, parent: DomainObject, property_name: str
    ) -> None:
        column_map = self._column_map(parent, property_name)
        if column_map.relation_kind is RelationKind.HAS_MANY:
            row: Dict[str, Any] = {}
            if column_map.parent_key_field_name is not None:
                row.update({column: "" for column in column_map.relation_table_match_fields})
                row[column_map.parent_key_field_name] = ""
                if column_map.parent_table_field_name is not None:
                    row[column_map.parent_table_field_name] = ""
            if column_map.child_sort_by_field_name:
                row[column_map.child_sort_by_field_name] = 0
            if row:
                self.logger.debug("Detaching %s from %s.%s", obj, parent, property_name)
                self.update_object(obj, row)
        elif column_map.relation_kind is RelationKind.HAS_AND_BELONGS_TO_MANY:
            self.delete_relation_from_relation_table(obj, parent, property_name)

    def insert_relation_in_relation_table(
        self,
        obj: DomainObject,
        parent: DomainObject,
        property_name: str,
        sorting_position: Optional[int] = None,
    ) -> int:
        column_map = self._column_map(parent, property_name)
        row: Dict[str, Any] = {}
        row.update(column_map.relation_table_insert_fields)
        row.update(column_map.relation_table_match_fields)
        row[column_map.parent_key_field_name] = int(parent.uid)
        row[column_map.child_key_field_name] = int(obj.uid)
        if column_map.child_sort_by_field_name:
            row[column_map.child_sort_by_field_name] = int(sorting_position or 0)
        if column_map.relation_table_page_id_column is not None:
            row[column_map.relation_table_page_id_column] = self.determine_storage_page_id_for_new_record()
        self.logger.debug(
            "Inserting relation %s -> %s into %s", parent, obj, column_map.relation_table_name
        )
        return self.storage.add_row(column_map.relation_table_name, row, True)

    def update_relation_in_relation_table(
        self, obj: DomainObject, parent: DomainObject, property_name: str, sorting_position: int = 0
    ) -> bool:
        column_map = self._column_map(parent, property_name)
        match: Dict[str, Any] = dict(column_map.relation_table_match_fields)
        match[column_map.parent_key_field_name] = int(parent.uid)
        match[column_map.child_key_field_name] = int(obj.uid)
        values: Dict[str, Any] = {}
        if column_map.child_sort_by_field_name:
            values[column_map.child_sort_by_field_name] = int(sorting_position)
        return self.storage.update_relation_table_row(column_map.relation_table_name, match, values)

    def delete_relation_from_relation_table(
        self, obj: DomainObject, parent: DomainObject, property_name: str
    ) -> bool:
        column_map = self._column_map(parent, property_name)
        match: Dict[str, Any] = dict(column_map.relation_table_match_fields)
        match[column_map.parent_key_field_name] = int(parent.uid)
        match[column_map.child_key_field_name] = int(obj.uid)
        self.logger.debug(
            "Deleting relation %s -> %s from %s", parent, obj, column_map.relation_table_name
        )
        return self.storage.remove_row(column_map.relation_table_name, match, True)

    # Rows ----------------------------------------------------------------
    def insert_object(
        self,
        obj: DomainObject,
        parent: Optional[DomainObject] = None,
        parent_property_name: str = "",
    ) -> None:
        """
        Insert ``obj`` with its common fields and every set scalar property.

        Properties written here are memorized clean so the deep persist of
        the same commit does not write them again.
        """
        data_map = self.data_mapper.get_data_map(obj.__class__)
        if isinstance(obj, ValueObject):
            existing_uid = self._get_uid_of_already_persisted_value_object(obj)
            if existing_uid is not None:
                obj._set_raw_property("uid", existing_uid)
                self.session.register_object(obj, existing_uid)
                obj.memorize_clean_state()
                self.logger.debug("Reusing %s for value object", obj)
                return

        row: Dict[str, Any] = {}
        written: List[str] = []
        for property_name, value in obj.get_properties().items():
            column_map = data_map.get_column_map(property_name)
            if column_map is None or value is None or is_lazy_loaded(value):
                continue
            if isinstance(value, ObjectStorage):
                continue
            if isinstance(value, DomainObject):
                if value.is_new() or column_map.parent_key_field_name is not None:
                    continue
            elif column_map.relation_kind is not RelationKind.NONE:
                continue
            row[column_map.column_name] = self.data_mapper.get_plain_value(value, column_map)
            written.append(property_name)

        self.add_common_fields_to_row(obj, row)
        if data_map.language_id_column is not None:
            row[data_map.language_id_column] = -1
        if parent is not None and parent_property_name:
            parent_column_map = self._column_map(parent, parent_property_name)
            for column, value in parent_column_map.relation_table_match_fields.items():
                row.setdefault(column, value)
            if parent_column_map.parent_key_field_name is not None:
                row[parent_column_map.parent_key_field_name] = int(parent.uid or 0)

        uid = self.storage.add_row(data_map.table_name, row)
        obj._set_raw_property("uid", int(uid))
        obj._set_raw_property("pid", int(row["pid"]))
        if data_map.language_id_column is not None:
            obj._language_uid = -1
        for property_name in [*written, "uid", "pid"]:
            obj.memorize_clean_state(property_name)
        self.logger.debug("Inserted %s into %s", obj, data_map.table_name)
        if uid >= 1:
            self.hooks.fire(AFTER_INSERT.name, obj)
        self._update_reference_index(data_map.table_name, uid)
        self.session.register_object(obj, uid)
        self.inserted_objects.append(obj)
        self._inserted_ids.add(id(obj))
        if uid >= 1:
            self.hooks.fire(END_INSERT.name, obj)

    def _get_uid_of_already_persisted_value_object(self, obj: ValueObject) -> Optional[int]:
        data_map = self.data_mapper.get_data_map(obj.__class__)
        match: Dict[str, Any] = {}
        for property_name, value in obj.get_properties().items():
            if property_name in ("uid", "pid"):
                continue
            column_map = data_map.get_column_map(property_name)
            if column_map is None or column_map.relation_kind is not RelationKind.NONE:
                continue
            if isinstance(value, (DomainObject, ObjectStorage)) or is_lazy_loaded(value):
                continue
            match[column_map.column_name] = self.data_mapper.get_plain_value(value, column_map)
        if data_map.deleted_flag_column:
            match[data_map.deleted_flag_column] = 0
        if not match:
            return None
        return self.storage.find_uid(data_map.table_name, match)

    def update_object(self, obj: DomainObject, row: Dict[str, Any]) -> bool:
        data_map = self.data_mapper.get_data_map(obj.__class__)
        self.add_common_fields_to_row(obj, row)
        row["uid"] = obj.uid
        if data_map.language_id_column is not None:
            if obj._language_uid is not None:
                row[data_map.language_id_column] = obj._language_uid
            if obj._localized_uid is not None:
                row["uid"] = obj._localized_uid
        result = self.storage.update_row(data_map.table_name, row)
        self.logger.debug("Updated %s (%s)", obj, ", ".join(column for column in row if column != "uid"))
        if result:
            self.hooks.fire(AFTER_UPDATE.name, obj)
        self._update_reference_index(data_map.table_name, row["uid"])
        return result

    def add_common_fields_to_row(self, obj: DomainObject, row: Dict[str, Any]) -> None:
        data_map = self.data_mapper.get_data_map(obj.__class__)
        self.add_common_date_fields_to_row(obj, row)
        if data_map.record_type_column is not None and data_map.record_type is not None:
            row[data_map.record_type_column] = data_map.record_type
        if obj.is_new() and "pid" not in row:
            row["pid"] = self.determine_storage_page_id_for_new_record(obj)

    def add_common_date_fields_to_row(self, obj: DomainObject, row: Dict[str, Any]) -> None:
        data_map = self.data_mapper.get_data_map(obj.__class__)
        now = self.clock()
        if obj.is_new() and data_map.creation_date_column is not None:
            row[data_map.creation_date_column] = now
        if data_map.modification_date_column is not None:
            row[data_map.modification_date_column] = now

    def determine_storage_page_id_for_new_record(self, obj: Optional[DomainObject] = None) -> int:
        """
        Storage page of a new record: the object's own ``pid`` when set,
        else the class setting ``new_record_storage_pid``, else the first
        configured storage pid.
        """
        if obj is not None:
            pid = obj._properties.get("pid")
            if pid is not None:
                return int(pid)
            settings = self.config.settings_for(obj.__class__)
            if settings is not None and settings.new_record_storage_pid:
                return int(settings.new_record_storage_pid)
        return self.config.default_storage_pid

    # Removal -------------------------------------------------------------
    def process_deleted_objects(self) -> None:
        for entity in self.deleted_entities:
            if self.session.has_object(entity):
                self.remove_entity(entity)
                self.session.unregister_reconstituted_entity(entity)
                self.session.unregister_object(entity)
        self.deleted_entities = ObjectStorage()

    def remove_entity(self, obj: DomainObject, mark_as_deleted: bool = True) -> None:
        data_map = self.data_mapper.get_data_map(obj.__class__)
        table_name = data_map.table_name
        if mark_as_deleted and data_map.deleted_flag_column is not None:
            row: Dict[str, Any] = {"uid": obj.uid, data_map.deleted_flag_column: 1}
            self.add_common_date_fields_to_row(obj, row)
            result = self.storage.update_row(table_name, row)
        else:
            result = self.storage.remove_row(table_name, {"uid": obj.uid})
        self.logger.debug("Removed %s from %s", obj, table_name)
        if result:
            self.hooks.fire(AFTER_REMOVE.name, obj)
        self.remove_related_objects(obj)
        self._update_reference_index(table_name, obj.uid)

    def remove_related_objects(self, obj: DomainObject) -> None:
        data_map = self.data_mapper.get_data_map(obj.__class__)
        for property_name in obj._meta.fields:
            column_map = data_map.get_column_map(property_name)
            if column_map is None or not column_map.cascade_remove:
                continue
            value = obj.get_property(property_name)
            if column_map.relation_kind is RelationKind.HAS_MANY and isinstance(value, ObjectStorage):
                for child in list(value):
                    self.remove_entity(child)
            elif isinstance(value, DomainObject):
                self.remove_entity(value)

    # Helpers ---------------------------------------------------------------
    def _column_map(self, parent: DomainObject, property_name: str) -> ColumnMap:
        return self.data_mapper._column_map(parent, property_name)

    def _update_reference_index(self, table: str, uid: Any) -> None:
        if self.config.update_reference_index and self.reference_index is not None:
            self.reference_index.update_ref_index_table(table, int(uid))
