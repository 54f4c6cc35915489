"""
Builds :class:`DataMap` instances from table configuration and settings.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Union

from ..cache import CacheBackend, InMemoryCache
from ..config import PersistenceConfiguration
from ..core.domain import DomainObject, class_key, domain_registry
from ..core.fields import RelationField
from ..errors import UnsupportedRelationError
from ..utils import get_logger, resolve_table_name, underscored_to_lower_camel_case
from .datamap import ColumnMap, DataMap, RelationKind, TableColumnSubType, TableColumnType
from .tca import TableConfiguration
from .types import CollectionType, RelatedType, property_type_for

_CACHE_NAMESPACE = "data_map"
_DATETIME_EVALUATIONS = {"date", "datetime"}


def _merge_recursive(target: Dict[str, Any], overrides: Mapping[str, Any]) -> None:
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(target.get(key), dict):
            _merge_recursive(target[key], value)
        elif isinstance(value, Mapping):
            target[key] = {}
            _merge_recursive(target[key], value)
        else:
            target[key] = value


class DataMapFactory:
    """
    Creates data maps for domain classes and memoizes them per class.

    One factory is meant to live as long as its cache is valid; the cache is
    the only state it holds.
    """

    def __init__(
        self,
        table_configuration: TableConfiguration,
        config: Optional[PersistenceConfiguration] = None,
        *,
        cache: Optional[CacheBackend] = None,
    ) -> None:
        self.table_configuration = table_configuration
        self.config = config or PersistenceConfiguration()
        self.cache: CacheBackend = cache if cache is not None else InMemoryCache()
        self.logger = get_logger("metadata.factory")

    def build_data_map(self, class_or_name: Union[str, type]) -> DataMap:
        cls = domain_registry.resolve(class_or_name)
        key = class_key(cls)
        data_map = self.cache.get(_CACHE_NAMESPACE, key)
        if data_map is None:
            data_map = self._build_data_map(cls)
            self.cache.set(_CACHE_NAMESPACE, key, data_map)
        return data_map

    # ------------------------------------------------------------------ #
    def _build_data_map(self, cls: type[DomainObject]) -> DataMap:
        key = class_key(cls)
        settings = self.config.settings_for(cls)
        record_type = None
        subclasses: List[str] = []
        table_name = cls._meta.table_name
        if settings is not None:
            if settings.subclasses:
                subclasses = self._resolve_subclasses(settings.subclasses)
            if settings.record_type:
                record_type = settings.record_type
            if settings.table_name and not table_name:
                table_name = settings.table_name
        if not table_name:
            table_name = self.resolve_table_name(cls)

        data_map = DataMap(
            class_name=key,
            table_name=table_name,
            record_type=record_type,
            subclasses=subclasses,
        )
        self._add_meta_data_columns(data_map, table_name)

        columns = self.table_configuration.get_columns(table_name)
        _merge_recursive(columns, self._column_overrides(cls))
        for column_name, definition in columns.items():
            property_name = self._property_name(cls, column_name, definition)
            column_config = definition.get("config") or {}
            field_obj = cls._meta.fields.get(property_name)
            column_map = ColumnMap(column_name=column_name, property_name=property_name)
            column_map.type = TableColumnType.cast(column_config.get("type"))
            column_map.internal_type = TableColumnSubType.cast(column_config.get("internal_type"))
            column_map.property_type = property_type_for(field_obj)
            if isinstance(field_obj, RelationField):
                column_map.lazy = field_obj.lazy
                column_map.cascade_remove = field_obj.cascade_remove
            self._set_relations(column_map, column_config)
            self._set_field_evaluations(column_map, column_config)
            data_map.add_column_map(column_map)

        data_map.validate()
        self.logger.debug(
            "Built data map for %s on table %s (%s columns)",
            key,
            table_name,
            len(data_map.columns),
        )
        return data_map

    @staticmethod
    def resolve_table_name(cls: type) -> str:
        return resolve_table_name(class_key(cls))

    def _resolve_subclasses(self, subclasses: List[str]) -> List[str]:
        resolved: List[str] = []
        for name in subclasses:
            resolved.append(name)
            child_settings = self.config.classes.get(name)
            if child_settings is not None and child_settings.subclasses:
                resolved.extend(self._resolve_subclasses(child_settings.subclasses))
        return resolved

    def _column_overrides(self, cls: type[DomainObject]) -> Dict[str, Any]:
        """
        Column overrides of ``cls`` and its domain parents, parents first so
        subclass settings win.
        """
        merged: Dict[str, Any] = {}
        hierarchy = [
            klass
            for klass in cls.__mro__
            if isinstance(klass, type)
            and issubclass(klass, DomainObject)
            and not klass.__dict__["_meta"].abstract
        ]
        for klass in reversed(hierarchy):
            settings = self.config.settings_for(klass)
            if settings is not None and settings.columns:
                _merge_recursive(merged, settings.columns)
        return merged

    @staticmethod
    def _property_name(cls: type[DomainObject], column_name: str, definition: Mapping[str, Any]) -> str:
        if definition.get("map_on_property"):
            return definition["map_on_property"]
        property_name = underscored_to_lower_camel_case(column_name)
        if property_name not in cls._meta.fields and column_name in cls._meta.fields:
            return column_name
        return property_name

    def _add_meta_data_columns(self, data_map: DataMap, table_name: str) -> None:
        control = self.table_configuration.get_control(table_name)
        data_map.page_id_column = "pid"
        if control is None:
            return
        data_map.modification_date_column = control.tstamp
        data_map.creation_date_column = control.crdate
        data_map.creator_column = control.cruser_id
        data_map.deleted_flag_column = control.delete
        data_map.language_id_column = control.language_field
        data_map.translation_origin_column = control.trans_orig_pointer_field
        data_map.record_type_column = control.type
        data_map.root_level = control.root_level
        data_map.is_static = control.is_static
        data_map.disabled_flag_column = control.enable_columns.get("disabled")
        data_map.start_time_column = control.enable_columns.get("starttime")
        data_map.end_time_column = control.enable_columns.get("endtime")

    def _set_relations(self, column_map: ColumnMap, config: Mapping[str, Any]) -> None:
        if config.get("mm"):
            self._set_many_to_many_relation(column_map, config)
        elif isinstance(column_map.property_type, CollectionType):
            self._set_foreign_relation(column_map, config, RelationKind.HAS_MANY)
        elif isinstance(column_map.property_type, RelatedType):
            self._set_foreign_relation(column_map, config, RelationKind.HAS_ONE)
        elif config.get("type") == "select" and int(config.get("maxitems") or 0) > 1:
            column_map.relation_kind = RelationKind.HAS_MANY
        else:
            column_map.relation_kind = RelationKind.NONE

    @staticmethod
    def _set_foreign_relation(
        column_map: ColumnMap, config: Mapping[str, Any], kind: RelationKind
    ) -> None:
        column_map.relation_kind = kind
        column_map.child_table_name = config.get("foreign_table")
        column_map.child_sort_by_field_name = config.get("foreign_sortby")
        column_map.parent_key_field_name = config.get("foreign_field")
        column_map.parent_table_field_name = config.get("foreign_table_field")
        if isinstance(config.get("foreign_match_fields"), Mapping):
            column_map.relation_table_match_fields = dict(config["foreign_match_fields"])

    def _set_many_to_many_relation(self, column_map: ColumnMap, config: Mapping[str, Any]) -> None:
        if not config.get("foreign_table"):
            raise UnsupportedRelationError(
                f"The information to build a many-to-many relation for column "
                f"'{column_map.column_name}' is not sufficient: 'foreign_table' is missing."
            )
        column_map.relation_kind = RelationKind.HAS_AND_BELONGS_TO_MANY
        column_map.child_table_name = config["foreign_table"]
        column_map.relation_table_name = config["mm"]
        if isinstance(config.get("mm_match_fields"), Mapping):
            column_map.relation_table_match_fields = dict(config["mm_match_fields"])
        if isinstance(config.get("mm_insert_fields"), Mapping):
            column_map.relation_table_insert_fields = dict(config["mm_insert_fields"])
        if config.get("mm_opposite_field"):
            column_map.parent_key_field_name = "uid_foreign"
            column_map.child_key_field_name = "uid_local"
            column_map.child_sort_by_field_name = "sorting_foreign"
        else:
            column_map.parent_key_field_name = "uid_local"
            column_map.child_key_field_name = "uid_foreign"
            column_map.child_sort_by_field_name = "sorting"
        if self.table_configuration.get_control(column_map.relation_table_name) is not None:
            column_map.relation_table_page_id_column = "pid"

    @staticmethod
    def _set_field_evaluations(column_map: ColumnMap, config: Mapping[str, Any]) -> None:
        evaluations = {item.strip() for item in str(config.get("eval") or "").split(",") if item.strip()}
        db_type = config.get("db_type")
        if evaluations & _DATETIME_EVALUATIONS and db_type:
            column_map.datetime_storage_format = db_type
