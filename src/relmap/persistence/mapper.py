"""
Data mapper: builds domain objects from rows and converts property values
into their storage form.
"""

from __future__ import annotations

import re
import time
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from ..config import PersistenceConfiguration
from ..core.domain import DomainObject, domain_registry
from ..core.fields import RelationField
from ..core.lazy import LazyValue
from ..core.storage import ObjectStorage
from ..core.types import CoreType
from ..errors import CannotReconstituteError, InvalidClassError, UnexpectedTypeError
from ..metadata.datamap import ColumnMap, DataMap, RelationKind
from ..metadata.factory import DataMapFactory
from ..metadata.types import CollectionType, CoreValueType, DateTimeType, RelatedType, ScalarType
from ..query.expressions import Q
from ..query.query import JoinSource, Query, QueryResult
from ..utils import camel_to_snake, get_logger
from .session import Session

_EMPTY_DATES = ("", "0", "0000-00-00", "0000-00-00 00:00:00")
_EMPTY_RELATION_VALUES = ("", 0, "0")
_DATETIME_FORMATS = {"date": "%Y-%m-%d", "datetime": "%Y-%m-%d %H:%M:%S"}
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class DataMapper:
    """
    Maps rows onto domain objects through the session's identity map.

    Relations are fetched through :class:`~relmap.query.query.Query`, either
    right away or, for properties declared ``lazy``, on first access.
    """

    def __init__(
        self,
        data_map_factory: DataMapFactory,
        session: Session,
        storage: Any,
        config: Optional[PersistenceConfiguration] = None,
        *,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        self.data_map_factory = data_map_factory
        self.session = session
        self.storage = storage
        self.config = config or data_map_factory.config
        self.clock = clock or (lambda: int(time.time()))
        self.logger = get_logger("persistence.mapper")

    # Metadata ------------------------------------------------------------
    def get_data_map(self, class_or_name: Union[str, type]) -> DataMap:
        return self.data_map_factory.build_data_map(class_or_name)

    def convert_class_name_to_table_name(self, class_or_name: Union[str, type]) -> str:
        return self.get_data_map(class_or_name).table_name

    def convert_property_name_to_column_name(
        self, property_name: str, class_or_name: Union[str, type, None] = None
    ) -> str:
        if class_or_name is not None:
            column_map = self.get_data_map(class_or_name).get_column_map(property_name)
            if column_map is not None:
                return column_map.column_name
        return camel_to_snake(property_name)

    def is_persistable_property(self, class_or_name: Union[str, type], property_name: str) -> bool:
        return self.get_data_map(class_or_name).is_persistable_property(property_name)

    def get_type(self, parent_class: type, property_name: str) -> type:
        """
        Class of the objects a relation property holds.
        """
        field_obj = parent_class._meta.fields.get(property_name)
        if isinstance(field_obj, RelationField):
            return field_obj.resolve_target()
        column_map = self.get_data_map(parent_class).get_column_map(property_name)
        if column_map is not None:
            if isinstance(column_map.property_type, CollectionType):
                return column_map.property_type.element_type
            if isinstance(column_map.property_type, RelatedType):
                return column_map.property_type.target
        raise UnexpectedTypeError(
            f"Could not determine the child object type of {parent_class.__name__}.{property_name}"
        )

    # Read path -----------------------------------------------------------
    def map(self, cls: type, rows: Iterable[Mapping[str, Any]]) -> List[Any]:
        objects = []
        for row in rows:
            target = self.get_target_type(cls, row)
            objects.append(self.map_single_row(target, row))
        return objects

    def get_target_type(self, cls: type, row: Mapping[str, Any]) -> type:
        data_map = self.get_data_map(cls)
        column = data_map.record_type_column
        if not column or column not in row or row[column] is None:
            return cls
        record_type = str(row[column])
        for subclass_name in data_map.subclasses:
            subclass_map = self.get_data_map(subclass_name)
            if subclass_map.record_type is not None and str(subclass_map.record_type) == record_type:
                return domain_registry.resolve(subclass_name)
        return cls

    def map_single_row(self, cls: type, row: Mapping[str, Any]) -> Any:
        uid = row.get("uid")
        existing = self.session.get_object_by_identifier(uid, cls)
        if existing is not None:
            return existing
        obj = self.create_empty_object(cls)
        self.session.register_object(obj, uid)
        self.thaw_properties(obj, row)
        obj.memorize_clean_state()
        self.session.register_reconstituted_entity(obj)
        return obj

    def create_empty_object(self, cls: type) -> DomainObject:
        if not isinstance(cls, type) or not issubclass(cls, DomainObject):
            raise CannotReconstituteError(
                f"Cannot create empty instance of the class '{getattr(cls, '__name__', cls)}' "
                "because it does not derive from DomainObject."
            )
        return cls.create_empty()

    def thaw_properties(self, obj: DomainObject, row: Mapping[str, Any]) -> None:
        data_map = self.get_data_map(obj.__class__)
        obj._set_raw_property("uid", int(row["uid"]))
        if row.get("pid") is not None:
            obj._set_raw_property("pid", int(row["pid"]))
        if data_map.language_id_column and row.get(data_map.language_id_column) is not None:
            obj._language_uid = int(row[data_map.language_id_column])
        if row.get("_localized_uid") is not None:
            obj._localized_uid = int(row["_localized_uid"])

        for property_name, field_obj in obj._meta.fields.items():
            if property_name in ("uid", "pid"):
                continue
            column_map = data_map.get_column_map(property_name)
            if column_map is None:
                continue
            raw = row.get(column_map.column_name)
            if raw is None:
                continue
            value = self._thaw_value(obj, property_name, column_map, field_obj, raw)
            if value is not None:
                obj._set_raw_property(property_name, value)

    def _thaw_value(
        self, obj: DomainObject, property_name: str, column_map: ColumnMap, field_obj: Any, raw: Any
    ) -> Any:
        property_type = column_map.property_type
        if isinstance(property_type, ScalarType):
            try:
                return field_obj.to_python(raw)
            except ValueError as exc:
                raise UnexpectedTypeError(
                    f"Cannot thaw {obj.__class__.__name__}.{property_name} from {raw!r}"
                ) from exc
        if isinstance(property_type, DateTimeType):
            return self.map_date_time(raw, column_map.datetime_storage_format)
        if isinstance(property_type, CoreValueType):
            return property_type.wrapper(raw)
        if isinstance(property_type, CollectionType):
            return self.fetch_related(obj, property_name, raw)
        if isinstance(property_type, RelatedType):
            if column_map.parent_key_field_name or raw in _EMPTY_RELATION_VALUES:
                return self.fetch_related(obj, property_name, raw)
            existing = self.session.get_object_by_identifier(raw, property_type.target)
            if existing is not None:
                return existing
            return self.fetch_related(obj, property_name, raw)
        return raw

    def map_date_time(self, value: Any, storage_format: Optional[str] = None) -> Optional[datetime]:
        """
        Native date/datetime strings are read as UTC, everything else as a
        unix timestamp. The result is an aware datetime in local time.
        """
        if value in _EMPTY_DATES or value == 0:
            return None
        try:
            if storage_format in _DATETIME_FORMATS:
                parsed = datetime.strptime(str(value), _DATETIME_FORMATS[storage_format])
                return parsed.replace(tzinfo=timezone.utc).astimezone()
            return datetime.fromtimestamp(int(value), tz=timezone.utc).astimezone()
        except (TypeError, ValueError, OverflowError) as exc:
            raise UnexpectedTypeError(f"Cannot convert {value!r} to a datetime") from exc

    # Relations -----------------------------------------------------------
    def fetch_related(
        self,
        parent: DomainObject,
        property_name: str,
        field_value: Any = "",
        enable_lazy_loading: bool = True,
    ) -> Any:
        column_map = self._column_map(parent, property_name)
        if self._is_empty_relation_value(field_value):
            if isinstance(column_map.property_type, RelatedType):
                return None
            return ObjectStorage()
        if enable_lazy_loading and column_map.lazy:
            return LazyValue(
                parent,
                property_name,
                field_value,
                lambda: self.map_result_to_property_value(
                    parent, property_name, self.fetch_related_eager(parent, property_name, field_value)
                ),
            )
        return self.map_result_to_property_value(
            parent, property_name, self.fetch_related_eager(parent, property_name, field_value)
        )

    def fetch_related_eager(
        self, parent: DomainObject, property_name: str, field_value: Any = ""
    ) -> Union[QueryResult, List[Any]]:
        if field_value == "":
            return []
        return self._get_prepared_query(parent, property_name, field_value).execute()

    def count_related(self, parent: DomainObject, property_name: str, field_value: Any = "") -> int:
        return self._get_prepared_query(parent, property_name, field_value).count()

    def _get_prepared_query(
        self, parent: DomainObject, property_name: str, field_value: Any = ""
    ) -> Query:
        column_map = self._column_map(parent, property_name)
        parent_map = self.get_data_map(parent.__class__)
        target = self.get_type(parent.__class__, property_name)
        child_table = self.get_data_map(target).table_name
        query = Query(target, self)
        query.settings.respect_storage_page = False

        if column_map.relation_kind is RelationKind.HAS_AND_BELONGS_TO_MANY:
            relation_table = column_map.relation_table_name
            query = query.set_source(JoinSource(relation_table, column_map.child_key_field_name))
            match: Dict[str, Any] = {
                f"{relation_table}.{column_map.parent_key_field_name}": parent.uid,
            }
            for column, value in column_map.relation_table_match_fields.items():
                match[f"{relation_table}.{column}"] = value
            query = query.matching(Q.from_match(match))
            if column_map.child_sort_by_field_name:
                query = query.order_by(f"{relation_table}.{column_map.child_sort_by_field_name}")
            return query

        if column_map.parent_key_field_name:
            match = {f"{child_table}.{column_map.parent_key_field_name}": parent.uid}
            if column_map.parent_table_field_name:
                match[f"{child_table}.{column_map.parent_table_field_name}"] = parent_map.table_name
            for column, value in column_map.relation_table_match_fields.items():
                match[f"{child_table}.{column}"] = value
            query = query.matching(Q.from_match(match))
        else:
            uids = _int_list(field_value)
            query = query.matching(Q(uid__in=uids))
        if column_map.child_sort_by_field_name:
            query = query.order_by(f"{child_table}.{column_map.child_sort_by_field_name}")
        return query

    def map_result_to_property_value(self, parent: DomainObject, property_name: str, result: Any) -> Any:
        if isinstance(result, LazyValue):
            return result
        column_map = self._column_map(parent, property_name)
        objects = list(result or [])
        if isinstance(column_map.property_type, CollectionType) or (
            column_map.property_type is None and column_map.relation_kind is not RelationKind.HAS_ONE
        ):
            storage = ObjectStorage()
            for obj in objects:
                storage.attach(obj)
            storage.memorize_clean_state()
            return storage
        return objects[0] if objects else None

    # Write path helpers --------------------------------------------------
    def get_plain_value(self, value: Any, column_map: Optional[ColumnMap] = None) -> Any:
        """
        Storage form of a property value.
        """
        if value is None:
            return None
        if isinstance(value, LazyValue):
            if value.parent._properties.get(value.property_name) is value:
                value = value.parent._resolve_lazy(value.property_name)
            else:
                value = value.load()
            if value is None:
                return None
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, datetime):
            storage_format = column_map.datetime_storage_format if column_map else None
            if storage_format in _DATETIME_FORMATS:
                return value.astimezone(timezone.utc).strftime(_DATETIME_FORMATS[storage_format])
            return int(value.timestamp())
        if isinstance(value, date):
            return value.isoformat()
        if isinstance(value, DomainObject):
            return value.uid
        if isinstance(value, CoreType):
            return str(value)
        if isinstance(value, (str, int, float)):
            return value
        if isinstance(value, (ObjectStorage, QueryResult, list, tuple, set, frozenset)):
            return ",".join(str(self.get_plain_value(item)) for item in value)
        raise UnexpectedTypeError(f"An object of type '{type(value).__name__}' could not be converted to a plain value.")

    # Helpers ---------------------------------------------------------------
    def _column_map(self, parent: DomainObject, property_name: str) -> ColumnMap:
        column_map = self.get_data_map(parent.__class__).get_column_map(property_name)
        if column_map is None:
            raise InvalidClassError(
                f"Property '{property_name}' of {parent.__class__.__name__} is not persistable"
            )
        return column_map

    @staticmethod
    def _is_empty_relation_value(value: Any) -> bool:
        return value is None or (not isinstance(value, bool) and value in _EMPTY_RELATION_VALUES)


def _int_list(value: Any) -> List[int]:
    """
    Integers of a comma separated uid list. A token without a leading
    integer, such as ``song_1``, counts as 0 and matches no row.
    """
    uids: List[int] = []
    for item in str(value).split(","):
        if not item.strip():
            continue
        match = _LEADING_INT.match(item)
        uids.append(int(match.group(1)) if match else 0)
    return uids
