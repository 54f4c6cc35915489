"""
Static per-class description of how a domain class maps onto its table.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..errors import ConfigurationError
from .types import PropertyType


class RelationKind(str, Enum):
    NONE = "none"
    HAS_ONE = "has_one"
    HAS_MANY = "has_many"
    HAS_AND_BELONGS_TO_MANY = "has_and_belongs_to_many"


class TableColumnType(str, Enum):
    INPUT = "input"
    TEXT = "text"
    CHECK = "check"
    RADIO = "radio"
    SELECT = "select"
    GROUP = "group"
    INLINE = "inline"
    PASSTHROUGH = "passthrough"
    USER = "user"
    FLEX = "flex"
    NONE = "none"

    @classmethod
    def cast(cls, value: Optional[str]) -> "TableColumnType":
        try:
            return cls(value or "none")
        except ValueError:
            return cls.NONE


class TableColumnSubType(str, Enum):
    DB = "db"
    FILE = "file"
    FILE_REFERENCE = "file_reference"
    FOLDER = "folder"
    NONE = "none"

    @classmethod
    def cast(cls, value: Optional[str]) -> "TableColumnSubType":
        try:
            return cls(value or "none")
        except ValueError:
            return cls.NONE


@dataclass
class ColumnMap:
    """
    Mapping of one property onto its column, including relation layout.
    """

    column_name: str
    property_name: str
    type: TableColumnType = TableColumnType.NONE
    internal_type: TableColumnSubType = TableColumnSubType.NONE
    property_type: Optional[PropertyType] = None
    relation_kind: RelationKind = RelationKind.NONE

    child_table_name: Optional[str] = None
    child_sort_by_field_name: Optional[str] = None
    parent_key_field_name: Optional[str] = None
    parent_table_field_name: Optional[str] = None
    child_key_field_name: Optional[str] = None

    relation_table_name: Optional[str] = None
    relation_table_page_id_column: Optional[str] = None
    relation_table_match_fields: Dict[str, Any] = field(default_factory=dict)
    relation_table_insert_fields: Dict[str, Any] = field(default_factory=dict)

    lazy: bool = False
    cascade_remove: bool = False
    datetime_storage_format: Optional[str] = None

    def validate(self) -> None:
        if self.relation_kind is RelationKind.HAS_AND_BELONGS_TO_MANY:
            missing = [
                name
                for name in ("relation_table_name", "parent_key_field_name", "child_key_field_name")
                if not getattr(self, name)
            ]
            if missing:
                raise ConfigurationError(
                    f"Column '{self.column_name}' is missing {', '.join(missing)} "
                    "for a many-to-many relation"
                )
        elif self.relation_table_name:
            raise ConfigurationError(
                f"Column '{self.column_name}' declares a junction table but relation "
                f"kind {self.relation_kind.value}"
            )

    @property
    def is_relation(self) -> bool:
        return self.relation_kind is not RelationKind.NONE


@dataclass
class DataMap:
    """
    Table name, record type and column maps of one domain class.

    Every special column is optional; ``None`` means the feature is off for
    the table.
    """

    class_name: str
    table_name: str
    record_type: Optional[str] = None
    subclasses: List[str] = field(default_factory=list)
    columns: "OrderedDict[str, ColumnMap]" = field(default_factory=OrderedDict)

    record_type_column: Optional[str] = None
    modification_date_column: Optional[str] = None
    creation_date_column: Optional[str] = None
    creator_column: Optional[str] = None
    deleted_flag_column: Optional[str] = None
    disabled_flag_column: Optional[str] = None
    start_time_column: Optional[str] = None
    end_time_column: Optional[str] = None
    language_id_column: Optional[str] = None
    translation_origin_column: Optional[str] = None
    page_id_column: str = "pid"
    root_level: Optional[int] = None
    is_static: bool = False

    def __post_init__(self) -> None:
        if not self.table_name:
            raise ConfigurationError(f"Empty table name for class '{self.class_name}'")

    def add_column_map(self, column_map: ColumnMap) -> None:
        if column_map.property_name in self.columns:
            raise ConfigurationError(
                f"Duplicate property '{column_map.property_name}' in data map of "
                f"'{self.class_name}'"
            )
        if any(existing.column_name == column_map.column_name for existing in self.columns.values()):
            raise ConfigurationError(
                f"Duplicate column '{column_map.column_name}' in data map of '{self.class_name}'"
            )
        self.columns[column_map.property_name] = column_map

    def get_column_map(self, property_name: str) -> Optional[ColumnMap]:
        return self.columns.get(property_name)

    def is_persistable_property(self, property_name: str) -> bool:
        return property_name in self.columns

    def has_column(self, column_name: str) -> bool:
        return any(column_map.column_name == column_name for column_map in self.columns.values())

    def validate(self) -> None:
        if self.record_type is not None and not self.record_type_column:
            raise ConfigurationError(
                f"Class '{self.class_name}' declares record type '{self.record_type}' but table "
                f"'{self.table_name}' has no record type column"
            )
        for column_map in self.columns.values():
            column_map.validate()
