"""
Mapping metadata: data maps, column maps and the factory building them.
"""

from .datamap import ColumnMap, DataMap, RelationKind, TableColumnSubType, TableColumnType
from .factory import DataMapFactory
from .tca import InMemoryTableConfiguration, TableConfiguration, TableControl
from .types import (
    CollectionType,
    CoreValueType,
    DateTimeType,
    PropertyType,
    RelatedType,
    ScalarType,
    property_type_for,
)

__all__ = [
    "CollectionType",
    "ColumnMap",
    "CoreValueType",
    "DataMap",
    "DataMapFactory",
    "DateTimeType",
    "InMemoryTableConfiguration",
    "PropertyType",
    "RelatedType",
    "RelationKind",
    "ScalarType",
    "TableColumnSubType",
    "TableColumnType",
    "TableConfiguration",
    "TableControl",
    "property_type_for",
]
