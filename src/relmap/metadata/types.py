"""
Closed set of declared property types a column map can carry.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Union

if TYPE_CHECKING:
    from ..core.fields import Field

SCALAR_KINDS = ("integer", "float", "boolean", "string")


@dataclass(frozen=True)
class ScalarType:
    kind: str


@dataclass(frozen=True)
class DateTimeType:
    pass


@dataclass(frozen=True)
class CollectionType:
    element_type: type


@dataclass(frozen=True)
class RelatedType:
    target: type


@dataclass(frozen=True)
class CoreValueType:
    wrapper: type


PropertyType = Union[ScalarType, DateTimeType, CollectionType, RelatedType, CoreValueType]


def property_type_for(field_obj: Optional["Field"]) -> Optional[PropertyType]:
    """
    Translate a property declaration into its type tag. Relation targets
    are resolved to classes here.
    """
    if field_obj is None:
        return None
    kind = field_obj.kind
    if kind in SCALAR_KINDS:
        return ScalarType(kind)
    if kind == "datetime":
        return DateTimeType()
    if kind == "core":
        return CoreValueType(field_obj.core_type)  # type: ignore[attr-defined]
    if kind == "related":
        return RelatedType(field_obj.resolve_target())  # type: ignore[attr-defined]
    if kind == "collection":
        return CollectionType(field_obj.resolve_target())  # type: ignore[attr-defined]
    return None
