"""
Property descriptors for relmap domain objects.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional, Type, Union, cast

from .lazy import LazyValue
from .storage import ObjectStorage
from .types import CoreType

if TYPE_CHECKING:
    from .domain import DomainObject


class FieldError(Exception):
    """Internal exception for field configuration issues."""


class Field:
    """
    Base class for domain object property descriptors.

    Values live in the owning instance's ``_properties`` slot dict. A slot
    holding a :class:`LazyValue` is loaded on first read.
    """

    _creation_counter = 0
    kind = "scalar"

    def __init__(self, *, default: Any = None, nullable: bool = True) -> None:
        self.default = default
        self.nullable = nullable
        self.model: type["DomainObject"] | None = None
        self.name: str | None = None
        self.creation_counter = Field._creation_counter
        Field._creation_counter += 1

    # Descriptor protocol -------------------------------------------------
    def __get__(self, instance: object | None, owner: type | None = None) -> Any:
        if instance is None:
            return self

        domain_object = cast("DomainObject", instance)
        name = self.require_name()
        if name not in domain_object._properties:
            default = self.get_default()
            if default is not None:
                domain_object._properties[name] = default
            return default
        value = domain_object._properties[name]
        if isinstance(value, LazyValue):
            return domain_object._resolve_lazy(name)
        return value

    def __set__(self, instance: object, value: Any) -> None:
        domain_object = cast("DomainObject", instance)
        name = self.require_name()
        if value is None:
            if not self.nullable:
                raise ValueError(f"Property '{name}' cannot be None")
            domain_object._properties[name] = None
            return
        domain_object._properties[name] = self.to_python(value)

    # Metadata helpers ----------------------------------------------------
    def contribute_to_class(self, model: type["DomainObject"], name: str) -> None:
        """
        Attach the field to the domain class as a descriptor.
        """
        self.model = model
        self.name = name
        setattr(model, name, self)

    def require_name(self) -> str:
        if self.name is None:
            raise FieldError("Field name is not set.")
        return self.name

    def get_default(self) -> Any:
        if callable(self.default):
            return self.default()
        return self.default

    def to_python(self, value: Any) -> Any:
        return value


class IntegerField(Field):
    kind = "integer"

    def to_python(self, value: Any) -> int | None:
        if value is None:
            return value
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid integer value '{value}'") from exc


class FloatField(Field):
    kind = "float"

    def to_python(self, value: Any) -> float | None:
        if value is None:
            return value
        try:
            return float(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid float value '{value}'") from exc


class BooleanField(Field):
    kind = "boolean"

    def __init__(self, *, default: Any = False, **kwargs: Any) -> None:
        kwargs.setdefault("nullable", False)
        super().__init__(default=default, **kwargs)

    def to_python(self, value: Any) -> bool | None:
        if value is None:
            return value
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.lower()
            if lowered in {"true", "t", "1"}:
                return True
            if lowered in {"false", "f", "0", ""}:
                return False
        if isinstance(value, (int, float)):
            return bool(value)
        raise ValueError(f"Invalid boolean value '{value}'")


class StringField(Field):
    kind = "string"

    def to_python(self, value: Any) -> str | None:
        if value is None:
            return value
        return str(value)


class DateTimeField(Field):
    kind = "datetime"

    def to_python(self, value: Any) -> datetime | None:
        if value is None:
            return value
        if isinstance(value, datetime):
            return value
        raise ValueError(f"Expected datetime for property '{self.name}', received {value!r}")


class CoreTypeField(Field):
    """
    Property holding a :class:`~relmap.core.types.CoreType` wrapper.
    """

    kind = "core"

    def __init__(self, core_type: Type[CoreType], **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.core_type = core_type

    def to_python(self, value: Any) -> CoreType | None:
        if value is None or isinstance(value, self.core_type):
            return value
        return self.core_type(value)


class RelationField(Field):
    """
    Common base of to-one and to-many relation properties.

    ``to`` is a domain class or its name; names are resolved through the
    domain class registry when metadata is built.
    """

    def __init__(
        self,
        to: Union[str, type],
        *,
        lazy: bool = False,
        cascade_remove: bool = False,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.to = to
        self.lazy = lazy
        self.cascade_remove = cascade_remove

    def resolve_target(self) -> type:
        from .domain import domain_registry

        return domain_registry.resolve(self.to)


class RelatedField(RelationField):
    """
    Single related domain object.
    """

    kind = "related"


class ObjectStorageField(RelationField):
    """
    Ordered collection of related domain objects held in an
    :class:`~relmap.core.storage.ObjectStorage`.
    """

    kind = "collection"

    def __init__(self, to: Union[str, type], **kwargs: Any) -> None:
        kwargs.setdefault("default", ObjectStorage)
        super().__init__(to, **kwargs)

    def to_python(self, value: Any) -> Optional[ObjectStorage]:
        if value is None or isinstance(value, ObjectStorage):
            return value
        return ObjectStorage(value)
