"""
Domain object base classes and metadata orchestration for relmap.
"""

from __future__ import annotations

import importlib
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional, Type, Union

from ..errors import ConfigurationError, InvalidClassError, TooDirtyError
from .fields import Field, IntegerField
from .lazy import LazyValue
from .storage import ObjectStorage


def class_key(cls: type) -> str:
    """
    Dotted ``module.QualName`` identifying a domain class.
    """
    return f"{cls.__module__}.{cls.__qualname__}"


@dataclass
class DomainObjectOptions:
    """
    Container for class metadata calculated by :class:`DomainObjectMeta`.
    """

    model: Type["DomainObject"]
    table_name: Optional[str] = None
    abstract: bool = False
    fields: "OrderedDict[str, Field]" = field(default_factory=OrderedDict)

    def add_field(self, field_obj: Field) -> None:
        if field_obj.name in self.fields:
            raise ConfigurationError(
                f"Duplicate property '{field_obj.name}' on class '{self.model.__name__}'"
            )
        self.fields[field_obj.require_name()] = field_obj

    def get_field(self, name: str) -> Field:
        try:
            return self.fields[name]
        except KeyError as exc:
            raise KeyError(f"Unknown property '{name}' on class '{self.model.__name__}'") from exc

    def get_fields(self) -> Iterable[Field]:
        return self.fields.values()


class DomainClassRegistry:
    """
    Resolves class references (classes, dotted names, short names) to
    domain classes.
    """

    def __init__(self) -> None:
        self._by_key: Dict[str, type] = {}
        self._by_name: Dict[str, type] = {}

    def register(self, cls: type) -> None:
        self._by_key[class_key(cls)] = cls
        self._by_name[cls.__name__] = cls

    def resolve(self, reference: Union[str, type]) -> Type["DomainObject"]:
        if isinstance(reference, type):
            if not issubclass(reference, DomainObject):
                raise InvalidClassError(f"'{reference.__name__}' is not a domain object class")
            return reference
        cls = self._by_key.get(reference) or self._by_name.get(reference)
        if cls is None and "." in reference:
            cls = self._import(reference)
        if cls is None:
            raise InvalidClassError(f"Could not find class definition for name '{reference}'")
        return cls  # type: ignore[return-value]

    def _import(self, dotted: str) -> Optional[type]:
        module_name, _, attr = dotted.rpartition(".")
        try:
            module = importlib.import_module(module_name)
        except ImportError:
            return None
        candidate = getattr(module, attr, None)
        if isinstance(candidate, type) and issubclass(candidate, DomainObject):
            return candidate
        return None


domain_registry = DomainClassRegistry()


class DomainObjectMeta(type):
    """
    Metaclass responsible for collecting property fields, inherited ones
    included, into ``cls._meta``.
    """

    def __new__(
        mcls, name: str, bases: tuple[type, ...], attrs: Dict[str, Any]
    ) -> "DomainObjectMeta":
        declared_fields: Dict[str, Field] = {}
        for attr_name, value in list(attrs.items()):
            if isinstance(value, Field):
                declared_fields[attr_name] = attrs.pop(attr_name)

        cls = super().__new__(mcls, name, bases, attrs)

        meta = attrs.get("Meta")
        table_name = getattr(meta, "table", None) if meta else None
        abstract = getattr(meta, "abstract", False) if meta else False
        cls._meta = DomainObjectOptions(model=cls, table_name=table_name, abstract=abstract)

        for base in reversed(cls.__mro__[1:]):
            base_meta = base.__dict__.get("_meta")
            if base_meta is None:
                continue
            for field_name, field_obj in base_meta.fields.items():
                if field_name not in declared_fields:
                    cls._meta.fields[field_name] = field_obj

        sorted_fields = sorted(declared_fields.items(), key=lambda item: item[1].creation_counter)
        for attr_name, field_obj in sorted_fields:
            field_obj.contribute_to_class(cls, attr_name)
            cls._meta.fields.pop(attr_name, None)
            cls._meta.add_field(field_obj)

        if not cls._meta.abstract:
            domain_registry.register(cls)
        return cls


class DomainObject(metaclass=DomainObjectMeta):
    """
    Base of all persistable objects.

    Property values live in ``_properties``; ``_clean_properties`` holds the
    snapshot taken by :meth:`memorize_clean_state` that dirty checks compare
    against.
    """

    uid = IntegerField()
    pid = IntegerField()

    class Meta:
        abstract = True

    def __init__(self, **kwargs: Any) -> None:
        self._reset_state()
        for name, value in kwargs.items():
            if name not in self._meta.fields:
                raise TypeError(f"{self.__class__.__name__} has no property '{name}'")
            setattr(self, name, value)
        self.initialize_object()

    @classmethod
    def create_empty(cls) -> "DomainObject":
        """
        Instance with no property set, without running ``__init__``.
        """
        obj = cls.__new__(cls)
        obj._reset_state()
        obj.initialize_object()
        return obj

    def _reset_state(self) -> None:
        self._properties: Dict[str, Any] = {}
        self._clean_properties: Dict[str, Any] = {}
        self._language_uid: Optional[int] = None
        self._localized_uid: Optional[int] = None

    def initialize_object(self) -> None:
        """
        Hook for subclasses, run for new and reconstituted objects alike.
        """
        return None

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} uid={self._properties.get('uid')!r}>"

    def __str__(self) -> str:
        return f"{class_key(self.__class__)}:{self._properties.get('uid')}"

    # Property access -----------------------------------------------------
    def has_property(self, name: str) -> bool:
        return name in self._meta.fields

    def get_property(self, name: str) -> Any:
        if not self.has_property(name):
            raise AttributeError(f"{self.__class__.__name__} has no property '{name}'")
        return getattr(self, name)

    def set_property(self, name: str, value: Any) -> bool:
        if not self.has_property(name):
            return False
        setattr(self, name, value)
        return True

    def get_properties(self) -> Dict[str, Any]:
        """
        Current property values. Unloaded lazy values are returned as is.
        """
        values: Dict[str, Any] = {}
        for name in self._meta.fields:
            if name in self._properties:
                values[name] = self._properties[name]
            else:
                values[name] = getattr(self, name)
        return values

    def _get_raw_property(self, name: str) -> Any:
        if name in self._properties:
            return self._properties[name]
        return getattr(self, name)

    def _set_raw_property(self, name: str, value: Any) -> None:
        self._properties[name] = value

    def _resolve_lazy(self, name: str) -> Any:
        value = self._properties.get(name)
        if not isinstance(value, LazyValue):
            return value
        loaded = value.load()
        self._properties[name] = loaded
        if self._clean_properties.get(name) is value:
            self._memorize_property_clean_state(name)
        return loaded

    # State -----------------------------------------------------------------
    def is_new(self) -> bool:
        return self._properties.get("uid") is None

    def memorize_clean_state(self, name: Optional[str] = None) -> None:
        if name is not None:
            self._memorize_property_clean_state(name)
            return
        self._clean_properties = {}
        for property_name in self._meta.fields:
            self._memorize_property_clean_state(property_name)

    def _memorize_property_clean_state(self, name: str) -> None:
        value = self._get_raw_property(name)
        if isinstance(value, ObjectStorage):
            value.memorize_clean_state()
        self._clean_properties[name] = self._clean_copy(value)

    @staticmethod
    def _clean_copy(value: Any) -> Any:
        if isinstance(value, ObjectStorage):
            return value.clean_copy()
        return value

    def get_clean_properties(self) -> Dict[str, Any]:
        return dict(self._clean_properties)

    def get_clean_property(self, name: str) -> Any:
        return self._clean_properties.get(name)

    def _resolve_clean_lazy(self, name: str) -> Any:
        """
        Clean value of ``name``, loading it first when the property was
        replaced while its snapshot was still pending.
        """
        clean = self._clean_properties.get(name)
        if isinstance(clean, LazyValue):
            clean = self._clean_copy(clean.load())
            self._clean_properties[name] = clean
        return clean

    def is_dirty(self, name: Optional[str] = None) -> bool:
        """
        Whether ``name`` (or any memorized property) differs from the clean
        snapshot.

        Raises :class:`TooDirtyError` when the identifier of a persisted
        object was changed.
        """
        clean_uid = self._clean_properties.get("uid")
        if clean_uid is not None and self._properties.get("uid") != clean_uid:
            raise TooDirtyError(
                f"The uid '{self._properties.get('uid')}' has been modified, "
                f"that is simply too much."
            )
        if name is not None:
            return self._is_property_dirty(
                self._clean_properties.get(name), self._get_raw_property(name)
            )
        for property_name, clean_value in self._clean_properties.items():
            if self._is_property_dirty(clean_value, self._get_raw_property(property_name)):
                return True
        return False

    @staticmethod
    def _is_property_dirty(previous: Any, current: Any) -> bool:
        if isinstance(current, LazyValue):
            return False
        if isinstance(current, DomainObject):
            return (
                not isinstance(previous, DomainObject)
                or previous.__class__ is not current.__class__
                or previous._properties.get("uid") != current._properties.get("uid")
            )
        if isinstance(current, ObjectStorage):
            return not isinstance(previous, ObjectStorage) or current.is_dirty()
        return previous != current


class Entity(DomainObject):
    """
    Domain object with identity: two entities are the same when their uid is.
    """

    class Meta:
        abstract = True


class ValueObject(DomainObject):
    """
    Domain object defined by its values. Persisting a value object reuses an
    existing row with equal values.
    """

    class Meta:
        abstract = True
