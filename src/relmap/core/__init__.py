from .domain import (
    DomainClassRegistry,
    DomainObject,
    DomainObjectMeta,
    DomainObjectOptions,
    Entity,
    ValueObject,
    class_key,
    domain_registry,
)
from .fields import (
    BooleanField,
    CoreTypeField,
    DateTimeField,
    Field,
    FloatField,
    IntegerField,
    ObjectStorageField,
    RelatedField,
    RelationField,
    StringField,
)
from .lazy import LazyValue, is_lazy_loaded
from .storage import ObjectStorage
from .types import CoreType, Enumeration

__all__ = [
    "BooleanField",
    "CoreType",
    "CoreTypeField",
    "DateTimeField",
    "DomainClassRegistry",
    "DomainObject",
    "DomainObjectMeta",
    "DomainObjectOptions",
    "Entity",
    "Enumeration",
    "Field",
    "FloatField",
    "IntegerField",
    "LazyValue",
    "ObjectStorage",
    "ObjectStorageField",
    "RelatedField",
    "RelationField",
    "StringField",
    "ValueObject",
    "class_key",
    "domain_registry",
    "is_lazy_loaded",
]
