"""
relmap public package initialization.

Exposes the domain base classes, property descriptors, the persistence
manager and the query API.
"""

from .config import ClassSettings, PersistenceConfiguration  # noqa: F401
from .core import (  # noqa: F401
    BooleanField,
    CoreType,
    CoreTypeField,
    DateTimeField,
    DomainObject,
    Entity,
    Enumeration,
    FloatField,
    IntegerField,
    LazyValue,
    ObjectStorage,
    ObjectStorageField,
    RelatedField,
    StringField,
    ValueObject,
)
from .errors import (  # noqa: F401
    CannotReconstituteError,
    ConfigurationError,
    IllegalRelationTypeError,
    InvalidClassError,
    PersistenceError,
    TooDirtyError,
    UnexpectedTypeError,
    UnknownObjectError,
    UnsupportedRelationError,
)
from .hooks import HookDispatcher  # noqa: F401
from .metadata import DataMapFactory, InMemoryTableConfiguration, RelationKind  # noqa: F401
from .persistence import PersistenceManager  # noqa: F401
from .query import Q, Query, QuerySettings  # noqa: F401
from .storage import SQLiteStorageBackend, StorageConfig  # noqa: F401

__all__ = [
    "BooleanField",
    "CannotReconstituteError",
    "ClassSettings",
    "ConfigurationError",
    "CoreType",
    "CoreTypeField",
    "DataMapFactory",
    "DateTimeField",
    "DomainObject",
    "Entity",
    "Enumeration",
    "FloatField",
    "HookDispatcher",
    "IllegalRelationTypeError",
    "InMemoryTableConfiguration",
    "IntegerField",
    "InvalidClassError",
    "LazyValue",
    "ObjectStorage",
    "ObjectStorageField",
    "PersistenceConfiguration",
    "PersistenceError",
    "PersistenceManager",
    "Q",
    "Query",
    "QuerySettings",
    "RelatedField",
    "RelationKind",
    "SQLiteStorageBackend",
    "StorageConfig",
    "StringField",
    "TooDirtyError",
    "UnexpectedTypeError",
    "UnknownObjectError",
    "UnsupportedRelationError",
    "ValueObject",
]
