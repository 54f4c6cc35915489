"""
Error hierarchy for relmap.

All of these are configuration or programming errors; they are raised
immediately and never retried. Storage failures are reported through
:mod:`relmap.storage.base`.
"""

from __future__ import annotations


class PersistenceError(Exception):
    """Base class for mapper and persistence errors."""


class ConfigurationError(PersistenceError):
    """Raised when metadata or settings are inconsistent."""


class InvalidClassError(PersistenceError):
    """Raised when metadata is requested for an unknown or non-domain class."""


class UnsupportedRelationError(PersistenceError):
    """Raised when a many-to-many descriptor lacks required keys."""


class IllegalRelationTypeError(PersistenceError):
    """Raised when an operation expects a different relation kind."""


class UnexpectedTypeError(PersistenceError):
    """Raised when a value cannot be converted to or from its storage form."""


class CannotReconstituteError(PersistenceError):
    """Raised when a row is mapped onto a class that is not a domain object."""


class TooDirtyError(PersistenceError):
    """Raised when the identifier of a persisted object was modified."""


class UnknownObjectError(PersistenceError):
    """Raised when an operation requires an object the session does not know."""
