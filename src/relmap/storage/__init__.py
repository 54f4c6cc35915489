"""
Storage backends executing the row operations issued by relmap.
"""

from .base import (
    ReferenceIndex,
    StorageBackend,
    StorageConfig,
    StorageConfigurationError,
    StorageError,
    StorageExecutionError,
)
from .sqlite import SQLiteStorageBackend

__all__ = [
    "ReferenceIndex",
    "SQLiteStorageBackend",
    "StorageBackend",
    "StorageConfig",
    "StorageConfigurationError",
    "StorageError",
    "StorageExecutionError",
]
