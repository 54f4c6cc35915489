"""
Storage protocol definitions for relmap.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple


class StorageError(RuntimeError):
    """Base error for storage-related failures."""


class StorageConfigurationError(StorageError):
    """Raised when storage configuration is invalid."""


class StorageExecutionError(StorageError):
    """Raised when SQL execution fails; the driver error is the cause."""


OrderBy = Sequence[Tuple[str, str]]


@dataclass
class StorageConfig:
    """
    Normalized configuration for storage backends.
    """

    url: str = ":memory:"
    timeout: float | None = None
    slow_query_ms: int = 100
    source: str | None = None

    @classmethod
    def from_env(cls, env_var: str = "RELMAP_DATABASE_URL", **kwargs: Any) -> "StorageConfig":
        """
        Build a config from an environment variable containing the database URL.

        ``RELMAP_SLOW_QUERY_MS`` overrides the slow statement threshold.
        """
        value = os.getenv(env_var)
        if not value:
            raise StorageConfigurationError(f"Environment variable {env_var} is not set")
        slow_query_ms = os.getenv("RELMAP_SLOW_QUERY_MS")
        if slow_query_ms and "slow_query_ms" not in kwargs:
            try:
                kwargs["slow_query_ms"] = int(slow_query_ms)
            except ValueError as exc:
                raise StorageConfigurationError(
                    f"Invalid integer value for 'RELMAP_SLOW_QUERY_MS': {slow_query_ms!r}"
                ) from exc
        return cls(url=value, source=env_var, **kwargs)


class StorageBackend(Protocol):
    """
    Row-level operations the persistence layer issues.
    """

    def add_row(self, table: str, row: Mapping[str, Any], is_relation: bool = False) -> int:
        """
        Insert ``row`` and return the generated uid.
        """

    def update_row(self, table: str, row: Mapping[str, Any]) -> bool:
        """
        Update the row identified by ``row["uid"]`` with the other entries.
        """

    def update_relation_table_row(
        self, table: str, match: Mapping[str, Any], values: Mapping[str, Any]
    ) -> bool:
        """
        Update junction rows matching ``match``; insert one when none match.
        """

    def remove_row(self, table: str, match: Mapping[str, Any], is_relation: bool = False) -> bool:
        """
        Delete all rows matching ``match``.
        """

    def select_rows(
        self,
        fields: str,
        from_clause: str,
        where_clause: str = "",
        params: Sequence[Any] = (),
        order_by: OrderBy = (),
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Run a select and return rows as dictionaries.
        """

    def count(self, from_clause: str, where_clause: str = "", params: Sequence[Any] = ()) -> int:
        """
        Number of rows the select would return.
        """

    def truncate(self, table: str) -> None:
        """
        Delete every row of ``table``.
        """

    def find_uid(self, table: str, match: Mapping[str, Any]) -> Optional[int]:
        """
        Uid of the first row whose columns equal ``match``.
        """

    def quote_identifier(self, name: str) -> str:
        """
        Quote a column or table name; dotted names are quoted per segment.
        """

    def execute(self, sql: str, params: Sequence[Any] = ()) -> Any:
        """
        Execute a single statement returning a cursor-like object.
        """


class ReferenceIndex(Protocol):
    """
    External index of references between records.
    """

    def update_ref_index_table(self, table: str, uid: int) -> None:
        """
        Refresh the index entries of one record.
        """
