"""
SQLite storage backend implementation.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..utils import get_logger, time_call
from ..utils.performance import PerformanceTracker
from .base import OrderBy, StorageConfig, StorageError, StorageExecutionError


@dataclass(slots=True)
class SQLiteConnectionState:
    connection: sqlite3.Connection


class SQLiteStorageBackend:
    """
    Storage backend wrapping the Python stdlib sqlite3 module.

    Statements run in autocommit mode; transaction handling belongs to the
    caller.
    """

    def __init__(
        self,
        config: StorageConfig | str | None = None,
        *,
        tracker: PerformanceTracker | None = None,
    ) -> None:
        if config is None or isinstance(config, str):
            config = StorageConfig(url=config or ":memory:")
        self.config = config
        self.slow_query_ms = config.slow_query_ms
        self.tracker = tracker
        self._state: SQLiteConnectionState | None = None
        self.logger = get_logger("storage.sqlite")

    # ------------------------------------------------------------------ #
    # Connection management
    # ------------------------------------------------------------------ #
    def connect(self) -> sqlite3.Connection:
        if self._state:
            return self._state.connection
        path = self._normalize_path(self.config.url)
        timeout = self.config.timeout if self.config.timeout is not None else 5.0
        try:
            connection = sqlite3.connect(
                path,
                isolation_level=None,
                timeout=timeout,
                check_same_thread=False,
            )
        except sqlite3.Error as exc:
            raise StorageExecutionError(f"Could not open SQLite database '{path}': {exc}") from exc
        connection.row_factory = sqlite3.Row
        self._state = SQLiteConnectionState(connection)
        return connection

    def close(self) -> None:
        if self._state:
            self._state.connection.close()
            self._state = None

    def __enter__(self) -> "SQLiteStorageBackend":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------ #
    # Execution helpers
    # ------------------------------------------------------------------ #
    def execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        connection = self.connect()
        cursor = connection.cursor()
        params = tuple(params or ())
        on_finish = None
        if self.tracker is not None:
            tracker = self.tracker

            def on_finish(elapsed_ms: float) -> None:
                tracker.record(sql, params, elapsed_ms)

        try:
            with time_call(
                "sqlite.execute",
                self.logger,
                sql=sql,
                params=self._redact(params),
                threshold_ms=self.slow_query_ms,
                on_finish=on_finish,
            ):
                cursor.execute(sql, params)
        except sqlite3.Error as exc:
            raise StorageExecutionError(f"{exc} (SQL: {sql})") from exc
        self.logger.debug("SQL executed", extra={"sql": sql, "params": self._redact(params)})
        return cursor

    def executescript(self, script: str) -> None:
        connection = self.connect()
        try:
            connection.executescript(script)
        except sqlite3.Error as exc:
            raise StorageExecutionError(str(exc)) from exc

    def quote_identifier(self, name: str) -> str:
        if name == "*":
            return name
        return ".".join('"' + part.replace('"', '""') + '"' for part in name.split("."))

    # ------------------------------------------------------------------ #
    # Row operations
    # ------------------------------------------------------------------ #
    def add_row(self, table: str, row: Mapping[str, Any], is_relation: bool = False) -> int:
        if row:
            columns = ", ".join(self.quote_identifier(column) for column in row)
            placeholders = ", ".join("?" for _ in row)
            sql = (
                f"INSERT INTO {self.quote_identifier(table)} ({columns}) "
                f"VALUES ({placeholders})"
            )
        else:
            sql = f"INSERT INTO {self.quote_identifier(table)} DEFAULT VALUES"
        cursor = self.execute(sql, list(row.values()))
        uid = cursor.lastrowid
        return int(uid) if uid is not None else 0

    def update_row(self, table: str, row: Mapping[str, Any]) -> bool:
        if "uid" not in row:
            raise StorageError(f"Cannot update a row of '{table}' without a uid")
        values = {column: value for column, value in row.items() if column != "uid"}
        if not values:
            return True
        assignments = ", ".join(f"{self.quote_identifier(column)} = ?" for column in values)
        sql = f"UPDATE {self.quote_identifier(table)} SET {assignments} WHERE \"uid\" = ?"
        self.execute(sql, [*values.values(), row["uid"]])
        return True

    def update_relation_table_row(
        self, table: str, match: Mapping[str, Any], values: Mapping[str, Any]
    ) -> bool:
        where, params = self._match_clause(match)
        if values:
            assignments = ", ".join(f"{self.quote_identifier(column)} = ?" for column in values)
            sql = f"UPDATE {self.quote_identifier(table)} SET {assignments} WHERE {where}"
            cursor = self.execute(sql, [*values.values(), *params])
            if cursor.rowcount > 0:
                return True
        elif self.count(self.quote_identifier(table), where, params) > 0:
            return True
        self.add_row(table, {**match, **values}, is_relation=True)
        return True

    def remove_row(self, table: str, match: Mapping[str, Any], is_relation: bool = False) -> bool:
        where, params = self._match_clause(match)
        sql = f"DELETE FROM {self.quote_identifier(table)} WHERE {where}"
        self.execute(sql, params)
        return True

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
        sql = f"SELECT {fields} FROM {from_clause}"
        if where_clause:
            sql += f" WHERE {where_clause}"
        if order_by:
            sql += " ORDER BY " + ", ".join(f"{column} {direction}" for column, direction in order_by)
        params = list(params)
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
            if offset is not None:
                sql += " OFFSET ?"
                params.append(offset)
        elif offset is not None:
            sql += " LIMIT -1 OFFSET ?"
            params.append(offset)
        cursor = self.execute(sql, params)
        return [dict(row) for row in cursor.fetchall()]

    def count(self, from_clause: str, where_clause: str = "", params: Sequence[Any] = ()) -> int:
        sql = f"SELECT COUNT(*) FROM {from_clause}"
        if where_clause:
            sql += f" WHERE {where_clause}"
        row = self.execute(sql, params).fetchone()
        return int(row[0]) if row else 0

    def truncate(self, table: str) -> None:
        self.execute(f"DELETE FROM {self.quote_identifier(table)}")

    def find_uid(self, table: str, match: Mapping[str, Any]) -> Optional[int]:
        where, params = self._match_clause(match)
        sql = f"SELECT \"uid\" FROM {self.quote_identifier(table)} WHERE {where} LIMIT 1"
        row = self.execute(sql, params).fetchone()
        return int(row[0]) if row else None

    # ------------------------------------------------------------------ #
    def _match_clause(self, match: Mapping[str, Any]) -> Tuple[str, List[Any]]:
        if not match:
            raise StorageError("Refusing to run a statement without match conditions")
        parts: List[str] = []
        params: List[Any] = []
        for column, value in match.items():
            if value is None:
                parts.append(f"{self.quote_identifier(column)} IS NULL")
            else:
                parts.append(f"{self.quote_identifier(column)} = ?")
                params.append(value)
        return " AND ".join(parts), params

    @staticmethod
    def _normalize_path(url: str) -> str:
        if url in {"sqlite:///:memory:", ":memory:"}:
            return ":memory:"
        prefix = "sqlite:///"
        if url.startswith(prefix):
            return url[len(prefix) :]
        return url

    @staticmethod
    def _redact(params: Sequence[Any]) -> Sequence[Any]:
        redacted = []
        for value in params:
            if isinstance(value, str) and "password" in value.lower():
                redacted.append("***")
            else:
                redacted.append(value)
        return redacted
