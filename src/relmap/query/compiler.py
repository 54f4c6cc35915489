"""
SQL compilation translating queries into select parts and parameters.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, List, Optional, Tuple

from ..errors import ConfigurationError
from .expressions import Q

if TYPE_CHECKING:
    from ..metadata.datamap import DataMap
    from .query import Query


LOOKUP_OPERATORS = {
    "exact": "=",
    "gt": ">",
    "gte": ">=",
    "lt": "<",
    "lte": "<=",
    "contains": "LIKE",
    "in": "IN",
}


@dataclass
class CompiledQuery:
    fields: str
    from_clause: str
    where_clause: str = ""
    params: List[Any] = field(default_factory=list)
    order_by: List[Tuple[str, str]] = field(default_factory=list)
    limit: Optional[int] = None
    offset: Optional[int] = None

    def to_sql(self) -> str:
        sql = f"SELECT {self.fields} FROM {self.from_clause}"
        if self.where_clause:
            sql += f" WHERE {self.where_clause}"
        if self.order_by:
            sql += " ORDER BY " + ", ".join(f"{column} {direction}" for column, direction in self.order_by)
        return sql


class SQLCompiler:
    """
    Compile a :class:`~relmap.query.query.Query` into the parts the storage
    backend's ``select_rows`` and ``count`` expect.

    Besides the query constraint the where clause carries the record type
    restriction, the enable fields (deleted, disabled, start and end time)
    and the storage page restriction.
    """

    def __init__(self, query: "Query", *, now: Optional[int] = None) -> None:
        self.query = query
        self.data_mapper = query.data_mapper
        self.storage = query.storage
        self.data_map: "DataMap" = self.data_mapper.get_data_map(query.type)
        self.now = now if now is not None else self.data_mapper.clock()

    def compile(self) -> CompiledQuery:
        table = self._quote(self.data_map.table_name)
        source = self.query.source
        if source is not None:
            from_clause = (
                f"{self._quote(source.relation_table)} INNER JOIN {table} ON "
                f"{self._quote(source.relation_table + '.' + source.child_key)} = "
                f"{self._quote(self.data_map.table_name + '.uid')}"
            )
        else:
            from_clause = table

        parts: List[str] = []
        params: List[Any] = []
        if not self.query.where.is_empty():
            where_sql, where_params = self._compile_q(self.query.where)
            if where_sql:
                parts.append(where_sql)
                params.extend(where_params)
        for sql, sql_params in (
            self._record_type_statement(),
            self._enable_fields_statement(),
            self._page_id_statement(),
        ):
            if sql:
                parts.append(sql)
                params.extend(sql_params)

        return CompiledQuery(
            fields=f"{table}.*",
            from_clause=from_clause,
            where_clause=" AND ".join(f"({part})" for part in parts) if len(parts) > 1 else "".join(parts),
            params=params,
            order_by=[self._compile_ordering(name) for name in self.query.ordering],
            limit=self.query.get_limit(),
            offset=self.query.get_offset(),
        )

    # Helpers -----------------------------------------------------------
    def _quote(self, name: str) -> str:
        return self.storage.quote_identifier(name)

    def _column(self, name: str) -> str:
        if "." in name:
            return self._quote(name)
        column_name = self.data_mapper.convert_property_name_to_column_name(name, self.query.type)
        return self._quote(f"{self.data_map.table_name}.{column_name}")

    def _compile_ordering(self, name: str) -> Tuple[str, str]:
        descending = name.startswith("-")
        name = name[1:] if descending else name
        return self._column(name), "DESC" if descending else "ASC"

    def _compile_q(self, q: Q) -> Tuple[str, List[Any]]:
        parts: List[str] = []
        params: List[Any] = []
        for child in q.children:
            if isinstance(child, Q):
                child_sql, child_params = self._compile_q(child)
                if child_sql:
                    parts.append(f"({child_sql})")
                    params.extend(child_params)
            elif isinstance(child, tuple):
                name_lookup, value = child
                sql, child_params = self._compile_lookup(name_lookup, value)
                parts.append(sql)
                params.extend(child_params)

        if not parts:
            return "", []
        sql = f" {q.connector} ".join(parts)
        if q.negated:
            sql = f"NOT ({sql})"
        return sql, params

    def _compile_lookup(self, name_lookup: str, value: Any) -> Tuple[str, List[Any]]:
        if "__" in name_lookup:
            name, lookup = name_lookup.rsplit("__", 1)
        else:
            name, lookup = name_lookup, "exact"
        column = self._column(name)

        if value is None:
            if lookup != "exact":
                raise ValueError("NULL comparison only supported for equality.")
            return f"{column} IS NULL", []

        operator = LOOKUP_OPERATORS.get(lookup)
        if operator is None:
            raise ValueError(f"Unsupported lookup '{lookup}'")

        if lookup == "in":
            values = [self.data_mapper.get_plain_value(item) for item in value]
            if not values:
                return "0 = 1", []
            placeholders = ", ".join("?" for _ in values)
            return f"{column} IN ({placeholders})", values

        plain = self.data_mapper.get_plain_value(value)
        if lookup == "contains":
            plain = f"%{plain}%"
        return f"{column} {operator} ?", [plain]

    def _record_type_statement(self) -> Tuple[str, List[Any]]:
        data_map = self.data_map
        if not data_map.record_type_column:
            return "", []
        record_types: List[str] = []
        if data_map.record_type is not None:
            record_types.append(data_map.record_type)
        for subclass in data_map.subclasses:
            subclass_map = self.data_mapper.get_data_map(subclass)
            if subclass_map.record_type is not None:
                record_types.append(subclass_map.record_type)
        if not record_types:
            return "", []
        column = self._quote(f"{data_map.table_name}.{data_map.record_type_column}")
        placeholders = ", ".join("?" for _ in record_types)
        return f"{column} IN ({placeholders})", record_types

    def _enable_fields_statement(self) -> Tuple[str, List[Any]]:
        data_map = self.data_map
        settings = self.query.settings
        table = data_map.table_name
        parts: List[str] = []
        params: List[Any] = []
        if data_map.deleted_flag_column and not settings.include_deleted:
            parts.append(f"{self._quote(f'{table}.{data_map.deleted_flag_column}')} = 0")
        if not settings.ignore_enable_fields:
            if data_map.disabled_flag_column:
                parts.append(f"{self._quote(f'{table}.{data_map.disabled_flag_column}')} = 0")
            if data_map.start_time_column:
                parts.append(f"{self._quote(f'{table}.{data_map.start_time_column}')} <= ?")
                params.append(self.now)
            if data_map.end_time_column:
                column = self._quote(f"{table}.{data_map.end_time_column}")
                parts.append(f"({column} = 0 OR {column} > ?)")
                params.append(self.now)
        return " AND ".join(parts), params

    def _page_id_statement(self) -> Tuple[str, List[Any]]:
        data_map = self.data_map
        settings = self.query.settings
        if not settings.respect_storage_page:
            return "", []
        if data_map.root_level == 1 or data_map.is_static:
            return "", []
        page_ids = settings.storage_page_ids or list(self.data_mapper.config.storage_pid)
        if not page_ids:
            raise ConfigurationError("No storage page ids configured for a storage page restriction")
        column = self._quote(f"{data_map.table_name}.{data_map.page_id_column}")
        placeholders = ", ".join("?" for _ in page_ids)
        return f"{column} IN ({placeholders})", list(page_ids)
