"""
Chainable queries over one domain class and their lazily executed results.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional, Tuple

from .compiler import SQLCompiler
from .expressions import Q

if TYPE_CHECKING:
    from ..persistence.mapper import DataMapper
    from ..storage.base import StorageBackend


@dataclass
class QuerySettings:
    """
    Restrictions applied on top of the query constraint.

    ``storage_page_ids`` falls back to the configured storage pids when
    empty.
    """

    respect_storage_page: bool = True
    storage_page_ids: List[int] = field(default_factory=list)
    ignore_enable_fields: bool = False
    include_deleted: bool = False


@dataclass(frozen=True)
class JoinSource:
    """
    Select the queried class through a junction table joined on
    ``relation_table.child_key = table.uid``.
    """

    relation_table: str
    child_key: str


class Query:
    """
    Query for objects of ``type``. Builder methods return new queries.
    """

    def __init__(
        self,
        type: type,
        data_mapper: "DataMapper",
        storage: "StorageBackend | None" = None,
        *,
        settings: Optional[QuerySettings] = None,
        where: Optional[Q] = None,
        ordering: Tuple[str, ...] = (),
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        source: Optional[JoinSource] = None,
    ) -> None:
        self.type = type
        self.data_mapper = data_mapper
        self.storage = storage if storage is not None else data_mapper.storage
        self.settings = settings or QuerySettings()
        self.where = where or Q()
        self.ordering = ordering
        self._limit = limit
        self._offset = offset
        self.source = source

    # Public API --------------------------------------------------------
    def matching(self, constraint: Q) -> "Query":
        return self._clone(where=self.where & constraint)

    def filter(self, **lookups: Any) -> "Query":
        return self.matching(Q(**lookups))

    def order_by(self, *names: str) -> "Query":
        return self._clone(ordering=tuple(names))

    def limit(self, value: int) -> "Query":
        return self._clone(limit=value)

    def offset(self, value: int) -> "Query":
        return self._clone(offset=value)

    def set_source(self, source: JoinSource) -> "Query":
        return self._clone(source=source)

    def get_limit(self) -> Optional[int]:
        return self._limit

    def get_offset(self) -> Optional[int]:
        return self._offset

    def execute(self) -> "QueryResult":
        return QueryResult(self)

    def count(self) -> int:
        compiled = SQLCompiler(self).compile()
        return self.storage.count(compiled.from_clause, compiled.where_clause, compiled.params)

    def get_rows(self) -> List[Dict[str, Any]]:
        compiled = SQLCompiler(self).compile()
        return self.storage.select_rows(
            compiled.fields,
            compiled.from_clause,
            compiled.where_clause,
            compiled.params,
            compiled.order_by,
            compiled.limit,
            compiled.offset,
        )

    # Internal helpers --------------------------------------------------
    def _clone(self, **overrides: Any) -> "Query":
        return Query(
            self.type,
            self.data_mapper,
            self.storage,
            settings=replace(self.settings, storage_page_ids=list(self.settings.storage_page_ids)),
            where=overrides.get("where", self.where),
            ordering=overrides.get("ordering", self.ordering),
            limit=overrides.get("limit", self._limit),
            offset=overrides.get("offset", self._offset),
            source=overrides.get("source", self.source),
        )


class QueryResult:
    """
    Result of a query. The select runs on first access and only once.
    """

    def __init__(self, query: Query) -> None:
        self.query = query
        self._objects: Optional[List[Any]] = None

    def _load(self) -> List[Any]:
        if self._objects is None:
            rows = self.query.get_rows()
            self._objects = self.query.data_mapper.map(self.query.type, rows)
        return self._objects

    def __iter__(self) -> Iterator[Any]:
        return iter(self._load())

    def __len__(self) -> int:
        return len(self._load())

    def __getitem__(self, index: int) -> Any:
        return self._load()[index]

    def __bool__(self) -> bool:
        return bool(self._load())

    def count(self) -> int:
        if self._objects is not None:
            return len(self._objects)
        return self.query.count()

    def first(self) -> Any:
        if self._objects is not None:
            return self._objects[0] if self._objects else None
        objects = self.query.limit(1).execute().to_list()
        return objects[0] if objects else None

    def to_list(self) -> List[Any]:
        return list(self._load())

    def is_loaded(self) -> bool:
        return self._objects is not None
