"""
Query building and execution for relmap.
"""

from .compiler import LOOKUP_OPERATORS, CompiledQuery, SQLCompiler
from .expressions import AND, OR, Q
from .query import JoinSource, Query, QueryResult, QuerySettings

__all__ = [
    "AND",
    "CompiledQuery",
    "JoinSource",
    "LOOKUP_OPERATORS",
    "OR",
    "Q",
    "Query",
    "QueryResult",
    "QuerySettings",
    "SQLCompiler",
]
