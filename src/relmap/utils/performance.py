"""
Statement statistics and N+1 detection for lazily loaded relations.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

_TABLE_PATTERN = re.compile(r'\b(?:FROM|INTO|UPDATE)\s+"?([A-Za-z0-9_]+)"?', re.IGNORECASE)


@dataclass
class StatementStat:
    """
    Executions of one normalized statement.
    """

    sql: str
    verb: str
    table: Optional[str]
    count: int = 0
    total_ms: float = 0.0
    parameter_sets: set[str] = field(default_factory=set)

    @classmethod
    def for_sql(cls, sql: str) -> "StatementStat":
        verb = sql.split(" ", 1)[0].upper() if sql else ""
        match = _TABLE_PATTERN.search(sql)
        return cls(sql=sql, verb=verb, table=match.group(1) if match else None)


class PerformanceTracker:
    """
    Records every statement a storage backend executes.

    When the same select runs ``n_plus_one_threshold`` times with different
    parameters a warning is logged once; that is what walking unloaded
    relations one parent at a time looks like.
    """

    def __init__(self, logger: logging.Logger, *, n_plus_one_threshold: int = 5) -> None:
        self.logger = logger
        self.n_plus_one_threshold = n_plus_one_threshold
        self.stats: Dict[str, StatementStat] = {}
        self._reported: set[str] = set()

    def record(self, sql: str, params: Sequence[object], elapsed_ms: float) -> None:
        normalized = " ".join(sql.split())
        stat = self.stats.get(normalized)
        if stat is None:
            stat = self.stats[normalized] = StatementStat.for_sql(normalized)
        stat.count += 1
        stat.total_ms += elapsed_ms
        if params:
            stat.parameter_sets.add(repr(tuple(params)))
        if (
            stat.verb == "SELECT"
            and stat.count >= self.n_plus_one_threshold
            and len(stat.parameter_sets) > 1
            and normalized not in self._reported
        ):
            self._reported.add(normalized)
            self.logger.warning(
                "Potential N+1 detected on table %s: %s selects with %s distinct parameter sets",
                stat.table,
                stat.count,
                len(stat.parameter_sets),
                extra={"sql": normalized},
            )

    def count(self, verb: Optional[str] = None, table: Optional[str] = None) -> int:
        """
        Number of recorded statements, optionally only those of one verb
        (``"SELECT"``, ``"UPDATE"`` ...) and/or touching one table.
        """
        total = 0
        for stat in self.stats.values():
            if verb is not None and stat.verb != verb.upper():
                continue
            if table is not None and stat.table != table:
                continue
            total += stat.count
        return total

    def summary(self) -> List[Dict[str, object]]:
        return [
            {
                "sql": stat.sql,
                "verb": stat.verb,
                "table": stat.table,
                "count": stat.count,
                "total_ms": stat.total_ms,
                "distinct_params": len(stat.parameter_sets),
            }
            for stat in self.stats.values()
        ]

    def reset(self) -> None:
        self.stats.clear()
        self._reported.clear()
