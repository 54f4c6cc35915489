"""
Declarative table configuration consumed by the metadata factory.

A table definition is a mapping with a ``ctrl`` section (special columns
and flags) and a ``columns`` section::

    {
        "ctrl": {"tstamp": "tstamp", "delete": "deleted"},
        "columns": {
            "title": {"config": {"type": "input"}},
            "tags": {"config": {"type": "select", "foreign_table": "tx_tag",
                                "mm": "tx_article_tag_mm"}},
        },
    }
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Protocol


@dataclass
class TableControl:
    tstamp: Optional[str] = None
    crdate: Optional[str] = None
    cruser_id: Optional[str] = None
    delete: Optional[str] = None
    language_field: Optional[str] = None
    trans_orig_pointer_field: Optional[str] = None
    type: Optional[str] = None
    root_level: Optional[int] = None
    is_static: bool = False
    enable_columns: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "TableControl":
        root_level = data.get("root_level")
        return cls(
            tstamp=data.get("tstamp") or None,
            crdate=data.get("crdate") or None,
            cruser_id=data.get("cruser_id") or None,
            delete=data.get("delete") or None,
            language_field=data.get("language_field") or None,
            trans_orig_pointer_field=data.get("trans_orig_pointer_field") or None,
            type=data.get("type") or None,
            root_level=None if root_level is None else int(root_level),
            is_static=bool(data.get("is_static", False)),
            enable_columns=dict(data.get("enable_columns") or {}),
        )


class TableConfiguration(Protocol):
    """
    Read access to per-table column definitions and control flags.
    """

    def get_columns(self, table: str) -> Dict[str, Dict[str, Any]]:
        """
        Column definitions keyed by column name; empty for unknown tables.
        """

    def get_control(self, table: str) -> Optional[TableControl]:
        """
        Control section of ``table`` or ``None`` when it has none.
        """


class InMemoryTableConfiguration:
    """
    Table configuration held in a plain dictionary.
    """

    def __init__(self, tables: Optional[Mapping[str, Mapping[str, Any]]] = None) -> None:
        self._tables: Dict[str, Dict[str, Any]] = {}
        for name, definition in (tables or {}).items():
            self.register_table(name, ctrl=definition.get("ctrl"), columns=definition.get("columns"))

    def register_table(
        self,
        name: str,
        *,
        ctrl: Optional[Mapping[str, Any]] = None,
        columns: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ) -> None:
        self._tables[name] = {
            "ctrl": copy.deepcopy(dict(ctrl)) if ctrl is not None else None,
            "columns": copy.deepcopy(dict(columns or {})),
        }

    def get_columns(self, table: str) -> Dict[str, Dict[str, Any]]:
        definition = self._tables.get(table)
        if definition is None:
            return {}
        return copy.deepcopy(definition["columns"])

    def get_control(self, table: str) -> Optional[TableControl]:
        definition = self._tables.get(table)
        if definition is None or definition["ctrl"] is None:
            return None
        return TableControl.from_mapping(definition["ctrl"])

    def __contains__(self, table: str) -> bool:
        return table in self._tables
