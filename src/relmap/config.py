"""
Persistence configuration for relmap.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .errors import ConfigurationError


_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_bool(value: Any, *, key: str) -> bool:
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"Invalid boolean value for '{key}': {value!r}")


def _parse_int(value: Any, *, key: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid integer value for '{key}': {value!r}") from exc


def _parse_int_list(value: Any, *, key: str) -> List[int]:
    if isinstance(value, str):
        items = [item.strip() for item in value.split(",") if item.strip()]
    elif isinstance(value, int):
        items = [value]
    else:
        items = list(value)
    if not items:
        raise ConfigurationError(f"'{key}' requires at least one value")
    return [_parse_int(item, key=key) for item in items]


@dataclass
class ClassSettings:
    """
    Per-class persistence settings.

    ``columns`` maps column names to overrides in the same shape the table
    configuration uses (``{"map_on_property": ..., "config": {...}}``).
    """

    table_name: Optional[str] = None
    record_type: Optional[str] = None
    subclasses: List[str] = field(default_factory=list)
    columns: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    new_record_storage_pid: Optional[int] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, key: str = "classes") -> "ClassSettings":
        unknown = set(data) - {
            "table_name",
            "record_type",
            "subclasses",
            "columns",
            "new_record_storage_pid",
        }
        if unknown:
            raise ConfigurationError(f"Unknown settings for '{key}': {sorted(unknown)}")
        pid = data.get("new_record_storage_pid")
        return cls(
            table_name=data.get("table_name"),
            record_type=data.get("record_type"),
            subclasses=list(data.get("subclasses") or []),
            columns={name: dict(value) for name, value in (data.get("columns") or {}).items()},
            new_record_storage_pid=None if pid is None else _parse_int(
                pid, key=f"{key}.new_record_storage_pid"
            ),
        )


@dataclass
class PersistenceConfiguration:
    """
    Settings shared by the metadata factory and the persistence backend.
    """

    storage_pid: List[int] = field(default_factory=lambda: [0])
    update_reference_index: bool = False
    classes: Dict[str, ClassSettings] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PersistenceConfiguration":
        config = cls()
        if "storage_pid" in data:
            config.storage_pid = _parse_int_list(data["storage_pid"], key="storage_pid")
        if "update_reference_index" in data:
            config.update_reference_index = _parse_bool(
                data["update_reference_index"], key="update_reference_index"
            )
        for name, settings in (data.get("classes") or {}).items():
            if isinstance(settings, ClassSettings):
                config.classes[name] = settings
            else:
                config.classes[name] = ClassSettings.from_mapping(settings, key=f"classes.{name}")
        return config

    @classmethod
    def from_env(
        cls, prefix: str = "RELMAP_", environ: Optional[Mapping[str, str]] = None
    ) -> "PersistenceConfiguration":
        """
        Build a configuration from ``<prefix>STORAGE_PID`` (comma separated)
        and ``<prefix>UPDATE_REFERENCE_INDEX``.
        """
        env = os.environ if environ is None else environ
        data: Dict[str, Any] = {}
        storage_pid = env.get(f"{prefix}STORAGE_PID")
        if storage_pid:
            data["storage_pid"] = storage_pid
        update_reference_index = env.get(f"{prefix}UPDATE_REFERENCE_INDEX")
        if update_reference_index:
            data["update_reference_index"] = update_reference_index
        return cls.from_mapping(data)

    def settings_for(self, cls: type) -> Optional[ClassSettings]:
        """
        Settings registered under the dotted class name or the plain one.
        """
        dotted = f"{cls.__module__}.{cls.__qualname__}"
        return self.classes.get(dotted) or self.classes.get(cls.__name__)

    @property
    def default_storage_pid(self) -> int:
        return self.storage_pid[0] if self.storage_pid else 0
