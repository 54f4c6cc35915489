"""
Hook dispatcher coordinating persistence lifecycle events.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

HookHandler = Callable[..., None]


@dataclass(frozen=True)
class HookEvent:
    name: str


AFTER_INSERT = HookEvent("after_insert")
END_INSERT = HookEvent("end_insert")
AFTER_UPDATE = HookEvent("after_update")
AFTER_PERSIST = HookEvent("after_persist")
AFTER_REMOVE = HookEvent("after_remove")

EVENTS = frozenset(
    event.name for event in (AFTER_INSERT, END_INSERT, AFTER_UPDATE, AFTER_PERSIST, AFTER_REMOVE)
)


class HookDispatcher:
    """
    Maintains global and per-class hook handlers.

    Handlers registered for a class also receive events for its subclasses.
    """

    def __init__(self) -> None:
        self._global_handlers: Dict[str, List[HookHandler]] = defaultdict(list)
        self._model_handlers: Dict[type, Dict[str, List[HookHandler]]] = defaultdict(
            lambda: defaultdict(list)
        )

    def register(self, event: str, handler: HookHandler, *, model: Optional[type] = None) -> None:
        if event not in EVENTS:
            raise ValueError(f"Unknown hook event '{event}'")
        if model:
            self._model_handlers[model][event].append(handler)
        else:
            self._global_handlers[event].append(handler)

    def unregister(self, event: str, handler: HookHandler, *, model: Optional[type] = None) -> None:
        handlers = self._model_handlers[model][event] if model else self._global_handlers[event]
        if handler in handlers:
            handlers.remove(handler)

    def fire(self, event: str, instance: Optional[Any], **context: Any) -> None:
        handlers = list(self._global_handlers.get(event, []))
        if instance is not None:
            for klass in instance.__class__.__mro__:
                handlers.extend(self._model_handlers.get(klass, {}).get(event, []))
        for handler in handlers:
            handler(instance, **context)

    def clear(self) -> None:
        self._global_handlers.clear()
        self._model_handlers.clear()
