"""
Lifecycle hooks for relmap persistence.
"""

from .dispatcher import (
    AFTER_INSERT,
    AFTER_PERSIST,
    AFTER_REMOVE,
    AFTER_UPDATE,
    END_INSERT,
    EVENTS,
    HookDispatcher,
    HookEvent,
)

__all__ = [
    "AFTER_INSERT",
    "AFTER_PERSIST",
    "AFTER_REMOVE",
    "AFTER_UPDATE",
    "END_INSERT",
    "EVENTS",
    "HookDispatcher",
    "HookEvent",
]
