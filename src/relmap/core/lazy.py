"""
Deferred relation values.

A property slot holds either its loaded value or a :class:`LazyValue`. The
property descriptor forces the placeholder on first access and stores the
result in the slot, so the placeholder never has to imitate the value it
stands in for.
"""

from __future__ import annotations

from typing import Any, Callable


class LazyValue:
    """
    Pending value of a relation property of ``parent``.
    """

    __slots__ = ("parent", "property_name", "field_value", "_loader")

    def __init__(
        self,
        parent: Any,
        property_name: str,
        field_value: Any,
        loader: Callable[[], Any],
    ) -> None:
        self.parent = parent
        self.property_name = property_name
        self.field_value = field_value
        self._loader = loader

    def load(self) -> Any:
        return self._loader()

    def __repr__(self) -> str:
        return f"<LazyValue {type(self.parent).__name__}.{self.property_name}={self.field_value!r}>"


def is_lazy_loaded(value: Any) -> bool:
    """
    Whether ``value`` is a placeholder that has not been loaded yet.
    """
    return isinstance(value, LazyValue)
