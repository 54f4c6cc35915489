"""
Expression tree primitives for query constraints.
"""

from __future__ import annotations

from typing import Any, Iterator, List, Mapping, Tuple


AND = "AND"
OR = "OR"


class Q:
    """
    Boolean constraint container.

    Keyword lookups take the form ``name`` or ``name__lookup``. ``name`` is
    a property of the queried class or a ``table.column`` literal, which is
    how junction table columns are addressed::

        Q(title__contains="orm") | ~Q(uid__in=[1, 2])
        Q(**{"tx_blog_article_tag_mm.uid_local": 3})
    """

    def __init__(self, *children: Any, **lookups: Any) -> None:
        self.children: List[Any] = list(children)
        self.children.extend(lookups.items())
        self.connector = AND
        self.negated = False

    @classmethod
    def from_match(cls, match: Mapping[str, Any]) -> "Q":
        """
        Equality constraints for every entry of ``match``.
        """
        return cls(*match.items())

    def __or__(self, other: "Q") -> "Q":
        return self._combine(other, OR)

    def __and__(self, other: "Q") -> "Q":
        return self._combine(other, AND)

    def __invert__(self) -> "Q":
        q = self._clone()
        q.negated = not q.negated
        return q

    def __repr__(self) -> str:
        prefix = "NOT " if self.negated else ""
        return f"<Q {prefix}{self.connector}: {self.children!r}>"

    # Internal helpers -------------------------------------------------
    def _clone(self) -> "Q":
        clone = Q()
        clone.children = list(self.children)
        clone.connector = self.connector
        clone.negated = self.negated
        return clone

    def _combine(self, other: "Q", connector: str) -> "Q":
        if other.is_empty():
            return self._clone()
        if self.is_empty():
            return other._clone()
        q = Q()
        q.children = [self._clone(), other._clone()]
        q.connector = connector
        return q

    def is_empty(self) -> bool:
        return not self.children

    def iter_lookups(self) -> Iterator[Tuple[str, Any]]:
        """
        All ``(name, value)`` leaves of the tree, depth first.
        """
        for child in self.children:
            if isinstance(child, Q):
                yield from child.iter_lookups()
            else:
                yield child
