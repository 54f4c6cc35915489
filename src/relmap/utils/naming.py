"""
Naming utilities for relmap.
"""

import re


_FIRST_CAP_RE = re.compile("(.)([A-Z][a-z]+)")
_ALL_CAP_RE = re.compile("([a-z0-9])([A-Z])")

TABLE_PREFIX = "tx_"


def camel_to_snake(name: str) -> str:
    """
    Convert ``CamelCase`` or ``lowerCamelCase`` names to ``snake_case``.
    """
    step1 = _FIRST_CAP_RE.sub(r"\1_\2", name)
    snake = _ALL_CAP_RE.sub(r"\1_\2", step1).lower()
    return snake


def underscored_to_lower_camel_case(name: str) -> str:
    """
    Convert ``column_name`` to ``columnName``.
    """
    head, *tail = name.lower().split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in tail)


def resolve_table_name(class_name: str) -> str:
    """
    Derive the default table name from a dotted class name.

    ``blog.domain.model.Article`` becomes ``tx_blog_domain_model_article``;
    a name without a module path is simply lower-cased.
    """
    class_name = class_name.strip(".")
    if "." not in class_name:
        return class_name.lower()
    segments = [segment.lower() for segment in class_name.split(".") if segment]
    return TABLE_PREFIX + "_".join(segments)
