"""
Utility helpers shared across relmap packages.
"""

from .logging import commit_scope, configure_logging, current_commit_id, get_logger, time_call
from .naming import camel_to_snake, resolve_table_name, underscored_to_lower_camel_case
from .performance import PerformanceTracker

__all__ = [
    "PerformanceTracker",
    "camel_to_snake",
    "commit_scope",
    "configure_logging",
    "current_commit_id",
    "get_logger",
    "resolve_table_name",
    "time_call",
    "underscored_to_lower_camel_case",
]
