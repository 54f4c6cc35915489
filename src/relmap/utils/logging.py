"""
Logging helpers for relmap.

Every logger lives under the ``relmap`` namespace. Records emitted while a
``persist_all`` runs carry the id of that commit so the statements of one
unit of work can be grouped.
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import IO, Any, Callable, Iterable, Iterator, Optional

ROOT_LOGGER = "relmap"
LOG_FORMAT = "%(asctime)s | %(levelname)s | commit=%(commit_id)s | %(name)s | %(message)s"

_commit_id: ContextVar[Optional[str]] = ContextVar("relmap_commit_id", default=None)


class CommitIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.commit_id = _commit_id.get() or "-"
        return True


def configure_logging(level: int = logging.INFO, stream: Optional[IO[str]] = None) -> logging.Logger:
    """
    Install a single stream handler on the ``relmap`` logger. Calling it again
    only adjusts the level.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    if not any(isinstance(f, CommitIdFilter) for handler in logger.handlers for f in handler.filters):
        handler = logging.StreamHandler(stream)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.addFilter(CommitIdFilter())
        logger.addHandler(handler)
    logger.setLevel(level)
    return logger


def get_logger(name: str) -> logging.Logger:
    if not logging.getLogger(ROOT_LOGGER).handlers:
        configure_logging()
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


@contextmanager
def commit_scope(commit_id: Optional[str] = None) -> Iterator[str]:
    """
    Tag the records logged inside the block with ``commit_id`` (a fresh
    uuid when omitted).
    """
    value = commit_id or uuid.uuid4().hex[:12]
    token = _commit_id.set(value)
    try:
        yield value
    finally:
        _commit_id.reset(token)


def current_commit_id() -> Optional[str]:
    return _commit_id.get()


@contextmanager
def time_call(
    name: str,
    logger: logging.Logger,
    *,
    sql: str | None = None,
    params: Iterable[Any] | None = None,
    threshold_ms: int = 100,
    on_finish: Callable[[float], None] | None = None,
) -> Iterator[None]:
    """
    Log how long the block took: DEBUG normally, WARNING at or above
    ``threshold_ms``. ``on_finish`` receives the elapsed milliseconds of
    blocks that did not raise.
    """
    start = time.perf_counter()
    try:
        yield
    except BaseException:
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug("%s failed after %.2fms", name, elapsed_ms, extra={"sql": sql, "params": params})
        raise
    elapsed_ms = (time.perf_counter() - start) * 1000
    level = logging.WARNING if elapsed_ms >= threshold_ms else logging.DEBUG
    logger.log(
        level,
        "%s took %.2fms",
        name,
        elapsed_ms,
        extra={"sql": sql, "params": params, "elapsed_ms": elapsed_ms},
    )
    if on_finish is not None:
        on_finish(elapsed_ms)
