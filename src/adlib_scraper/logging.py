"""Structured JSON logging for the scraper stages.

Every event is a single JSON object emitted under the ``scraper`` logger.
Context fields (run, group key, current candidate) are layered on top of
the global context; the layering lives in a :class:`contextvars.ContextVar`
so concurrently gathered asset tasks never see each other's fields.
"""

from __future__ import annotations

import json
import logging
import os
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Iterator, Mapping

UTC = getattr(datetime, "UTC", timezone.utc)
LOGGER_NAME = "scraper"
LOG_LEVEL_ENV = "ADLIB_LOG_LEVEL"

_configured = False
_base_context: dict[str, Any] = {}
_scoped_context: ContextVar[Mapping[str, Any]] = ContextVar("adlib_log_context", default={})


def configure_logging(level: int | str | None = None) -> None:
    """Configure the root handler once; ``ADLIB_LOG_LEVEL`` wins over the default."""

    global _configured
    if _configured:
        return
    if level is None:
        level = os.getenv(LOG_LEVEL_ENV, "INFO").upper()
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(message)s")
    _configured = True


def set_global_context(**fields: Any) -> None:
    """Fields attached to every event for the rest of the process."""

    _base_context.update({k: v for k, v in fields.items() if v is not None})


@contextmanager
def logging_context(**fields: Any) -> Iterator[None]:
    """Layer ``fields`` onto the current context for the ``with`` block."""

    merged = {**_scoped_context.get(), **{k: v for k, v in fields.items() if v is not None}}
    token = _scoped_context.set(merged)
    try:
        yield
    finally:
        _scoped_context.reset(token)


def current_context() -> dict[str, Any]:
    return {**_base_context, **_scoped_context.get()}


def jlog(level: str, /, **fields: Any) -> None:
    """Emit one JSON event; explicit ``fields`` override context fields."""

    payload = {"ts": datetime.now(UTC).isoformat(), **current_context(), **fields}
    logger = logging.getLogger(LOGGER_NAME)
    getattr(logger, level.lower())(json.dumps(payload, ensure_ascii=False, sort_keys=True, default=str))


def adlog(event: str, *, ad_id: str | None, group_key: str | None, url: str, **kw: Any) -> None:
    """Candidate-scoped info event."""

    jlog("info", event=event, ad_id=ad_id, group_key=group_key, url=url, **kw)


__all__ = [
    "LOGGER_NAME",
    "adlog",
    "configure_logging",
    "current_context",
    "jlog",
    "logging_context",
    "set_global_context",
]
