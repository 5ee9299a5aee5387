"""JSON-per-line logging for the harvester, the ingest engine and the API.

Every record is a single JSON object on the ``adharvest`` logger. Fields come
from three layers, later layers winning: process-wide fields installed with
:func:`set_global_context`, the fields of every enclosing
:func:`logging_context` block, and the keyword arguments of the call itself.

Scoped context lives in a :class:`contextvars.ContextVar`, so concurrent
asyncio tasks and threadpool workers each see only their own ``with`` blocks.
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
LOGGER_NAME = "adharvest"
LOG_LEVEL_ENV = "ADHARVEST_LOG_LEVEL"

_global_fields: dict[str, Any] = {}
_scoped_fields: ContextVar[Mapping[str, Any]] = ContextVar("adharvest_log_fields", default={})


def _present(fields: Mapping[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in fields.items() if v is not None}


def configure_logging(level: int | str | None = None) -> None:
    """Install a plain stderr handler once; ``ADHARVEST_LOG_LEVEL`` overrides the default."""

    root = logging.getLogger()
    if root.handlers:
        return
    if level is None:
        level = os.getenv(LOG_LEVEL_ENV, "INFO").upper()
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(message)s")


def set_global_context(**fields: Any) -> None:
    """Attach fields to every record this process emits."""

    _global_fields.update(_present(fields))


@contextmanager
def logging_context(**fields: Any) -> Iterator[None]:
    """Attach ``fields`` to records emitted inside the block (current task only)."""

    token = _scoped_fields.set({**_scoped_fields.get(), **_present(fields)})
    try:
        yield
    finally:
        _scoped_fields.reset(token)


def current_context() -> dict[str, Any]:
    return {**_global_fields, **_scoped_fields.get()}


def jlog(level: str, /, **fields: Any) -> None:
    """Emit one JSON record at ``level`` ("debug", "info", "warning", "error")."""

    log = logging.getLogger(LOGGER_NAME)
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int) or not log.isEnabledFor(numeric):
        return
    record = {"ts": datetime.now(UTC).isoformat(), **current_context(), **fields}
    log.log(numeric, json.dumps(record, ensure_ascii=False, sort_keys=True, default=str))


def adlog(event: str, *, ad_identifier: str, advertiser: str, image_url: str, level: str = "info", **kw: Any) -> None:
    # Ad-scoped records always carry the ad's natural key and image.
    jlog(level, event=event, ad_identifier=ad_identifier, advertiser=advertiser, image_url=image_url, **kw)


__all__ = [
    "LOGGER_NAME",
    "adlog",
    "configure_logging",
    "current_context",
    "jlog",
    "logging_context",
    "set_global_context",
]
