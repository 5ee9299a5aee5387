"""HTTP service exposing batch ingest and the read surface for stored ads."""

from __future__ import annotations

import json
import os
import re
from collections.abc import Iterator
from functools import lru_cache
from typing import Any

from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from .db import AdStore, MemoryAdStore, PostgresAdStore, sql_connect
from .errors import IntegrityError, ValidationError
from .ingest import ingest_json
from .logging import jlog

DEFAULT_LIMIT = 20
MIN_LIMIT = 1
MAX_LIMIT = 100
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def clamp_limit(value: str | None) -> int:
    """Parse the ``limit`` query value; fall back to 20 and clamp into [1, 100]."""

    match = _LEADING_INT.match(value or "")
    if match is None:
        return DEFAULT_LIMIT
    parsed = int(match.group(1))
    return max(MIN_LIMIT, min(MAX_LIMIT, parsed))


def optional_string(value: str | None) -> str | None:
    if not value:
        return None
    trimmed = value.strip()
    return trimmed or None


def _error(status_code: int, message: str, details: Any = None) -> JSONResponse:
    return JSONResponse({"error": message, "details": details}, status_code=status_code)


@lru_cache()
def _memory_store() -> MemoryAdStore:
    return MemoryAdStore()


def get_store() -> Iterator[AdStore]:
    """Yield the configured store; Postgres unless ``ADHARVEST_STORE=memory``."""

    if os.getenv("ADHARVEST_STORE", "postgres").lower() == "memory":
        yield _memory_store()
        return
    db_port = os.getenv("DB_PORT")
    store = PostgresAdStore(sql_connect(os.getenv("SQL_CONN"), os.getenv("DB_HOST"), int(db_port) if db_port else None))
    try:
        yield store
    finally:
        store.close()


def create_app() -> FastAPI:
    app = FastAPI(title="adharvest ingest API")

    @app.exception_handler(ValidationError)
    async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        jlog("warning", event="batch_rejected", path=request.url.path, field=exc.field, error=str(exc))
        return _error(status.HTTP_400_BAD_REQUEST, str(exc), exc.details or None)

    @app.exception_handler(IntegrityError)
    async def _integrity_error(request: Request, exc: IntegrityError) -> JSONResponse:
        jlog("error", event="batch_integrity_error", path=request.url.path, error=str(exc))
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))

    @app.exception_handler(Exception)
    async def _unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        jlog("error", event="unexpected_error", path=request.url.path, error=repr(exc))
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error")

    @app.get("/health")
    async def health() -> dict[str, bool]:
        return {"ok": True}

    @app.get("/api/ads")
    def list_ads(
        advertiser: str | None = Query(default=None),
        limit: str | None = Query(default=None),
        store: AdStore = Depends(get_store),
    ) -> dict[str, Any]:
        name = optional_string(advertiser)
        ads = store.fetch_ads(advertiser=name, limit=clamp_limit(limit))
        return {"advertiser": name, "count": len(ads), "ads": [ad.to_wire() for ad in ads]}

    @app.post("/api/ads/batch", status_code=status.HTTP_201_CREATED)
    async def ingest_batch(request: Request, store: AdStore = Depends(get_store)) -> JSONResponse:
        raw = await request.body()
        try:
            body = json.loads(raw)
        except ValueError:
            return _error(status.HTTP_400_BAD_REQUEST, "Request body must be valid JSON.")
        result = await run_in_threadpool(ingest_json, store, body)
        return JSONResponse(result.to_wire(), status_code=status.HTTP_201_CREATED)

    return app


app = create_app()


__all__ = ["app", "clamp_limit", "create_app", "get_store", "optional_string"]
