#!/usr/bin/env python3
"""
Run the batch ingest / read API.

Usage examples:
  ADHARVEST_STORE=memory python scripts/serve_api.py --port 8000
  DB_HOST=127.0.0.1 DB_PASSWORD=... python scripts/serve_api.py --init-schema
"""
from __future__ import annotations

import argparse
import os

import uvicorn

from adharvest.db import PostgresAdStore, sql_connect
from adharvest.logging import configure_logging, set_global_context


def init_schema() -> None:
    db_port = os.getenv("DB_PORT")
    store = PostgresAdStore(sql_connect(os.getenv("SQL_CONN"), os.getenv("DB_HOST"), int(db_port) if db_port else None))
    try:
        store.ensure_schema()
    finally:
        store.close()


def main() -> None:
    ap = argparse.ArgumentParser(description="Serve the adharvest ingest API")
    ap.add_argument("--host", default=os.getenv("API_HOST", "127.0.0.1"))
    ap.add_argument("--port", type=int, default=int(os.getenv("API_PORT", "8000")))
    ap.add_argument("--init-schema", action="store_true", help="Create the ads/ad_insights tables before serving")
    args = ap.parse_args()

    configure_logging()
    set_global_context(app="adharvest", pipeline="api")
    if args.init_schema and os.getenv("ADHARVEST_STORE", "postgres").lower() != "memory":
        init_schema()
    uvicorn.run("adharvest.api:app", host=args.host, port=args.port)


if __name__ == "__main__":
    main()
