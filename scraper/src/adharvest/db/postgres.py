"""Postgres persistence for harvested ads and their insights."""

from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime

import psycopg2
from psycopg2.extras import Json

from ..logging import jlog
from ..payload import JSONObject, JSONValue
from .store import StoredAd, StoredInsight

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS ads (
    id              BIGSERIAL PRIMARY KEY,
    advertiser_name TEXT NOT NULL,
    platform        TEXT NOT NULL DEFAULT 'google_ads_transparency',
    ad_identifier   TEXT NOT NULL,
    image_url       TEXT NOT NULL,
    metadata        JSONB,
    first_seen      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    last_seen       TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    CONSTRAINT ads_natural_key UNIQUE (advertiser_name, platform, ad_identifier)
);

CREATE INDEX IF NOT EXISTS idx_ads_advertiser_last_seen ON ads (advertiser_name, last_seen DESC);

CREATE TABLE IF NOT EXISTS ad_insights (
    id           BIGSERIAL PRIMARY KEY,
    ad_id        BIGINT NOT NULL REFERENCES ads(id) ON DELETE CASCADE,
    model        TEXT NOT NULL,
    insight_type TEXT NOT NULL DEFAULT 'summary',
    insight      TEXT NOT NULL,
    raw_response JSONB,
    created_at   TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at   TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    CONSTRAINT ad_insights_natural_key UNIQUE (ad_id, model, insight_type)
);
"""

UPSERT_AD_SQL = """
INSERT INTO ads (advertiser_name, platform, ad_identifier, image_url, metadata, first_seen, last_seen)
VALUES (%s, %s, %s, %s, %s, %s, %s)
ON CONFLICT (advertiser_name, platform, ad_identifier) DO UPDATE
   SET image_url = EXCLUDED.image_url,
       metadata  = COALESCE(EXCLUDED.metadata, ads.metadata),
       last_seen = EXCLUDED.last_seen
"""

SELECT_AD_ID_SQL = "SELECT id FROM ads WHERE advertiser_name = %s AND platform = %s AND ad_identifier = %s"

UPSERT_INSIGHT_SQL = """
INSERT INTO ad_insights (ad_id, model, insight_type, insight, raw_response, created_at, updated_at)
VALUES (%s, %s, %s, %s, %s, %s, %s)
ON CONFLICT (ad_id, model, insight_type) DO UPDATE
   SET insight      = EXCLUDED.insight,
       raw_response = EXCLUDED.raw_response,
       updated_at   = EXCLUDED.updated_at
"""

SELECT_ADS_SQL = """
SELECT id, advertiser_name, platform, ad_identifier, image_url, metadata, first_seen, last_seen
  FROM ads
 {where}
 ORDER BY last_seen DESC, id DESC
 LIMIT %s
"""

SELECT_INSIGHTS_SQL = """
SELECT id, ad_id, model, insight_type, insight, raw_response, created_at, updated_at
  FROM ad_insights
 WHERE ad_id = ANY(%s)
 ORDER BY updated_at DESC, id DESC
"""


def sql_connect(sql_conn: str | None, db_host: str | None = None, db_port: int | None = None):
    """Return a psycopg2 connection using either TCP or a Cloud SQL socket."""

    dbname = os.getenv("DB_NAME", "adsdb")
    user = os.getenv("DB_USER", "postgres")
    password = os.getenv("DB_PASSWORD")
    if not password:
        raise RuntimeError("DB_PASSWORD environment variable is required for database connections")

    if db_host:
        return psycopg2.connect(
            host=db_host,
            port=db_port or 5432,
            dbname=dbname,
            user=user,
            password=password,
            connect_timeout=10,
            sslmode=os.getenv("DB_SSLMODE", "prefer"),
        )

    if not sql_conn:
        raise RuntimeError("sql_conn must be provided when db_host is not set")
    return psycopg2.connect(
        host=f"/cloudsql/{sql_conn}",
        dbname=dbname,
        user=user,
        password=password,
        connect_timeout=10,
    )


def _json_param(value: JSONValue) -> Json | None:
    return None if value is None else Json(value)


class PostgresAdStore:
    """:class:`adharvest.db.store.AdStore` over a psycopg2 connection."""

    def __init__(self, con) -> None:
        self.con = con
        self.con.autocommit = False

    @contextmanager
    def transaction(self) -> Iterator[None]:
        # psycopg2 commits on clean exit of ``with con`` and rolls back on error.
        with self.con:
            yield

    def ensure_schema(self) -> None:
        with self.transaction(), self.con.cursor() as cur:
            cur.execute(SCHEMA_SQL)
        jlog("info", event="schema_ensured")

    def upsert_ad(
        self,
        *,
        advertiser: str,
        platform: str,
        ad_identifier: str,
        image_url: str,
        metadata: JSONObject | None,
        seen_at: datetime,
    ) -> None:
        with self.con.cursor() as cur:
            cur.execute(
                UPSERT_AD_SQL,
                (advertiser, platform, ad_identifier, image_url, _json_param(metadata), seen_at, seen_at),
            )

    def find_ad_id(self, *, advertiser: str, platform: str, ad_identifier: str) -> int | None:
        with self.con.cursor() as cur:
            cur.execute(SELECT_AD_ID_SQL, (advertiser, platform, ad_identifier))
            row = cur.fetchone()
        return int(row[0]) if row else None

    def upsert_insight(
        self,
        *,
        ad_id: int,
        model: str,
        insight_type: str,
        insight: str,
        raw_response: JSONValue,
        created_at: datetime,
        updated_at: datetime,
    ) -> None:
        with self.con.cursor() as cur:
            cur.execute(
                UPSERT_INSIGHT_SQL,
                (ad_id, model, insight_type, insight, _json_param(raw_response), created_at, updated_at),
            )

    def fetch_ads(self, *, advertiser: str | None, limit: int) -> list[StoredAd]:
        with self.transaction(), self.con.cursor() as cur:
            if advertiser:
                cur.execute(SELECT_ADS_SQL.format(where="WHERE advertiser_name = %s"), (advertiser, limit))
            else:
                cur.execute(SELECT_ADS_SQL.format(where=""), (limit,))
            ads = {
                row[0]: StoredAd(
                    id=row[0],
                    advertiser_name=row[1],
                    platform=row[2],
                    ad_identifier=row[3],
                    image_url=row[4],
                    metadata=row[5],
                    first_seen=row[6],
                    last_seen=row[7],
                )
                for row in cur.fetchall()
            }
            if not ads:
                return []
            cur.execute(SELECT_INSIGHTS_SQL, (list(ads),))
            for row in cur.fetchall():
                ad = ads.get(row[1])
                if ad is None:
                    continue
                ad.insights.append(
                    StoredInsight(
                        id=row[0],
                        ad_id=row[1],
                        model=row[2],
                        insight_type=row[3],
                        insight=row[4],
                        raw_response=row[5],
                        created_at=row[6],
                        updated_at=row[7],
                    )
                )
        return list(ads.values())

    def close(self) -> None:
        self.con.close()


__all__ = [
    "SCHEMA_SQL",
    "PostgresAdStore",
    "sql_connect",
]
