from datetime import datetime, timezone

import pytest
from adharvest.db.postgres import PostgresAdStore
from adharvest.errors import IntegrityError
from adharvest.ingest import ingest_json
from psycopg2.extras import Json

T0 = datetime(2024, 5, 1, tzinfo=timezone.utc)


class RecordingCursor:
    def __init__(self, con):
        self.con = con

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, sql, params=None):
        self.con.executed.append((" ".join(sql.split()), params))

    def fetchone(self):
        return self.con.fetchone_results.pop(0)

    def fetchall(self):
        return self.con.fetchall_results.pop(0)


class RecordingConnection:
    """Minimal psycopg2 connection stand-in that records SQL and transaction outcomes."""

    def __init__(self, fetchone_results=(), fetchall_results=()):
        self.autocommit = True
        self.executed = []
        self.fetchone_results = list(fetchone_results)
        self.fetchall_results = list(fetchall_results)
        self.commits = 0
        self.rollbacks = 0

    def cursor(self):
        return RecordingCursor(self)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.commits += 1
        else:
            self.rollbacks += 1
        return False


def test_store_disables_autocommit():
    con = RecordingConnection()
    PostgresAdStore(con)
    assert con.autocommit is False


def test_batch_issues_upserts_in_one_transaction():
    con = RecordingConnection(fetchone_results=[(11,)])
    body = {
        "advertiser": "Acme",
        "ads": [
            {
                "adIdentifier": "a1",
                "imageUrl": "u1",
                "metadata": {"alt": "x"},
                "insights": [{"model": "vision:m1", "insight": "desc", "rawResponse": {"id": "r1"}}],
            }
        ],
    }
    result = ingest_json(PostgresAdStore(con), body, now=T0)

    assert result.processed_ads == 1
    assert con.commits == 1
    assert con.rollbacks == 0
    (ad_sql, ad_params), (select_sql, select_params), (insight_sql, insight_params) = con.executed

    assert "ON CONFLICT (advertiser_name, platform, ad_identifier) DO UPDATE" in ad_sql
    assert "metadata = COALESCE(EXCLUDED.metadata, ads.metadata)" in ad_sql
    assert "last_seen = EXCLUDED.last_seen" in ad_sql
    assert "first_seen =" not in ad_sql.split("DO UPDATE")[1]
    assert ad_params[:4] == ("Acme", "google_ads_transparency", "a1", "u1")
    assert isinstance(ad_params[4], Json)
    assert ad_params[5] == ad_params[6] == T0

    assert select_params == ("Acme", "google_ads_transparency", "a1")

    assert "ON CONFLICT (ad_id, model, insight_type) DO UPDATE" in insight_sql
    assert "created_at" not in insight_sql.split("DO UPDATE")[1]
    assert insight_params[:4] == (11, "vision:m1", "summary", "desc")
    assert isinstance(insight_params[4], Json)
    assert insight_params[5] == insight_params[6] == T0


def test_missing_metadata_is_bound_as_null():
    con = RecordingConnection(fetchone_results=[(1,)])
    ingest_json(PostgresAdStore(con), {"advertiser": "Acme", "ads": [{"adIdentifier": "a1", "imageUrl": "u1"}]}, now=T0)
    ad_params = con.executed[0][1]
    assert ad_params[4] is None


def test_missing_row_rolls_back():
    con = RecordingConnection(fetchone_results=[None])
    with pytest.raises(IntegrityError):
        ingest_json(PostgresAdStore(con), {"advertiser": "Acme", "ads": [{"adIdentifier": "a1", "imageUrl": "u1"}]})
    assert con.rollbacks == 1
    assert con.commits == 0


def test_fetch_ads_nests_insights_in_query_order():
    ad_rows = [
        (2, "Acme", "google_ads_transparency", "a2", "u2", None, T0, T0),
        (1, "Acme", "google_ads_transparency", "a1", "u1", {"alt": "x"}, T0, T0),
    ]
    insight_rows = [
        (7, 1, "m2", "summary", "newer", None, T0, T0),
        (5, 1, "m1", "summary", "older", {"id": "r"}, T0, T0),
    ]
    con = RecordingConnection(fetchall_results=[ad_rows, insight_rows])
    ads = PostgresAdStore(con).fetch_ads(advertiser="Acme", limit=5)

    assert [a.ad_identifier for a in ads] == ["a2", "a1"]
    assert ads[0].insights == []
    assert [i.insight for i in ads[1].insights] == ["newer", "older"]
    assert con.executed[0][1] == ("Acme", 5)
    assert "WHERE advertiser_name = %s" in con.executed[0][0]
    assert con.executed[1][1] == ([2, 1],)


def test_fetch_ads_without_filter_skips_insight_query_when_empty():
    con = RecordingConnection(fetchall_results=[[]])
    assert PostgresAdStore(con).fetch_ads(advertiser=None, limit=20) == []
    assert len(con.executed) == 1
    assert con.executed[0][1] == (20,)
    assert "WHERE" not in con.executed[0][0]
