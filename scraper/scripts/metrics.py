#!/usr/bin/env python3
"""
Report on the harvested ``ads`` / ``ad_insights`` tables.

Usage examples:
  python scripts/metrics.py --db-host 127.0.0.1
  python scripts/metrics.py --sql-conn your-project:your-region:your-instance --advertiser "Acme"
  python scripts/metrics.py --db-host 127.0.0.1 --json
"""
import argparse
import json
import os
import sys

import psycopg2

from adharvest.db import sql_connect

# (title, query, takes the advertiser filter)
REPORTS = [
    (
        "Ads per advertiser",
        "SELECT advertiser_name, platform, COUNT(*) AS ads, MIN(first_seen) AS first_seen, "
        "MAX(last_seen) AS last_seen FROM ads {where} GROUP BY advertiser_name, platform ORDER BY ads DESC",
        True,
    ),
    (
        "Insight coverage",
        "SELECT i.model, i.insight_type, COUNT(*) AS insights, MAX(i.updated_at) AS updated_at "
        "FROM ad_insights i JOIN ads a ON a.id = i.ad_id {where} GROUP BY i.model, i.insight_type "
        "ORDER BY insights DESC",
        True,
    ),
    (
        "Ads without insights",
        "SELECT a.advertiser_name, COUNT(*) AS ads FROM ads a "
        "LEFT JOIN ad_insights i ON i.ad_id = a.id WHERE i.id IS NULL {and_where} "
        "GROUP BY a.advertiser_name ORDER BY ads DESC",
        True,
    ),
    (
        "Ads last seen per day (14 days)",
        "SELECT last_seen::date AS day, COUNT(*) AS ads FROM ads "
        "WHERE last_seen >= CURRENT_DATE - INTERVAL '14 days' GROUP BY 1 ORDER BY 1 DESC",
        False,
    ),
]


def render_query(sql, advertiser):
    if advertiser is None:
        return sql.format(where="", and_where=""), ()
    return (
        sql.format(where="WHERE advertiser_name = %s", and_where="AND a.advertiser_name = %s"),
        (advertiser,),
    )


def fetch_report(con, sql, params):
    with con.cursor() as cur:
        cur.execute(sql, params)
        return [d[0] for d in cur.description], cur.fetchall()


def format_rows(cols, rows):
    cells = [list(map(str, cols))] + [[str(v) for v in r] for r in rows]
    widths = [max(len(row[i]) for row in cells) for i in range(len(cols))]
    lines = ["  " + " | ".join(c.ljust(w) for c, w in zip(cells[0], widths))]
    lines.append("  " + "-+-".join("-" * w for w in widths))
    lines.extend("  " + " | ".join(c.ljust(w) for c, w in zip(row, widths)) for row in cells[1:])
    return "\n".join(lines)


def main():
    ap = argparse.ArgumentParser(description="Print harvested ad metrics from Postgres")
    ap.add_argument("--sql-conn", default=os.getenv("SQL_CONN"), help="Cloud SQL connection name if using sockets")
    ap.add_argument("--db-host", default=os.getenv("DB_HOST"), help="Host for TCP connection (e.g., 127.0.0.1)")
    ap.add_argument("--db-port", type=int)
    ap.add_argument("--advertiser", help="Restrict advertiser-scoped reports to one advertiser")
    ap.add_argument("--json", action="store_true", help="Emit one JSON document instead of tables")
    args = ap.parse_args()

    con = sql_connect(args.sql_conn, args.db_host, args.db_port)
    collected = {}
    failed = False
    try:
        for title, template, scoped in REPORTS:
            sql, params = render_query(template, args.advertiser if scoped else None)
            try:
                cols, rows = fetch_report(con, sql, params)
            except psycopg2.Error as exc:
                con.rollback()
                failed = True
                collected[title] = {"error": str(exc).strip()}
                continue
            collected[title] = {"columns": cols, "rows": rows}
    finally:
        con.close()

    if args.json:
        json.dump(collected, sys.stdout, default=str, indent=2)
        print()
    else:
        for title, report in collected.items():
            print(f"\n== {title} ==")
            if "error" in report:
                print(f"ERROR: {report['error']}")
            elif not report["rows"]:
                print("(no rows)")
            else:
                print(format_rows(report["columns"], report["rows"]))
    sys.exit(1 if failed else 0)


if __name__ == "__main__":
    main()
