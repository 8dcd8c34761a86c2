#!/usr/bin/env python3
"""
Create the PostgreSQL schema and optionally load competitions/athletes from a JSON file.

Usage: DATABASE_URL=... python init_db.py [seed.json]

The seed file holds ``competitions``, ``athletes``, ``entries`` (competition
id, athlete id, optional age category) and ``events`` lists. Existing rows
are left untouched.
"""
import json
import os
import sys

from psycopg2.extras import execute_values

from pentathlon import datastore_pg


def load_seed(conn, data):
    """Insert seed rows, skipping ones that already exist"""
    with conn.cursor() as cur:
        competitions = [
            (c["id"], c.get("name", ""), c.get("ageCategory", "Senior"), c.get("competitionType", "individual"))
            for c in data.get("competitions", [])
        ]
        if competitions:
            execute_values(
                cur,
                "INSERT INTO competitions (id, name, age_category, competition_type) VALUES %s ON CONFLICT (id) DO NOTHING",
                competitions,
            )

        athletes = [
            (
                a["id"],
                a.get("firstName", ""),
                a.get("lastName", ""),
                a.get("country", ""),
                a.get("gender", "M"),
                a.get("ageCategory"),
                a.get("dateOfBirth"),
            )
            for a in data.get("athletes", [])
        ]
        if athletes:
            execute_values(
                cur,
                """
                INSERT INTO athletes (id, first_name, last_name, country, gender, age_category, date_of_birth)
                VALUES %s ON CONFLICT (id) DO NOTHING
                """,
                athletes,
            )

        entries = [
            (e["competitionId"], e["athleteId"], e.get("ageCategory"))
            for e in data.get("entries", [])
        ]
        if entries:
            execute_values(
                cur,
                """
                INSERT INTO competition_athletes (competition_id, athlete_id, age_category)
                VALUES %s ON CONFLICT (competition_id, athlete_id) DO NOTHING
                """,
                entries,
            )

        events = [(e["id"], e["competitionId"], e["discipline"]) for e in data.get("events", [])]
        if events:
            execute_values(
                cur,
                "INSERT INTO events (id, competition_id, discipline) VALUES %s ON CONFLICT DO NOTHING",
                events,
            )
    conn.commit()
    return len(competitions), len(athletes), len(entries), len(events)


def main():
    if not os.environ.get("DATABASE_URL"):
        print("ERROR: DATABASE_URL environment variable not set")
        sys.exit(1)

    datastore_pg.create_tables()
    print("Schema ready")

    if len(sys.argv) < 2:
        return

    with open(sys.argv[1], encoding="utf-8") as fh:
        data = json.load(fh)

    with datastore_pg._get_conn() as conn:
        comps, athletes, entries, events = load_seed(conn, data)

    print(f"\nSummary:")
    print(f"- {comps} competitions")
    print(f"- {athletes} athletes")
    print(f"- {entries} entries")
    print(f"- {events} events")


if __name__ == "__main__":
    main()
