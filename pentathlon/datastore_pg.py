import os
import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Optional

import psycopg2
from psycopg2 import pool as pg_pool
from psycopg2.extras import Json, RealDictCursor


_POOL: Optional[pg_pool.AbstractConnectionPool] = None


SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS competitions (
        id VARCHAR(64) PRIMARY KEY,
        name VARCHAR(200) NOT NULL DEFAULT '',
        age_category VARCHAR(20) NOT NULL DEFAULT 'Senior',
        competition_type VARCHAR(20) NOT NULL DEFAULT 'individual'
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS athletes (
        id VARCHAR(64) PRIMARY KEY,
        first_name VARCHAR(100) NOT NULL DEFAULT '',
        last_name VARCHAR(100) NOT NULL DEFAULT '',
        country VARCHAR(3) NOT NULL DEFAULT '',
        gender CHAR(1) NOT NULL DEFAULT 'M',
        age_category VARCHAR(20),
        date_of_birth DATE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS competition_athletes (
        competition_id VARCHAR(64) REFERENCES competitions(id) ON DELETE CASCADE,
        athlete_id VARCHAR(64) REFERENCES athletes(id) ON DELETE CASCADE,
        age_category VARCHAR(20),
        PRIMARY KEY (competition_id, athlete_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS events (
        id VARCHAR(64) PRIMARY KEY,
        competition_id VARCHAR(64) REFERENCES competitions(id) ON DELETE CASCADE,
        discipline VARCHAR(32) NOT NULL,
        config JSONB,
        UNIQUE (competition_id, discipline)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS official_scores (
        id VARCHAR(64) PRIMARY KEY,
        event_id VARCHAR(64) REFERENCES events(id) ON DELETE CASCADE,
        athlete_id VARCHAR(64) REFERENCES athletes(id) ON DELETE CASCADE,
        discipline VARCHAR(32) NOT NULL,
        measurement JSONB NOT NULL,
        calculated_points INTEGER NOT NULL,
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        UNIQUE (event_id, athlete_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS preliminary_scores (
        id VARCHAR(64) PRIMARY KEY,
        event_id VARCHAR(64) REFERENCES events(id) ON DELETE CASCADE,
        athlete_id VARCHAR(64) REFERENCES athletes(id) ON DELETE CASCADE,
        discipline VARCHAR(32) NOT NULL,
        data JSONB NOT NULL,
        status VARCHAR(20) NOT NULL DEFAULT 'preliminary',
        verified_at TIMESTAMPTZ,
        verified_by VARCHAR(64),
        official_score_id VARCHAR(64)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_official_scores_athlete ON official_scores (athlete_id, discipline)",
    "CREATE INDEX IF NOT EXISTS idx_preliminary_scores_event ON preliminary_scores (event_id, status)",
]


def _env_int(name: str, default: Optional[int] = None) -> Optional[int]:
    val = os.environ.get(name)
    if val is None:
        return default
    try:
        return int(val)
    except Exception:
        return default


def _connect_kwargs() -> Dict[str, Any]:
    """Common connection kwargs: connect_timeout + TCP keepalives.

    Defaults:
      - connect_timeout: 10 seconds (overridable via DB_CONNECT_TIMEOUT)
      - keepalives: enabled by default; can be disabled by DB_KEEPALIVES=0
      - keepalive tunables applied if provided (IDLE/INTERVAL/COUNT)
    """
    kwargs: Dict[str, Any] = {}
    ct_env = _env_int("DB_CONNECT_TIMEOUT")
    kwargs["connect_timeout"] = ct_env if ct_env is not None else 10

    ka_env = os.environ.get("DB_KEEPALIVES")
    if ka_env is None:
        kwargs["keepalives"] = 1
    else:
        kwargs["keepalives"] = 0 if str(ka_env).lower() in ("0", "false") else 1

    for env_name, key in (
        ("DB_KEEPALIVES_IDLE", "keepalives_idle"),
        ("DB_KEEPALIVES_INTERVAL", "keepalives_interval"),
        ("DB_KEEPALIVES_COUNT", "keepalives_count"),
    ):
        value = _env_int(env_name)
        if value is not None:
            kwargs[key] = value
    return kwargs


def init_pool(minconn: int = 1, maxconn: int = 10) -> None:
    """Initialize a global connection pool using DATABASE_URL.

    Safe to call multiple times; subsequent calls are ignored once a pool exists.
    """
    global _POOL
    if _POOL is not None:
        return
    url = os.environ.get("DATABASE_URL")
    if not url:
        # Callers fall back to direct connections
        return
    _POOL = pg_pool.ThreadedConnectionPool(minconn, maxconn, dsn=url, **_connect_kwargs())


def _release(conn) -> None:
    """Roll back any open transaction before a connection is reused or closed."""
    try:
        if getattr(conn, "closed", 0) == 0 and not getattr(conn, "autocommit", False):
            # status 1 = active, 2 = intrans, 3 = inerror
            if getattr(conn, "status", 0) in (1, 2, 3):
                conn.rollback()
    except Exception:
        pass


@contextmanager
def _get_conn():
    """Yield a database connection from the pool if available, else direct.

    A pooled connection is pinged with ``SELECT 1`` first; a stale one is
    discarded and the checkout retried once before the error is surfaced.
    """
    url = os.environ.get("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL not set; configure a PostgreSQL connection string")
    if _POOL is None:
        conn = psycopg2.connect(url, **_connect_kwargs())
        try:
            try:
                yield conn
            except Exception:
                try:
                    conn.rollback()
                except Exception:
                    pass
                raise
        finally:
            try:
                conn.close()
            except Exception:
                pass
        return

    retried = False
    while True:
        conn = _POOL.getconn()
        healthy = True
        try:
            with conn.cursor() as cur:
                cur.execute("SELECT 1")
            try:
                if not getattr(conn, "autocommit", False):
                    conn.rollback()
            except Exception:
                pass
        except Exception:
            healthy = False

        if not healthy:
            try:
                _POOL.putconn(conn, close=True)
            except Exception:
                pass
            if retried:
                raise psycopg2.OperationalError("Failed to acquire healthy DB connection after retry")
            retried = True
            continue

        try:
            try:
                yield conn
            except Exception:
                try:
                    conn.rollback()
                except Exception:
                    pass
                raise
        finally:
            _release(conn)
            _POOL.putconn(conn)
        break


def create_tables() -> None:
    """Create the schema if it does not exist yet."""
    with _get_conn() as conn, conn.cursor() as cur:
        for statement in SCHEMA_STATEMENTS:
            cur.execute(statement)
        conn.commit()


def get_competition(competition_id: str) -> Optional[Dict[str, Any]]:
    with _get_conn() as conn, conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(
            "SELECT id, name, age_category, competition_type FROM competitions WHERE id = %s",
            (competition_id,),
        )
        row = cur.fetchone()
        return dict(row) if row else None


def find_event(competition_id: str, discipline: str) -> Optional[Dict[str, Any]]:
    """Return ``{"id", "competition_id", "discipline", "config"}`` or None."""
    with _get_conn() as conn, conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(
            "SELECT id, competition_id, discipline, config FROM events WHERE competition_id = %s AND discipline = %s",
            (competition_id, discipline),
        )
        row = cur.fetchone()
        return dict(row) if row else None


def set_event_config(event_id: str, config: Optional[Dict[str, Any]]) -> None:
    with _get_conn() as conn, conn.cursor() as cur:
        cur.execute(
            "UPDATE events SET config = %s WHERE id = %s",
            (Json(config) if config is not None else None, event_id),
        )
        conn.commit()


def list_competition_athletes(competition_id: str) -> List[Dict[str, Any]]:
    with _get_conn() as conn, conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(
            """
            SELECT a.id AS athlete_id, a.first_name, a.last_name, a.country, a.gender,
                   COALESCE(ca.age_category, a.age_category) AS age_category, a.date_of_birth
            FROM competition_athletes ca
            JOIN athletes a ON a.id = ca.athlete_id
            WHERE ca.competition_id = %s
            ORDER BY a.id
            """,
            (competition_id,),
        )
        return [dict(r) for r in cur.fetchall()]


def get_athlete_gender(athlete_id: str) -> Optional[str]:
    with _get_conn() as conn, conn.cursor() as cur:
        cur.execute("SELECT gender FROM athletes WHERE id = %s", (athlete_id,))
        row = cur.fetchone()
        return row[0] if row else None


def list_swim_times(athlete_ids: Iterable[str]) -> Dict[str, List[int]]:
    """Return every recorded swim time (hundredths) per athlete across all competitions."""
    ids = [str(a) for a in athlete_ids]
    if not ids:
        return {}
    out: Dict[str, List[int]] = {}
    with _get_conn() as conn, conn.cursor() as cur:
        cur.execute(
            """
            SELECT athlete_id, (measurement->>'time_hundredths')::int
            FROM official_scores
            WHERE discipline = 'swimming' AND athlete_id = ANY(%s)
            ORDER BY athlete_id, updated_at
            """,
            (ids,),
        )
        for athlete_id, hundredths in cur.fetchall():
            if hundredths and hundredths > 0:
                out.setdefault(athlete_id, []).append(int(hundredths))
    return out


def cumulative_points(competition_id: str, exclude_disciplines: Iterable[str] = ("laser_run",)) -> Dict[str, int]:
    """Return athlete_id -> sum of official points for the competition's other events."""
    with _get_conn() as conn, conn.cursor() as cur:
        cur.execute(
            """
            SELECT os.athlete_id, COALESCE(SUM(os.calculated_points), 0)
            FROM official_scores os
            JOIN events e ON e.id = os.event_id
            WHERE e.competition_id = %s AND NOT (e.discipline = ANY(%s))
            GROUP BY os.athlete_id
            """,
            (competition_id, list(exclude_disciplines)),
        )
        return {athlete_id: int(total) for athlete_id, total in cur.fetchall()}


def upsert_official_score(
    discipline: str,
    event_id: str,
    athlete_id: str,
    measurement: Dict[str, Any],
    calculated_points: int,
) -> str:
    """Insert or replace the official score for ``(event_id, athlete_id)``; return its id.

    The natural-key unique constraint serialises concurrent promotions of the
    same athlete/event, and an existing row keeps its id.
    """
    with _get_conn() as conn, conn.cursor() as cur:
        cur.execute(
            """
            INSERT INTO official_scores (id, event_id, athlete_id, discipline, measurement, calculated_points, updated_at)
            VALUES (%s, %s, %s, %s, %s, %s, NOW())
            ON CONFLICT (event_id, athlete_id) DO UPDATE SET
                discipline = EXCLUDED.discipline,
                measurement = EXCLUDED.measurement,
                calculated_points = EXCLUDED.calculated_points,
                updated_at = NOW()
            RETURNING id
            """,
            (uuid.uuid4().hex, event_id, athlete_id, discipline, Json(measurement), int(calculated_points)),
        )
        score_id = cur.fetchone()[0]
        conn.commit()
    return score_id


def list_preliminary_scores(competition_id: str, ids: Iterable[str]) -> List[Dict[str, Any]]:
    """Return verifiable (preliminary or rejected) submissions of a competition by id."""
    wanted = [str(i) for i in ids]
    if not wanted:
        return []
    with _get_conn() as conn, conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(
            """
            SELECT ps.id, ps.event_id, ps.athlete_id, ps.discipline, ps.data, ps.status,
                   c.age_category, c.competition_type
            FROM preliminary_scores ps
            JOIN events e ON e.id = ps.event_id
            JOIN competitions c ON c.id = e.competition_id
            WHERE e.competition_id = %s
              AND ps.id = ANY(%s)
              AND ps.status IN ('preliminary', 'rejected')
            ORDER BY ps.id
            """,
            (competition_id, wanted),
        )
        return [dict(r) for r in cur.fetchall()]


def mark_preliminary_verified(score_id: str, official_score_id: str, verified_by: Optional[str] = None) -> None:
    with _get_conn() as conn, conn.cursor() as cur:
        cur.execute(
            """
            UPDATE preliminary_scores
            SET status = 'verified', verified_at = NOW(), verified_by = %s, official_score_id = %s
            WHERE id = %s
            """,
            (verified_by, official_score_id, score_id),
        )
        conn.commit()


def list_verified_scores(event_id: str, discipline: str) -> List[Dict[str, Any]]:
    """Return verified submissions of an event ordered by athlete id."""
    with _get_conn() as conn, conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(
            """
            SELECT id, event_id, athlete_id, discipline, data
            FROM preliminary_scores
            WHERE event_id = %s AND discipline = %s AND status = 'verified'
            ORDER BY athlete_id, id
            """,
            (event_id, discipline),
        )
        return [dict(r) for r in cur.fetchall()]
