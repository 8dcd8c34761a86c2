import importlib

import psycopg2
import pytest


class FakeCursor:
    def __init__(self, conn):
        self.conn = conn
        self._rows = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def execute(self, sql, params=None):
        if self.conn.broken:
            raise psycopg2.OperationalError("SSL connection has been closed unexpectedly")
        self.conn.statements.append((" ".join(sql.split()), params))
        self._rows = list(self.conn.rows)

    def fetchone(self):
        return self._rows[0] if self._rows else None

    def fetchall(self):
        return self._rows


class FakeConn:
    autocommit = False
    status = 0

    def __init__(self, broken=False, rows=()):
        self.broken = broken
        self.rows = rows
        self.closed = 0
        self.statements = []
        self.commits = 0
        self.rollbacks = 0

    def cursor(self, cursor_factory=None):
        return FakeCursor(self)

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1

    def close(self):
        self.closed = 1


class FakePool:
    def __init__(self, conns):
        self.conns = list(conns)
        self.calls_get = 0
        self.calls_put = []

    def getconn(self):
        self.calls_get += 1
        return self.conns.pop(0)

    def putconn(self, conn, close=False):
        self.calls_put.append((conn, close))
        if close:
            conn.close()


@pytest.fixture()
def pg():
    # Reload to drop the in-memory patches installed by conftest
    import pentathlon.datastore_pg as module

    return importlib.reload(module)


def test_pool_checkout_retries_on_stale_connection(monkeypatch, pg):
    bad, good = FakeConn(broken=True), FakeConn()
    pool = FakePool([bad, good])
    monkeypatch.setattr(pg, "_POOL", pool)

    with pg._get_conn() as conn:
        assert conn is good

    assert pool.calls_get == 2
    assert (bad, True) in pool.calls_put
    assert bad.closed == 1
    assert pool.calls_put[-1] == (good, False)


def test_pool_checkout_gives_up_after_one_retry(monkeypatch, pg):
    pool = FakePool([FakeConn(broken=True), FakeConn(broken=True), FakeConn()])
    monkeypatch.setattr(pg, "_POOL", pool)

    with pytest.raises(psycopg2.OperationalError):
        with pg._get_conn():
            pass
    assert pool.calls_get == 2


def test_error_inside_block_rolls_back_and_returns_connection(monkeypatch, pg):
    conn = FakeConn()
    pool = FakePool([conn])
    monkeypatch.setattr(pg, "_POOL", pool)

    with pytest.raises(RuntimeError):
        with pg._get_conn():
            raise RuntimeError("boom")
    assert conn.rollbacks >= 1
    assert pool.calls_put == [(conn, False)]


def test_upsert_official_score_is_keyed_by_event_and_athlete(monkeypatch, pg):
    conn = FakeConn(rows=[("existing-id",)])
    monkeypatch.setattr(pg, "_POOL", FakePool([conn]))

    score_id = pg.upsert_official_score("swimming", "e1", "a1", {"time_hundredths": 7000}, 250)

    assert score_id == "existing-id"
    sql, params = conn.statements[-1]
    assert "ON CONFLICT (event_id, athlete_id) DO UPDATE" in sql
    assert sql.endswith("RETURNING id")
    assert params[1:4] == ("e1", "a1", "swimming")
    assert params[4].adapted == {"time_hundredths": 7000}
    assert params[5] == 250
    assert conn.commits == 1


def test_cumulative_points_excludes_laser_run(monkeypatch, pg):
    conn = FakeConn(rows=[("a1", 730), ("a2", 0)])
    monkeypatch.setattr(pg, "_POOL", FakePool([conn]))

    totals = pg.cumulative_points("c1")

    assert totals == {"a1": 730, "a2": 0}
    _sql, params = conn.statements[-1]
    assert params == ("c1", ["laser_run"])


def test_list_swim_times_skips_query_for_no_athletes(monkeypatch, pg):
    pool = FakePool([])
    monkeypatch.setattr(pg, "_POOL", pool)
    assert pg.list_swim_times([]) == {}
    assert pool.calls_get == 0


def test_get_conn_requires_database_url(monkeypatch, pg):
    monkeypatch.delenv("DATABASE_URL")
    with pytest.raises(RuntimeError):
        with pg._get_conn():
            pass
