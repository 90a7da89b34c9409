import itertools

import pytest
from psycopg2 import sql

from loamarket.errors import ApiKeyMissing, MissingColumnError, UpstreamError
from loamarket.storage.db import Datastore


def server_error_text(column, table, row):
    """Error text shaped like Postgres's, statement excerpt included."""
    quoted = ", ".join(f'"{c}"' for c in row)
    return (
        f'column "{column}" of relation "{table}" does not exist\n'
        f'LINE 1: INSERT INTO "{table}" ({quoted}) VALUES ($1)\n'
        "                                 ^"
    )


def render_sql(query):
    """Spell out a psycopg2.sql composition without a live connection."""
    if isinstance(query, str):
        return query
    if isinstance(query, sql.Composed):
        return "".join(render_sql(part) for part in query.seq)
    if isinstance(query, sql.SQL):
        return query.string
    if isinstance(query, sql.Identifier):
        return ".".join(f'"{s}"' for s in query.strings)
    if isinstance(query, sql.Literal):
        return repr(query.wrapped)
    if isinstance(query, sql.Placeholder):
        return "%s"
    raise TypeError(f"cannot render {query!r}")


class FakeCursor:
    def __init__(self, conn):
        self.conn = conn
        self.rowcount = -1
        self._result = []

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, query, params=None):
        text = render_sql(query)
        self.conn.executed.append((text, params))
        if self.conn.fail is not None:
            error = self.conn.fail(text, params)
            if error is not None:
                raise error
        rows = self.conn.working_rows()
        if text.startswith("DELETE"):
            self.rowcount = len(rows)
            rows.clear()
        elif text.startswith("INSERT"):
            rows.append(list(params))
            self.rowcount = 1
        self._result = self.conn.results.pop(0) if self.conn.results else []

    def fetchall(self):
        return self._result

    def fetchone(self):
        return self._result[0] if self._result else None


class FakeConnection:
    """
    Stands in for a psycopg2 connection holding a single table.

    ``fail(text, params)`` may return an exception to raise for a statement.
    Outside autocommit, writes go to a pending copy that the ``with conn``
    block commits or drops.
    """

    def __init__(self, rows=None):
        self.rows = list(rows or [])
        self.autocommit = True
        self.closed = 0
        self.executed = []
        self.results = []
        self.fail = None
        self.commits = 0
        self.rollbacks = 0
        self._pending = None

    def cursor(self, cursor_factory=None):
        return FakeCursor(self)

    def working_rows(self):
        if self.autocommit:
            return self.rows
        if self._pending is None:
            self._pending = list(self.rows)
        return self._pending

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            if self._pending is not None:
                self.rows = self._pending
            self.commits += 1
        else:
            self.rollbacks += 1
        self._pending = None
        return False

    def close(self):
        self.closed = 1


class FakeLostArkClient:
    """Stands in for LostArkClient; answers come from the ``market`` and
    ``auction`` dicts keyed by ``(item_name, category_code)``."""

    def __init__(self, api_key="test-key"):
        self.api_key = api_key
        self.market = {}
        self.auction = {}
        self.armories = {}
        self.rosters = {}
        self.exchange_best_response = UpstreamError("not found", 404)
        self.exchange_response = UpstreamError("not found", 404)
        self.calls = []
        self.sleeps = []

    @property
    def configured(self):
        return bool(self.api_key)

    def require_key(self):
        if not self.api_key:
            raise ApiKeyMissing()

    def sleep(self, seconds):
        self.sleeps.append(seconds)

    @staticmethod
    def _answer(value):
        if isinstance(value, Exception):
            raise value
        return value

    def search_market(self, item_name, category_code=50000, **kwargs):
        self.calls.append(("market", item_name, category_code, kwargs))
        key = (item_name, category_code, kwargs.get("page", 1))
        if key in self.market:
            return self._answer(self.market[key])
        return self._answer(self.market.get((item_name, category_code), {"Items": []}))

    def search_auction(self, item_name, category_code=210000, **kwargs):
        self.calls.append(("auction", item_name, category_code, kwargs))
        return self._answer(self.auction.get((item_name, category_code), {"Items": []}))

    def armory(self, name):
        return self._answer(self.armories.get(name, UpstreamError("missing", 404)))

    def siblings(self, name):
        return self._answer(self.rosters.get(name, UpstreamError("missing", 404)))

    def exchange_best(self):
        return self._answer(self.exchange_best_response)

    def exchange(self):
        return self._answer(self.exchange_response)


class FakeDatastore:
    """In-memory rows per table, with the Datastore method surface."""

    def __init__(self):
        self.tables = {}
        self.missing_columns = {}
        self.upsert_calls = []
        self._ids = itertools.count(1)

    def _rows(self, table):
        return self.tables.setdefault(table, [])

    def _check_columns(self, table, row):
        for column in row:
            if column in self.missing_columns.get(table, ()):
                raise MissingColumnError(server_error_text(column, table, row), column)

    def select(self, table, columns=None, order_by=None, descending=False, limit=None):
        rows = [dict(r) for r in self._rows(table)]
        if order_by:
            rows.sort(key=lambda r: r.get(order_by) or "", reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        return rows

    def insert(self, table, row):
        self._check_columns(table, row)
        stored = {"id": next(self._ids), "created_at": f"2025-01-01T00:00:{len(self._rows(table)):02d}Z"}
        stored.update(row)
        self._rows(table).append(stored)
        return dict(stored)

    def update(self, table, key, value, changes):
        for row in self._rows(table):
            if str(row.get(key)) == str(value):
                row.update(changes)
                return dict(row)
        return None

    def upsert(self, table, row, conflict):
        self.upsert_calls.append(dict(row))
        self._check_columns(table, row)
        for existing in self._rows(table):
            if existing.get(conflict) == row[conflict]:
                existing.update(row)
                return
        self._rows(table).append(dict(row))

    def delete_where(self, table, key, value):
        before = len(self._rows(table))
        self.tables[table] = [r for r in self._rows(table) if str(r.get(key)) != str(value)]
        return before - len(self.tables[table])

    def delete_before(self, table, column, value):
        before = len(self._rows(table))
        self.tables[table] = [r for r in self._rows(table) if not r.get(column) < value]
        return before - len(self.tables[table])

    def replace_all(self, table, rows):
        self.tables[table] = []
        for row in rows:
            self.insert(table, row)
        return len(rows)

    def ping(self, table):
        return None


@pytest.fixture
def data_root(tmp_path, monkeypatch):
    monkeypatch.setenv("LOAMARKET_DATA_ROOT", str(tmp_path))
    monkeypatch.setenv("LOAMARKET_ITEM_SAMPLE", str(tmp_path / "item sample.csv"))
    return tmp_path


@pytest.fixture
def fake_client():
    return FakeLostArkClient()


@pytest.fixture
def fake_store():
    return FakeDatastore()


@pytest.fixture
def fake_connection():
    return FakeConnection()


@pytest.fixture
def pg_store(fake_connection):
    store = Datastore("postgresql://loamarket@localhost/test")
    store._conn = fake_connection
    return store
