"""Thin Postgres client used for the handful of tables the app owns.

Tables:
  crystal_exchange_rates(timestamp PK, exchange, updated_at, source_timestamp, created_at)
  saved_packages(id PK, package_name, package_data jsonb, created_at, updated_at)
  circular_breakthrough_values(id PK, level, weapon_value, armor_value)
"""
import logging
import re
from typing import Any, Dict, Iterable, List, Optional

import psycopg2
import psycopg2.errors
from psycopg2 import sql
from psycopg2.extras import Json, RealDictCursor

from ..config import database_url
from ..errors import DatastoreUnavailable, MissingColumnError, StorageError

log = logging.getLogger("loamarket.db")

_COLUMN_RE = re.compile(r'column "?([A-Za-z_][A-Za-z0-9_]*)"?')


def _adapt(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return Json(value)
    return value


def _translate(exc: psycopg2.Error) -> StorageError:
    message = str(exc).strip()
    if isinstance(exc, psycopg2.errors.UndefinedColumn):
        match = _COLUMN_RE.search(message)
        return MissingColumnError(message, match.group(1) if match else None)
    return StorageError(message or exc.__class__.__name__)


def _insert_query(table: str, row: Dict[str, Any]):
    return sql.SQL("INSERT INTO {} ({}) VALUES ({})").format(
        sql.Identifier(table),
        sql.SQL(", ").join(sql.Identifier(c) for c in row),
        sql.SQL(", ").join(sql.Placeholder() for _ in row),
    )


class Datastore:
    def __init__(self, dsn: str):
        self._dsn = dsn
        self._conn = None

    def _connection(self):
        if self._conn is None or self._conn.closed:
            try:
                self._conn = psycopg2.connect(self._dsn)
            except psycopg2.Error as exc:
                raise StorageError(f"Database connection failed: {exc}") from exc
            self._conn.autocommit = True
        return self._conn

    def close(self) -> None:
        if self._conn is not None and not self._conn.closed:
            self._conn.close()

    def _execute(self, query, params=None, fetch: str = "none"):
        conn = self._connection()
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(query, params)
                if fetch == "all":
                    return [dict(row) for row in cur.fetchall()]
                if fetch == "one":
                    row = cur.fetchone()
                    return dict(row) if row is not None else None
                return cur.rowcount
        except psycopg2.Error as exc:
            raise _translate(exc) from exc

    def select(
        self,
        table: str,
        columns: Optional[Iterable[str]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[dict]:
        fields = (
            sql.SQL(", ").join(sql.Identifier(c) for c in columns)
            if columns
            else sql.SQL("*")
        )
        query = sql.SQL("SELECT {} FROM {}").format(fields, sql.Identifier(table))
        if order_by:
            query += sql.SQL(" ORDER BY {} {}").format(
                sql.Identifier(order_by),
                sql.SQL("DESC" if descending else "ASC"),
            )
        if limit is not None:
            query += sql.SQL(" LIMIT {}").format(sql.Literal(int(limit)))
        return self._execute(query, fetch="all")

    def insert(self, table: str, row: Dict[str, Any]) -> dict:
        query = _insert_query(table, row) + sql.SQL(" RETURNING *")
        return self._execute(query, [_adapt(v) for v in row.values()], fetch="one")

    def update(self, table: str, key: str, value: Any, changes: Dict[str, Any]) -> Optional[dict]:
        query = sql.SQL("UPDATE {} SET {} WHERE {} = %s RETURNING *").format(
            sql.Identifier(table),
            sql.SQL(", ").join(
                sql.SQL("{} = %s").format(sql.Identifier(c)) for c in changes
            ),
            sql.Identifier(key),
        )
        params = [_adapt(v) for v in changes.values()] + [value]
        return self._execute(query, params, fetch="one")

    def upsert(self, table: str, row: Dict[str, Any], conflict: str) -> None:
        updates = [c for c in row if c != conflict]
        query = sql.SQL("INSERT INTO {} ({}) VALUES ({}) ON CONFLICT ({}) ").format(
            sql.Identifier(table),
            sql.SQL(", ").join(sql.Identifier(c) for c in row),
            sql.SQL(", ").join(sql.Placeholder() for _ in row),
            sql.Identifier(conflict),
        )
        if updates:
            query += sql.SQL("DO UPDATE SET {}").format(
                sql.SQL(", ").join(
                    sql.SQL("{0} = EXCLUDED.{0}").format(sql.Identifier(c)) for c in updates
                )
            )
        else:
            query += sql.SQL("DO NOTHING")
        self._execute(query, [_adapt(v) for v in row.values()])

    def delete_where(self, table: str, key: str, value: Any) -> int:
        query = sql.SQL("DELETE FROM {} WHERE {} = %s").format(
            sql.Identifier(table), sql.Identifier(key)
        )
        return self._execute(query, [value])

    def delete_before(self, table: str, column: str, value: Any) -> int:
        query = sql.SQL("DELETE FROM {} WHERE {} < %s").format(
            sql.Identifier(table), sql.Identifier(column)
        )
        return self._execute(query, [value])

    def replace_all(self, table: str, rows: List[Dict[str, Any]]) -> int:
        """Swap the table contents for ``rows`` in a single transaction."""
        conn = self._connection()
        conn.autocommit = False
        try:
            with conn, conn.cursor() as cur:
                cur.execute(sql.SQL("DELETE FROM {}").format(sql.Identifier(table)))
                for row in rows:
                    cur.execute(_insert_query(table, row), [_adapt(v) for v in row.values()])
        except psycopg2.Error as exc:
            raise _translate(exc) from exc
        finally:
            if not conn.closed:
                conn.autocommit = True
        return len(rows)

    def ping(self, table: str) -> None:
        query = sql.SQL("SELECT 1 FROM {} LIMIT 1").format(sql.Identifier(table))
        self._execute(query, fetch="all")


_DATASTORE: Optional[Datastore] = None


def get_datastore() -> Datastore:
    """Return the shared datastore, raising DatastoreUnavailable if unconfigured."""
    global _DATASTORE

    dsn = database_url()
    if not dsn:
        log.warning("DATABASE_URL is not set; datastore features are disabled")
        raise DatastoreUnavailable()
    if _DATASTORE is None or _DATASTORE._dsn != dsn:
        _DATASTORE = Datastore(dsn)
    return _DATASTORE


def close_datastore() -> None:
    global _DATASTORE

    if _DATASTORE is not None:
        _DATASTORE.close()
        _DATASTORE = None
