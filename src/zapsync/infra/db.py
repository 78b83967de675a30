"""Database access layer using psycopg2.

Provides:
- Store: explicit handle to one tenant database (URL + auth token)
- Store.txn(): the only way in. Repositories take its cursor, and a unit
  of work (one contact, one chunk of a batch sync) commits or rolls back
  as a whole.

No connection is kept between calls: each txn() opens a connection and
closes it on exit.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

import psycopg2
from psycopg2.extensions import connection as PgConnection, cursor as PgCursor
from psycopg2.extensions import parse_dsn

from .settings import Settings


class StoreNotConfiguredError(RuntimeError):
    """Raised when an operation needs the store but URL or token is missing."""


def dsn_has_password(dsn: str) -> bool:
    """Return True when the URL/DSN already carries a password."""
    try:
        return bool(parse_dsn(dsn).get("password"))
    except psycopg2.ProgrammingError:
        return False


class Store:
    """Handle to the tenant database.

    Args:
        dsn: Postgres URL or libpq key=value DSN.
        token: Auth token, sent as the password unless the DSN has one.
    """

    def __init__(self, dsn: str | None, token: str | None) -> None:
        self._dsn = dsn
        self._token = token

    @classmethod
    def from_settings(cls, settings: Settings) -> "Store":
        return cls(settings.database_url, settings.db_token)

    @property
    def is_configured(self) -> bool:
        return bool(self._dsn) and bool(self._token)

    def connect(self) -> PgConnection:
        """Open a new connection.

        Raises:
            StoreNotConfiguredError: If URL or token is missing.
            psycopg2.Error: On connection failure.
        """
        if not self.is_configured:
            raise StoreNotConfiguredError("DATABASE_URL and DB_TOKEN are required")
        if dsn_has_password(self._dsn):
            return psycopg2.connect(self._dsn)
        return psycopg2.connect(self._dsn, password=self._token)

    @contextmanager
    def txn(self) -> Iterator[PgCursor]:
        """Context manager for a short, safe transaction.

        Commits on successful exit, rolls back on exception. The connection
        is always closed.

        Example:
            with store.txn() as cur:
                cur.execute("UPDATE contacts SET name = %s WHERE id = %s", (name, cid))
        """
        conn = self.connect()
        try:
            with conn.cursor() as cur:
                yield cur
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
