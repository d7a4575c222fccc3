"""
Implementation of database access.
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from logging import Logger
from typing import Any, Iterator, Mapping, Sequence

import psycopg
from psycopg.conninfo import conninfo_to_dict
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from .exceptions import DatabaseError, translate_error

__all__ = [
    "CONNECTION_ENV_VARS",
    "Database",
    "get_conninfo_from_env",
]

CONNECTION_ENV_VARS = ["DATABASE_URL", "PG_CONNECTION"]
"""
Environment variables consulted for the connection string, in order.
"""

CONNECT_TIMEOUT = 10.0
"""
Seconds to wait for a pooled connection.
"""

Params = Sequence[Any] | Mapping[str, Any] | None


def get_conninfo_from_env(
    environ: Mapping[str, str] | None = None
) -> str | None:
    """
    Get connection string from the first non-empty environment variable in
    {obj}`CONNECTION_ENV_VARS`.
    """
    environ = os.environ if environ is None else environ

    for name in CONNECTION_ENV_VARS:
        if value := environ.get(name):
            return value

    return None


class Database:
    """
    Interface to the Postgres database backing the projects.

    Connections are pooled and run in autocommit mode; statements which must
    be atomic are grouped with {obj}`Database.transaction`, which issues
    `BEGIN`/`COMMIT` explicitly and `ROLLBACK` on failure.

    The pool is opened lazily upon first use.
    """

    _conninfo: str
    """
    Connection string as passed by user.
    """

    _pool: ConnectionPool
    """
    Pool of autocommit connections returning rows as dicts.
    """

    _logger: Logger
    """
    Logger to use.
    """

    def __init__(
        self,
        conninfo: str,
        *,
        min_size: int = 1,
        max_size: int = 4,
        timeout: float = CONNECT_TIMEOUT,
        logger: Logger | None = None,
    ):
        """
        :param conninfo: libpq connection string or `postgresql://` URL
        :param min_size: Minimum number of pooled connections
        :param max_size: Maximum number of pooled connections
        :param timeout: Seconds to wait for a connection before failing
        :param logger: Logger to use, or `None` to use default logger
        """
        self._conninfo = conninfo
        self._timeout = timeout
        self._logger = logger or logging.getLogger()
        self._pool = ConnectionPool(
            conninfo,
            min_size=min_size,
            max_size=max_size,
            timeout=timeout,
            kwargs={"autocommit": True, "row_factory": dict_row},
            open=False,
        )

    def __repr__(self) -> str:
        return f"Database({self.description})"

    def __enter__(self) -> Database:
        self.open()
        return self

    def __exit__(self, *_):
        self.close()

    @classmethod
    def from_env(cls, *, logger: Logger | None = None) -> Database | None:
        """
        Create from environment, or return `None` if no connection string is
        configured.
        """
        conninfo = get_conninfo_from_env()
        return cls(conninfo, logger=logger) if conninfo else None

    @property
    def description(self) -> str:
        """
        Connection target without credentials, suitable for logging.
        """
        try:
            params = conninfo_to_dict(self._conninfo)
        except psycopg.ProgrammingError:
            return "<invalid connection string>"

        host = params.get("host", "localhost")
        port = params.get("port", "5432")
        dbname = params.get("dbname", "")
        return f"{host}:{port}/{dbname}"

    @property
    def logger(self) -> Logger:
        return self._logger

    def open(self):
        """
        Open pool and wait for the initial connection, raising upon failure.
        """
        if not self._pool.closed:
            return

        try:
            self._pool.open(wait=True, timeout=self._timeout)
        except Exception as e:
            self._logger.error(
                f"Failed to connect to database {self.description}: {e}"
            )
            self._pool.close()
            raise DatabaseError(
                f"Failed to connect to database {self.description}"
            ) from e

    def close(self):
        self._pool.close()

    @contextmanager
    def connection(self) -> Iterator[psycopg.Connection]:
        """
        Acquire a pooled connection, releasing it upon exit.
        """
        self.open()
        with self._pool.connection() as conn:
            yield conn

    @contextmanager
    def cursor(self) -> Iterator[psycopg.Cursor]:
        """
        Get a cursor on a pooled connection. Driver errors are translated to
        this package's exceptions.
        """
        with self.connection() as conn:
            try:
                with conn.cursor() as cur:
                    yield cur
            except psycopg.Error as e:
                raise translate_error(e) from e

    @contextmanager
    def transaction(self) -> Iterator[psycopg.Cursor]:
        """
        Run statements in an explicit transaction on a single pooled
        connection.
        """
        with self.connection() as conn:
            with conn.cursor() as cur:
                cur.execute("BEGIN")
                try:
                    yield cur
                except BaseException as e:
                    self._rollback(cur)
                    if isinstance(e, psycopg.Error):
                        raise translate_error(e) from e
                    raise
                else:
                    cur.execute("COMMIT")

    def fetch_all(self, query: Any, params: Params = None) -> list[dict]:
        with self.cursor() as cur:
            cur.execute(query, params)
            return list(cur.fetchall())

    def fetch_one(self, query: Any, params: Params = None) -> dict | None:
        with self.cursor() as cur:
            cur.execute(query, params)
            return cur.fetchone()

    def execute(self, query: Any, params: Params = None):
        with self.cursor() as cur:
            cur.execute(query, params)

    def ping(self) -> dict:
        """
        Get server time and version.
        """
        row = self.fetch_one("SELECT now() AS ts, version() AS version")
        assert row is not None
        return row

    def _rollback(self, cur: psycopg.Cursor):
        try:
            cur.execute("ROLLBACK")
        except psycopg.Error as e:
            # connection is unusable; pool will discard it
            self._logger.warning(f"Rollback failed: {e}")
