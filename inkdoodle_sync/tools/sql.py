"""
Execution of .sql files in a single transaction.
"""

from __future__ import annotations

import logging
from logging import Logger
from pathlib import Path

from ..core import Database, DatabaseError, get_conninfo_from_env

__all__ = [
    "EXIT_OK",
    "EXIT_FAILED",
    "EXIT_USAGE",
    "EXIT_NOT_FOUND",
    "EXIT_NO_CONNECTION",
    "resolve_conninfo",
    "run_sql_file",
]

EXIT_OK = 0
EXIT_FAILED = 1
"""
Connection or execution error.
"""

EXIT_USAGE = 2
"""
No file given.
"""

EXIT_NOT_FOUND = 3
EXIT_NO_CONNECTION = 4


def resolve_conninfo(argument: str | None = None) -> str | None:
    """
    Get connection string from environment, falling back to the given
    argument.
    """
    return get_conninfo_from_env() or argument or None


def run_sql_file(
    sql_file: Path, conninfo: str, *, logger: Logger | None = None
) -> int:
    """
    Execute the statements in a .sql file within one transaction, returning
    an exit code. A failing statement rolls back the whole file.
    """
    logger = logger or logging.getLogger()
    sql = sql_file.read_text(encoding="utf-8")

    db = Database(conninfo, min_size=1, max_size=1, logger=logger)

    try:
        logger.info(f"Connecting to database {db.description}")
        try:
            db.open()
        except DatabaseError:
            # already logged; nothing to roll back
            return EXIT_FAILED

        logger.info(f"Executing SQL file: '{sql_file}'")
        try:
            with db.transaction() as cur:
                cur.execute(sql)
        except Exception as e:
            logger.error(f"Error executing SQL, rolled back: {e}")
            return EXIT_FAILED

        logger.info("SQL executed successfully")
        return EXIT_OK
    finally:
        db.close()
