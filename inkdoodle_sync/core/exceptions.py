"""
Exceptions raised by the data layer.
"""

from __future__ import annotations

from typing import Any

import psycopg

__all__ = [
    "DatabaseError",
    "ValidationError",
    "NotFoundError",
    "DuplicateError",
    "PG_ERROR_CODES",
    "translate_error",
]

PG_ERROR_CODES = {
    "UNIQUE_VIOLATION": "23505",
    "FOREIGN_KEY_VIOLATION": "23503",
    "NOT_NULL_VIOLATION": "23502",
}
"""
Postgres SQLSTATE codes which map to specific exceptions.
"""


class DatabaseError(Exception):
    """
    Raised when a database operation fails for a reason not covered by a more
    specific exception. The driver error, if any, is chained as `__cause__`.
    """


class ValidationError(Exception):
    """
    Raised when data is invalid, either before it reaches the database or as
    reported by a constraint violation.

    Examples:

    - Chapter with empty title
    - Note whose `project_id` doesn't match its owning project
    - Malformed `project.json` in a local project folder
    """

    errors: list[str]

    def __init__(self, errors: list[str] | str):
        self.errors = [errors] if isinstance(errors, str) else list(errors)
        errors_str = "\n".join(self.errors)
        super().__init__(f"Errors found during validation: {errors_str}")


class NotFoundError(Exception):
    """
    Raised when a lookup doesn't match any row.
    """


class DuplicateError(Exception):
    """
    Raised upon unique constraint violation.
    """


def translate_error(error: Exception) -> Exception:
    """
    Map a driver error to one of this module's exceptions. Errors which are
    already of a known type are returned unchanged.
    """
    if isinstance(
        error, (DatabaseError, ValidationError, NotFoundError, DuplicateError)
    ):
        return error

    sqlstate: str | None = getattr(error, "sqlstate", None)
    detail = _get_detail(error)

    if sqlstate == PG_ERROR_CODES["UNIQUE_VIOLATION"]:
        translated: Exception = DuplicateError(
            detail or "Item already exists"
        )
    elif sqlstate == PG_ERROR_CODES["FOREIGN_KEY_VIOLATION"]:
        translated = ValidationError(
            detail or "Referenced item does not exist"
        )
    elif sqlstate == PG_ERROR_CODES["NOT_NULL_VIOLATION"]:
        translated = ValidationError(detail or "Required field is missing")
    else:
        translated = DatabaseError(str(error) or "Database operation failed")

    translated.__cause__ = error
    return translated


def _get_detail(error: Any) -> str | None:
    if isinstance(error, psycopg.Error) and error.diag is not None:
        return error.diag.message_detail
    return None
