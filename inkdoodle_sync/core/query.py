"""
Read-only queries against the database.

Identifiers passed by callers are validated and quoted; values are always
passed as parameters.
"""

from __future__ import annotations

import re
from typing import Any, Sequence

from psycopg import sql

from .database import Database
from .exceptions import NotFoundError, ValidationError
from .types import Chapter, Lore, Note, Project, ProjectEntries, Reference

__all__ = [
    "PROJECT_COLUMNS",
    "CHAPTER_COLUMNS",
    "NOTE_COLUMNS",
    "REF_COLUMNS",
    "LORE_COLUMNS",
    "CREATOR_COLUMNS",
    "get_project_info",
    "get_project_entries",
    "get_column_value",
    "get_first_row",
    "get_project_codes_for_creator",
    "get_chapter_codes_for_creator",
    "get_note_codes_for_creator",
    "get_ref_codes_for_creator",
    "get_lore_codes_for_creator",
    "get_logged_in_creator",
]

PROJECT_COLUMNS = [
    "id",
    "code",
    "title",
    "creator_id",
    "created_at",
    "updated_at",
]

CHAPTER_COLUMNS = [
    "id",
    "code",
    "project_id",
    "creator_id",
    "number",
    "title",
    "content",
    "status",
    "summary",
    "tags",
    "created_at",
    "updated_at",
    "word_goal",
]

NOTE_COLUMNS = [
    "id",
    "code",
    "project_id",
    "creator_id",
    "number",
    "title",
    "content",
    "tags",
    "category",
    "pinned",
    "created_at",
    "updated_at",
]

REF_COLUMNS = [
    "id",
    "code",
    "project_id",
    "creator_id",
    "number",
    "title",
    "tags",
    "reference_type",
    "summary",
    "source_link",
    "content",
    "created_at",
    "updated_at",
]

LORE_COLUMNS = [
    "id",
    "code",
    "project_id",
    "creator_id",
    "number",
    "title",
    "content",
    "status",
    "summary",
    "tags",
    "created_at",
    "updated_at",
    "lore_kind",
    "entry1_name",
    "entry1_content",
    "entry2_name",
    "entry2_content",
    "entry3_name",
    "entry3_content",
    "entry4_name",
    "entry4_content",
]

CREATOR_COLUMNS = [
    "id",
    "email",
    "display_name",
    "created_at",
    "is_active",
    "updated_at",
    "last_login_at",
]

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def get_project_info(db: Database, code: str) -> Project | None:
    """
    Get project metadata by code; child collections are left empty.
    """
    query = sql.SQL("SELECT {} FROM projects WHERE code = %s LIMIT 1").format(
        _column_list(PROJECT_COLUMNS)
    )
    row = db.fetch_one(query, (code,))
    return Project.model_validate(row) if row else None


def get_project_entries(db: Database, code: str) -> ProjectEntries:
    """
    Get all chapters, notes, refs and lore of the project with the given
    code.
    """
    return ProjectEntries(
        chapters=[
            Chapter.model_validate(r)
            for r in _select_children(db, "chapters", CHAPTER_COLUMNS, code)
        ],
        notes=[
            Note.model_validate(r)
            for r in _select_children(db, "notes", NOTE_COLUMNS, code)
        ],
        refs=[
            Reference.model_validate(r)
            for r in _select_children(db, "refs", REF_COLUMNS, code)
        ],
        lore=[
            Lore.model_validate(r)
            for r in _select_children(db, "lore", LORE_COLUMNS, code)
        ],
    )


def get_column_value(
    db: Database,
    table: str,
    column: str,
    where: str | None = None,
    params: Sequence[Any] = (),
) -> str | None:
    """
    Get the value of a column in the first matching row, as a string. Returns
    `None` if the stored value is NULL.

    This is meant for diagnostics rather than regular data access.

    :param where: Optional condition without the `WHERE` keyword, using `%s` placeholders
    :raises NotFoundError: No row matches
    """
    _validate_identifier(table, "table")
    _validate_identifier(column, "column")

    query = sql.SQL("SELECT {} FROM {}{} LIMIT 1").format(
        sql.Identifier(column), sql.Identifier(table), _where(where)
    )
    row = db.fetch_one(query, tuple(params))

    if row is None:
        raise NotFoundError(f"No row found in '{table}'")

    value = row[column]
    return None if value is None else str(value)


def get_first_row(
    db: Database,
    table: str,
    where: str | None = None,
    params: Sequence[Any] = (),
) -> dict[str, Any]:
    """
    Get the first matching row.

    :raises NotFoundError: No row matches
    """
    _validate_identifier(table, "table")

    query = sql.SQL("SELECT * FROM {}{} LIMIT 1").format(
        sql.Identifier(table), _where(where)
    )
    row = db.fetch_one(query, tuple(params))

    if row is None:
        raise NotFoundError(f"No row found in '{table}'")

    return dict(row)


def get_project_codes_for_creator(
    db: Database, creator_id: int | str
) -> list[str]:
    return _select_codes(db, "projects", creator_id)


def get_chapter_codes_for_creator(
    db: Database, creator_id: int | str
) -> list[str]:
    return _select_codes(db, "chapters", creator_id)


def get_note_codes_for_creator(
    db: Database, creator_id: int | str
) -> list[str]:
    return _select_codes(db, "notes", creator_id)


def get_ref_codes_for_creator(
    db: Database, creator_id: int | str
) -> list[str]:
    return _select_codes(db, "refs", creator_id)


def get_lore_codes_for_creator(
    db: Database, creator_id: int | str
) -> list[str]:
    return _select_codes(db, "lore", creator_id)


def get_logged_in_creator(db: Database) -> dict[str, Any] | None:
    """
    Get the creator recorded by the last login, as `{id, email, name}`.
    """
    row = db.fetch_one(
        "SELECT value FROM prefs WHERE key = 'auth_user' LIMIT 1"
    )
    if row is None or not isinstance(row["value"], dict):
        return None
    return row["value"]


def _select_children(
    db: Database, table: str, columns: list[str], project_code: str
) -> list[dict]:
    query = sql.SQL(
        "SELECT {} FROM {} t JOIN projects p ON p.id = t.project_id"
        " WHERE p.code = %s ORDER BY t.number NULLS LAST, t.id"
    ).format(
        sql.SQL(", ").join(sql.Identifier("t", c) for c in columns),
        sql.Identifier(table),
    )
    return db.fetch_all(query, (project_code,))


def _select_codes(db: Database, table: str, creator_id: int | str) -> list[str]:
    query = sql.SQL(
        "SELECT code FROM {} WHERE creator_id = %s ORDER BY id"
    ).format(sql.Identifier(table))
    rows = db.fetch_all(query, (creator_id,))
    return [str(r["code"]) for r in rows if r["code"] is not None]


def _column_list(columns: list[str]) -> sql.Composable:
    return sql.SQL(", ").join(sql.Identifier(c) for c in columns)


def _where(where: str | None) -> sql.Composable:
    return sql.SQL(" WHERE " + where) if where else sql.SQL("")


def _validate_identifier(name: str, kind: str):
    if not IDENTIFIER_PATTERN.match(name):
        raise ValidationError(f"Invalid {kind} name: '{name}'")
