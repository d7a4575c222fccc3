"""
Harness commands exercising the data layer against fixed sample inputs.

Each command prints its result as JSON and exits with code 0, or logs the
error and exits with code 2. Operations which report failures in their
result (e.g. `load`) still exit with 0.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Callable

from typer import Context, Exit

from ...core import (
    Database,
    DatabaseError,
    NotFoundError,
    full_load,
    full_upload_to_temporary_json,
    get_column_value,
    get_first_row,
    get_project_entries,
    get_project_info,
    load_project_for_upload,
    translate_db_to_local,
)
from ._utils import MainTyper, get_root_context, logger, print_json

SAMPLE_PROJECT_CODE = "PRJ-0001-000001"
"""
Project code queried by `tester`, overridable by
`INKDOODLE_SAMPLE_PROJECT_CODE`.
"""

SAMPLE_PROJECT_PATH = Path("FormatInfo") / "localFormatShowcase"
"""
Local project folder loaded by `load-project` and `inspect`, relative to
current folder, overridable by `INKDOODLE_SAMPLE_PROJECT_PATH`.
"""

EXIT_ERROR = 2

app = MainTyper(
    "harness",
    help="Run data layer operations against sample inputs",
)


@app.command()
def tester(ctx: Context):
    """
    Fetch info and entries of the sample project
    """

    def run() -> Any:
        database = _get_database(ctx)
        code = (
            os.environ.get("INKDOODLE_SAMPLE_PROJECT_CODE")
            or SAMPLE_PROJECT_CODE
        )

        logger.info(f"Fetching project info for code: {code}")
        info = get_project_info(database, code)

        logger.info("Fetching project entries (chapters/notes/refs/lore)")
        entries = get_project_entries(database, code)

        return {
            "info": info.model_dump(
                mode="json", exclude={"chapters", "notes", "refs", "lore"}
            )
            if info
            else None,
            "entries": entries.model_dump(mode="json"),
        }

    _run("tester", run)


@app.command()
def load(ctx: Context):
    """
    Create project folders for the logged-in creator
    """

    def run() -> Any:
        database = _get_database(ctx)
        result = full_load(
            database,
            base_dir=get_root_context(ctx).profile.projects_root,
            logger=logger,
        )

        for created in result.created:
            logger.info(f"Created project folder: '{created.path}'")

        return result.to_dict()

    _run("load", run)


@app.command()
def upload(ctx: Context):
    """
    Stage the logged-in creator's projects to the staging file
    """

    def run() -> Any:
        database = _get_database(ctx)
        result = full_upload_to_temporary_json(
            database,
            out_path=get_root_context(ctx).profile.staging_file,
            logger=logger,
        )

        if result.ok:
            logger.info(f"Wrote staging file: '{result.path}'")

        return result.to_dict()

    _run("upload", run)


@app.command()
def translate(ctx: Context):
    """
    Translate the staging file to local project format
    """

    def run() -> Any:
        result = translate_db_to_local(
            path=get_root_context(ctx).profile.staging_file
        )
        return result.to_dict()

    _run("translate", run)


@app.command("load-project")
def load_project(ctx: Context):
    """
    Load the sample local project folder and iterate its chapters
    """

    def run() -> Any:
        path = _get_sample_path()
        logger.info(f"Loading local project: '{path}'")

        snapshot = load_project_for_upload(
            path, db=_get_optional_database(ctx), logger=logger
        )

        return {
            "project": snapshot.project,
            "creator": snapshot.creator,
            "chapters": _drain(snapshot.next_chapter),
            "notes": _drain(snapshot.next_note),
            "refs": _drain(snapshot.next_ref),
            "lore": _drain(snapshot.next_lore),
        }

    _run("load-project", run)


@app.command()
def inspect(ctx: Context):
    """
    Load the sample local project folder and run read-only database checks
    """

    def run() -> Any:
        path = _get_sample_path()
        database = _get_database(ctx)
        snapshot = load_project_for_upload(path, db=database, logger=logger)

        chapter_rows = snapshot.chapter_rows()
        note_rows = snapshot.note_rows()
        ref_rows = snapshot.ref_rows()
        lore_rows = snapshot.lore_rows()

        checks: dict[str, Any] = {}

        try:
            checks["creators.email"] = get_column_value(
                database, "creators", "email"
            )
        except (NotFoundError, DatabaseError) as e:
            logger.error(f"get_column_value failed: {e}")

        try:
            checks["creators.first_row"] = get_first_row(database, "creators")
        except (NotFoundError, DatabaseError) as e:
            logger.error(f"get_first_row failed: {e}")

        return {
            "project": snapshot.project,
            "creator": snapshot.creator,
            "columns": {
                "chapter_cols": list(snapshot.chapter_cols.keys()),
                "note_cols": list(snapshot.note_cols.keys()),
                "ref_cols": list(snapshot.ref_cols.keys()),
                "lore_cols": list(snapshot.lore_cols.keys()),
            },
            "counts": {
                "chapters": len(chapter_rows),
                "notes": len(note_rows),
                "refs": len(ref_rows),
                "lore": len(lore_rows),
            },
            "first": {
                "chapter": chapter_rows[0] if chapter_rows else None,
                "note": note_rows[0] if note_rows else None,
                "ref": ref_rows[0] if ref_rows else None,
                "lore": lore_rows[0] if lore_rows else None,
            },
            "checks": checks,
        }

    _run("inspect", run)


def _run(name: str, func: Callable[[], Any]):
    """
    Run harness function and print its result, exiting with error code if it
    raises.
    """
    try:
        result = func()
    except Exception as e:
        logger.exception(f"Error running {name}: {e}")
        raise Exit(code=EXIT_ERROR)

    print_json(result)


def _get_database(ctx: Context) -> Database:
    database = _get_optional_database(ctx)

    if database is None:
        raise DatabaseError(
            "No database configured: pass --database-url or set DATABASE_URL / PG_CONNECTION"
        )

    return database


def _get_optional_database(ctx: Context) -> Database | None:
    database = get_root_context(ctx).create_database()

    if database is not None:
        ctx.call_on_close(database.close)

    return database


def _get_sample_path() -> Path:
    return Path(
        os.environ.get("INKDOODLE_SAMPLE_PROJECT_PATH") or SAMPLE_PROJECT_PATH
    )


def _drain(
    next_row: Callable[[], dict[str, Any] | None]
) -> list[dict[str, Any]]:
    """
    Collect rows from a snapshot cursor until it's exhausted.
    """
    rows: list[dict[str, Any]] = []
    while (row := next_row()) is not None:
        rows.append(row)
    return rows
