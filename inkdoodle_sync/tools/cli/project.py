from __future__ import annotations

from pathlib import Path

from click import ClickException
from typer import Argument, Context, Exit, Option

from ...core import (
    Database,
    ProjectSnapshot,
    ValidationError,
    check_ownership,
    compute_project_changes,
    get_project_entries,
    get_project_info,
    get_remote_project,
    load_project_for_upload,
    validate_chapter,
    validate_lore,
    validate_note,
    validate_project,
    validate_reference,
)
from ._utils import (
    MainTyper,
    get_root_context,
    logger,
    print_json,
    require_database,
)

app = MainTyper(
    "project",
    help="Inspect projects in database or local project folders",
)


@app.command()
def info(
    ctx: Context,
    code: str = Argument(help="Project code"),
):
    """
    Print project metadata from database
    """
    database = require_database(ctx)
    project = get_project_info(database, code)

    if project is None:
        logger.error(f"Project not found: '{code}'")
        raise Exit(code=1)

    print_json(
        project.model_dump(
            mode="json", exclude={"chapters", "notes", "refs", "lore"}
        )
    )


@app.command()
def entries(
    ctx: Context,
    code: str = Argument(help="Project code"),
):
    """
    Print chapters, notes, refs and lore of project from database
    """
    database = require_database(ctx)
    project_entries = get_project_entries(database, code)

    logger.info(
        f"Project '{code}': {', '.join(f'{v} {k}' for k, v in project_entries.counts.items())}"
    )
    print_json(project_entries.model_dump(mode="json"))


@app.command()
def load(
    ctx: Context,
    path: Path = Argument(
        help="Local project folder", file_okay=False, exists=True
    ),
    rows: bool = Option(
        False,
        "--rows",
        help="Print entries as rows rather than column collections",
    ),
):
    """
    Load local project folder and print the resulting snapshot
    """
    snapshot = _load(ctx, path)

    if rows:
        print_json(
            {
                "path": str(snapshot.path),
                "project": snapshot.project,
                "creator": snapshot.creator,
                "chapters": snapshot.chapter_rows(),
                "notes": snapshot.note_rows(),
                "refs": snapshot.ref_rows(),
                "lore": snapshot.lore_rows(),
            }
        )
    else:
        print_json(snapshot.to_dict())


@app.command()
def chapters(
    ctx: Context,
    path: Path = Argument(
        help="Local project folder", file_okay=False, exists=True
    ),
):
    """
    Load local project folder and list its chapters in order
    """
    snapshot = _load(ctx, path)
    count = 0

    while (chapter := snapshot.next_chapter()) is not None:
        count += 1
        logger.info(
            f"{chapter['number']}: {chapter['title']} ({chapter['code']})"
        )

    logger.info(f"{count} chapters in '{path}'")


@app.command()
def check(
    ctx: Context,
    path: Path = Argument(
        help="Local project folder", file_okay=False, exists=True
    ),
):
    """
    Validate local project folder
    """
    snapshot = _load(ctx, path)
    errors: list[str] = []

    try:
        project = snapshot.to_project()
    except ValidationError as e:
        errors += e.errors
    else:
        for validator, entity in [
            (validate_project, project),
            *[(validate_chapter, c) for c in project.chapters],
            *[(validate_note, n) for n in project.notes],
            *[(validate_reference, r) for r in project.refs],
            *[(validate_lore, e) for e in project.lore],
            (check_ownership, project),
        ]:
            try:
                validator(entity)
            except ValidationError as e:
                errors += e.errors

    if errors:
        for error in errors:
            logger.error(error)
        raise Exit(code=1)

    logger.info(f"Project '{snapshot.project['code']}' is valid")


@app.command()
def diff(
    ctx: Context,
    path: Path = Argument(
        help="Local project folder", file_okay=False, exists=True
    ),
):
    """
    Print changes between local project folder and database
    """
    database = require_database(ctx)
    snapshot = _load(ctx, path, database=database)
    code = snapshot.project["code"]

    if not code:
        raise ClickException(f"Project in '{path}' has no code")

    remote = get_remote_project(database, code)
    if remote is None:
        raise ClickException(f"Project not found in database: '{code}'")

    try:
        changes = compute_project_changes(snapshot, remote)
    except ValidationError as e:
        raise ClickException(str(e))

    if changes.is_empty:
        logger.info(f"No changes in project '{code}'")

    print_json(
        changes.model_dump(
            mode="json",
            exclude={"project": {"chapters", "notes", "refs", "lore"}},
        )
    )


def _load(
    ctx: Context, path: Path, database: Database | None = None
) -> ProjectSnapshot:
    """
    Load snapshot, enriching creator from database if one is configured.
    """
    if database is None:
        database = get_root_context(ctx).create_database()
        if database is not None:
            ctx.call_on_close(database.close)

    try:
        return load_project_for_upload(path, db=database, logger=logger)
    except ValidationError as e:
        raise ClickException(str(e))
