from __future__ import annotations

from pathlib import Path

from typer import Context, Exit, Option

from ...core import (
    PROJECTS_DIRNAME,
    full_load,
    full_upload_to_temporary_json,
    plan_upload,
    resolve_base_dir,
    translate_db_to_local,
)
from ._utils import (
    MainTyper,
    get_root_context,
    logger,
    print_json,
    require_database,
)

app = MainTyper(
    "sync",
    help="Sync projects between database and local project folders",
)


@app.command("full-load")
def full_load_(
    ctx: Context,
    base_dir: Path
    | None = Option(
        None,
        help="Folder in which to create project folders; defaults to profile's projects_root, else ../InkDoodleProjects or ./InkDoodleProjects if either exists, else current folder",
        file_okay=False,
        exists=True,
    ),
    persist: bool = Option(
        True,
        help="Whether to record loaded project codes in database prefs",
    ),
    assemble: bool = Option(
        True,
        help="Whether to write project folders, otherwise only list codes",
    ),
):
    """
    Create a local project folder for each project of the logged-in creator
    """
    database = require_database(ctx)
    profile = get_root_context(ctx).profile

    result = full_load(
        database,
        base_dir=base_dir or profile.projects_root,
        persist=persist,
        assemble=assemble,
        logger=logger,
    )
    print_json(result.to_dict())

    if not result.ok:
        raise Exit(code=1)


@app.command()
def stage(
    ctx: Context,
    out: Path
    | None = Option(
        None,
        help="Staging file to write; defaults to profile's staging_file, else temporary.json in current folder",
        dir_okay=False,
    ),
):
    """
    Write payloads of the logged-in creator's projects to a staging file
    """
    database = require_database(ctx)
    profile = get_root_context(ctx).profile

    result = full_upload_to_temporary_json(
        database, out_path=out or profile.staging_file, logger=logger
    )

    if result.ok:
        logger.info(
            f"Staged {len(result.payloads)} of {len(result.codes)} projects to '{result.path}'"
        )
    else:
        logger.error(f"Staging failed: {result.error}")
        raise Exit(code=1)


@app.command()
def translate(
    ctx: Context,
    path: Path
    | None = Option(
        None,
        help="Staging file to read; defaults to profile's staging_file, else temporary.json in current folder",
        dir_okay=False,
    ),
):
    """
    Translate staging file to local project format and print it
    """
    profile = get_root_context(ctx).profile
    result = translate_db_to_local(path=path or profile.staging_file)
    print_json(result.to_dict())

    if not result.ok:
        raise Exit(code=1)


@app.command()
def plan(
    ctx: Context,
    root: Path
    | None = Option(
        None,
        help=f"Folder holding local project folders; defaults to profile's projects_root, else ../{PROJECTS_DIRNAME} or ./{PROJECTS_DIRNAME} if either exists, else current folder",
        file_okay=False,
        exists=True,
    ),
):
    """
    Report what uploading local project folders would change in database,
    without writing anything
    """
    database = require_database(ctx)
    profile = get_root_context(ctx).profile

    result = plan_upload(
        database,
        resolve_base_dir(root or profile.projects_root),
        logger=logger,
    )

    if result.ok:
        summary = result.summary
        logger.info(
            f"{summary['inserted']} to insert, {summary['updated']} to update, {summary['unchanged']} unchanged, {summary['deleted']} without local folder, {summary['errors']} errors"
        )

    print_json(result.to_dict())

    if not result.ok:
        raise Exit(code=1)
