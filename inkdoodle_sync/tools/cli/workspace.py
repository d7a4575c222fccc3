from __future__ import annotations

from pathlib import Path

from click import BadParameter
from typer import Context, Exit, Option

from ..workspace import (
    TAIL_LINES,
    default_workspace_dir,
    find_debug_log,
    sync_workspace,
    tail_file,
)
from ._utils import (
    MainTyper,
    console,
    get_root_context,
    logger,
    lookup_param,
)

app = MainTyper(
    "workspace",
    help="Per-user application workspace",
)


@app.command()
def sync(
    ctx: Context,
    source: Path = Option(
        Path("."),
        help="Folder containing app source files",
        file_okay=False,
        exists=True,
    ),
    dest: Path
    | None = Option(
        None,
        help="Workspace folder; defaults to profile's workspace_dir, else per-user application data folder",
        file_okay=False,
    ),
    dry_run: bool = Option(
        False,
        "--dry-run",
        help="Only log what would be copied",
    ),
    lines: int = Option(
        TAIL_LINES,
        help="Number of debug log lines to show after copying, 0 to disable",
        min=0,
    ),
):
    """
    Copy app source files into workspace
    """
    profile = get_root_context(ctx).profile
    workspace_dir = dest or profile.workspace_dir or default_workspace_dir()

    if workspace_dir.resolve() == source.resolve():
        raise BadParameter(
            "cannot be the same as source folder",
            ctx=ctx,
            param=lookup_param(ctx, "dest"),
        )

    stats = sync_workspace(
        source,
        workspace_dir,
        profile.sync_files,
        logger=logger,
        dry_run=dry_run,
    )

    logger.info(
        f"{'Would copy' if dry_run else 'Copied'} {len(stats.copied)} files to '{workspace_dir}', {len(stats.missing)} missing"
    )

    debug_log = find_debug_log(source, profile.debug_log)

    if lines and debug_log:
        _show_log(debug_log, lines)

    if stats.missing:
        raise Exit(code=1)


@app.command()
def log(
    ctx: Context,
    lines: int = Option(
        TAIL_LINES,
        help="Number of lines to show",
        min=1,
    ),
):
    """
    Show the last lines of the debug log, by default debug.log in current
    folder
    """
    debug_log = find_debug_log(
        Path("."), get_root_context(ctx).profile.debug_log
    )

    if not debug_log:
        logger.error(
            "No debug log found: pass --debug-log or set it in profile"
        )
        raise Exit(code=1)

    _show_log(debug_log, lines)


def _show_log(path: Path, lines: int):
    tail = tail_file(path, lines)

    if not tail:
        logger.info(f"Debug log is empty or missing: '{path}'")
        return

    console.rule(f"Last {len(tail)} lines of '{path}'")
    for line in tail:
        console.print(line, markup=False, highlight=False)
