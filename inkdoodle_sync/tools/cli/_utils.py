"""
Utilities specific to CLI functionality.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from click import Parameter
from rich.console import Console
from rich.logging import RichHandler
from typer import Context, Exit, Typer

from ...core import Database

if TYPE_CHECKING:
    from .main import RootContext


console = Console()

rich_handler = RichHandler(
    console=console,
    rich_tracebacks=True,
    show_level=True,
    show_time=True,
    show_path=False,
)
rich_handler.setFormatter(logging.Formatter("%(message)s"))

logger = logging.getLogger("inkdoodle")
logger.setLevel(logging.INFO)
logger.addHandler(rich_handler)
logger.propagate = False

DEBUG_LOG_FORMAT = "[%(asctime)s] %(levelname)s %(message)s"


class MainTyper(Typer):
    """
    Typer app with preconfigured settings.
    """

    def __init__(self, name: str, *, help: str):
        return super().__init__(
            name=name,
            help=help,
            rich_markup_mode="markdown",
            no_args_is_help=True,
            add_completion=False,
        )


def get_root_context(ctx: Context) -> RootContext:
    from .main import RootContext

    root_context = ctx.find_object(RootContext)
    assert isinstance(root_context, RootContext)
    return root_context


def require_database(ctx: Context) -> Database:
    """
    Get database from root context, exiting if no connection string is
    configured.
    """
    root_context = get_root_context(ctx)
    db = root_context.create_database()

    if db is None:
        logger.error(
            "No database configured: pass --database-url or set DATABASE_URL / PG_CONNECTION"
        )
        raise Exit(code=2)

    ctx.call_on_close(db.close)
    return db


def lookup_param(ctx: Context, name: str) -> Parameter:
    """
    Lookup param by name.
    """
    param = next((p for p in ctx.command.params if p.name == name), None)
    assert param, f"Could not find param with name: {name}"
    return param


def print_json(data: Any):
    """
    Print JSON document to stdout, bypassing rich markup processing.
    """
    console.print_json(data=data, default=str)


def add_debug_log(path: Path):
    """
    Append log messages to the given file in addition to the console.
    """
    resolved = path.resolve()

    for handler in logger.handlers:
        if (
            isinstance(handler, logging.FileHandler)
            and Path(handler.baseFilename) == resolved
        ):
            return

    resolved.parent.mkdir(parents=True, exist_ok=True)

    file_handler = logging.FileHandler(resolved, encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(DEBUG_LOG_FORMAT))
    file_handler.setLevel(logging.DEBUG)
    logger.addHandler(file_handler)
