from __future__ import annotations

from importlib import resources
from pathlib import Path

from click import BadParameter, ClickException
from typer import Argument, Context, Exit, Option

from ...core import (
    DatabaseError,
    NotFoundError,
    ValidationError,
    get_column_value,
    get_first_row,
)
from ..sql import EXIT_NO_CONNECTION, run_sql_file
from ._utils import (
    MainTyper,
    get_root_context,
    logger,
    lookup_param,
    print_json,
    require_database,
)

SCHEMA_FILENAME = "schema.sql"

app = MainTyper(
    "db",
    help="Database maintenance and diagnostics",
)


@app.command()
def init(ctx: Context):
    """
    Create tables if they don't exist
    """
    conninfo = get_root_context(ctx).profile.conninfo

    if not conninfo:
        logger.error("No database configured")
        raise Exit(code=EXIT_NO_CONNECTION)

    schema = resources.files("inkdoodle_sync.core").joinpath(SCHEMA_FILENAME)

    with resources.as_file(schema) as schema_path:
        raise Exit(
            code=run_sql_file(Path(schema_path), conninfo, logger=logger)
        )


@app.command()
def ping(ctx: Context):
    """
    Print server time and version
    """
    database = require_database(ctx)

    try:
        info = database.ping()
    except DatabaseError as e:
        raise ClickException(f"Failed to query database: {e}")

    print_json(info)


@app.command()
def value(
    ctx: Context,
    table: str = Argument(help="Table to query"),
    column: str = Argument(help="Column whose value to print"),
    where: str
    | None = Option(
        None,
        help="Condition without WHERE keyword, using %s placeholders",
    ),
    param: list[str] = Option(
        [],
        "--param",
        "-p",
        help="Value for a %s placeholder in --where, may be repeated",
    ),
):
    """
    Print value of a column in the first matching row
    """
    database = require_database(ctx)

    try:
        result = get_column_value(database, table, column, where, param)
    except ValidationError as e:
        raise BadParameter(
            str(e), ctx=ctx, param=lookup_param(ctx, "table")
        )
    except NotFoundError as e:
        logger.error(str(e))
        raise Exit(code=1)

    print_json({"table": table, "column": column, "value": result})


@app.command()
def row(
    ctx: Context,
    table: str = Argument(help="Table to query"),
    where: str
    | None = Option(
        None,
        help="Condition without WHERE keyword, using %s placeholders",
    ),
    param: list[str] = Option(
        [],
        "--param",
        "-p",
        help="Value for a %s placeholder in --where, may be repeated",
    ),
):
    """
    Print first matching row
    """
    database = require_database(ctx)

    try:
        result = get_first_row(database, table, where, param)
    except ValidationError as e:
        raise BadParameter(
            str(e), ctx=ctx, param=lookup_param(ctx, "table")
        )
    except NotFoundError as e:
        logger.error(str(e))
        raise Exit(code=1)

    print_json(result)
