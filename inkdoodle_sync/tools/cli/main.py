"""
Entry point of `inkdoodle` CLI.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import dotenv
from click.exceptions import BadParameter, ClickException
from pydantic import ValidationError
from typer import Argument, Context, Exit, Option

from ...core import Database, DatabaseError, login_by_email
from ..config import Config, ProfileConfig
from ..sql import (
    EXIT_NO_CONNECTION,
    EXIT_NOT_FOUND,
    resolve_conninfo,
    run_sql_file,
)
from . import db, harness, project, sync, workspace
from ._utils import (
    MainTyper,
    add_debug_log,
    get_root_context,
    logger,
    lookup_param,
    print_json,
    require_database,
)

dotenv.load_dotenv()

app = MainTyper(
    "inkdoodle",
    help="InkDoodle project sync toolkit",
)


@app.callback()
def main(
    ctx: Context,
    database_url: str
    | None = Option(
        None,
        help="Postgres connection string. Can also be set via DATABASE_URL or PG_CONNECTION environment variables.",
    ),
    profile_name: str
    | None = Option(
        None,
        "--profile",
        help="Profile name as configured in .yaml",
        envvar="INKDOODLE_PROFILE",
    ),
    config_file: Path = Option(
        "inkdoodle.yaml",
        help=".yaml file containing profiles, only applicable with --profile",
        envvar="INKDOODLE_CONFIG_FILE",
        dir_okay=False,
    ),
    debug_log: Path
    | None = Option(
        None,
        help="File to which log messages are appended",
        envvar="INKDOODLE_DEBUG_LOG",
        dir_okay=False,
    ),
    verbose: bool = Option(
        False,
        "--verbose",
        "-v",
        help="Log debug messages",
    ),
):
    # load environment variables from .env file if it exists
    dotenv.load_dotenv(Path(".env").resolve(), override=True)

    if verbose:
        logger.setLevel(logging.DEBUG)

    if profile_name:
        root_context = RootContext.from_config(
            ctx=ctx, profile_name=profile_name, config_file=config_file
        )
    else:
        root_context = RootContext(
            ctx=ctx,
            profile=ProfileConfig(database_url=database_url),
            from_file=False,
        )

    if database_url and root_context.from_file:
        raise BadParameter(
            message="cannot be passed with --profile",
            ctx=ctx,
            param=lookup_param(ctx, "database_url"),
        )

    if debug_log:
        root_context.profile.debug_log = debug_log

    if root_context.profile.debug_log:
        add_debug_log(root_context.profile.debug_log)

    ctx.obj = root_context


app.add_typer(db.app)
app.add_typer(project.app)
app.add_typer(sync.app)
app.add_typer(workspace.app)
app.add_typer(harness.app)


@app.command()
def check(ctx: Context):
    """
    Check database connection
    """
    database = require_database(ctx)

    try:
        info = database.ping()
    except DatabaseError as e:
        raise ClickException(f"Failed to check database: {e}")

    logger.info(
        f"Connected to database {database.description}, {info['version']}"
    )


@app.command()
def login(
    ctx: Context,
    email: str = Argument(help="Email of creator to log in as"),
):
    """
    Log in by email, creating the creator if needed
    """
    database = require_database(ctx)
    result = login_by_email(database, email, logger=logger)
    print_json(result.to_dict())

    if not result.ok:
        raise Exit(code=1)


@app.command("run-sql")
def run_sql(
    ctx: Context,
    sql_file: Path = Argument(help=".sql file to execute"),
    connection: str
    | None = Argument(
        None,
        help="Connection string, used if DATABASE_URL and PG_CONNECTION are not set",
    ),
):
    """
    Execute a .sql file in a single transaction
    """
    path = sql_file.resolve()

    if not path.is_file():
        logger.error(f"SQL file not found: '{path}'")
        raise Exit(code=EXIT_NOT_FOUND)

    conninfo = (
        resolve_conninfo(connection)
        or get_root_context(ctx).profile.database_url
    )

    if not conninfo:
        logger.error(
            "No DATABASE_URL / PG_CONNECTION found in environment and no connection string passed"
        )
        raise Exit(code=EXIT_NO_CONNECTION)

    raise Exit(code=run_sql_file(path, conninfo, logger=logger))


def run():
    app()


@dataclass(kw_only=True)
class RootContext:
    ctx: Context
    profile: ProfileConfig
    from_file: bool

    @classmethod
    def from_config(
        cls,
        *,
        ctx: Context,
        profile_name: str,
        config_file: Path,
    ) -> RootContext:
        # ensure config file exists
        if not config_file.is_file():
            raise BadParameter(
                message=f"file does not exist: {config_file}",
                ctx=ctx,
                param=lookup_param(ctx, "config_file"),
            )

        # get config from file
        try:
            config = Config.load_yaml(config_file)
        except (ValueError, ValidationError) as e:
            raise BadParameter(
                f"failed to load config file '{config_file}': {e}",
                ctx=ctx,
                param=lookup_param(ctx, "config_file"),
            )

        # get profile from config
        profile = config.profiles.get(profile_name)
        if not profile:
            raise BadParameter(
                f"profile '{profile_name}' not found in '{config_file}'",
                ctx=ctx,
                param=lookup_param(ctx, "profile_name"),
            )

        return RootContext(ctx=ctx, profile=profile, from_file=True)

    def create_database(self) -> Database | None:
        return self.profile.create_database(logger=logger)


if __name__ == "__main__":
    app()
