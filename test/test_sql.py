"""
Test execution of .sql files, both directly and via `inkdoodle run-sql`.
"""

from pathlib import Path

from pytest import MonkeyPatch
from typer.testing import CliRunner

from inkdoodle_sync import Database
from inkdoodle_sync.tools.cli.main import app
from inkdoodle_sync.tools.sql import (
    EXIT_FAILED,
    EXIT_NO_CONNECTION,
    EXIT_NOT_FOUND,
    EXIT_OK,
    EXIT_USAGE,
    resolve_conninfo,
    run_sql_file,
)

from conftest import requires_database

runner = CliRunner()

UNREACHABLE_URL = "postgresql://user@127.0.0.1:1/nonexistent?connect_timeout=1"


def test_resolve_conninfo(monkeypatch: MonkeyPatch):
    assert resolve_conninfo(None) is None
    assert resolve_conninfo("dbname=arg") == "dbname=arg"

    monkeypatch.setenv("PG_CONNECTION", "dbname=pg")
    assert resolve_conninfo("dbname=arg") == "dbname=pg"

    monkeypatch.setenv("DATABASE_URL", "dbname=url")
    assert resolve_conninfo("dbname=arg") == "dbname=url"


def test_exit_codes(tmp_path: Path):
    sql_file = tmp_path / "script.sql"
    sql_file.write_text("SELECT 1;")

    # no file
    result = runner.invoke(app, ["run-sql"])
    assert result.exit_code == EXIT_USAGE

    # nonexistent file
    result = runner.invoke(app, ["run-sql", str(tmp_path / "missing.sql")])
    assert result.exit_code == EXIT_NOT_FOUND

    # folder rather than file
    result = runner.invoke(app, ["run-sql", str(tmp_path)])
    assert result.exit_code == EXIT_NOT_FOUND

    # no connection string
    result = runner.invoke(app, ["run-sql", str(sql_file)])
    assert result.exit_code == EXIT_NO_CONNECTION

    # connection failure
    result = runner.invoke(app, ["run-sql", str(sql_file), UNREACHABLE_URL])
    assert result.exit_code == EXIT_FAILED


def test_connection_failure(tmp_path: Path):
    sql_file = tmp_path / "script.sql"
    sql_file.write_text("SELECT 1;")

    assert run_sql_file(sql_file, UNREACHABLE_URL) == EXIT_FAILED


@requires_database
def test_run_sql(conninfo: str, tmp_path: Path):
    sql_file = tmp_path / "script.sql"
    sql_file.write_text(
        "CREATE TABLE genres (name TEXT PRIMARY KEY);\n"
        "INSERT INTO genres VALUES ('fantasy');\n"
        "INSERT INTO genres VALUES ('horror');\n"
    )

    assert run_sql_file(sql_file, conninfo) == EXIT_OK

    with Database(conninfo) as db:
        rows = db.fetch_all("SELECT name FROM genres ORDER BY name")
        assert [r["name"] for r in rows] == ["fantasy", "horror"]


@requires_database
def test_run_sql_rollback(conninfo: str, tmp_path: Path):
    """
    A failing statement rolls back the statements before it.
    """
    sql_file = tmp_path / "script.sql"
    sql_file.write_text(
        "CREATE TABLE genres (name TEXT PRIMARY KEY);\n"
        "INSERT INTO genres VALUES ('fantasy');\n"
        "INSERT INTO genres VALUES ('fantasy');\n"
    )

    assert run_sql_file(sql_file, conninfo) == EXIT_FAILED

    with Database(conninfo) as db:
        row = db.fetch_one("SELECT to_regclass('genres') AS genres")
        assert row and row["genres"] is None


@requires_database
def test_run_sql_cli(conninfo: str, tmp_path: Path, monkeypatch: MonkeyPatch):
    sql_file = tmp_path / "script.sql"
    sql_file.write_text("CREATE TABLE genres (name TEXT);")

    # environment takes precedence over argument
    monkeypatch.setenv("DATABASE_URL", conninfo)
    result = runner.invoke(app, ["run-sql", str(sql_file), UNREACHABLE_URL])
    assert result.exit_code == EXIT_OK


@requires_database
def test_db_init(conninfo: str):
    result = runner.invoke(app, ["--database-url", conninfo, "db", "init"])
    assert result.exit_code == EXIT_OK

    # idempotent
    result = runner.invoke(app, ["--database-url", conninfo, "db", "init"])
    assert result.exit_code == EXIT_OK

    with Database(conninfo) as db:
        row = db.fetch_one("SELECT count(*) AS n FROM projects")
        assert row and row["n"] == 0
