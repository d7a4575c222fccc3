import json
import logging
import os
import uuid
from importlib import resources
from typing import Any, Generator

import dotenv
import psycopg
from psycopg import sql
from psycopg.conninfo import make_conninfo
from pytest import Config, fixture, mark

from inkdoodle_sync import Database

logging.basicConfig(level=logging.WARNING)

dotenv.load_dotenv()

TEST_DATABASE_URL = os.environ.get("INKDOODLE_TEST_DATABASE_URL")
"""
Postgres instance for database tests; a schema is created per test and
dropped afterward.
"""

SAMPLE_PROJECT_CODE = "PRJ-0001-000001"
SAMPLE_EMAIL = "writer@example.com"

MARKERS = [
    "database",
]

requires_database = mark.skipif(
    not TEST_DATABASE_URL,
    reason="INKDOODLE_TEST_DATABASE_URL not set",
)


def pytest_configure(config: Config) -> None:
    for marker in MARKERS:
        config.addinivalue_line("markers", marker)


@fixture(autouse=True)
def newline(request):
    """
    Print a newline and underline test name.
    """
    print("\n" + "-" * len(request.node.nodeid))


@fixture(autouse=True)
def isolate_env(monkeypatch):
    """
    Ensure connection info from the user's environment doesn't leak into
    tests.
    """
    for name in [
        "DATABASE_URL",
        "PG_CONNECTION",
        "INKDOODLE_PROFILE",
        "INKDOODLE_CONFIG_FILE",
        "INKDOODLE_DEBUG_LOG",
        "INKDOODLE_SAMPLE_PROJECT_CODE",
        "INKDOODLE_SAMPLE_PROJECT_PATH",
    ]:
        monkeypatch.delenv(name, raising=False)


@fixture
def conninfo() -> Generator[str, None, None]:
    """
    Connection string with `search_path` set to a new empty schema.
    """
    assert TEST_DATABASE_URL
    schema = f"inkdoodle_test_{uuid.uuid4().hex[:12]}"

    with psycopg.connect(TEST_DATABASE_URL, autocommit=True) as conn:
        conn.execute(
            sql.SQL("CREATE SCHEMA {}").format(sql.Identifier(schema))
        )

    yield make_conninfo(TEST_DATABASE_URL, options=f"-csearch_path={schema}")

    with psycopg.connect(TEST_DATABASE_URL, autocommit=True) as conn:
        conn.execute(
            sql.SQL("DROP SCHEMA {} CASCADE").format(sql.Identifier(schema))
        )


@fixture
def db(conninfo: str) -> Generator[Database, None, None]:
    """
    Database with tables created but no rows.
    """
    schema_sql = (
        resources.files("inkdoodle_sync.core")
        .joinpath("schema.sql")
        .read_text(encoding="utf-8")
    )

    with psycopg.connect(conninfo, autocommit=True) as conn:
        conn.execute(schema_sql)

    database = Database(conninfo)
    yield database
    database.close()


@fixture
def seeded_db(db: Database) -> dict[str, Any]:
    """
    Populate database with a logged-in creator owning the sample project,
    returning the ids created.
    """
    creator = db.fetch_one(
        "INSERT INTO creators (email, display_name) VALUES (%s, %s)"
        " RETURNING id",
        (SAMPLE_EMAIL, "Writer"),
    )
    assert creator
    creator_id = creator["id"]

    project = db.fetch_one(
        "INSERT INTO projects (code, title, creator_id) VALUES (%s, %s, %s)"
        " RETURNING id",
        (SAMPLE_PROJECT_CODE, "My Novel", creator_id),
    )
    assert project
    project_id = project["id"]

    for number, code, title in [
        (2, "CH-0002", "Second"),
        (1, "CH-0001", "First"),
    ]:
        db.execute(
            "INSERT INTO chapters"
            " (code, project_id, creator_id, number, title, content, tags)"
            " VALUES (%s, %s, %s, %s, %s, %s, %s)",
            (
                code,
                project_id,
                creator_id,
                number,
                title,
                f"{title} content",
                ["draft"],
            ),
        )

    db.execute(
        "INSERT INTO notes"
        " (code, project_id, creator_id, number, title, pinned)"
        " VALUES (%s, %s, %s, %s, %s, %s)",
        ("N-0001", project_id, creator_id, 1, "Plot idea", True),
    )
    db.execute(
        "INSERT INTO refs"
        " (code, project_id, creator_id, number, title, reference_type,"
        " source_link)"
        " VALUES (%s, %s, %s, %s, %s, %s, %s)",
        (
            "R-0001",
            project_id,
            creator_id,
            1,
            "Research",
            "web",
            "https://example.com",
        ),
    )
    db.execute(
        "INSERT INTO lore"
        " (code, project_id, creator_id, number, title, lore_kind,"
        " entry1_name, entry1_content)"
        " VALUES (%s, %s, %s, %s, %s, %s, %s, %s)",
        (
            "L-0001",
            project_id,
            creator_id,
            1,
            "Old Harbor",
            "place",
            "Population",
            "2000",
        ),
    )
    db.execute(
        "INSERT INTO prefs (key, value) VALUES ('auth_user', %s::jsonb)",
        (
            json.dumps(
                {"id": creator_id, "email": SAMPLE_EMAIL, "name": "Writer"}
            ),
        ),
    )

    return {"creator_id": creator_id, "project_id": project_id}
