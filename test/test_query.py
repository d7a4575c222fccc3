from typing import Any

from pytest import raises

from inkdoodle_sync import (
    Database,
    NotFoundError,
    ValidationError,
    get_chapter_codes_for_creator,
    get_column_value,
    get_first_row,
    get_logged_in_creator,
    get_lore_codes_for_creator,
    get_note_codes_for_creator,
    get_project_codes_for_creator,
    get_project_entries,
    get_project_info,
    get_ref_codes_for_creator,
)

from conftest import SAMPLE_EMAIL, SAMPLE_PROJECT_CODE, requires_database

pytestmark = requires_database


def test_project_info(seeded_db: dict[str, Any], db: Database):
    project = get_project_info(db, SAMPLE_PROJECT_CODE)

    assert project is not None
    assert project.id == seeded_db["project_id"]
    assert project.title == "My Novel"
    assert project.chapters == []

    assert get_project_info(db, "PRJ-MISSING") is None


def test_project_entries(seeded_db: dict[str, Any], db: Database):
    entries = get_project_entries(db, SAMPLE_PROJECT_CODE)

    assert entries.counts == {
        "chapters": 2,
        "notes": 1,
        "refs": 1,
        "lore": 1,
    }

    # ordered by number
    assert [c.code for c in entries.chapters] == ["CH-0001", "CH-0002"]
    assert entries.chapters[0].tags == ["draft"]
    assert entries.chapters[0].status == "Draft"
    assert entries.notes[0].pinned is True
    assert entries.refs[0].type == "web"
    assert entries.refs[0].link == "https://example.com"
    assert entries.lore[0].lore_kind == "place"
    assert entries.lore[0].entry1_content == "2000"

    assert get_project_entries(db, "PRJ-MISSING").counts == {
        "chapters": 0,
        "notes": 0,
        "refs": 0,
        "lore": 0,
    }


def test_codes_for_creator(seeded_db: dict[str, Any], db: Database):
    creator_id = seeded_db["creator_id"]

    assert get_project_codes_for_creator(db, creator_id) == [
        SAMPLE_PROJECT_CODE
    ]
    assert sorted(get_chapter_codes_for_creator(db, creator_id)) == [
        "CH-0001",
        "CH-0002",
    ]
    assert get_note_codes_for_creator(db, creator_id) == ["N-0001"]
    assert get_ref_codes_for_creator(db, creator_id) == ["R-0001"]
    assert get_lore_codes_for_creator(db, creator_id) == ["L-0001"]

    assert get_project_codes_for_creator(db, creator_id + 1000) == []


def test_column_value(seeded_db: dict[str, Any], db: Database):
    assert get_column_value(db, "creators", "email") == SAMPLE_EMAIL

    assert (
        get_column_value(
            db, "projects", "id", "code = %s", [SAMPLE_PROJECT_CODE]
        )
        == str(seeded_db["project_id"])
    )

    # NULL value
    assert get_column_value(db, "creators", "last_login_at") is None

    with raises(NotFoundError):
        get_column_value(db, "creators", "email", "email = %s", ["nobody"])

    with raises(ValidationError):
        get_column_value(db, "creators; DROP TABLE creators", "email")

    with raises(ValidationError):
        get_column_value(db, "creators", "email, id")


def test_first_row(seeded_db: dict[str, Any], db: Database):
    row = get_first_row(db, "creators")
    assert row["email"] == SAMPLE_EMAIL
    assert row["id"] == seeded_db["creator_id"]

    with raises(NotFoundError):
        get_first_row(db, "chapters", "code = %s", ["missing"])


def test_logged_in_creator(seeded_db: dict[str, Any], db: Database):
    creator = get_logged_in_creator(db)

    assert creator == {
        "id": seeded_db["creator_id"],
        "email": SAMPLE_EMAIL,
        "name": "Writer",
    }

    db.execute("DELETE FROM prefs")
    assert get_logged_in_creator(db) is None
