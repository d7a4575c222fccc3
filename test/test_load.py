"""
Test creating local project folders and staging database content.
"""

import json
from pathlib import Path
from typing import Any

from pytest import MonkeyPatch

from inkdoodle_sync import (
    Database,
    LocalProject,
    full_load,
    full_upload_to_temporary_json,
    load_project_for_upload,
    resolve_base_dir,
    sanitize_name,
    translate_db_to_local,
    write_local_project,
)

from conftest import SAMPLE_PROJECT_CODE, requires_database


def _local_project(title: str | None = "My: Novel?") -> LocalProject:
    return LocalProject(
        id=5,
        project={
            "id": 5,
            "code": "PRJ-1",
            "title": title,
            "creator_id": 1,
        },
        chapters=[
            {
                "id": 1,
                "code": "CH-1",
                "project_id": 5,
                "creator_id": 1,
                "number": 1,
                "title": "One",
                "content": "",
                "tags": [],
            }
        ],
        notes=[
            {
                "id": 2,
                "code": "N-1",
                "project_id": 5,
                "creator_id": 1,
                "title": "Idea",
                "pinned": False,
            }
        ],
        lore=[
            {
                "id": 3,
                "code": "L-1",
                "project_id": 5,
                "creator_id": 1,
                "title": "Harbor",
                "lore_kind": "place",
            }
        ],
    )


def test_sanitize_name():
    assert sanitize_name("My: Novel?") == "My-Novel"
    assert sanitize_name('  a/b\\c|d*"e"  ') == "abcde"
    assert sanitize_name("The   Long  Way") == "The-Long-Way"
    assert sanitize_name("") == ""
    assert len(sanitize_name("x" * 500)) == 128


def test_resolve_base_dir(tmp_path: Path, monkeypatch: MonkeyPatch):
    cwd = tmp_path / "app"
    cwd.mkdir()
    monkeypatch.chdir(cwd)

    assert resolve_base_dir(tmp_path / "explicit") == tmp_path / "explicit"
    assert resolve_base_dir() == cwd

    local_dir = cwd / "InkDoodleProjects"
    local_dir.mkdir()
    assert resolve_base_dir() == local_dir

    # parent takes precedence
    parent_dir = tmp_path / "InkDoodleProjects"
    parent_dir.mkdir()
    assert resolve_base_dir() == parent_dir


def test_write_local_project(tmp_path: Path):
    path = write_local_project(tmp_path, _local_project())

    assert path == tmp_path / "My-Novel"
    assert (path / "chapters" / "CH-1.json").is_file()
    assert (path / "notes" / "N-1.json").is_file()
    assert (path / "refs").is_dir()
    assert (path / "lore" / "L-1.json").is_file()

    project_json = json.loads((path / "data" / "project.json").read_text())
    assert project_json["project"]["code"] == "PRJ-1"
    assert [e["code"] for e in project_json["entries"]] == [
        "CH-1",
        "N-1",
        "L-1",
    ]

    # written folder can be loaded back
    snapshot = load_project_for_upload(path)
    assert snapshot.project["code"] == "PRJ-1"
    assert snapshot.chapter_codes == ["CH-1"]
    assert snapshot.note_codes == ["N-1"]
    assert snapshot.lore_rows()[0]["lore_kind"] == "place"

    # folder name already taken
    path2 = write_local_project(tmp_path, _local_project())
    path3 = write_local_project(tmp_path, _local_project())
    assert path2 == tmp_path / "My-Novel-1"
    assert path3 == tmp_path / "My-Novel-2"


def test_write_local_project_untitled(tmp_path: Path):
    path = write_local_project(tmp_path, _local_project(title=None))
    assert path == tmp_path / "PRJ-1"


@requires_database
def test_full_load(
    seeded_db: dict[str, Any], db: Database, tmp_path: Path
):
    result = full_load(db, base_dir=tmp_path)

    assert result.ok
    assert result.codes == [SAMPLE_PROJECT_CODE]
    assert len(result.created) == 1

    path = result.created[0].path
    assert path == tmp_path / "My-Novel"
    assert result.to_dict()["created"] == [
        {"code": SAMPLE_PROJECT_CODE, "path": str(path)}
    ]

    snapshot = load_project_for_upload(path, db=db)

    # chapters ordered by number
    assert snapshot.chapter_codes == ["CH-0001", "CH-0002"]
    assert snapshot.note_codes == ["N-0001"]
    assert snapshot.ref_codes == ["R-0001"]
    assert snapshot.lore_codes == ["L-0001"]
    assert snapshot.ref_rows()[0]["source_link"] == "https://example.com"

    # creator enriched from database
    assert snapshot.creator["email"] == "writer@example.com"

    # codes persisted
    row = db.fetch_one(
        "SELECT value FROM prefs WHERE key = 'last_full_upload_project_ids'"
    )
    assert row and row["value"]["codes"] == [SAMPLE_PROJECT_CODE]


@requires_database
def test_full_load_options(
    seeded_db: dict[str, Any], db: Database, tmp_path: Path
):
    result = full_load(db, base_dir=tmp_path, persist=False, assemble=False)

    assert result.ok
    assert result.codes == [SAMPLE_PROJECT_CODE]
    assert result.created == []
    assert list(tmp_path.iterdir()) == []

    row = db.fetch_one(
        "SELECT value FROM prefs WHERE key = 'last_full_upload_project_ids'"
    )
    assert row is None


@requires_database
def test_no_logged_in_user(db: Database, tmp_path: Path):
    result = full_load(db, base_dir=tmp_path)
    assert not result.ok
    assert result.error == "No logged in user"

    upload = full_upload_to_temporary_json(
        db, out_path=tmp_path / "temporary.json"
    )
    assert not upload.ok
    assert not (tmp_path / "temporary.json").exists()


@requires_database
def test_stage_and_translate(
    seeded_db: dict[str, Any],
    db: Database,
    tmp_path: Path,
    monkeypatch: MonkeyPatch,
):
    monkeypatch.chdir(tmp_path)

    result = full_upload_to_temporary_json(db)

    assert result.ok
    assert result.path == tmp_path / "temporary.json"
    assert result.codes == [SAMPLE_PROJECT_CODE]

    staged = json.loads((tmp_path / "temporary.json").read_text())
    assert set(staged.keys()) == {"codes", "payloads", "ts"}
    assert staged["payloads"][0]["id"] == SAMPLE_PROJECT_CODE

    translated = translate_db_to_local()
    assert translated.ok

    local = translated.projects[0]
    assert local.project["code"] == SAMPLE_PROJECT_CODE
    assert [c["code"] for c in local.chapters] == ["CH-0001", "CH-0002"]
    assert all(c["project_id"] == local.id for c in local.chapters)
    assert local.notes[0]["pinned"] is True
    assert local.refs[0]["reference_type"] == "web"
