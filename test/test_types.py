import datetime

from pytest import raises

from inkdoodle_sync import (
    Chapter,
    EntityChanges,
    Lore,
    Note,
    Project,
    ProjectChanges,
    ProjectEntries,
    Reference,
    parse_flag,
)


def test_chapter_defaults():
    chapter = Chapter(code="CH-1", title="Opening", status=None, word_goal=None)

    assert chapter.status == "Draft"
    assert chapter.word_goal == 0
    assert chapter.tags == []
    assert chapter.id is None


def test_code_coerced():
    """
    Codes stored as numbers locally are text.
    """
    chapter = Chapter.model_validate({"code": 42, "title": "Numbered"})
    assert chapter.code == "42"

    with raises(ValueError):
        Chapter.model_validate({"title": "No code"})


def test_tags():
    note = Note(code="N-1", title="Idea", tags=" plot, ,plot,Character ")
    assert note.tags == ["plot", "Character"]

    note = Note(code="N-1", title="Idea", tags=["b", "a", "b", ""])
    assert note.tags == ["b", "a"]

    note = Note(code="N-1", title="Idea", tags=None)
    assert note.tags == []


def test_note_pinned():
    assert Note(code="N-1", title="Idea", pinned=1).pinned is True
    assert Note(code="N-1", title="Idea", pinned=None).pinned is False

    # strings from local files
    for value in ["false", "False", "0", "no", "off", ""]:
        assert Note(code="N-1", title="Idea", pinned=value).pinned is False
    assert Note(code="N-1", title="Idea", pinned="true").pinned is True
    assert Note(code="N-1", title="Idea", pinned="1").pinned is True


def test_reference_aliases():
    """
    Accept both current and legacy field names.
    """
    legacy = Reference.model_validate(
        {
            "code": "R-1",
            "title": "Source",
            "reference_type": "book",
            "source_link": "https://example.com/book",
        }
    )
    current = Reference.model_validate(
        {
            "code": "R-1",
            "title": "Source",
            "type": "book",
            "link": "https://example.com/book",
        }
    )

    assert legacy.type == current.type == "book"
    assert legacy.link == current.link == "https://example.com/book"
    assert legacy == current


def test_timestamps():
    ts = datetime.datetime(2024, 5, 1, 12, 30, tzinfo=datetime.timezone.utc)
    project = Project(code="PRJ-1", title="Novel", created_at=ts)

    dump = project.model_dump(mode="json")
    assert dump["created_at"] == "2024-05-01T12:30:00+00:00"
    assert dump["updated_at"] is None

    # strings are passed through as-is
    project = Project(code="PRJ-1", title="Novel", updated_at="2024-05-01Z")
    assert project.model_dump(mode="json")["updated_at"] == "2024-05-01Z"


def test_project_entries_counts():
    entries = ProjectEntries(
        chapters=[Chapter(code="CH-1", title="One")],
        refs=[
            Reference(code="R-1", title="A"),
            Reference(code="R-2", title="B"),
        ],
    )
    assert entries.counts == {
        "chapters": 1,
        "notes": 0,
        "refs": 2,
        "lore": 0,
    }


def test_changes_empty():
    project = Project(code="PRJ-1", title="Novel")
    changes = ProjectChanges(project=project)

    assert changes.is_empty
    assert changes.chapters.is_empty

    changes.notes = EntityChanges[Note](deleted=["N-1"])
    assert not changes.is_empty

    changes.lore = EntityChanges[Lore](added=[Lore(code="L-1", title="T")])
    assert changes.counts["lore"] == {"added": 1, "updated": 0, "deleted": 0}
    assert changes.counts["notes"] == {"added": 0, "updated": 0, "deleted": 1}


def test_parse_flag():
    assert parse_flag(" FALSE ") is False
    assert parse_flag("yes") is True
    assert parse_flag(0) is False
    assert parse_flag(None) is False
    assert parse_flag(True) is True


def test_lore_aliases():
    lore = Lore.model_validate(
        {
            "code": "L-1",
            "title": "Harbor",
            "content": None,
            "lore_type": "place",
            "tags": "setting, coast",
        }
    )

    assert lore.lore_kind == "place"
    assert lore.content == ""
    assert lore.tags == ["setting", "coast"]
    assert lore.entry1_name is None

    lore = Lore.model_validate(
        {"code": "L-1", "title": "Harbor", "loreType": "event"}
    )
    assert lore.lore_kind == "event"
