from pytest import raises

from inkdoodle_sync import (
    Chapter,
    Lore,
    Note,
    Project,
    Reference,
    ValidationError,
    check_ownership,
    validate_chapter,
    validate_lore,
    validate_note,
    validate_project,
    validate_reference,
)


def test_validate_project():
    validate_project(Project(code="PRJ-1", title="Novel", creator_id=1))

    with raises(ValidationError) as e:
        validate_project(Project(code="PRJ-1", title="  "))

    assert e.value.errors == [
        "Project title is required",
        "Creator ID is required",
    ]


def test_validate_chapter():
    chapter = Chapter(
        code="CH-1", title="Opening", project_id=1, creator_id=1
    )
    validate_chapter(chapter)

    chapter.word_goal = -5
    chapter.creator_id = None

    with raises(ValidationError) as e:
        validate_chapter(chapter)

    assert e.value.errors == [
        "Creator ID is required",
        "Word goal must be non-negative",
    ]


def test_validate_children():
    with raises(ValidationError) as e:
        validate_note(Note(code="N-1", title="", creator_id=1))

    assert e.value.errors == ["Note title is required", "Project ID is required"]

    with raises(ValidationError) as e:
        validate_reference(Reference(code="R-1", title="Source", project_id=1))

    assert e.value.errors == ["Creator ID is required"]
    assert "Creator ID is required" in str(e.value)

    validate_lore(Lore(code="L-1", title="Town", project_id=1, creator_id=1))

    with raises(ValidationError) as e:
        validate_lore(Lore(code="L-1", title=" ", creator_id=1))

    assert e.value.errors == ["Lore title is required", "Project ID is required"]


def test_check_ownership():
    project = Project(
        id=1,
        code="PRJ-1",
        title="Novel",
        creator_id=10,
        chapters=[
            Chapter(code="CH-1", title="One", project_id=1, creator_id=10),
            Chapter(code="CH-2", title="Two", project_id=2, creator_id=10),
        ],
        notes=[Note(code="N-1", title="Idea", project_id=1, creator_id=11)],
        lore=[Lore(code="L-1", title="Town", project_id=3, creator_id=10)],
    )

    with raises(ValidationError) as e:
        check_ownership(project)

    # all violations are reported
    assert len(e.value.errors) == 3
    assert "chapter 'CH-2' has project_id=2" in e.value.errors[0]
    assert "note 'N-1' has creator_id=11" in e.value.errors[1]
    assert "lore 'L-1' has project_id=3" in e.value.errors[2]

    project.chapters[1].project_id = 1
    project.notes[0].creator_id = 10
    project.lore[0].project_id = 1
    check_ownership(project)
