"""
Validation of entities before they cross the local/database boundary.
"""

from __future__ import annotations

from .exceptions import ValidationError
from .types import Chapter, Lore, Note, Project, Reference

__all__ = [
    "validate_project",
    "validate_chapter",
    "validate_note",
    "validate_reference",
    "validate_lore",
    "check_ownership",
]


def validate_project(project: Project):
    errors: list[str] = []

    if not project.title.strip():
        errors.append("Project title is required")
    if project.creator_id is None:
        errors.append("Creator ID is required")

    _raise_errors(errors)


def validate_chapter(chapter: Chapter):
    errors = _check_child(chapter, "Chapter")

    if chapter.word_goal < 0:
        errors.append("Word goal must be non-negative")

    _raise_errors(errors)


def validate_note(note: Note):
    _raise_errors(_check_child(note, "Note"))


def validate_reference(ref: Reference):
    _raise_errors(_check_child(ref, "Reference"))


def validate_lore(lore: Lore):
    _raise_errors(_check_child(lore, "Lore"))


def check_ownership(project: Project):
    """
    Ensure every child of the project references the project and its
    creator. All violations are collected before raising.
    """
    errors: list[str] = []

    children: list[tuple[str, Chapter | Note | Reference | Lore]] = [
        *(("chapter", c) for c in project.chapters),
        *(("note", n) for n in project.notes),
        *(("reference", r) for r in project.refs),
        *(("lore", e) for e in project.lore),
    ]

    for kind, child in children:
        if child.project_id != project.id:
            errors.append(
                f"{kind} '{child.code}' has project_id={child.project_id!r}, expected {project.id!r}"
            )
        if child.creator_id != project.creator_id:
            errors.append(
                f"{kind} '{child.code}' has creator_id={child.creator_id!r}, expected {project.creator_id!r}"
            )

    _raise_errors(errors)


def _check_child(
    entity: Chapter | Note | Reference | Lore, kind: str
) -> list[str]:
    errors: list[str] = []

    if not entity.title.strip():
        errors.append(f"{kind} title is required")
    if entity.project_id is None:
        errors.append("Project ID is required")
    if entity.creator_id is None:
        errors.append("Creator ID is required")

    return errors


def _raise_errors(errors: list[str]):
    if len(errors):
        raise ValidationError(errors)
