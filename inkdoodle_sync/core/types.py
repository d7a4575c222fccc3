"""
Canonical shapes shared between local project folders and the database.
"""

from __future__ import annotations

import datetime
from typing import Any, Generic, TypeVar

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
)

__all__ = [
    "Timestamp",
    "CodedEntity",
    "Creator",
    "Project",
    "Chapter",
    "Note",
    "Reference",
    "Lore",
    "ProjectEntries",
    "EntityChanges",
    "ProjectChanges",
    "parse_flag",
]

T = TypeVar("T", bound="CodedEntity")

Timestamp = str | datetime.datetime | None
"""
Local files carry ISO-8601 strings, database rows carry datetimes.
"""


class CodedEntity(BaseModel):
    """
    Base for all entities identified by a stable code.

    The `id` is local to the database (or local folder) it came from and must
    not be used to match entities across environments; use `code` instead.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: int | str | None = None
    code: str
    created_at: Timestamp = None
    updated_at: Timestamp = None

    @field_validator("code", mode="before")
    @classmethod
    def validate_code(cls, value: Any) -> Any:
        # codes are text even if stored as numbers locally
        return str(value) if isinstance(value, int) else value

    @field_serializer("created_at", "updated_at")
    def serialize_timestamp(self, value: Timestamp) -> str | None:
        if isinstance(value, datetime.datetime):
            return value.isoformat()
        return value


class Creator(BaseModel):
    """
    Owner of projects.
    """

    id: int | str | None = None
    email: str | None = None
    display_name: str | None = None
    is_active: bool = True
    created_at: Timestamp = None
    updated_at: Timestamp = None
    last_login_at: Timestamp = None


class Chapter(CodedEntity):
    project_id: int | str | None = None
    creator_id: int | str | None = None
    number: int | None = None
    title: str
    content: str = ""
    status: str = "Draft"
    summary: str | None = None
    tags: list[str] = Field(default_factory=list)
    word_goal: int = 0

    @field_validator("tags", mode="before")
    @classmethod
    def validate_tags(cls, value: Any) -> Any:
        return _normalize_tags(value)

    @field_validator("content", mode="before")
    @classmethod
    def validate_content(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("word_goal", mode="before")
    @classmethod
    def validate_word_goal(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator("status", mode="before")
    @classmethod
    def validate_status(cls, value: Any) -> Any:
        return value or "Draft"


class Note(CodedEntity):
    project_id: int | str | None = None
    creator_id: int | str | None = None
    number: int | None = None
    title: str
    content: str = ""
    tags: list[str] = Field(default_factory=list)
    category: str | None = None
    pinned: bool = False

    @field_validator("tags", mode="before")
    @classmethod
    def validate_tags(cls, value: Any) -> Any:
        return _normalize_tags(value)

    @field_validator("content", mode="before")
    @classmethod
    def validate_content(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("pinned", mode="before")
    @classmethod
    def validate_pinned(cls, value: Any) -> Any:
        return parse_flag(value)


class Reference(CodedEntity):
    """
    Reference entry. Older data uses `reference_type` and `source_link`;
    both are accepted on input.
    """

    project_id: int | str | None = None
    creator_id: int | str | None = None
    number: int | None = None
    title: str
    tags: list[str] = Field(default_factory=list)
    type: str | None = Field(
        default=None,
        validation_alias=AliasChoices("type", "reference_type"),
    )
    summary: str | None = None
    link: str | None = Field(
        default=None,
        validation_alias=AliasChoices("link", "source_link"),
    )
    content: str = ""

    @field_validator("tags", mode="before")
    @classmethod
    def validate_tags(cls, value: Any) -> Any:
        return _normalize_tags(value)

    @field_validator("content", mode="before")
    @classmethod
    def validate_content(cls, value: Any) -> Any:
        return "" if value is None else value


class Lore(CodedEntity):
    """
    World-building entry: a kind (e.g. character, place) plus up to four
    named fields. Older data uses `lore_type` for the kind.
    """

    project_id: int | str | None = None
    creator_id: int | str | None = None
    number: int | None = None
    title: str
    content: str = ""
    status: str | None = None
    summary: str | None = None
    tags: list[str] = Field(default_factory=list)
    lore_kind: str | None = Field(
        default=None,
        validation_alias=AliasChoices("lore_kind", "lore_type", "loreType"),
    )
    entry1_name: str | None = None
    entry1_content: str | None = None
    entry2_name: str | None = None
    entry2_content: str | None = None
    entry3_name: str | None = None
    entry3_content: str | None = None
    entry4_name: str | None = None
    entry4_content: str | None = None

    @field_validator("tags", mode="before")
    @classmethod
    def validate_tags(cls, value: Any) -> Any:
        return _normalize_tags(value)

    @field_validator("content", mode="before")
    @classmethod
    def validate_content(cls, value: Any) -> Any:
        return "" if value is None else value


class Project(CodedEntity):
    title: str
    creator_id: int | str | None = None
    chapters: list[Chapter] = Field(default_factory=list)
    notes: list[Note] = Field(default_factory=list)
    refs: list[Reference] = Field(default_factory=list)
    lore: list[Lore] = Field(default_factory=list)


class ProjectEntries(BaseModel):
    """
    Child collections of a single project.
    """

    chapters: list[Chapter] = Field(default_factory=list)
    notes: list[Note] = Field(default_factory=list)
    refs: list[Reference] = Field(default_factory=list)
    lore: list[Lore] = Field(default_factory=list)

    @property
    def counts(self) -> dict[str, int]:
        return {
            "chapters": len(self.chapters),
            "notes": len(self.notes),
            "refs": len(self.refs),
            "lore": len(self.lore),
        }


class EntityChanges(BaseModel, Generic[T]):
    """
    Diff of one entity collection: local edits against a database snapshot.
    Deleted entities are identified by code only.
    """

    added: list[T] = Field(default_factory=list)
    updated: list[T] = Field(default_factory=list)
    deleted: list[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.updated or self.deleted)


class ProjectChanges(BaseModel):
    """
    Project plus changes to each of its collections, the unit which would be
    applied in a single upload transaction.
    """

    project: Project
    chapters: EntityChanges[Chapter] = Field(
        default_factory=EntityChanges[Chapter]
    )
    notes: EntityChanges[Note] = Field(default_factory=EntityChanges[Note])
    refs: EntityChanges[Reference] = Field(
        default_factory=EntityChanges[Reference]
    )
    lore: EntityChanges[Lore] = Field(default_factory=EntityChanges[Lore])

    @property
    def is_empty(self) -> bool:
        return all(
            c.is_empty
            for c in (self.chapters, self.notes, self.refs, self.lore)
        )

    @property
    def counts(self) -> dict[str, dict[str, int]]:
        """
        Number of added, updated and deleted entities per collection.
        """
        return {
            name: {
                "added": len(c.added),
                "updated": len(c.updated),
                "deleted": len(c.deleted),
            }
            for name, c in (
                ("chapters", self.chapters),
                ("notes", self.notes),
                ("refs", self.refs),
                ("lore", self.lore),
            )
        }


FALSE_STRINGS = {"", "0", "false", "no", "off"}
"""
Lowercased strings read as `False` by {obj}`parse_flag`.
"""


def parse_flag(value: Any) -> bool:
    """
    Interpret a boolean flag from JSON, where legacy files may store it as a
    number or a string such as `"false"`.
    """
    if isinstance(value, str):
        return value.strip().lower() not in FALSE_STRINGS
    return bool(value)


def _normalize_tags(value: Any) -> Any:
    """
    Tags behave as a set: drop empties and duplicates, keeping first-seen
    order.
    """
    if value is None:
        return []
    if isinstance(value, str):
        value = [t for t in value.split(",")]
    if not isinstance(value, (list, tuple, set)):
        return value

    tags: list[str] = []
    for tag in value:
        tag = str(tag).strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tags
