"""
Conversion between the local project folder format and database rows.

A local project folder looks like:

```
my-project/
    data/project.json       {"project": {...}, "entries": [...]}
    chapters/<code>.json    one file per chapter
    notes/<code>.json       one file per note
    refs/<code>.json        one file per reference
    lore/<code>.json        one file per lore entry
```

Loading a folder produces a {obj}`ProjectSnapshot` holding column
collections: a mapping of database column name to a list of values, all
lists aligned by index.
"""

from __future__ import annotations

import copy
import datetime
import logging
import os
from dataclasses import dataclass, field
from logging import Logger
from pathlib import Path
from typing import Any, Iterator

import pydantic

from .database import Database
from .exceptions import DatabaseError, NotFoundError, ValidationError
from .file_model import BaseFileModel, read_json
from .query import (
    CHAPTER_COLUMNS,
    CREATOR_COLUMNS,
    LORE_COLUMNS,
    NOTE_COLUMNS,
    PROJECT_COLUMNS,
    REF_COLUMNS,
    get_column_value,
)
from .types import CodedEntity, Project, Reference, parse_flag

__all__ = [
    "ColumnSet",
    "DATA_DIR",
    "PROJECT_FILENAME",
    "ENTRY_DIRS",
    "STAGING_FILENAME",
    "ProjectFile",
    "ProjectSnapshot",
    "LocalProject",
    "TranslateResult",
    "load_project_for_upload",
    "convert_cols_to_rows",
    "translate_db_to_local",
    "local_project_summary",
    "entity_to_row",
]

ColumnSet = dict[str, list[Any]]
"""
Column-oriented collection: column name mapped to values aligned by index.
"""

DATA_DIR = "data"
PROJECT_FILENAME = "project.json"

ENTRY_DIRS = {
    "chapter": "chapters",
    "note": "notes",
    "ref": "refs",
    "lore": "lore",
}
"""
Mapping of entry kind to its subfolder. The kind is also the key under which
an entry file may wrap its payload.
"""

SUMMARY_TYPES = {
    "chapter": "chapter",
    "note": "note",
    "ref": "reference",
    "lore": "lore",
}

STAGING_FILENAME = "temporary.json"
"""
Staging file written by the upload staging step and read back by
{obj}`translate_db_to_local`.
"""

LORE_KIND_KEYS = ["lore_kind", "lore_type", "loreType"]
"""
Keys under which a lore entry may store its kind, in order of precedence.
"""

LORE_ENTRY_COLUMNS = [
    f"entry{i}_{part}" for i in range(1, 5) for part in ("name", "content")
]
"""
Columns of the four named fields of a lore entry.
"""

ENRICHED_CREATOR_COLUMNS = [
    "email",
    "display_name",
    "created_at",
    "last_login_at",
]
"""
Creator columns not present locally which are looked up in the database.
"""


class ProjectFile(BaseFileModel):
    """
    Contents of `data/project.json`. Keys written by the desktop app which
    aren't used here (e.g. UI state) are preserved.
    """

    model_config = pydantic.ConfigDict(extra="allow")

    project: dict[str, Any] = pydantic.Field(default_factory=dict)
    entries: list[dict[str, Any]] = pydantic.Field(default_factory=list)


@dataclass(kw_only=True)
class ProjectSnapshot:
    """
    In-memory representation of a loaded local project, with entries held as
    column collections.

    Each load returns a new snapshot; snapshots are independent of each other.
    """

    path: Path
    """
    Project folder which was loaded.
    """

    loaded_at: str
    """
    ISO timestamp of the load, also used as `updated_at` of every entity.
    """

    project: dict[str, Any]
    """
    Project row keyed by database column.
    """

    creator: dict[str, Any]
    """
    Creator row keyed by database column.
    """

    chapter_cols: ColumnSet
    note_cols: ColumnSet
    ref_cols: ColumnSet
    lore_cols: ColumnSet

    _cursors: dict[str, Iterator[dict[str, Any]]] = field(
        init=False, repr=False, compare=False
    )
    """
    One-way cursor per entry kind, created with the snapshot.
    """

    def __post_init__(self):
        self._cursors = {kind: iter(self.rows(kind)) for kind in ENTRY_DIRS}

    @property
    def chapter_codes(self) -> list[str]:
        return list(self.chapter_cols["code"])

    @property
    def note_codes(self) -> list[str]:
        return list(self.note_cols["code"])

    @property
    def ref_codes(self) -> list[str]:
        return list(self.ref_cols["code"])

    @property
    def lore_codes(self) -> list[str]:
        return list(self.lore_cols["code"])

    def cols(self, kind: str) -> ColumnSet:
        """
        Get column collection of entry kind, one of {obj}`ENTRY_DIRS`.
        """
        return {
            "chapter": self.chapter_cols,
            "note": self.note_cols,
            "ref": self.ref_cols,
            "lore": self.lore_cols,
        }[kind]

    def rows(self, kind: str) -> list[dict[str, Any]]:
        """
        Get rows of entry kind. Rows are rebuilt from the columns on every
        call and share no objects with them.
        """
        return convert_cols_to_rows(self.cols(kind))

    def chapter_rows(self) -> list[dict[str, Any]]:
        return self.rows("chapter")

    def note_rows(self) -> list[dict[str, Any]]:
        return self.rows("note")

    def ref_rows(self) -> list[dict[str, Any]]:
        return self.rows("ref")

    def lore_rows(self) -> list[dict[str, Any]]:
        return self.rows("lore")

    def iter_chapters(self) -> Iterator[dict[str, Any]]:
        """
        Get a new iterator over chapter rows, independent of any other.
        """
        return iter(self.chapter_rows())

    def iter_notes(self) -> Iterator[dict[str, Any]]:
        return iter(self.note_rows())

    def iter_refs(self) -> Iterator[dict[str, Any]]:
        return iter(self.ref_rows())

    def iter_lore(self) -> Iterator[dict[str, Any]]:
        return iter(self.lore_rows())

    def next_chapter(self) -> dict[str, Any] | None:
        """
        Get the next chapter row from this snapshot's cursor, or `None` once
        all chapters have been returned. The cursor isn't reset; load the
        project again to iterate again.
        """
        return next(self._cursors["chapter"], None)

    def next_note(self) -> dict[str, Any] | None:
        """
        Like {obj}`next_chapter`, for notes.
        """
        return next(self._cursors["note"], None)

    def next_ref(self) -> dict[str, Any] | None:
        """
        Like {obj}`next_chapter`, for refs.
        """
        return next(self._cursors["ref"], None)

    def next_lore(self) -> dict[str, Any] | None:
        """
        Like {obj}`next_chapter`, for lore entries.
        """
        return next(self._cursors["lore"], None)

    def to_project(self) -> Project:
        """
        Get a typed view of this snapshot.

        :raises ValidationError: An entity is missing required fields
        """
        try:
            return Project.model_validate(
                {
                    **self.project,
                    "chapters": self.chapter_rows(),
                    "notes": self.note_rows(),
                    "refs": self.ref_rows(),
                    "lore": self.lore_rows(),
                }
            )
        except pydantic.ValidationError as e:
            raise ValidationError(
                [
                    f"{'.'.join(str(l) for l in err['loc'])}: {err['msg']}"
                    for err in e.errors()
                ]
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": str(self.path),
            "project": self.project,
            "creator": self.creator,
            "chapter_cols": self.chapter_cols,
            "note_cols": self.note_cols,
            "ref_cols": self.ref_cols,
            "lore_cols": self.lore_cols,
        }


@dataclass(kw_only=True)
class LocalProject:
    """
    Project translated to the local format, ready to be written to a folder.
    """

    id: Any
    project: dict[str, Any]
    chapters: list[dict[str, Any]] = field(default_factory=list)
    notes: list[dict[str, Any]] = field(default_factory=list)
    refs: list[dict[str, Any]] = field(default_factory=list)
    lore: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "project": self.project,
            "entries": {
                "chapters": self.chapters,
                "notes": self.notes,
                "refs": self.refs,
                "lore": self.lore,
            },
        }


@dataclass(kw_only=True)
class TranslateResult:
    ok: bool
    projects: list[LocalProject] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"ok": self.ok}
        if self.ok:
            result["projects"] = [p.to_dict() for p in self.projects]
        else:
            result["error"] = self.error
        return result


def load_project_for_upload(
    project_dir: Path,
    *,
    db: Database | None = None,
    logger: Logger | None = None,
) -> ProjectSnapshot:
    """
    Load a local project folder into a snapshot.

    If a database is passed, creator fields which aren't stored locally are
    looked up; failure to look up a field is logged and otherwise ignored.

    :raises ValidationError: `data/project.json` is missing or malformed
    """
    logger = logger or logging.getLogger()
    project_dir = Path(project_dir)
    project_file = project_dir / DATA_DIR / PROJECT_FILENAME

    try:
        local_project = ProjectFile.load_json(project_file).project
    except (OSError, ValueError) as e:
        raise ValidationError(
            f"Failed to read or parse '{project_file}': {e}"
        ) from e

    loaded_at = _now_iso()

    project = {
        col: local_project.get(col) for col in PROJECT_COLUMNS
    } | {"updated_at": loaded_at}

    creator: dict[str, Any] = {col: None for col in CREATOR_COLUMNS} | {
        "id": local_project.get("creator_id"),
        "is_active": True,
        "updated_at": loaded_at,
    }

    if db is not None and creator["id"] is not None:
        _enrich_creator(db, creator, logger)

    entries = {
        kind: [
            _unwrap(raw, kind) | {"updated_at": loaded_at}
            for raw in _read_entries(project_dir / dirname, logger)
        ]
        for kind, dirname in ENTRY_DIRS.items()
    }

    project_id = project["id"]

    snapshot = ProjectSnapshot(
        path=project_dir,
        loaded_at=loaded_at,
        project=project,
        creator=creator,
        chapter_cols=_build_cols(
            CHAPTER_COLUMNS, entries["chapter"], project_id, _chapter_value
        ),
        note_cols=_build_cols(
            NOTE_COLUMNS, entries["note"], project_id, _note_value
        ),
        ref_cols=_build_cols(
            REF_COLUMNS, entries["ref"], project_id, _ref_value
        ),
        lore_cols=_build_cols(
            LORE_COLUMNS, entries["lore"], project_id, _lore_value
        ),
    )

    logger.debug(
        f"Loaded project '{project['code']}' from '{project_dir}': {len(snapshot.chapter_codes)} chapters, {len(snapshot.note_codes)} notes, {len(snapshot.ref_codes)} refs, {len(snapshot.lore_codes)} lore"
    )

    return snapshot


def convert_cols_to_rows(cols: ColumnSet | None) -> list[dict[str, Any]]:
    """
    Convert a column collection to a list of rows. Columns shorter than the
    first are padded with `None`. Values are copied, so rows may be
    modified without affecting the columns.
    """
    if not cols:
        return []

    keys = list(cols.keys())
    length = len(cols[keys[0]])

    return [
        {
            k: copy.deepcopy(cols[k][i]) if i < len(cols[k]) else None
            for k in keys
        }
        for i in range(length)
    ]


def translate_db_to_local(
    payload: Any = None,
    *,
    path: Path | None = None,
) -> TranslateResult:
    """
    Translate a database payload, as staged by
    {obj}`inkdoodle_sync.core.load.full_upload_to_temporary_json`, into the
    local format.

    If `payload` isn't given it is read from `path`, defaulting to
    `temporary.json` in the current working directory. Errors are reported
    in the result rather than raised.
    """
    if payload is None:
        staging_file = path or Path(os.getcwd()) / STAGING_FILENAME
        try:
            payload = read_json(staging_file)
        except (OSError, ValueError) as e:
            return TranslateResult(
                ok=False,
                error=f"Failed to read staging file '{staging_file}': {e}",
            )

    if not payload:
        return TranslateResult(ok=False, error="Empty staging payload")

    payloads: list[Any]

    if isinstance(payload, list):
        payloads = payload
    elif not isinstance(payload, dict):
        return TranslateResult(
            ok=False, error="Unrecognized staging payload structure"
        )
    elif isinstance(payload.get("payloads"), list):
        payloads = payload["payloads"]
    elif payload.get("payload"):
        payloads = [payload["payload"]]
    elif "project" in payload or "entries" in payload:
        payloads = [payload]
    else:
        return TranslateResult(
            ok=False, error="Unrecognized staging payload structure"
        )

    try:
        projects = [_translate_payload(p) for p in payloads]
    except (TypeError, AttributeError) as e:
        return TranslateResult(
            ok=False, error=f"Malformed staging payload: {e}"
        )

    return TranslateResult(ok=True, projects=projects)


def local_project_summary(local: LocalProject) -> list[dict[str, Any]]:
    """
    Get the `entries` summary written to `data/project.json`.
    """
    summary: list[dict[str, Any]] = []

    for kind, entries in (
        ("chapter", local.chapters),
        ("note", local.notes),
        ("ref", local.refs),
        ("lore", local.lore),
    ):
        for index, entry in enumerate(entries):
            summary.append(
                {
                    "id": entry.get("id"),
                    "code": entry.get("code"),
                    "type": SUMMARY_TYPES[kind],
                    "title": entry.get("title"),
                    "order_index": index,
                    "updated_at": entry.get("updated_at"),
                }
            )

    return summary


def entity_to_row(entity: CodedEntity) -> dict[str, Any]:
    """
    Get JSON-compatible row of entity keyed by database column.
    """
    row = entity.model_dump(mode="json")

    if isinstance(entity, Reference):
        row["reference_type"] = row.pop("type")
        row["source_link"] = row.pop("link")

    return row


def _translate_payload(payload: dict[str, Any]) -> LocalProject:
    db_project = payload.get("project") or {}
    db_entries = payload.get("entries") or {}

    local_id = db_project.get("id")

    project = {
        "id": local_id,
        "code": db_project.get("code"),
        "title": db_project.get("title"),
        "creator_id": db_project.get("creator_id"),
        "created_at": db_project.get("created_at"),
        "updated_at": db_project.get("updated_at"),
    }

    def common(row: dict[str, Any]) -> dict[str, Any]:
        return {
            "id": row.get("id"),
            "code": row.get("code"),
            "project_id": local_id,
            "creator_id": row.get("creator_id"),
            "number": row.get("number"),
            "title": row.get("title"),
        }

    def timestamps(row: dict[str, Any]) -> dict[str, Any]:
        return {
            "created_at": row.get("created_at"),
            "updated_at": row.get("updated_at"),
        }

    chapters = [
        common(c)
        | {
            "content": c.get("content") or "",
            "status": c.get("status"),
            "summary": c.get("summary"),
            "tags": _list(c.get("tags")),
        }
        | timestamps(c)
        | {"word_goal": c.get("word_goal")}
        for c in _list(db_entries.get("chapters"))
    ]

    notes = [
        common(n)
        | {
            "content": n.get("content") or "",
            "tags": _list(n.get("tags")),
            "category": n.get("category"),
            "pinned": parse_flag(n.get("pinned", False)),
        }
        | timestamps(n)
        for n in _list(db_entries.get("notes"))
    ]

    refs = [
        common(r)
        | {
            "tags": _list(r.get("tags")),
            "reference_type": _pick(r, "reference_type", "type"),
            "summary": r.get("summary"),
            "source_link": _pick(r, "source_link", "link"),
            "content": r.get("content") or "",
        }
        | timestamps(r)
        for r in _list(db_entries.get("refs"))
    ]

    lore = [
        common(e)
        | {
            "content": e.get("content") or "",
            "status": e.get("status"),
            "summary": e.get("summary"),
            "tags": _list(e.get("tags")),
            "lore_kind": _pick(e, *LORE_KIND_KEYS),
        }
        | {col: e.get(col) for col in LORE_ENTRY_COLUMNS}
        | timestamps(e)
        for e in _list(db_entries.get("lore"))
    ]

    return LocalProject(
        id=local_id,
        project=project,
        chapters=chapters,
        notes=notes,
        refs=refs,
        lore=lore,
    )


def _read_entries(entry_dir: Path, logger: Logger) -> list[dict[str, Any]]:
    """
    Read each .json file in folder, skipping unreadable files. A missing
    folder has no entries.
    """
    if not entry_dir.is_dir():
        return []

    entries: list[dict[str, Any]] = []

    for path in sorted(entry_dir.iterdir()):
        if not (path.is_file() and path.suffix.lower() == ".json"):
            continue

        try:
            entry = read_json(path)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to read or parse '{path}': {e}")
            continue

        if not isinstance(entry, dict):
            logger.warning(f"Skipping '{path}': not a JSON object")
            continue

        entries.append(entry)

    return entries


def _unwrap(raw: dict[str, Any], kind: str) -> dict[str, Any]:
    wrapped = raw.get(kind)
    return dict(wrapped) if isinstance(wrapped, dict) else dict(raw)


def _build_cols(
    columns: list[str],
    entries: list[dict[str, Any]],
    project_id: Any,
    get_value,
) -> ColumnSet:
    cols: ColumnSet = {col: [] for col in columns}

    for entry in entries:
        for col in columns:
            if col == "project_id":
                value = (
                    project_id
                    if project_id is not None
                    else entry.get("project_id")
                )
            else:
                value = get_value(entry, col)
            cols[col].append(value)

    return cols


def _chapter_value(entry: dict[str, Any], col: str) -> Any:
    if col == "tags":
        return _list(entry.get("tags"))
    return entry.get(col)


def _note_value(entry: dict[str, Any], col: str) -> Any:
    if col == "tags":
        return _list(entry.get("tags"))
    if col == "pinned":
        return parse_flag(entry.get("pinned", False))
    return entry.get(col)


def _ref_value(entry: dict[str, Any], col: str) -> Any:
    if col == "tags":
        return _list(entry.get("tags"))
    if col == "reference_type":
        return _pick(entry, "reference_type", "type")
    if col == "source_link":
        return _pick(entry, "source_link", "link")
    return entry.get(col)


def _lore_value(entry: dict[str, Any], col: str) -> Any:
    if col == "tags":
        return _list(entry.get("tags"))
    if col == "content":
        return _pick(entry, "content", "body")
    if col == "lore_kind":
        return _pick(entry, *LORE_KIND_KEYS)
    if col in LORE_ENTRY_COLUMNS:
        return _pick(entry, *_lore_entry_keys(col))
    return entry.get(col)


def _lore_entry_keys(col: str) -> list[str]:
    """
    Get keys under which a lore field may be stored, e.g. `entry1_name`,
    `entry1name` or `Field 1 Name` for column `entry1_name`.
    """
    index, part = col.removeprefix("entry").split("_")
    return [
        col,
        f"entry{index}{part}",
        f"Field {index} {part.capitalize()}",
        f"Field {index}{part.capitalize()}",
    ]


def _enrich_creator(db: Database, creator: dict[str, Any], logger: Logger):
    for col in ENRICHED_CREATOR_COLUMNS:
        if creator[col]:
            continue

        try:
            value = get_column_value(
                db, "creators", col, "id = %s", (creator["id"],)
            )
        except NotFoundError as e:
            logger.debug(
                f"Could not look up creators.{col} for creator {creator['id']}: {e}"
            )
            continue
        except DatabaseError as e:
            logger.debug(f"Skipping creator lookup: {e}")
            return

        if value is not None:
            creator[col] = value


def _pick(row: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if row.get(key) is not None:
            return row[key]
    return None


def _list(value: Any) -> list[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


def _now_iso() -> str:
    now = datetime.datetime.now(datetime.timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")
