"""
Orchestration of database -> local operations: creating local project
folders and staging database content to a JSON file.

Both operations report failures in their result rather than raising.
"""

from __future__ import annotations

import datetime
import json
import logging
import os
import re
from dataclasses import dataclass, field
from logging import Logger
from pathlib import Path
from typing import Any

from .database import Database
from .file_model import write_json
from .format import (
    DATA_DIR,
    ENTRY_DIRS,
    PROJECT_FILENAME,
    STAGING_FILENAME,
    LocalProject,
    entity_to_row,
    local_project_summary,
    translate_db_to_local,
)
from .query import (
    get_logged_in_creator,
    get_project_codes_for_creator,
    get_project_entries,
    get_project_info,
)

__all__ = [
    "PROJECTS_DIRNAME",
    "LoadResult",
    "UploadResult",
    "CreatedProject",
    "full_load",
    "full_upload_to_temporary_json",
    "resolve_base_dir",
    "write_local_project",
    "sanitize_name",
]

PROJECTS_DIRNAME = "InkDoodleProjects"
"""
Name of the folder holding local projects.
"""

LAST_LOAD_PREF = "last_full_upload_project_ids"
"""
Key in `prefs` under which the codes of the last full load are recorded.
"""

MAX_FOLDER_SUFFIX = 1000
"""
Maximum suffix appended to a project folder name to make it unique.
"""


@dataclass(kw_only=True)
class CreatedProject:
    code: str
    path: Path

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "path": str(self.path)}


@dataclass(kw_only=True)
class LoadResult:
    """
    Encapsulates result of {obj}`full_load`.
    """

    ok: bool
    codes: list[str] = field(default_factory=list)
    """
    Codes of the logged-in creator's projects.
    """

    created: list[CreatedProject] = field(default_factory=list)
    """
    Project folders which were written.
    """

    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        if not self.ok:
            return {"ok": False, "error": self.error}
        return {
            "ok": True,
            "codes": self.codes,
            "created": [c.to_dict() for c in self.created],
        }


@dataclass(kw_only=True)
class UploadResult:
    """
    Encapsulates result of {obj}`full_upload_to_temporary_json`.
    """

    ok: bool
    path: Path | None = None
    codes: list[str] = field(default_factory=list)
    payloads: list[dict[str, Any]] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        if not self.ok:
            return {"ok": False, "error": self.error}
        return {
            "ok": True,
            "path": str(self.path),
            "codes": self.codes,
            "payloads": self.payloads,
        }


def full_load(
    db: Database,
    *,
    base_dir: Path | None = None,
    persist: bool = True,
    assemble: bool = True,
    logger: Logger | None = None,
) -> LoadResult:
    """
    Create a local project folder for each project of the logged-in creator.

    :param base_dir: Folder in which to create project folders, see {obj}`resolve_base_dir`
    :param persist: Record the project codes in `prefs`
    :param assemble: Write project folders; if `False`, only list codes
    """
    logger = logger or logging.getLogger()
    base_dir = resolve_base_dir(base_dir)

    logger.debug(
        f"Full load: base_dir='{base_dir}', persist={persist}, assemble={assemble}"
    )

    try:
        creator = get_logged_in_creator(db)
        creator_id = creator.get("id") if creator else None

        if creator_id is None:
            logger.warning("Full load: no logged in user found in prefs")
            return LoadResult(ok=False, error="No logged in user")

        codes = get_project_codes_for_creator(db, creator_id)
        logger.info(
            f"Found {len(codes)} projects for creator {creator_id}"
        )

        if persist:
            _persist_codes(db, codes, logger)

        if not assemble:
            return LoadResult(ok=True, codes=codes)

        created: list[CreatedProject] = []

        for code in codes:
            try:
                payload = _assemble_payload(db, code)
                if payload is None:
                    logger.warning(f"Project '{code}' disappeared, skipping")
                    continue

                result = translate_db_to_local(payload)
                if not result.ok:
                    logger.error(
                        f"Failed to translate project '{code}': {result.error}"
                    )
                    continue

                path = write_local_project(base_dir, result.projects[0])
            except Exception as e:
                logger.error(f"Failed to load project '{code}': {e}")
                continue

            logger.info(f"Created project folder for '{code}': '{path}'")
            created.append(CreatedProject(code=code, path=path))

        return LoadResult(ok=True, codes=codes, created=created)

    except Exception as e:
        logger.error(f"Full load failed: {e}")
        return LoadResult(ok=False, error=str(e))


def full_upload_to_temporary_json(
    db: Database,
    *,
    out_path: Path | None = None,
    logger: Logger | None = None,
) -> UploadResult:
    """
    Assemble payloads for each project of the logged-in creator and write
    them to a staging file, by default `temporary.json` in the current
    working directory.
    """
    logger = logger or logging.getLogger()
    target = out_path or Path(os.getcwd()) / STAGING_FILENAME

    logger.debug(f"Staging projects to '{target}'")

    try:
        creator = get_logged_in_creator(db)
        creator_id = creator.get("id") if creator else None

        if creator_id is None:
            return UploadResult(ok=False, error="No logged in user")

        codes = get_project_codes_for_creator(db, creator_id)
        payloads: list[dict[str, Any]] = []

        for code in codes:
            try:
                payload = _assemble_payload(db, code)
            except Exception as e:
                logger.error(
                    f"Failed to assemble payload for project '{code}': {e}"
                )
                continue

            if payload is not None:
                payloads.append(payload)

        write_json(
            target,
            {"codes": codes, "payloads": payloads, "ts": _now_iso()},
        )
        logger.info(f"Wrote {len(payloads)} projects to '{target}'")

        return UploadResult(
            ok=True, path=target, codes=codes, payloads=payloads
        )

    except Exception as e:
        logger.error(f"Staging to '{target}' failed: {e}")
        return UploadResult(ok=False, error=str(e))


def resolve_base_dir(base_dir: Path | None = None) -> Path:
    """
    Get folder in which to create project folders. In order of precedence:

    - `base_dir` if given
    - `../InkDoodleProjects` if it exists
    - `./InkDoodleProjects` if it exists
    - current working directory
    """
    if base_dir is not None:
        return Path(base_dir)

    cwd = Path(os.getcwd())

    for candidate in (cwd.parent / PROJECTS_DIRNAME, cwd / PROJECTS_DIRNAME):
        if candidate.is_dir():
            return candidate

    return cwd


def write_local_project(base_dir: Path, local: LocalProject) -> Path:
    """
    Write translated project to a new folder under `base_dir`, returning the
    folder. The folder is named from the project title, falling back to its
    code, with a numeric suffix if already taken.
    """
    base_name = sanitize_name(local.project.get("title") or "") or str(
        local.project.get("code") or local.id
    )

    project_dir = base_dir / base_name
    suffix = 1

    while project_dir.exists():
        if suffix > MAX_FOLDER_SUFFIX:
            raise FileExistsError(
                f"No free folder name for '{base_name}' in '{base_dir}'"
            )
        project_dir = base_dir / f"{base_name}-{suffix}"
        suffix += 1

    for dirname in [DATA_DIR, *ENTRY_DIRS.values()]:
        (project_dir / dirname).mkdir(parents=True, exist_ok=True)

    write_json(
        project_dir / DATA_DIR / PROJECT_FILENAME,
        {"project": local.project, "entries": local_project_summary(local)},
    )

    for dirname, entries in (
        (ENTRY_DIRS["chapter"], local.chapters),
        (ENTRY_DIRS["note"], local.notes),
        (ENTRY_DIRS["ref"], local.refs),
        (ENTRY_DIRS["lore"], local.lore),
    ):
        for index, entry in enumerate(entries):
            name = sanitize_name(str(entry.get("code") or entry.get("id") or ""))
            write_json(
                project_dir / dirname / f"{name or f'entry-{index}'}.json",
                entry,
            )

    return project_dir


def sanitize_name(name: str) -> str:
    """
    Make a string usable as a folder or file name: drop characters not
    allowed on common filesystems, collapse whitespace to dashes and limit
    length.
    """
    name = re.sub(r'[<>:"/\\|?*]', "", name).strip()
    return re.sub(r"\s+", "-", name)[:128]


def _assemble_payload(db: Database, code: str) -> dict[str, Any] | None:
    project = get_project_info(db, code)
    if project is None:
        return None

    entries = get_project_entries(db, code)

    return {
        "id": code,
        "project": entity_to_row(project),
        "entries": {
            "chapters": [entity_to_row(c) for c in entries.chapters],
            "notes": [entity_to_row(n) for n in entries.notes],
            "refs": [entity_to_row(r) for r in entries.refs],
            "lore": [entity_to_row(e) for e in entries.lore],
        },
    }


def _persist_codes(db: Database, codes: list[str], logger: Logger):
    value = json.dumps({"codes": codes, "ts": _now_iso()})

    try:
        db.execute(
            "INSERT INTO prefs(key, value) VALUES (%s, %s::jsonb)"
            " ON CONFLICT (key) DO UPDATE"
            " SET value = EXCLUDED.value, updated_at = now()",
            (LAST_LOAD_PREF, value),
        )
    except Exception as e:
        logger.warning(f"Failed to record project codes in prefs: {e}")


def _now_iso() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()
