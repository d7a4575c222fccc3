"""
Change tracking between a local snapshot and the database.

Changes are only computed, never applied: writing local edits back to the
database is not supported.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from logging import Logger
from pathlib import Path
from typing import Any, Iterable

from .database import Database
from .exceptions import DatabaseError, ValidationError
from .format import (
    DATA_DIR,
    PROJECT_FILENAME,
    ProjectSnapshot,
    load_project_for_upload,
)
from .query import (
    get_logged_in_creator,
    get_project_codes_for_creator,
    get_project_entries,
    get_project_info,
)
from .types import (
    Chapter,
    CodedEntity,
    EntityChanges,
    Lore,
    Note,
    Project,
    ProjectChanges,
    Reference,
)

__all__ = [
    "IGNORED_FIELDS",
    "compute_entity_changes",
    "compute_project_changes",
    "ProjectPlan",
    "UploadPlan",
    "get_remote_project",
    "count_local_projects",
    "plan_upload",
]

IGNORED_FIELDS = {"id", "project_id", "created_at", "updated_at"}
"""
Fields which differ between environments without indicating an edit.
"""

PLAN_ACTIONS = ("insert", "update", "unchanged")


@dataclass(kw_only=True)
class ProjectPlan:
    """
    Planned upload of one local project folder.
    """

    path: Path
    code: str | None = None
    creator_id: Any = None

    action: str | None = None
    """
    One of {obj}`PLAN_ACTIONS`, or `None` if the folder couldn't be planned.
    """

    changes: ProjectChanges | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"path": str(self.path), "code": self.code}

        if self.error is not None:
            result["error"] = self.error
        else:
            result["action"] = self.action
            result["counts"] = self.changes.counts if self.changes else {}

        return result


@dataclass(kw_only=True)
class UploadPlan:
    """
    Encapsulates result of {obj}`plan_upload`.
    """

    ok: bool
    projects: list[ProjectPlan] = field(default_factory=list)

    deleted: list[str] = field(default_factory=list)
    """
    Codes of database projects which have no local folder.
    """

    error: str | None = None

    @property
    def summary(self) -> dict[str, int]:
        actions = [p.action for p in self.projects]
        return {
            "inserted": actions.count("insert"),
            "updated": actions.count("update"),
            "unchanged": actions.count("unchanged"),
            "deleted": len(self.deleted),
            "errors": sum(1 for p in self.projects if p.error is not None),
        }

    def to_dict(self) -> dict[str, Any]:
        if not self.ok:
            return {"ok": False, "error": self.error}
        return {
            "ok": True,
            "projects": [p.to_dict() for p in self.projects],
            "deleted": self.deleted,
            "summary": self.summary,
        }


def compute_entity_changes[
    T: CodedEntity
](local: Iterable[T], remote: Iterable[T]) -> EntityChanges[T]:
    """
    Diff local entities against remote ones, matching by code.

    - Local only: added
    - Both, with differing fields other than {obj}`IGNORED_FIELDS`: updated
    - Remote only: deleted
    """
    remote_map: dict[str, T] = {e.code: e for e in remote}
    seen: set[str] = set()

    added: list[T] = []
    updated: list[T] = []

    for entity in local:
        seen.add(entity.code)
        current = remote_map.get(entity.code)

        if current is None:
            added.append(entity)
        elif _compare_dump(entity) != _compare_dump(current):
            updated.append(entity)

    deleted = [code for code in remote_map if code not in seen]

    return EntityChanges(added=added, updated=updated, deleted=deleted)


def compute_project_changes(
    snapshot: ProjectSnapshot, remote: Project
) -> ProjectChanges:
    """
    Get changes needed to bring the remote project in line with the local
    snapshot.
    """
    local = snapshot.to_project()

    return ProjectChanges(
        project=local,
        chapters=_typed(
            Chapter, compute_entity_changes(local.chapters, remote.chapters)
        ),
        notes=_typed(Note, compute_entity_changes(local.notes, remote.notes)),
        refs=_typed(
            Reference, compute_entity_changes(local.refs, remote.refs)
        ),
        lore=_typed(Lore, compute_entity_changes(local.lore, remote.lore)),
    )


def get_remote_project(db: Database, code: str) -> Project | None:
    """
    Get project with all of its entries from database, or `None` if there's
    no project with the given code.
    """
    project = get_project_info(db, code)
    if project is None:
        return None

    entries = get_project_entries(db, code)
    project.chapters = entries.chapters
    project.notes = entries.notes
    project.refs = entries.refs
    project.lore = entries.lore

    return project


def count_local_projects(
    root: Path, *, logger: Logger | None = None
) -> int:
    """
    Count folders directly under `root` which contain `data/project.json`.
    An unreadable root has no projects.
    """
    logger = logger or logging.getLogger()

    try:
        count = len(_local_project_dirs(Path(root)))
    except OSError as e:
        logger.warning(f"Failed to read projects root '{root}': {e}")
        return 0

    logger.debug(f"Found {count} local projects under '{root}'")
    return count


def plan_upload(
    db: Database, root: Path, *, logger: Logger | None = None
) -> UploadPlan:
    """
    Compare every local project under `root` with the database and report
    what an upload would do, without writing anything.

    Database projects of the creators found locally (or of the logged-in
    creator if there are no local projects) which have no local folder are
    reported as deleted.
    """
    logger = logger or logging.getLogger()
    root = Path(root)

    try:
        project_dirs = _local_project_dirs(root)
    except OSError as e:
        logger.error(f"Failed to read projects root '{root}': {e}")
        return UploadPlan(ok=False, error=str(e))

    try:
        plans = [_plan_project(db, d, logger) for d in project_dirs]

        local_codes: dict[Any, set[str]] = {}
        for plan in plans:
            if plan.creator_id is not None and plan.code:
                local_codes.setdefault(plan.creator_id, set()).add(plan.code)

        if not local_codes:
            creator = get_logged_in_creator(db)
            if creator and creator.get("id") is not None:
                local_codes[creator["id"]] = set()
            else:
                logger.info("No logged in user found, skipping deletion check")

        deleted: list[str] = []

        for creator_id, codes in local_codes.items():
            for code in get_project_codes_for_creator(db, creator_id):
                if code not in codes:
                    logger.info(
                        f"Project '{code}' of creator {creator_id} has no local folder"
                    )
                    deleted.append(code)

    except DatabaseError as e:
        logger.error(f"Upload plan failed: {e}")
        return UploadPlan(ok=False, error=str(e))

    return UploadPlan(ok=True, projects=plans, deleted=deleted)


def _local_project_dirs(root: Path) -> list[Path]:
    return sorted(
        path
        for path in root.iterdir()
        if (path / DATA_DIR / PROJECT_FILENAME).is_file()
    )


def _plan_project(
    db: Database, project_dir: Path, logger: Logger
) -> ProjectPlan:
    try:
        snapshot = load_project_for_upload(project_dir, logger=logger)
    except ValidationError as e:
        logger.warning(f"Skipping '{project_dir}': {e}")
        return ProjectPlan(path=project_dir, error=str(e))

    code = snapshot.project["code"]
    plan = ProjectPlan(
        path=project_dir,
        code=code,
        creator_id=snapshot.project["creator_id"],
    )

    if not code:
        plan.error = "Project has no code"
        logger.warning(f"Skipping '{project_dir}': {plan.error}")
        return plan

    remote = get_remote_project(db, code)

    try:
        if remote is None:
            local = snapshot.to_project()
            plan.action = "insert"
            plan.changes = compute_project_changes(
                snapshot,
                Project(code=local.code, title=local.title),
            )
        else:
            plan.changes = compute_project_changes(snapshot, remote)
            changed = (
                not plan.changes.is_empty
                or plan.changes.project.title != remote.title
            )
            plan.action = "update" if changed else "unchanged"
    except ValidationError as e:
        plan.error = str(e)
        logger.warning(f"Skipping '{project_dir}': {e}")
        return plan

    logger.info(f"Project '{code}' in '{project_dir}': {plan.action}")
    return plan


def _compare_dump(entity: CodedEntity) -> dict:
    return entity.model_dump(mode="json", exclude=IGNORED_FIELDS)


def _typed[
    T: CodedEntity
](entity_type: type[T], changes: EntityChanges) -> EntityChanges[T]:
    return EntityChanges[entity_type](
        added=changes.added,
        updated=changes.updated,
        deleted=changes.deleted,
    )
