"""
Interface to configuration as persisted in .yaml file.
"""

from __future__ import annotations

from logging import Logger
from pathlib import Path
from typing import Any, Self

from pydantic import (
    BaseModel,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)

from ..core import Database, get_conninfo_from_env
from ..core.file_model import BaseFileModel

__all__ = [
    "DEFAULT_SYNC_FILES",
    "Config",
    "ProfileConfig",
]

DEFAULT_SYNC_FILES = [
    Path("index.js"),
    Path("src/renderer/app.js"),
]
"""
Files copied into the workspace by `workspace sync`, relative to the source
folder.
"""


class Config(BaseFileModel):
    """
    Encapsulates configuration for use in tools.
    """

    projects_root: Path | None = None
    """
    Default folder containing local project folders, used by profiles which
    don't set their own.
    """

    profiles: dict[str, ProfileConfig]
    """
    Mapping of profile names to configs.
    """

    @field_validator("projects_root", mode="before")
    def validate_projects_root(cls, value: Any) -> Any:
        return _validate_dir(value)

    @field_serializer("projects_root")
    def serialize_projects_root(self, value: Path | None) -> str | None:
        return str(value) if isinstance(value, Path) else value

    @model_validator(mode="after")
    def validate_profiles(self) -> Self:
        # propagate projects root to profiles if applicable
        if self.projects_root:
            for profile in self.profiles.values():
                if not profile.projects_root:
                    profile.projects_root = self.projects_root
        return self


class ProfileConfig(BaseModel):
    """
    Encapsulates info for one database and local environment.
    """

    database_url: str | None = None
    """
    Connection string; if not set, taken from environment.
    """

    projects_root: Path | None = None
    """
    Folder in which to create local project folders.
    """

    staging_file: Path | None = None
    """
    Staging file for `sync stage` and `sync translate`; defaults to
    `temporary.json` in the current working directory.
    """

    debug_log: Path | None = None
    """
    File to which log messages are appended.
    """

    workspace_dir: Path | None = None
    """
    Per-user application data workspace for `workspace sync`.
    """

    sync_files: list[Path] = Field(
        default_factory=lambda: list(DEFAULT_SYNC_FILES)
    )
    """
    Files to copy into the workspace.
    """

    @field_validator("projects_root", mode="before")
    def validate_projects_root(cls, value: Any) -> Any:
        return _validate_dir(value)

    @field_serializer(
        "projects_root", "staging_file", "debug_log", "workspace_dir"
    )
    def serialize_path(self, value: Path | None) -> str | None:
        return str(value) if isinstance(value, Path) else value

    @field_serializer("sync_files")
    def serialize_sync_files(self, value: list[Path]) -> list[str]:
        return [str(p) for p in value]

    @property
    def conninfo(self) -> str | None:
        return self.database_url or get_conninfo_from_env()

    def create_database(self, *, logger: Logger) -> Database | None:
        """
        Get database from this profile's connection string, or `None` if
        there is none.
        """
        conninfo = self.conninfo
        return Database(conninfo, logger=logger) if conninfo else None


def _validate_dir(value: Any) -> Any:
    """
    Coerce to path and ensure it exists.
    """
    if not isinstance(value, (str, Path)):
        # let pydantic handle type error
        return value

    path = Path(value) if isinstance(value, str) else value

    if not path.is_dir():
        raise ValueError(f"folder does not exist: '{path}'")

    return path
