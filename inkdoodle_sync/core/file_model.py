"""
Interface to create models with associated .yaml or .json storage.
"""

import json
from pathlib import Path
from typing import Any, Self

import yaml
from pydantic import BaseModel

__all__ = [
    "BaseFileModel",
    "read_json",
    "write_json",
]


class BaseFileModel(BaseModel):
    """
    Base pydantic model with additional functionality to load from .yaml or
    .json files and dump to .yaml files.
    """

    @classmethod
    def load_yaml(cls, file: Path) -> Self:
        """
        Load model from .yaml file.
        """
        assert file.is_file()

        with file.open() as fh:
            model = yaml.safe_load(fh)

        if not isinstance(model, dict):
            raise ValueError(f"Invalid yaml contents: {model}")

        return cls(**model)

    def dump_yaml(self, file: Path):
        """
        Dump model to .yaml file.
        """
        model = self.model_dump(by_alias=True)
        model_yaml = yaml.safe_dump(
            model, default_flow_style=False, sort_keys=False
        )
        file.write_text(model_yaml)

    @classmethod
    def load_json(cls, file: Path) -> Self:
        """
        Load model from .json file.
        """
        model = read_json(file)

        if not isinstance(model, dict):
            raise ValueError(f"Invalid json contents: {model}")

        return cls(**model)


def read_json(file: Path) -> Any:
    return json.loads(file.read_text(encoding="utf-8"))


def write_json(file: Path, data: Any):
    file.write_text(
        json.dumps(data, indent=2, ensure_ascii=False, default=str),
        encoding="utf-8",
    )
