from pathlib import Path

from pytest import raises

from inkdoodle_sync.core.file_model import BaseFileModel, read_json, write_json


class Sample(BaseFileModel):
    title: str
    tags: list[str] = []


def test_yaml(tmp_path: Path):
    path = tmp_path / "sample.yaml"

    Sample(title="Novel", tags=["draft"]).dump_yaml(path)
    assert Sample.load_yaml(path) == Sample(title="Novel", tags=["draft"])

    # json is read-only; models are only written as yaml
    assert not hasattr(Sample, "dump_json")


def test_load_json(tmp_path: Path):
    path = tmp_path / "sample.json"

    write_json(path, {"title": "Écrit", "tags": []})
    assert "Écrit" in path.read_text(encoding="utf-8")
    assert read_json(path) == {"title": "Écrit", "tags": []}

    assert Sample.load_json(path).title == "Écrit"

    write_json(path, ["not", "a", "model"])

    with raises(ValueError):
        Sample.load_json(path)
