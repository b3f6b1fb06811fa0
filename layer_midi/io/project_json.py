from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from layer_midi.errors import ProjectError
from layer_midi.model.types import Project
from layer_midi.util.validate import migrate_project_dict, validate_project

YAML_SUFFIXES = {".yaml", ".yml"}


def _read_dict(p: Path) -> dict[str, Any]:
    raw = p.read_text(encoding="utf-8")
    if p.suffix.lower() in YAML_SUFFIXES:
        data = yaml.safe_load(raw) or {}
    else:
        data = json.loads(raw)
    if not isinstance(data, dict):
        raise ProjectError(f"{p}: top level must be a mapping")
    return data


def load_project(path: str | Path) -> Project:
    p = Path(path)
    try:
        data = migrate_project_dict(_read_dict(p))
        project = Project.from_dict(data)
    except (json.JSONDecodeError, yaml.YAMLError, KeyError, TypeError, ValueError) as e:
        if isinstance(e, ProjectError):
            raise
        raise ProjectError(f"{p}: {e}") from e
    project = validate_project(project)
    project.path = str(p)
    return project


def save_project(project: Project, path: str | Path | None = None) -> str:
    out_path = Path(path or project.path or f"{project.name}.json").expanduser()
    out_path.parent.mkdir(parents=True, exist_ok=True)
    payload = project.to_dict()
    if out_path.suffix.lower() in YAML_SUFFIXES:
        text = yaml.safe_dump(payload, sort_keys=True, allow_unicode=True)
    else:
        text = json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False) + "\n"
    out_path.write_text(text, encoding="utf-8")
    project.path = str(out_path)
    return str(out_path)
