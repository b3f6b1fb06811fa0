from __future__ import annotations

from typing import Any

from layer_midi.errors import ProjectError
from layer_midi.model.types import Project
from layer_midi.util.limits import DEFAULT_BPM, DEFAULT_PPQ, MAX_TEMPO_US

CURRENT_SCHEMA_VERSION = 2


def migrate_project_dict(d: dict[str, Any]) -> dict[str, Any]:
    """Migrate a project dict to the latest schema.

    v1 files carried a single ``bpm`` and a ``ppq`` instead of a tempo map
    and ``resolution``; layers were called ``tracks``.
    """

    schema = int(d.get("schema_version", 1) or 1)

    # v1 -> v2: tempo map + resolution + layers
    if schema < 2:
        if "tempo_map" not in d:
            bpm = float(d.pop("bpm", d.pop("tempo_bpm", DEFAULT_BPM)) or DEFAULT_BPM)
            d["tempo_map"] = [{"time": 0.0, "bpm": bpm}]
        if "resolution" not in d:
            d["resolution"] = int(d.pop("ppq", DEFAULT_PPQ) or DEFAULT_PPQ)
        if "layers" not in d and "tracks" in d:
            d["layers"] = d.pop("tracks")
        schema = 2

    d["schema_version"] = CURRENT_SCHEMA_VERSION
    return d


def validate_project(project: Project) -> Project:
    """Reject projects the converter cannot process.

    Unlike per-note anomalies, which are reported as diagnostics, these are
    fatal: the output would be meaningless.
    """

    if not isinstance(project.resolution, int) or project.resolution <= 0:
        raise ProjectError(f"resolution must be a positive integer, got {project.resolution!r}")

    tempo_map = list(project.tempo_map or [])
    if not tempo_map:
        raise ProjectError("tempo map is empty")
    if float(tempo_map[0].time) != 0.0:
        raise ProjectError(f"first tempo breakpoint must be at time 0, got {tempo_map[0].time}")

    prev = None
    for i, change in enumerate(tempo_map):
        if not (1 <= int(change.us_per_quarter) <= MAX_TEMPO_US):
            raise ProjectError(f"tempo breakpoint {i} out of range: {change.us_per_quarter} us per quarter note")
        if prev is not None and not (change.time > prev):
            raise ProjectError(f"tempo map times must be strictly increasing (breakpoint {i} at {change.time})")
        prev = change.time

    return project
