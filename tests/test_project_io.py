from __future__ import annotations

import json
from pathlib import Path

import pytest

from layer_midi.errors import ProjectError
from layer_midi.io.project_json import load_project, save_project
from layer_midi.model.types import Layer, NoteEvent, Project, TempoChange


def test_project_json_round_trip(tmp_path: Path) -> None:
    p = Project(name="Test", resolution=960)
    p.tempo_map = [TempoChange(0.0, 500_000), TempoChange(4.0, 600_000)]
    p.layers.append(Layer(name="Piano", channel=2, program=5, pan=30, events=[NoteEvent(0.5, 1.25, 64, 80, "a")]))
    p.layers.append(Layer(name="Hits", kind="instants", drum=True, events=[NoteEvent(1.0, 1.0, 38)]))

    out = tmp_path / "proj.json"
    save_project(p, out)

    loaded = load_project(out)
    assert loaded.name == "Test"
    assert loaded.resolution == 960
    assert [(t.time, t.us_per_quarter) for t in loaded.tempo_map] == [(0.0, 500_000), (4.0, 600_000)]
    assert loaded.layers[0].channel == 2
    assert loaded.layers[0].pan == 30
    assert loaded.layers[0].events[0] == NoteEvent(0.5, 1.25, 64, 80, "a")
    assert loaded.layers[1].kind == "instants"
    assert loaded.layers[1].drum is True
    assert loaded.path == str(out)


def test_yaml_project_with_auto_channel_and_gm_name(tmp_path: Path) -> None:
    src = tmp_path / "song.yaml"
    src.write_text(
        "name: Yaml Song\n"
        "resolution: 480\n"
        "tempo_map:\n"
        "  - {time: 0, bpm: 90}\n"
        "layers:\n"
        "  - name: Strings\n"
        "    channel: auto\n"
        "    program: violin\n"
        "    events:\n"
        "      - {start: 0, duration: 2, pitch: 67, label: Ström}\n",
        encoding="utf-8",
    )
    p = load_project(src)
    assert p.name == "Yaml Song"
    assert p.layers[0].channel is None
    assert p.layers[0].program == 40
    assert p.layers[0].events[0].end == 2.0
    assert p.layers[0].events[0].label == "Ström"
    assert p.tempo_map[0].us_per_quarter == 666_667


def test_v1_dict_is_migrated(tmp_path: Path) -> None:
    payload = {
        "name": "Old",
        "bpm": 60,
        "ppq": 96,
        "tracks": [{"name": "A", "events": [{"start": 0, "end": 1, "pitch": 60}]}],
    }
    pth = tmp_path / "old.json"
    pth.write_text(json.dumps(payload), encoding="utf-8")

    p = load_project(pth)
    assert p.resolution == 96
    assert p.tempo_map[0].us_per_quarter == 1_000_000
    assert [layer.name for layer in p.layers] == ["A"]


def test_invalid_documents_raise_project_error(tmp_path: Path) -> None:
    bad_json = tmp_path / "bad.json"
    bad_json.write_text("{not json", encoding="utf-8")
    with pytest.raises(ProjectError):
        load_project(bad_json)

    bad_pitch = tmp_path / "pitch.json"
    bad_pitch.write_text(
        json.dumps({"schema_version": 2, "layers": [{"name": "A", "events": [{"start": 0, "end": 1, "pitch": 200}]}]}),
        encoding="utf-8",
    )
    with pytest.raises(ProjectError):
        load_project(bad_pitch)

    empty_tempo = tmp_path / "tempo.json"
    empty_tempo.write_text(json.dumps({"schema_version": 2, "tempo_map": [], "layers": []}), encoding="utf-8")
    with pytest.raises(ProjectError):
        load_project(empty_tempo)
