from __future__ import annotations

import bz2
import xml.etree.ElementTree as ET
from fractions import Fraction
from pathlib import Path

from layer_midi.errors import ProjectError
from layer_midi.model.types import Layer, NoteEvent, Project, constant_tempo
from layer_midi.util.gm import clip_drum_note, clip_program
from layer_midi.util.limits import DEFAULT_BPM, DEFAULT_PPQ, MIDI_PAN_CENTER, MIDI_VELOCITY_DEFAULT

# Sonic Visualiser layer type -> converter layer kind
SV_LAYER_KINDS: dict[str, str] = {
    "notes": "notes",
    "timeinstants": "instants",
    "text": "text",
}


def read_sv_xml(path: str | Path) -> str:
    """Return the XML text of a ``.sv`` project (bzip2-compressed or plain)."""
    raw = Path(path).read_bytes()
    if raw[:3] == b"BZh":
        try:
            raw = bz2.decompress(raw)
        except (OSError, ValueError) as e:
            raise ProjectError(f"{path}: corrupt bzip2 stream ({e})") from e
    return raw.decode("utf-8")


def _int_attr(el: ET.Element, name: str, default: int | None = None) -> int | None:
    v = el.get(name)
    if v is None or v == "":
        return default
    return int(round(float(v)))


def _pan_value(pan: float) -> int:
    # SV pan is -1..1
    return max(0, min(127, int(MIDI_PAN_CENTER + pan * 63.5)))


def _volume_value(gain: float) -> int:
    # SV gain is 0..4 with 1.0 as unity; MIDI unity is 100
    return max(0, min(127, int(round(100 * gain))))


def _velocity(level: str | None) -> int:
    if level is None or level == "":
        return MIDI_VELOCITY_DEFAULT
    return max(1, min(127, int(round(float(level) * 127))))


def parse_sv_document(xml_text: str, *, bpm: float = DEFAULT_BPM, resolution: int = DEFAULT_PPQ, name: str = "Untitled") -> Project:
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise ProjectError(f"invalid Sonic Visualiser XML: {e}") from e
    data = root.find("data")
    if root.tag != "sv" or data is None:
        raise ProjectError("not a Sonic Visualiser project (missing <sv><data>)")

    models = {m.get("id"): m for m in data.findall("model")}
    datasets = {d.get("id"): d for d in data.findall("dataset")}
    play_params = {pp.get("model"): pp for pp in data.findall("playparameters")}

    project = Project(name=name, tempo_map=constant_tempo(bpm), resolution=resolution)

    for el in data.findall("layer"):
        kind = SV_LAYER_KINDS.get(el.get("type", ""))
        if kind is None:
            continue
        layer_name = el.get("presentationName") or el.get("name") or ""
        model = models.get(el.get("model"))
        if model is None:
            raise ProjectError(f"layer '{layer_name}' has no model")
        dataset = datasets.get(model.get("dataset"))
        if dataset is None:
            raise ProjectError(f"model {model.get('id')} of layer '{layer_name}' has no dataset")
        sample_rate = _int_attr(model, "sampleRate")
        if not sample_rate or sample_rate <= 0:
            raise ProjectError(f"model {model.get('id')} has no usable sample rate")

        pp = play_params.get(el.get("model"))
        clip_id = pp.get("clipId") if pp is not None else None
        plugin = pp.find("plugin") if pp is not None else None
        if clip_id is None and plugin is not None:
            clip_id = plugin.get("program")

        layer = Layer(name=layer_name, kind=kind)
        if pp is not None:
            layer.mute = pp.get("mute", "false").strip().lower() == "true"
            layer.pan = _pan_value(float(pp.get("pan", 0.0) or 0.0))
            layer.volume = _volume_value(float(pp.get("gain", 1.0) or 1.0))
        if kind == "instants":
            layer.drum = True

        try:
            for point in dataset.findall("point"):
                frame = _int_attr(point, "frame", 0) or 0
                start = Fraction(frame, sample_rate)
                label = point.get("label") or None
                if kind == "notes":
                    pitch = _int_attr(point, "value")
                    duration = _int_attr(point, "duration")
                    if pitch is None or duration is None:
                        raise ProjectError(f"notes layer '{layer_name}' point at frame {frame} lacks value/duration")
                    # SV's right-click bug leaves one-frame notes behind; treat them as collapsed.
                    end = start if duration <= 1 else Fraction(frame + duration, sample_rate)
                    event = NoteEvent(start=start, end=end, pitch=pitch, velocity=_velocity(point.get("level")), label=label)
                elif kind == "instants":
                    event = NoteEvent(start=start, end=start, pitch=clip_drum_note(clip_id), label=label)
                else:
                    event = NoteEvent(start=start, end=start, label=label)
                layer.events.append(event)
        except ValueError as e:
            if isinstance(e, ProjectError):
                raise
            raise ProjectError(f"layer '{layer_name}': {e}") from e

        if kind == "notes":
            layer.program = clip_program(clip_id)
        project.layers.append(layer)

    return project


def load_sv_project(path: str | Path, *, bpm: float = DEFAULT_BPM, resolution: int = DEFAULT_PPQ) -> Project:
    p = Path(path)
    project = parse_sv_document(read_sv_xml(p), bpm=bpm, resolution=resolution, name=p.stem)
    project.path = str(p)
    return project
