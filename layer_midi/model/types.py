from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from layer_midi.util.gm import parse_program
from layer_midi.util.limits import (
    DEFAULT_BPM,
    DEFAULT_PPQ,
    MIDI_VELOCITY_DEFAULT,
    MIDI_VOLUME_DEFAULT,
)

LAYER_KINDS: tuple[str, ...] = ("notes", "instants", "text")


@dataclass
class NoteEvent:
    """A single annotated note (or hit, or label) on a layer.

    Times are in seconds from the start of the project. ``end <= start`` is
    accepted here on purpose: it is a *collapsed* note, reported by the
    normalizer instead of rejected at load time.
    """

    start: float
    end: float
    pitch: int = 60
    velocity: int = MIDI_VELOCITY_DEFAULT
    label: str | None = None

    def __post_init__(self) -> None:
        if not (0 <= self.pitch <= 127):
            raise ValueError(f"pitch out of range: {self.pitch}")
        if not (0 <= self.velocity <= 127):
            raise ValueError(f"velocity out of range: {self.velocity}")
        if self.label is not None:
            self.label = str(self.label)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "start": float(self.start),
            "end": float(self.end),
            "pitch": self.pitch,
            "velocity": self.velocity,
        }
        if self.label:
            d["label"] = self.label
        return d

    @staticmethod
    def from_dict(d: dict[str, Any]) -> "NoteEvent":
        start = float(d["start"])
        if "end" in d:
            end = float(d["end"])
        else:
            end = start + float(d.get("duration", 0.0) or 0.0)
        label = d.get("label", None)
        return NoteEvent(
            start=start,
            end=end,
            pitch=int(d.get("pitch", 60)),
            velocity=int(d.get("velocity", MIDI_VELOCITY_DEFAULT)),
            label=(str(label) if label is not None else None),
        )


@dataclass
class Layer:
    name: str
    events: list[NoteEvent] = field(default_factory=list)
    kind: str = "notes"  # notes | instants | text

    channel: int | None = None  # explicit 0-15, None = auto
    program: int = 0  # GM patch 0-127
    volume: int = MIDI_VOLUME_DEFAULT  # CC7 0-127
    pan: int | None = None  # CC10 0-127, None = center

    drum: bool = False
    mute: bool = False

    def __post_init__(self) -> None:
        if self.kind not in LAYER_KINDS:
            raise ValueError(f"unknown layer kind: {self.kind}")
        if self.channel is not None and not (0 <= self.channel <= 15):
            raise ValueError(f"channel out of range: {self.channel}")
        if not (0 <= self.program <= 127):
            raise ValueError(f"program out of range: {self.program}")
        if not (0 <= self.volume <= 127):
            raise ValueError(f"volume out of range: {self.volume}")
        if self.pan is not None and not (0 <= self.pan <= 127):
            raise ValueError(f"pan out of range: {self.pan}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind,
            "channel": self.channel,
            "program": self.program,
            "volume": self.volume,
            "pan": self.pan,
            "drum": self.drum,
            "mute": self.mute,
            "events": [e.to_dict() for e in self.events],
        }

    @staticmethod
    def from_dict(d: dict[str, Any]) -> "Layer":
        channel = d.get("channel", None)
        if isinstance(channel, str) and channel.strip().lower() == "auto":
            channel = None
        pan = d.get("pan", None)
        layer = Layer(
            name=str(d.get("name", "")),
            kind=str(d.get("kind", "notes") or "notes").strip().lower(),
            channel=(int(channel) if channel is not None else None),
            program=parse_program(d.get("program", 0) or 0),
            volume=int(d.get("volume", MIDI_VOLUME_DEFAULT)),
            pan=(int(pan) if pan is not None else None),
            drum=bool(d.get("drum", False)),
            mute=bool(d.get("mute", False)),
        )
        layer.events = [NoteEvent.from_dict(x) for x in d.get("events", []) or []]
        return layer


@dataclass(frozen=True)
class TempoChange:
    time: float  # seconds
    us_per_quarter: int

    def to_dict(self) -> dict[str, Any]:
        return {"time": float(self.time), "us_per_quarter": self.us_per_quarter}

    @staticmethod
    def from_dict(d: dict[str, Any]) -> "TempoChange":
        if "us_per_quarter" in d:
            us = int(d["us_per_quarter"])
        else:
            us = bpm_to_tempo(float(d["bpm"]))
        return TempoChange(time=float(d.get("time", 0.0) or 0.0), us_per_quarter=us)


def bpm_to_tempo(bpm: float) -> int:
    import mido  # type: ignore

    if bpm <= 0:
        raise ValueError("bpm must be > 0")
    return int(mido.bpm2tempo(bpm))


def constant_tempo(bpm: float = DEFAULT_BPM) -> list[TempoChange]:
    return [TempoChange(time=0.0, us_per_quarter=bpm_to_tempo(bpm))]


@dataclass
class Project:
    """Normalized in-memory annotation project.

    Layers are addressed by their index in ``layers``; nothing downstream
    keeps references back into the project.
    """

    name: str
    layers: list[Layer] = field(default_factory=list)
    tempo_map: list[TempoChange] = field(default_factory=constant_tempo)
    resolution: int = DEFAULT_PPQ  # pulses per quarter note

    # runtime-only
    path: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "schema_version": 2,
            "name": self.name,
            "resolution": self.resolution,
            "tempo_map": [t.to_dict() for t in self.tempo_map],
            "layers": [layer.to_dict() for layer in self.layers],
        }

    @staticmethod
    def from_dict(d: dict[str, Any]) -> "Project":
        tempo = d.get("tempo_map", None)
        p = Project(
            name=str(d.get("name", "Untitled")),
            resolution=int(d.get("resolution", DEFAULT_PPQ)),
        )
        if tempo is not None:
            p.tempo_map = [TempoChange.from_dict(x) for x in tempo]
        p.layers = [Layer.from_dict(x) for x in d.get("layers", []) or []]
        return p
