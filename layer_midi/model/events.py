from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum


class EventKind(str, Enum):
    NOTE_ON = "note_on"
    NOTE_OFF = "note_off"
    PROGRAM_CHANGE = "program_change"
    CONTROLLER = "controller"
    TEXT_META = "text_meta"
    TEMPO_META = "tempo_meta"
    END_OF_TRACK = "end_of_track"


# Text-class meta event flavours carried by TEXT_META.
TEXT_TYPES: tuple[str, ...] = ("text", "track_name")


@dataclass(frozen=True)
class MidiEvent:
    """One absolute-tick event of a track.

    A closed tagged variant: ``kind`` says which of the payload fields are
    meaningful. Use the constructors below rather than filling fields by hand.
    """

    kind: EventKind
    tick: int
    channel: int | None = None

    note: int = 0
    velocity: int = 0
    program: int = 0
    controller: int = 0
    value: int = 0
    text: bytes = b""
    text_type: str = "text"
    tempo: int = 0

    @property
    def is_note_on(self) -> bool:
        return self.kind is EventKind.NOTE_ON

    @property
    def is_note_off(self) -> bool:
        return self.kind is EventKind.NOTE_OFF

    def at(self, tick: int) -> "MidiEvent":
        return replace(self, tick=int(tick))


def note_on(tick: int, channel: int, note: int, velocity: int) -> MidiEvent:
    return MidiEvent(EventKind.NOTE_ON, tick, channel, note=note, velocity=velocity)


def note_off(tick: int, channel: int, note: int) -> MidiEvent:
    return MidiEvent(EventKind.NOTE_OFF, tick, channel, note=note, velocity=0)


def program_change(tick: int, channel: int, program: int) -> MidiEvent:
    return MidiEvent(EventKind.PROGRAM_CHANGE, tick, channel, program=program)


def controller(tick: int, channel: int, control: int, value: int) -> MidiEvent:
    return MidiEvent(EventKind.CONTROLLER, tick, channel, controller=control, value=value)


def text_meta(tick: int, text: str | bytes, *, text_type: str = "text") -> MidiEvent:
    if text_type not in TEXT_TYPES:
        raise ValueError(f"unknown text meta type: {text_type}")
    payload = text.encode("utf-8") if isinstance(text, str) else bytes(text)
    return MidiEvent(EventKind.TEXT_META, tick, text=payload, text_type=text_type)


def tempo_meta(tick: int, us_per_quarter: int) -> MidiEvent:
    return MidiEvent(EventKind.TEMPO_META, tick, tempo=us_per_quarter)


def end_of_track(tick: int) -> MidiEvent:
    return MidiEvent(EventKind.END_OF_TRACK, tick)


@dataclass
class TrackEventStream:
    name: str
    channel: int | None = None  # None for the conductor track
    events: list[MidiEvent] = field(default_factory=list)

    @property
    def last_tick(self) -> int:
        return max((e.tick for e in self.events), default=0)

    def count(self, kind: EventKind) -> int:
        return sum(1 for e in self.events if e.kind is kind)
