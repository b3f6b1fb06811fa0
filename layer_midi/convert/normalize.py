from __future__ import annotations

from dataclasses import dataclass, field, replace

from layer_midi.model.diagnostics import Diagnostic, DiagnosticKind
from layer_midi.model.types import Layer
from layer_midi.util.limits import MIDI_MAX_POLYPHONY


@dataclass(frozen=True)
class NormalizedNote:
    start: float
    end: float
    pitch: int
    velocity: int


@dataclass(frozen=True)
class TextMark:
    time: float
    text: str


@dataclass
class NormalizedLayer:
    index: int
    layer: Layer
    notes: list[NormalizedNote] = field(default_factory=list)
    texts: list[TextMark] = field(default_factory=list)


def is_printable_ascii(s: str) -> bool:
    return all(0x20 <= ord(c) <= 0x7E for c in s)


def normalize(
    layer: Layer, *, layer_index: int = 0, max_polyphony: int = MIDI_MAX_POLYPHONY
) -> tuple[NormalizedLayer, list[Diagnostic]]:
    """Turn a layer's raw events into a clean, time-ordered note list.

    Collapsed notes are dropped (their labels survive as text). Same-pitch
    overlaps are resolved last-writer-wins by cutting the earlier note at the
    later note's start. Polyphony above ``max_polyphony`` is reported once.
    """

    diags: list[Diagnostic] = []
    out = NormalizedLayer(index=layer_index, layer=layer)

    def report(kind: DiagnosticKind, **kw) -> None:
        diags.append(Diagnostic(kind=kind, layer_index=layer_index, layer_name=layer.name, **kw))

    if not is_printable_ascii(layer.name):
        report(DiagnosticKind.NON_ASCII_LABEL, text=layer.name, detail="layer name")

    # stable: equal starts keep their input order
    events = sorted(layer.events, key=lambda e: e.start)

    for e in events:
        if e.label:
            if not is_printable_ascii(e.label):
                report(DiagnosticKind.NON_ASCII_LABEL, text=e.label, time=e.start)
            out.texts.append(TextMark(time=e.start, text=e.label))

    if layer.kind == "text":
        return out, diags

    kept: list[NormalizedNote | None] = []
    last_by_pitch: dict[int, int] = {}

    for e in events:
        if layer.kind == "instants":
            note = NormalizedNote(start=e.start, end=e.start, pitch=e.pitch, velocity=e.velocity)
        else:
            if e.end <= e.start:
                report(DiagnosticKind.COLLAPSED_NOTE, time=e.start, pitch=e.pitch)
                continue
            note = NormalizedNote(start=e.start, end=e.end, pitch=e.pitch, velocity=e.velocity)

        prev_i = last_by_pitch.get(note.pitch)
        if prev_i is not None:
            prev = kept[prev_i]
            assert prev is not None
            if prev.start == note.start or prev.end > note.start:
                report(DiagnosticKind.NOTE_OVERLAP, time=note.start, pitch=note.pitch)
                if prev.start >= note.start:
                    kept[prev_i] = None
                else:
                    kept[prev_i] = replace(prev, end=note.start)

        kept.append(note)
        last_by_pitch[note.pitch] = len(kept) - 1

    out.notes = [n for n in kept if n is not None]

    if layer.kind == "notes":
        hit = _first_excess(out.notes, max_polyphony)
        if hit is not None:
            when, count = hit
            report(
                DiagnosticKind.EXCESSIVE_POLYPHONY,
                time=when,
                detail=f"{count} simultaneous notes, limit {max_polyphony}",
            )

    return out, diags


def _first_excess(notes: list[NormalizedNote], ceiling: int) -> tuple[float, int] | None:
    # note-offs sort before note-ons at the same instant
    points = sorted([(n.end, 0) for n in notes] + [(n.start, 1) for n in notes])
    active = 0
    for when, is_on in points:
        if is_on:
            active += 1
            if active > ceiling:
                return when, active
        else:
            active -= 1
    return None
