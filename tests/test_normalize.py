from __future__ import annotations

from layer_midi.convert.normalize import is_printable_ascii, normalize
from layer_midi.model.diagnostics import DiagnosticKind
from layer_midi.model.types import Layer, NoteEvent


def _spans(nl) -> list[tuple[float, float, int]]:
    return [(n.start, n.end, n.pitch) for n in nl.notes]


def test_same_pitch_overlap_truncates_earlier_note() -> None:
    layer = Layer(name="Lead", events=[NoteEvent(0, 10, 60), NoteEvent(5, 15, 60)])
    nl, diags = normalize(layer)
    assert _spans(nl) == [(0, 5, 60), (5, 15, 60)]
    assert [d.kind for d in diags] == [DiagnosticKind.NOTE_OVERLAP]
    assert diags[0].time == 5
    assert diags[0].pitch == 60


def test_different_pitches_may_overlap() -> None:
    layer = Layer(name="Chords", events=[NoteEvent(0, 10, 60), NoteEvent(5, 15, 64)])
    nl, diags = normalize(layer)
    assert _spans(nl) == [(0, 10, 60), (5, 15, 64)]
    assert diags == []


def test_identical_start_same_pitch_keeps_last_writer() -> None:
    layer = Layer(name="Dup", events=[NoteEvent(1, 2, 60, velocity=10), NoteEvent(1, 3, 60, velocity=90)])
    nl, diags = normalize(layer)
    assert [(n.start, n.end, n.velocity) for n in nl.notes] == [(1, 3, 90)]
    assert [d.kind for d in diags] == [DiagnosticKind.NOTE_OVERLAP]


def test_collapsed_notes_are_dropped_and_reported_once() -> None:
    layer = Layer(name="Bass", events=[NoteEvent(2, 2, 40), NoteEvent(3, 4, 41), NoteEvent(5, 4.5, 42)])
    nl, diags = normalize(layer)
    assert _spans(nl) == [(3, 4, 41)]
    assert [d.kind for d in diags] == [DiagnosticKind.COLLAPSED_NOTE, DiagnosticKind.COLLAPSED_NOTE]
    assert [d.time for d in diags] == [2, 5]


def test_collapsed_note_label_survives_as_text() -> None:
    layer = Layer(name="Bass", events=[NoteEvent(2, 2, 40, label="oops")])
    nl, _ = normalize(layer)
    assert nl.notes == []
    assert [(m.time, m.text) for m in nl.texts] == [(2, "oops")]


def test_events_are_sorted_stably_by_start() -> None:
    layer = Layer(
        name="Mixed",
        events=[NoteEvent(3, 4, 62), NoteEvent(1, 2, 61), NoteEvent(1, 2, 60)],
    )
    nl, _ = normalize(layer)
    assert [n.pitch for n in nl.notes] == [61, 60, 62]


def test_excessive_polyphony_reported_once_per_layer() -> None:
    events = [NoteEvent(0, 1, 60 + i) for i in range(5)] + [NoteEvent(2, 3, 60 + i) for i in range(6)]
    layer = Layer(name="Cluster", events=events)
    nl, diags = normalize(layer, max_polyphony=4)
    assert len(nl.notes) == 11
    poly = [d for d in diags if d.kind is DiagnosticKind.EXCESSIVE_POLYPHONY]
    assert len(poly) == 1
    assert poly[0].time == 0


def test_back_to_back_notes_are_not_polyphony() -> None:
    layer = Layer(name="Run", events=[NoteEvent(i, i + 1, 60 + i % 2) for i in range(10)])
    _, diags = normalize(layer, max_polyphony=1)
    assert diags == []


def test_non_ascii_label_reported_and_preserved() -> None:
    layer = Layer(name="Vocals", events=[NoteEvent(0, 1, 60, label="ünter"), NoteEvent(1, 2, 62, label="plain")])
    nl, diags = normalize(layer)
    assert [d.kind for d in diags] == [DiagnosticKind.NON_ASCII_LABEL]
    assert diags[0].text == "ünter"
    assert [m.text for m in nl.texts] == ["ünter", "plain"]


def test_non_ascii_layer_name_reported() -> None:
    layer = Layer(name="Gitarre Ä", events=[NoteEvent(0, 1, 60)])
    _, diags = normalize(layer)
    assert [d.kind for d in diags] == [DiagnosticKind.NON_ASCII_LABEL]
    assert diags[0].detail == "layer name"
    assert "non-ASCII layer name" in diags[0].message


def test_instants_are_not_collapsed_but_duplicates_overlap() -> None:
    layer = Layer(
        name="Hits",
        kind="instants",
        drum=True,
        events=[NoteEvent(1, 1, 38), NoteEvent(1, 1, 38), NoteEvent(2, 2, 38)],
    )
    nl, diags = normalize(layer)
    assert _spans(nl) == [(1, 1, 38), (2, 2, 38)]
    assert [d.kind for d in diags] == [DiagnosticKind.NOTE_OVERLAP]


def test_text_layer_yields_only_text() -> None:
    layer = Layer(name="Sections", kind="text", events=[NoteEvent(0, 0, label="Intro"), NoteEvent(8, 8, label="Verse")])
    nl, diags = normalize(layer)
    assert nl.notes == []
    assert [m.text for m in nl.texts] == ["Intro", "Verse"]
    assert diags == []


def test_printable_ascii() -> None:
    assert is_printable_ascii("Hello, world ~")
    assert not is_printable_ascii("tab\there")
    assert not is_printable_ascii("café")
