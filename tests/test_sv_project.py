from __future__ import annotations

import bz2
import io
from fractions import Fraction
from pathlib import Path

import mido
import pytest

from layer_midi.convert import convert
from layer_midi.errors import ProjectError
from layer_midi.io.sv_project import load_sv_project
from layer_midi.model.diagnostics import DiagnosticKind

SV_XML = """<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE sonic-visualiser>
<sv>
  <data>
    <model id="1" name="" sampleRate="48000" start="0" end="96000" type="sparse" dimensions="3" resolution="1" notifyOnAdd="true" dataset="10" subtype="note" valueQuantization="0" minimum="60" maximum="64" units="MIDI Pitch"/>
    <model id="2" name="" sampleRate="48000" start="0" end="96000" type="sparse" dimensions="1" resolution="1" notifyOnAdd="true" dataset="11"/>
    <model id="3" name="" sampleRate="48000" start="0" end="96000" type="sparse" dimensions="2" resolution="1" notifyOnAdd="true" dataset="12" subtype="text"/>
    <playparameters mute="false" pan="-1" gain="1" clipId="elecpiano" model="1">
      <plugin identifier="ClipMixer" program="elecpiano"/>
    </playparameters>
    <playparameters mute="true" pan="0" gain="1" clipId="snare" model="2">
      <plugin identifier="ClipMixer" program="snare"/>
    </playparameters>
    <layer id="4" type="notes" name="Notes" model="1" presentationName="Mélodie"/>
    <layer id="5" type="timeinstants" name="Time Instants" model="2"/>
    <layer id="6" type="text" name="Text" model="3"/>
    <layer id="7" type="waveform" name="Waveform" model="1"/>
    <dataset id="10" dimensions="3">
      <point frame="48000" value="60" duration="24000" level="1" label="do"/>
      <point frame="72000" value="64" duration="1" label=""/>
    </dataset>
    <dataset id="11" dimensions="1">
      <point frame="0" label=""/>
    </dataset>
    <dataset id="12" dimensions="2">
      <point frame="24000" value="0" label="Intro"/>
    </dataset>
  </data>
  <display/>
  <selections/>
</sv>
"""


def _write(tmp_path: Path, compress: bool = True) -> Path:
    p = tmp_path / "session.sv"
    raw = SV_XML.encode("utf-8")
    p.write_bytes(bz2.compress(raw) if compress else raw)
    return p


def test_loads_layers_from_compressed_project(tmp_path: Path) -> None:
    p = load_sv_project(_write(tmp_path), bpm=120.0, resolution=480)
    assert p.name == "session"
    assert [(layer.name, layer.kind) for layer in p.layers] == [
        ("Mélodie", "notes"),
        ("Time Instants", "instants"),
        ("Text", "text"),
    ]

    notes = p.layers[0]
    assert notes.program == 5
    assert notes.pan == 0
    assert notes.volume == 100
    first = notes.events[0]
    assert (first.start, first.end, first.pitch, first.velocity, first.label) == (1, Fraction(3, 2), 60, 127, "do")
    # one-frame notes are treated as collapsed
    assert notes.events[1].start == notes.events[1].end

    hits = p.layers[1]
    assert hits.drum is True
    assert hits.mute is True
    assert hits.events[0].pitch == 38


def test_plain_xml_is_accepted(tmp_path: Path) -> None:
    p = load_sv_project(_write(tmp_path, compress=False))
    assert len(p.layers) == 3


def test_sv_project_converts(tmp_path: Path) -> None:
    project = load_sv_project(_write(tmp_path), bpm=120.0, resolution=480)
    res = convert(project)
    kinds = sorted(d.kind for d in res.diagnostics)
    assert kinds == sorted([DiagnosticKind.NON_ASCII_LABEL, DiagnosticKind.COLLAPSED_NOTE])

    mf = mido.MidiFile(file=io.BytesIO(res.data))
    assert len(mf.tracks) == 3
    assert [m.text for m in mf.tracks[0] if m.type == "text"] == ["Intro"]
    ons = [m for m in mf.tracks[1] if m.type == "note_on"]
    assert [(m.note, m.channel) for m in ons] == [(60, 0)]
    # muted drum layer keeps its track but plays nothing
    assert not [m for m in mf.tracks[2] if m.type == "note_on"]


def test_garbage_raises_project_error(tmp_path: Path) -> None:
    bad = tmp_path / "bad.sv"
    bad.write_bytes(b"BZh9 definitely not bzip2")
    with pytest.raises(ProjectError):
        load_sv_project(bad)

    not_sv = tmp_path / "other.sv"
    not_sv.write_text("<root/>", encoding="utf-8")
    with pytest.raises(ProjectError):
        load_sv_project(not_sv)


DRUMS_XML = """<?xml version="1.0" encoding="UTF-8"?>
<sv>
  <data>
    <model id="1" sampleRate="44100" type="sparse" dimensions="1" dataset="10"/>
    <model id="2" sampleRate="44100" type="sparse" dimensions="1" dataset="11"/>
    <playparameters mute="false" pan="0" gain="1" clipId="kick" model="1"/>
    <playparameters mute="false" pan="0" gain="1" clipId="snare" model="2"/>
    <layer id="3" type="timeinstants" name="Kick" model="1"/>
    <layer id="4" type="timeinstants" name="Snare" model="2"/>
    <dataset id="10" dimensions="1">
      <point frame="0" label=""/>
    </dataset>
    <dataset id="11" dimensions="1">
      <point frame="22050" label=""/>
    </dataset>
  </data>
</sv>
"""


def test_every_instants_layer_reaches_the_drum_channel(tmp_path: Path) -> None:
    src = tmp_path / "drums.sv"
    src.write_bytes(bz2.compress(DRUMS_XML.encode("utf-8")))
    res = convert(load_sv_project(src, bpm=120.0, resolution=480))
    assert res.diagnostics == []

    mf = mido.MidiFile(file=io.BytesIO(res.data))
    ons = sorted((m.note, m.channel) for t in mf.tracks for m in t if m.type == "note_on")
    assert ons == [(38, 9), (41, 9)]
