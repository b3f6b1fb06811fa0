from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from layer_midi.convert.channels import ChannelAssignment
from layer_midi.convert.normalize import NormalizedLayer, NormalizedNote, is_printable_ascii
from layer_midi.convert.quantize import TickQuantizer
from layer_midi.model.diagnostics import Diagnostic, DiagnosticKind
from layer_midi.model.events import (
    EventKind,
    MidiEvent,
    TrackEventStream,
    controller,
    end_of_track,
    note_off,
    note_on,
    program_change,
    tempo_meta,
    text_meta,
)
from layer_midi.model.types import TempoChange
from layer_midi.util.limits import MIDI_CONTROLLER_PAN, MIDI_CONTROLLER_VOLUME, MIDI_MAX_POLYPHONY, MIDI_PAN_CENTER

# Same-tick ordering inside a track body.
_RANK: dict[EventKind, int] = {
    EventKind.NOTE_OFF: 0,
    EventKind.NOTE_ON: 1,
    EventKind.PROGRAM_CHANGE: 2,
    EventKind.CONTROLLER: 2,
    EventKind.TEMPO_META: 2,
    EventKind.TEXT_META: 3,
    EventKind.END_OF_TRACK: 4,
}


@dataclass
class _TickNote:
    on: int
    off: int
    pitch: int
    velocity: int
    source: NormalizedNote


def sort_body(events: list[MidiEvent]) -> list[MidiEvent]:
    """Order by tick, then note-offs, note-ons, channel setup, text.

    ``sorted`` is stable, so equal keys keep their construction order.
    """
    return sorted(events, key=lambda e: (e.tick, _RANK[e.kind]))


def _finish(stream: TrackEventStream) -> TrackEventStream:
    stream.events.append(end_of_track(stream.last_tick))
    return stream


def build_conductor(
    tempo_map: Sequence[TempoChange],
    quantizer: TickQuantizer,
    *,
    name: str | None = None,
    texts: Sequence[NormalizedLayer] = (),
) -> TrackEventStream:
    stream = TrackEventStream(name=name or "Conductor", channel=None)
    if name:
        stream.events.append(text_meta(0, name, text_type="track_name"))

    body: list[MidiEvent] = [tempo_meta(quantizer.quantize(t.time), t.us_per_quarter) for t in tempo_map]
    for nl in texts:
        body.extend(text_meta(quantizer.quantize(m.time), m.text) for m in nl.texts)

    stream.events.extend(sort_body(body))
    return _finish(stream)


def _tick_notes(nl: NormalizedLayer, quantizer: TickQuantizer, report) -> list[_TickNote]:
    instants = nl.layer.kind == "instants"
    hit_len = max(1, quantizer.resolution // 4)
    if instants and quantizer.resolution // 4 == 0 and nl.notes:
        report(time=nl.notes[0].start, pitch=nl.notes[0].pitch)

    notes: list[_TickNote] = []
    for n in nl.notes:
        on = quantizer.quantize(n.start)
        if instants:
            off = on + hit_len
        else:
            off = quantizer.quantize(n.end)
            if off <= on:
                report(time=n.start, pitch=n.pitch)
                off = on + 1
        notes.append(_TickNote(on=on, off=off, pitch=n.pitch, velocity=max(1, n.velocity), source=n))

    # Rounding can still make same-pitch notes touch or overlap in ticks.
    notes.sort(key=lambda t: t.on)
    last: dict[int, _TickNote] = {}
    kept: list[_TickNote] = []
    for t in notes:
        prev = last.get(t.pitch)
        if prev is not None:
            if prev.on >= t.on:
                report(time=t.source.start, pitch=t.pitch)
                kept = [k for k in kept if k is not prev]
            elif prev.off > t.on:
                if not instants:
                    report(time=t.source.start, pitch=t.pitch)
                prev.off = t.on
            elif not instants and prev.off == t.on and prev.source.end < t.source.start:
                report(time=t.source.start, pitch=t.pitch)
        kept.append(t)
        last[t.pitch] = t
    return kept


def build_channel_track(
    nl: NormalizedLayer, channel: int, quantizer: TickQuantizer
) -> tuple[TrackEventStream, list[Diagnostic]]:
    layer = nl.layer
    diags: list[Diagnostic] = []

    def report(**kw) -> None:
        diags.append(
            Diagnostic(
                kind=DiagnosticKind.INSUFFICIENT_RESOLUTION,
                layer_index=nl.index,
                layer_name=layer.name,
                channel=channel,
                **kw,
            )
        )

    stream = TrackEventStream(name=layer.name, channel=channel)

    # channel setup, once, ahead of everything else at tick 0
    pan = MIDI_PAN_CENTER if layer.pan is None else layer.pan
    stream.events.append(text_meta(0, layer.name, text_type="track_name"))
    stream.events.append(program_change(0, channel, layer.program))
    stream.events.append(controller(0, channel, MIDI_CONTROLLER_VOLUME, layer.volume))
    stream.events.append(controller(0, channel, MIDI_CONTROLLER_PAN, pan))

    body: list[MidiEvent] = []
    if not layer.mute:
        for t in _tick_notes(nl, quantizer, report):
            body.append(note_on(t.on, channel, t.pitch, t.velocity))
            body.append(note_off(t.off, channel, t.pitch))
    body.extend(text_meta(quantizer.quantize(m.time), m.text) for m in nl.texts)

    stream.events.extend(sort_body(body))
    return _finish(stream), diags


def _channel_polyphony(
    channel: int,
    members: Sequence[tuple[NormalizedLayer, TrackEventStream]],
    ceiling: int,
) -> Diagnostic | None:
    # events from several tracks on one channel, merged; offs sort first
    merged = sorted(
        (e.tick, 0 if e.is_note_off else 1, nl.index, nl.layer.name)
        for nl, stream in members
        for e in stream.events
        if e.is_note_on or e.is_note_off
    )
    active = 0
    for tick, is_on, index, name in merged:
        if not is_on:
            active -= 1
            continue
        active += 1
        if active > ceiling:
            return Diagnostic(
                kind=DiagnosticKind.EXCESSIVE_POLYPHONY,
                layer_index=index,
                layer_name=name,
                channel=channel,
                detail=f"{active} simultaneous notes on channel {channel + 1} at tick {tick}, limit {ceiling}",
            )
    return None


def build(
    assignment: ChannelAssignment,
    normalized_layers: Sequence[NormalizedLayer],
    tempo_map: Sequence[TempoChange],
    resolution: int,
    *,
    name: str | None = None,
    max_polyphony: int = MIDI_MAX_POLYPHONY,
) -> tuple[list[TrackEventStream], list[Diagnostic]]:
    """Assemble the conductor track plus one track per assigned layer.

    Tracks follow layer order. Text layers feed the conductor track; layers
    without a channel in ``assignment`` are skipped.

    Hit layers only get their length here, so polyphony on channels that
    carry them (or that several layers share) is counted on the built
    ticks, once per channel.
    """

    quantizer = TickQuantizer(tempo_map, resolution)
    diags: list[Diagnostic] = []

    if name and not is_printable_ascii(name):
        diags.append(Diagnostic(kind=DiagnosticKind.NON_ASCII_LABEL, text=name, detail="project name"))

    text_layers = [nl for nl in normalized_layers if nl.layer.kind == "text"]
    tracks = [build_conductor(tempo_map, quantizer, name=name, texts=text_layers)]

    by_channel: dict[int, list[tuple[NormalizedLayer, TrackEventStream]]] = {}
    for nl in sorted(normalized_layers, key=lambda x: x.index):
        if nl.layer.kind == "text":
            continue
        channel = assignment.channel_of(nl.index)
        if channel is None:
            continue
        stream, d = build_channel_track(nl, channel, quantizer)
        tracks.append(stream)
        diags.extend(d)
        by_channel.setdefault(channel, []).append((nl, stream))

    for channel, members in sorted(by_channel.items()):
        if len(members) < 2 and members[0][0].layer.kind != "instants":
            continue
        hit = _channel_polyphony(channel, members, max_polyphony)
        if hit is not None:
            diags.append(hit)

    return tracks, diags
