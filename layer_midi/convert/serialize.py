from __future__ import annotations

import io
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Sequence

if TYPE_CHECKING:  # pragma: no cover
    import mido

from layer_midi.errors import SerializationError
from layer_midi.model.events import EventKind, MidiEvent, TrackEventStream
from layer_midi.util.limits import MAX_DELTA_TICKS, MAX_RESOLUTION, MAX_TRACKS_IN_FILE

# mido encodes text-class meta payloads with this charset; latin-1 maps every
# byte to one code point, so raw label bytes survive unchanged.
_CHARSET = "latin1"


@dataclass(frozen=True)
class MidiHeader:
    resolution: int
    format: int = 1


def _to_message(e: MidiEvent, delta: int) -> Any:
    import mido  # type: ignore

    k = e.kind
    if k is EventKind.NOTE_ON:
        return mido.Message("note_on", channel=e.channel, note=e.note, velocity=e.velocity, time=delta)
    if k is EventKind.NOTE_OFF:
        return mido.Message("note_off", channel=e.channel, note=e.note, velocity=e.velocity, time=delta)
    if k is EventKind.PROGRAM_CHANGE:
        return mido.Message("program_change", channel=e.channel, program=e.program, time=delta)
    if k is EventKind.CONTROLLER:
        return mido.Message("control_change", channel=e.channel, control=e.controller, value=e.value, time=delta)
    if k is EventKind.TEXT_META:
        payload = e.text.decode(_CHARSET)
        if e.text_type == "text":
            return mido.MetaMessage("text", text=payload, time=delta)
        return mido.MetaMessage(e.text_type, name=payload, time=delta)
    if k is EventKind.TEMPO_META:
        return mido.MetaMessage("set_tempo", tempo=e.tempo, time=delta)
    if k is EventKind.END_OF_TRACK:
        return mido.MetaMessage("end_of_track", time=delta)
    raise SerializationError(f"unsupported event kind: {k}")


def to_midi_track(stream: TrackEventStream) -> Any:
    import mido  # type: ignore

    track = mido.MidiTrack()
    last = 0
    for i, e in enumerate(stream.events):
        delta = e.tick - last
        if delta < 0:
            raise SerializationError(
                f"negative delta-time in track '{stream.name}' at event {i} "
                f"(tick {e.tick} after tick {last})"
            )
        if delta > MAX_DELTA_TICKS:
            raise SerializationError(f"delta-time {delta} in track '{stream.name}' exceeds {MAX_DELTA_TICKS}")
        track.append(_to_message(e, delta))
        last = e.tick
    return track


def to_midifile(header: MidiHeader, tracks: Sequence[TrackEventStream]) -> Any:
    import mido  # type: ignore

    if not (1 <= header.resolution <= MAX_RESOLUTION):
        raise SerializationError(f"resolution {header.resolution} outside 1..{MAX_RESOLUTION}")
    if not (1 <= len(tracks) <= MAX_TRACKS_IN_FILE):
        raise SerializationError(f"track count {len(tracks)} outside 1..{MAX_TRACKS_IN_FILE}")
    if header.format not in (0, 1):
        raise SerializationError(f"unsupported MIDI file format {header.format}")
    if header.format == 0 and len(tracks) != 1:
        raise SerializationError("format 0 files hold exactly one track")

    mf = mido.MidiFile(type=header.format, ticks_per_beat=header.resolution, charset=_CHARSET)
    for t in tracks:
        mf.tracks.append(to_midi_track(t))
    return mf


def serialize(header: MidiHeader, tracks: Sequence[TrackEventStream]) -> bytes:
    """Encode the tracks as a Standard MIDI File and return its bytes."""
    mf = to_midifile(header, tracks)
    buf = io.BytesIO()
    mf.save(file=buf)
    return buf.getvalue()
