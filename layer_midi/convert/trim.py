from __future__ import annotations

from typing import Sequence

from layer_midi.model.events import EventKind, MidiEvent, TrackEventStream


def _is_audible(e: MidiEvent) -> bool:
    if e.kind is EventKind.NOTE_ON:
        return True
    return e.kind is EventKind.TEXT_META and e.text_type == "text"


def leading_silence(tracks: Sequence[TrackEventStream]) -> int:
    """Tick of the earliest note-on or text event over all tracks (0 if none)."""
    firsts = [e.tick for t in tracks for e in t.events if _is_audible(e)]
    return min(firsts, default=0)


def trim(tracks: Sequence[TrackEventStream]) -> list[TrackEventStream]:
    """Shift every track left so the first audible event lands on tick 0.

    The same shift applies to all tracks; events before the cut (tempo,
    channel setup) are clamped to tick 0 and keep their order.
    """

    shift = leading_silence(tracks)
    if shift == 0:
        return list(tracks)

    out: list[TrackEventStream] = []
    for t in tracks:
        events = [e.at(max(0, e.tick - shift)) for e in t.events]
        out.append(TrackEventStream(name=t.name, channel=t.channel, events=events))
    return out
