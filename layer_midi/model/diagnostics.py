from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from layer_midi.util.timecode import format_seconds


class DiagnosticKind(str, Enum):
    NON_ASCII_LABEL = "non_ascii_label"
    EXCESSIVE_POLYPHONY = "excessive_polyphony"
    NOTE_OVERLAP = "note_overlap"
    INSUFFICIENT_RESOLUTION = "insufficient_resolution"
    UNASSIGNABLE_LAYER = "unassignable_layer"
    COLLAPSED_NOTE = "collapsed_note"
    CHANNEL_CONFLICT = "channel_conflict"


def _escape(s: str) -> str:
    return s.encode("unicode_escape").decode("ascii").replace("'", "\\'")


@dataclass(frozen=True)
class Diagnostic:
    """A recoverable anomaly found during conversion.

    ``text`` holds the offending string for NON_ASCII_LABEL, ``detail`` a
    short reason where the kind alone is not enough (unassignable layers,
    channel conflicts).
    """

    kind: DiagnosticKind
    layer_index: int | None = None
    layer_name: str | None = None
    time: float | None = None
    pitch: int | None = None
    channel: int | None = None
    text: str | None = None
    detail: str | None = None

    @property
    def message(self) -> str:
        where = f" at {format_seconds(self.time)}" if self.time is not None else ""
        layer = f"'{_escape(self.layer_name or '')}'"
        k = self.kind

        if k is DiagnosticKind.NON_ASCII_LABEL:
            if self.detail == "layer name":
                return f"non-ASCII layer name {layer}"
            if self.detail == "project name":
                return f"non-ASCII project name '{_escape(self.text or '')}'"
            return f"non-ASCII label '{_escape(self.text or '')}' on layer {layer}{where}"
        if k is DiagnosticKind.EXCESSIVE_POLYPHONY:
            return f"excessive polyphony on layer {layer}{where} ({self.detail})"
        if k is DiagnosticKind.NOTE_OVERLAP:
            return f"note overlap on layer {layer}{where} (pitch {self.pitch})"
        if k is DiagnosticKind.INSUFFICIENT_RESOLUTION:
            return f"insufficient resolution to represent MIDI note on layer {layer}{where}"
        if k is DiagnosticKind.UNASSIGNABLE_LAYER:
            return f"layer {layer} could not be assigned a MIDI channel ({self.detail}); it will be dropped"
        if k is DiagnosticKind.COLLAPSED_NOTE:
            return f"collapsed note on layer {layer}{where}; it will be dropped"
        if k is DiagnosticKind.CHANNEL_CONFLICT:
            return f"layer {layer} requested channel {self.channel} which is taken ({self.detail})"
        raise ValueError(f"unknown diagnostic kind: {k}")

    def to_dict(self) -> dict[str, object]:
        d: dict[str, object] = {"kind": self.kind.value, "message": self.message}
        for key in ("layer_index", "layer_name", "time", "pitch", "channel", "text", "detail"):
            v = getattr(self, key)
            if v is not None:
                d[key] = float(v) if key == "time" else v
        return d


class DiagnosticsCollector:
    """Append-only accumulator for one conversion run.

    Safe to append from several worker threads; ``drain`` hands back
    everything recorded so far and empties the collector.
    """

    def __init__(self) -> None:
        self._items: list[Diagnostic] = []
        self._lock = threading.Lock()

    def record(self, diagnostic: Diagnostic) -> None:
        with self._lock:
            self._items.append(diagnostic)

    def extend(self, diagnostics: Iterable[Diagnostic]) -> None:
        items = list(diagnostics)
        with self._lock:
            self._items.extend(items)

    def drain(self) -> list[Diagnostic]:
        with self._lock:
            out = self._items
            self._items = []
        return out

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
