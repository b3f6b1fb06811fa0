from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from layer_midi.convert.pipeline import convert
from layer_midi.model.diagnostics import Diagnostic
from layer_midi.model.types import Project
from layer_midi.util.limits import MIDI_MAX_POLYPHONY


@dataclass
class MidiExportResult:
    path: str
    ticks_per_beat: int
    tracks: int
    diagnostics: list[Diagnostic] = field(default_factory=list)


def export_midi(
    project: Project,
    path: str | Path,
    *,
    max_polyphony: int = MIDI_MAX_POLYPHONY,
    trim_leading_silence: bool = False,
    workers: int = 1,
) -> MidiExportResult:
    """Convert and write a ``.mid`` file.

    Conversion runs completely before the file is opened, so a fatal error
    never leaves a partial file behind.
    """

    result = convert(
        project,
        max_polyphony=max_polyphony,
        trim_leading_silence=trim_leading_silence,
        workers=workers,
    )
    out = Path(path).expanduser()
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(result.data)
    return MidiExportResult(
        path=str(out),
        ticks_per_beat=project.resolution,
        tracks=len(result.tracks),
        diagnostics=result.diagnostics,
    )
