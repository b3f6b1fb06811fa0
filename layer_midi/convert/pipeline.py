from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from layer_midi.convert.channels import ChannelAssignment, allocate
from layer_midi.convert.normalize import NormalizedLayer, normalize
from layer_midi.convert.serialize import MidiHeader, serialize
from layer_midi.convert.tracks import build
from layer_midi.convert.trim import trim
from layer_midi.model.diagnostics import Diagnostic, DiagnosticsCollector
from layer_midi.model.events import TrackEventStream
from layer_midi.model.types import Layer, Project
from layer_midi.util.limits import MIDI_MAX_POLYPHONY
from layer_midi.util.validate import validate_project

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


@dataclass
class ConversionResult:
    data: bytes
    diagnostics: list[Diagnostic] = field(default_factory=list)
    assignment: ChannelAssignment = field(default_factory=ChannelAssignment)
    tracks: list[TrackEventStream] = field(default_factory=list)


def plan_channels(project: Project, collector: DiagnosticsCollector) -> ChannelAssignment:
    assignment, diags = allocate(project.layers)
    collector.extend(diags)
    logger.debug("channel plan: %s, unassigned: %s", assignment.ordered(), assignment.unassigned)
    return assignment


def normalize_layers(
    project: Project,
    assignment: ChannelAssignment,
    collector: DiagnosticsCollector,
    *,
    max_polyphony: int = MIDI_MAX_POLYPHONY,
    workers: int = 1,
) -> list[NormalizedLayer]:
    """Normalize every layer that will reach the output.

    With ``workers > 1`` layers run on a thread pool; each job returns its own
    diagnostics, merged afterwards in layer order.
    """

    jobs: list[tuple[int, Layer]] = [
        (idx, layer)
        for idx, layer in enumerate(project.layers)
        if layer.kind == "text" or assignment.channel_of(idx) is not None
    ]

    def run(job: tuple[int, Layer]) -> tuple[NormalizedLayer, list[Diagnostic]]:
        idx, layer = job
        return normalize(layer, layer_index=idx, max_polyphony=max_polyphony)

    if workers > 1 and len(jobs) > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(run, jobs))
    else:
        results = [run(j) for j in jobs]

    out: list[NormalizedLayer] = []
    for nl, diags in results:
        collector.extend(diags)
        out.append(nl)
        logger.debug("layer %d '%s': %d notes, %d texts", nl.index, nl.layer.name, len(nl.notes), len(nl.texts))
    return out


def convert(
    project: Project,
    *,
    max_polyphony: int = MIDI_MAX_POLYPHONY,
    trim_leading_silence: bool = False,
    workers: int = 1,
) -> ConversionResult:
    """Convert an annotation project into Multi-Track MIDI file bytes.

    Raises ProjectError or SerializationError on fatal problems; everything
    else is reported in ``ConversionResult.diagnostics``.
    """

    validate_project(project)
    collector = DiagnosticsCollector()

    assignment = plan_channels(project, collector)
    layers = normalize_layers(project, assignment, collector, max_polyphony=max_polyphony, workers=workers)

    tracks, diags = build(
        assignment, layers, project.tempo_map, project.resolution, name=project.name, max_polyphony=max_polyphony
    )
    collector.extend(diags)

    if trim_leading_silence:
        tracks = trim(tracks)

    data = serialize(MidiHeader(resolution=project.resolution), tracks)
    diagnostics = collector.drain()
    logger.debug("wrote %d tracks, %d bytes, %d diagnostics", len(tracks), len(data), len(diagnostics))
    return ConversionResult(data=data, diagnostics=diagnostics, assignment=assignment, tracks=tracks)
