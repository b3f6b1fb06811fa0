from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from layer_midi.model.diagnostics import Diagnostic, DiagnosticKind
from layer_midi.model.types import Layer
from layer_midi.util.limits import MIDI_CHANNELS, MIDI_DRUM_CHANNEL

# Automatic allocation fills melodic channels first; the drum channel is
# handed out last so melodic layers only land there when nothing else is free.
AUTO_CHANNEL_ORDER: tuple[int, ...] = tuple(
    [c for c in range(MIDI_CHANNELS) if c != MIDI_DRUM_CHANNEL] + [MIDI_DRUM_CHANNEL]
)


@dataclass
class ChannelAssignment:
    channels: dict[int, int] = field(default_factory=dict)  # layer index -> channel
    unassigned: list[int] = field(default_factory=list)

    def channel_of(self, layer_index: int) -> int | None:
        return self.channels.get(layer_index)

    def ordered(self) -> list[tuple[int, int]]:
        """(layer index, channel) pairs in layer order."""
        return sorted(self.channels.items())


def allocate(layers: Sequence[Layer]) -> tuple[ChannelAssignment, list[Diagnostic]]:
    """Assign each channel-bearing layer to one of the 16 MIDI channels.

    1. explicit requests, first requester wins; later ones are flagged and
       fall through to automatic allocation. Drum layers asking for the drum
       channel while another drum layer holds it simply join it.
    2. drum layers share the drum channel, one track each, unless a melodic
       layer explicitly holds it; then they are denied
    3. everything else takes the next free channel, in layer order
    4. layers left over are unassignable

    Text layers carry no channel and are skipped entirely.
    """

    assignment = ChannelAssignment()
    diags: list[Diagnostic] = []
    taken: dict[int, int] = {}
    pending: list[int] = []

    for idx, layer in enumerate(layers):
        if layer.kind == "text":
            continue
        ch = layer.channel
        if ch is None:
            pending.append(idx)
            continue
        if ch in taken:
            holder = layers[taken[ch]]
            if ch == MIDI_DRUM_CHANNEL and layer.drum and holder.drum:
                assignment.channels[idx] = ch
                continue
            diags.append(
                Diagnostic(
                    kind=DiagnosticKind.CHANNEL_CONFLICT,
                    layer_index=idx,
                    layer_name=layer.name,
                    channel=ch,
                    detail=f"held by layer '{holder.name}', reassigning automatically",
                )
            )
            pending.append(idx)
            continue
        taken[ch] = idx
        assignment.channels[idx] = ch

    pending.sort()
    melodic: list[int] = []
    for idx in pending:
        layer = layers[idx]
        if not layer.drum:
            melodic.append(idx)
            continue
        holder = taken.get(MIDI_DRUM_CHANNEL)
        if holder is None or layers[holder].drum:
            taken.setdefault(MIDI_DRUM_CHANNEL, idx)
            assignment.channels[idx] = MIDI_DRUM_CHANNEL
            continue
        assignment.unassigned.append(idx)
        diags.append(
            Diagnostic(
                kind=DiagnosticKind.UNASSIGNABLE_LAYER,
                layer_index=idx,
                layer_name=layer.name,
                channel=MIDI_DRUM_CHANNEL,
                detail="drum channel occupied",
            )
        )

    free = [c for c in AUTO_CHANNEL_ORDER if c not in taken]
    for idx in melodic:
        layer = layers[idx]
        if not free:
            assignment.unassigned.append(idx)
            diags.append(
                Diagnostic(
                    kind=DiagnosticKind.UNASSIGNABLE_LAYER,
                    layer_index=idx,
                    layer_name=layer.name,
                    detail="no free MIDI channel",
                )
            )
            continue
        ch = free.pop(0)
        taken[ch] = idx
        assignment.channels[idx] = ch

    assignment.unassigned.sort()
    return assignment, diags
