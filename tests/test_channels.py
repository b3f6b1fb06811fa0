from __future__ import annotations

from layer_midi.convert.channels import allocate
from layer_midi.model.diagnostics import DiagnosticKind
from layer_midi.model.types import Layer


def _kinds(diags) -> list[DiagnosticKind]:
    return [d.kind for d in diags]


def test_sixteen_explicit_distinct_channels_all_assigned() -> None:
    layers = [Layer(name=f"L{i}", channel=15 - i) for i in range(16)]
    a, diags = allocate(layers)
    assert diags == []
    assert a.unassigned == []
    assert sorted(a.channels.values()) == list(range(16))
    assert a.channel_of(0) == 15


def test_seventeen_auto_layers_overflow_by_one() -> None:
    layers = [Layer(name=f"L{i}") for i in range(17)]
    a, diags = allocate(layers)
    assert len(a.channels) == 16
    assert a.unassigned == [16]
    assert _kinds(diags) == [DiagnosticKind.UNASSIGNABLE_LAYER]
    assert diags[0].layer_index == 16
    # the drum channel is only handed to a melodic layer as the last resort
    assert a.channel_of(15) == 9
    assert a.channel_of(0) == 0


def test_drum_layers_share_the_drum_channel() -> None:
    layers = [Layer(name="Melody"), Layer(name="Kick", drum=True), Layer(name="Snare", drum=True)]
    a, diags = allocate(layers)
    assert diags == []
    assert a.channel_of(0) == 0
    assert a.channel_of(1) == 9
    assert a.channel_of(2) == 9
    assert a.unassigned == []


def test_explicit_drum_requests_on_drum_channel_do_not_conflict() -> None:
    layers = [Layer(name="Kit", channel=9, drum=True), Layer(name="Toms", channel=9, drum=True), Layer(name="Hats", drum=True)]
    a, diags = allocate(layers)
    assert diags == []
    assert [a.channel_of(i) for i in range(3)] == [9, 9, 9]


def test_explicit_request_on_drum_channel_blocks_drum_layer() -> None:
    layers = [Layer(name="Pad", channel=9), Layer(name="Hits", drum=True)]
    a, diags = allocate(layers)
    assert a.channel_of(0) == 9
    assert a.unassigned == [1]
    assert _kinds(diags) == [DiagnosticKind.UNASSIGNABLE_LAYER]


def test_explicit_conflict_first_requester_keeps_channel() -> None:
    layers = [Layer(name="A", channel=3), Layer(name="B", channel=3), Layer(name="C")]
    a, diags = allocate(layers)
    assert a.channel_of(0) == 3
    assert a.channel_of(1) == 0
    assert a.channel_of(2) == 1
    assert _kinds(diags) == [DiagnosticKind.CHANNEL_CONFLICT]
    assert diags[0].layer_name == "B"
    assert diags[0].channel == 3


def test_text_layers_take_no_channel() -> None:
    layers = [Layer(name="Lyrics", kind="text"), Layer(name="Melody")]
    a, diags = allocate(layers)
    assert diags == []
    assert a.channel_of(0) is None
    assert a.channel_of(1) == 0
    assert a.unassigned == []


def test_allocation_is_deterministic() -> None:
    layers = [Layer(name=f"L{i}", drum=(i % 5 == 0), channel=(i if i % 7 == 0 else None)) for i in range(20)]
    a1, d1 = allocate(layers)
    a2, d2 = allocate(layers)
    assert a1 == a2
    assert d1 == d2
