"""Layer-to-track translation engine.

Stages, in pipeline order:
- channels: allocate layers onto the 16 MIDI channels
- normalize: clean each layer's notes (collapse, overlap, polyphony, text)
- quantize/tracks: seconds -> ticks through the tempo map, assemble tracks
- trim: optional removal of leading silence
- serialize: Standard MIDI File bytes (via mido)
"""

from .channels import ChannelAssignment, allocate
from .normalize import NormalizedLayer, normalize
from .pipeline import ConversionResult, convert
from .quantize import TickQuantizer, quantize
from .serialize import MidiHeader, serialize
from .tracks import build
from .trim import trim

__all__ = [
    "ChannelAssignment",
    "ConversionResult",
    "MidiHeader",
    "NormalizedLayer",
    "TickQuantizer",
    "allocate",
    "build",
    "convert",
    "normalize",
    "quantize",
    "serialize",
    "trim",
]
