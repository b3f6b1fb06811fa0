"""layer-midi: convert annotation layer projects into Multi-Track MIDI files.

The conversion entry point is ``layer_midi.convert.convert``.
"""

from .errors import ConversionError, ProjectError, SerializationError
from .model.diagnostics import Diagnostic, DiagnosticKind, DiagnosticsCollector
from .model.types import Layer, NoteEvent, Project, TempoChange

__version__ = "0.1.0"

__all__ = [
    "ConversionError",
    "Diagnostic",
    "DiagnosticKind",
    "DiagnosticsCollector",
    "Layer",
    "NoteEvent",
    "Project",
    "ProjectError",
    "SerializationError",
    "TempoChange",
]
