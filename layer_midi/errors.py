from __future__ import annotations


class ConversionError(Exception):
    """Fatal conversion failure; no output is produced."""


class ProjectError(ConversionError, ValueError):
    """The input project is malformed."""


class SerializationError(ConversionError, RuntimeError):
    """The track streams cannot be encoded as a Standard MIDI File."""
