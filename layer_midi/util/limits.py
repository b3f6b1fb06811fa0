from __future__ import annotations

"""MIDI address-space and file-format limits used across the converter."""

MIDI_CHANNELS = 16
MIDI_DRUM_CHANNEL = 9  # 0-based, i.e. the 10th channel

MIDI_VELOCITY_DEFAULT = 64

MIDI_CONTROLLER_VOLUME = 7
MIDI_CONTROLLER_PAN = 10

MIDI_VOLUME_DEFAULT = 100
MIDI_PAN_CENTER = 64

MIDI_MAX_POLYPHONY = 24

DEFAULT_BPM = 120.0
DEFAULT_PPQ = 1024

# Header fields are 16-bit; mido packs them signed.
MAX_RESOLUTION = 0x7FFF
MAX_TRACKS_IN_FILE = 0x7FFF

# Variable-length quantities carry at most 28 bits.
MAX_DELTA_TICKS = 0x0FFFFFFF

# set_tempo payload is 24 bits.
MAX_TEMPO_US = 0xFFFFFF
