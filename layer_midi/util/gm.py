from __future__ import annotations

# Minimal General MIDI program map (0-127). Program numbers are **0-based** to match program_change.
GM_PROGRAMS: dict[str, int] = {
    "piano": 0,
    "acoustic_grand_piano": 0,
    "bright_piano": 1,
    "electric_piano": 4,
    "harpsichord": 6,
    "vibraphone": 11,
    "marimba": 12,
    "organ": 16,
    "guitar": 24,
    "bass": 32,
    "violin": 40,
    "strings": 48,
    "choir": 52,
    "trumpet": 56,
    "sax": 64,
    "flute": 73,
    "lead": 80,
    "synth_lead": 80,
    "pad": 88,
}

# Sonic Visualiser play-parameter clip ids -> GM program.
SV_CLIP_PROGRAMS: dict[str, int] = {
    "piano": 0,
    "elecpiano": 5,
    "organ": 17,
    "beep": 80,
}

# Sonic Visualiser percussion clip ids -> GM drum key (channel 10).
SV_CLIP_DRUM_NOTES: dict[str, int] = {
    "bass": 35,
    "bounce": 27,
    "clap": 39,
    "click": 33,
    "cowbell": 56,
    "hihat": 42,
    "kick": 41,
    "silent": 0,
    "snare": 38,
    "stick": 30,
    "strike": 49,
    "tap": 32,
}


def clip_program(clip_id: str | None) -> int:
    return SV_CLIP_PROGRAMS.get((clip_id or "").strip().lower(), 0)


def clip_drum_note(clip_id: str | None) -> int:
    return SV_CLIP_DRUM_NOTES.get((clip_id or "").strip().lower(), 0)


def parse_program(token: str | int) -> int:
    """Parse a MIDI program token.

    Accepts:
      - integer 0-127 (0-based)
      - integer 1-128 (1-based; will be converted)
      - GM name key from GM_PROGRAMS (case-insensitive)
    """

    if isinstance(token, int):
        n = token
    else:
        t = token.strip().lower().replace(" ", "_")
        if t in GM_PROGRAMS:
            return GM_PROGRAMS[t]
        n = int(t)
    if 0 <= n <= 127:
        return n
    if 1 <= n <= 128:
        return n - 1
    raise ValueError("program must be 0-127 (or 1-128), or a GM name")
