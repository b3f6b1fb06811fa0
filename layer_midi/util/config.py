from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from layer_midi.util.limits import DEFAULT_BPM, DEFAULT_PPQ, MIDI_MAX_POLYPHONY


def default_config_dir() -> Path:
    return Path.home() / ".config" / "layer-midi"


def default_config_path() -> Path:
    return default_config_dir() / "config.json"


@dataclass
class AppConfig:
    bpm: float = DEFAULT_BPM
    ppq: int = DEFAULT_PPQ
    max_polyphony: int = MIDI_MAX_POLYPHONY
    trim_leading_silence: bool = False
    workers: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "bpm": self.bpm,
            "ppq": self.ppq,
            "max_polyphony": self.max_polyphony,
            "trim_leading_silence": self.trim_leading_silence,
            "workers": self.workers,
        }

    @staticmethod
    def from_dict(d: dict[str, Any]) -> "AppConfig":
        return AppConfig(
            bpm=float(d.get("bpm", DEFAULT_BPM) or DEFAULT_BPM),
            ppq=int(d.get("ppq", DEFAULT_PPQ) or DEFAULT_PPQ),
            max_polyphony=int(d.get("max_polyphony", MIDI_MAX_POLYPHONY) or MIDI_MAX_POLYPHONY),
            trim_leading_silence=bool(d.get("trim_leading_silence", False)),
            workers=max(1, int(d.get("workers", 1) or 1)),
        )


def load_config(path: Path | None = None) -> AppConfig:
    p = path or default_config_path()
    if not p.exists():
        return AppConfig()
    data = json.loads(p.read_text(encoding="utf-8"))
    return AppConfig.from_dict(data)


def save_config(cfg: AppConfig, path: Path | None = None) -> Path:
    p = path or default_config_path()
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(cfg.to_dict(), indent=2, sort_keys=True) + "\n", encoding="utf-8")
    return p
