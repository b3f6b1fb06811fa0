from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from layer_midi.errors import ConversionError
from layer_midi.model.diagnostics import Diagnostic
from layer_midi.model.types import Project
from layer_midi.util.config import AppConfig, default_config_path, load_config


def _positive_float(s: str) -> float:
    v = float(s)
    if not v > 0:
        raise argparse.ArgumentTypeError(f"must be > 0, got {s}")
    return v


def _positive_int(s: str) -> int:
    v = int(s)
    if v <= 0:
        raise argparse.ArgumentTypeError(f"must be > 0, got {s}")
    return v


def load_input(path: str | Path, cfg: AppConfig, *, bpm: float | None = None, ppq: int | None = None) -> Project:
    """Load a project by extension: ``.sv`` (Sonic Visualiser) or ``.json``/``.yaml``."""
    p = Path(path).expanduser()
    if not p.exists():
        raise SystemExit(f"ERROR: input not found: {p}")

    if p.suffix.lower() == ".sv":
        from layer_midi.io.sv_project import load_sv_project

        return load_sv_project(p, bpm=bpm or cfg.bpm, resolution=ppq or cfg.ppq)

    from layer_midi.io.project_json import load_project
    from layer_midi.model.types import constant_tempo

    project = load_project(p)
    if ppq is not None:
        project.resolution = ppq
    if bpm is not None:
        project.tempo_map = constant_tempo(bpm)
    return project


def print_diagnostics(diagnostics: list[Diagnostic]) -> None:
    for d in diagnostics:
        print(f"warning: {d.message}", file=sys.stderr)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="layer-midi",
        add_help=True,
        formatter_class=argparse.RawTextHelpFormatter,
        description="layer-midi: a less broken MIDI exporter for annotation layer projects\n",
    )
    p.add_argument("--version", action="store_true", help="Print version and exit.")
    p.add_argument("--config", default=None, help=f"Config file (default: {default_config_path()})")
    p.add_argument("--log-level", default="WARNING", help="Logging level (DEBUG, INFO, WARNING, ...)")

    sub = p.add_subparsers(dest="cmd")

    conv = sub.add_parser("convert", help="Convert a project into a Multi-Track MIDI file.")
    conv.add_argument("input", help="Input project (.sv, .json, .yaml)")
    conv.add_argument("output", help="Converted MIDI file path")
    conv.add_argument("-t", "--bpm", type=_positive_float, default=None, help="Fixed MIDI tempo used for exporting")
    conv.add_argument("-x", "--ppq", type=_positive_int, default=None, help="Number of MIDI ticks per beat")
    conv.add_argument(
        "-s", "--trim-leading-silence", action="store_true", default=None, help="Trim the leading silence before the first note"
    )
    conv.add_argument("--max-polyphony", type=_positive_int, default=None, help="Polyphony warning threshold per channel")
    conv.add_argument("--workers", type=_positive_int, default=None, help="Normalize layers on N threads")
    conv.add_argument("--strict", action="store_true", help="Exit with status 2 when any warning was produced")

    insp = sub.add_parser("inspect", help="Show layers, channel plan and warnings without writing.")
    insp.add_argument("input", help="Input project (.sv, .json, .yaml)")
    insp.add_argument("-t", "--bpm", type=_positive_float, default=None)
    insp.add_argument("-x", "--ppq", type=_positive_int, default=None)

    sub.add_parser("paths", help="Print paths used by layer-midi.")
    return p


def main(argv: list[str] | None = None) -> None:
    argv = list(sys.argv[1:] if argv is None else argv)

    parser = build_parser()
    args = parser.parse_args(argv)

    if not logging.getLogger().handlers:
        level = getattr(logging, str(args.log_level).upper(), logging.WARNING)
        logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    if getattr(args, "version", False):
        try:
            from importlib.metadata import PackageNotFoundError, version

            v = version("layer-midi")
        except PackageNotFoundError:
            v = "0.0.0"
        print(f"layer-midi {v}")
        return

    cfg = load_config(Path(args.config).expanduser() if args.config else None)

    if args.cmd == "convert":
        from layer_midi.io.midi import export_midi

        try:
            project = load_input(args.input, cfg, bpm=args.bpm, ppq=args.ppq)
            res = export_midi(
                project,
                args.output,
                max_polyphony=args.max_polyphony or cfg.max_polyphony,
                trim_leading_silence=(
                    cfg.trim_leading_silence if args.trim_leading_silence is None else args.trim_leading_silence
                ),
                workers=args.workers or cfg.workers,
            )
        except ConversionError as e:
            raise SystemExit(f"ERROR: {e}")

        print_diagnostics(res.diagnostics)
        print(f"wrote {res.path} ({res.tracks} tracks, {res.ticks_per_beat} ticks per beat)")
        if args.strict and res.diagnostics:
            raise SystemExit(2)
        return

    if args.cmd == "inspect":
        from layer_midi.convert.pipeline import convert

        try:
            project = load_input(args.input, cfg, bpm=args.bpm, ppq=args.ppq)
            res = convert(project, max_polyphony=cfg.max_polyphony)
        except ConversionError as e:
            raise SystemExit(f"ERROR: {e}")

        print(f"project: {project.name} ({project.resolution} ticks per beat)")
        for idx, layer in enumerate(project.layers):
            ch = res.assignment.channel_of(idx)
            where = "conductor" if layer.kind == "text" else ("dropped" if ch is None else f"channel {ch + 1}")
            flags = "".join([" drum" if layer.drum else "", " muted" if layer.mute else ""])
            print(f"- [{idx}] {layer.name!r} {layer.kind}, {len(layer.events)} events -> {where}{flags}")
        print_diagnostics(res.diagnostics)
        return

    if args.cmd == "paths":
        print(f"config: {default_config_path()}")
        return

    parser.print_help()


if __name__ == "__main__":
    main()
