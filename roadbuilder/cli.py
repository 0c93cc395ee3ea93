"""Command line interface for saved road maps."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Iterable

from .config import EditorSettings
from .editor import Editor
from .persistence import ParseError, read_canvas_file, stores_from_state, write_canvas_file

logger = logging.getLogger(__name__)


def _settings(args: argparse.Namespace) -> EditorSettings:
    settings = EditorSettings.from_json_file(args.config) if args.config else EditorSettings()
    if args.meters_per_pixel is not None:
        settings = settings.with_changes(meters_per_pixel=args.meters_per_pixel)
    return settings


def _cmd_summary(args: argparse.Namespace) -> int:
    editor = Editor(_settings(args))
    editor.load_file(Path(args.file))
    totals = editor.totals()
    print(f"{args.file}")
    print(f"  nodes:    {totals.node_count}")
    print(f"  roads:    {totals.road_count} ({totals.total_length_m:.2f} m)")
    print(f"  polygons: {totals.polygon_count} ({totals.total_area_m2:.2f} m²)")
    print(f"  images:   {len(editor.backgrounds.images)}")
    return 0


def _cmd_check(args: argparse.Namespace) -> int:
    topology, _, _, _ = stores_from_state(read_canvas_file(Path(args.file)))
    problems = topology.check_integrity()
    if not problems:
        print(f"{args.file}: OK ({len(topology.nodes)} nodes, {len(topology.roads)} roads)")
        return 0
    print(f"{args.file}: {len(problems)} problem(s)")
    for problem in problems:
        print(f"  - {problem}")
    return 1


def _cmd_sanitize(args: argparse.Namespace) -> int:
    state = read_canvas_file(Path(args.input))
    stripped = sum(1 for image in state.background_images if image.src and not image.src.startswith("data:"))
    out_path = Path(args.output)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    write_canvas_file(out_path, state)
    print(f"Wrote {out_path} | stripped {stripped} external image source(s)")
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="roadbuilder", description="Inspect and clean saved road maps")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--config", help="JSON file with editor settings overrides")
    parser.add_argument(
        "--meters-per-pixel", dest="meters_per_pixel", type=float, help="Map scale used for lengths and areas"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    summary = sub.add_parser("summary", help="Print entity counts, total road length and polygon area")
    summary.add_argument("file", help="Saved canvas state (JSON)")
    summary.set_defaults(func=_cmd_summary)

    check = sub.add_parser("check", help="Verify node/road references; exit 1 on problems")
    check.add_argument("file", help="Saved canvas state (JSON)")
    check.set_defaults(func=_cmd_check)

    sanitize = sub.add_parser("sanitize", help="Re-save a map with external image sources removed")
    sanitize.add_argument("input", help="Saved canvas state (JSON)")
    sanitize.add_argument("output", help="Output path")
    sanitize.set_defaults(func=_cmd_sanitize)

    return parser


def main(argv: Iterable[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(None if argv is None else list(argv))
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return args.func(args)
    except (ParseError, OSError, ValueError) as exc:
        logger.debug("command failed", exc_info=True)
        print(f"roadbuilder: error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
