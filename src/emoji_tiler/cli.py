"""
Command line entry point: tile or mask one image per run.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from .config import RESIZE_MODES, FilterOp, GridShape, Settings, parse_filter_arg
from .errors import TilerError
from .history import HistoryStore
from .models import RunSpec
from .pipeline import default_run_name, run
from .source import normalize_locator, validate_locator

logger = logging.getLogger(__name__)
_logging_configured = False


def setup_logging(level: str = "INFO") -> None:
    global _logging_configured
    if _logging_configured:
        return

    root = logging.getLogger()
    if root.handlers:
        _logging_configured = True
        return

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    _logging_configured = True


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="emoji-tiler",
        description="Split an image or GIF into a grid of square emoji tiles, or cut it with a set of masks.",
    )
    parser.add_argument(
        "source",
        nargs="?",
        help="Image path or url (.png, .jpg, .gif, .bmp). Defaults to the last image used.",
    )
    parser.add_argument("--grid", default="1", help="Grid dimensions: W,H or WxH or N (default: 1).")
    parser.add_argument(
        "--mode",
        default="stretch",
        help=f"Resize mode: {', '.join(RESIZE_MODES)} (default: stretch).",
    )
    parser.add_argument(
        "--filter",
        dest="filters",
        action="append",
        default=[],
        metavar="NAME[=VALUE]",
        help=(
            "Apply a filter; repeat to chain them in order. brightness/contrast take -100..100, "
            "opacity 0..100, posterize 1..255, rotate degrees, flip horizontal|vertical|both."
        ),
    )
    parser.add_argument("--name", help="Output name (default: derived from the image file name).")
    parser.add_argument("--masks", action="store_true", help="Cut the image with every mask instead of tiling.")
    parser.add_argument("--out-dir", type=Path, help="Output directory (default: $OUT_PATH or ./out).")
    parser.add_argument("--data-dir", type=Path, help="History directory (default: $DATA_PATH or ./.data).")
    parser.add_argument("--masks-dir", type=Path, help="Mask directory (default: $MASKS_PATH or ./masks).")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO).")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    settings = Settings.from_env(out_dir=args.out_dir, data_dir=args.data_dir, masks_dir=args.masks_dir)
    history = HistoryStore(settings.data_dir)

    source = normalize_locator(args.source or history.load() or "")
    if not source:
        print("No image specified", file=sys.stderr)
        return 1

    try:
        validate_locator(source)
        grid = GridShape.parse(args.grid)
        filters: list[FilterOp] = [parse_filter_arg(text) for text in args.filters]
        spec = RunSpec(
            source=source,
            name=args.name or default_run_name(source),
            grid=grid,
            resize_mode=args.mode,
            filters=filters,
            use_masks=args.masks,
        )
    except TilerError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    except ValidationError as e:
        print(f"ERROR: invalid options: {e}", file=sys.stderr)
        return 1

    settings.ensure_directories()
    history.save(source)

    try:
        report = asyncio.run(run(spec, settings))
    except TilerError as e:
        logger.error("Run %s aborted (%s): %s", spec.name, e.error_code, e)
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    for result in report.errors:
        print(f"ERROR: failed to write {result.output_path.name}: {result.error_message}", file=sys.stderr)

    print(f"Outputs: {report.total} | Written: {report.written} | Failed: {report.failed}")
    return 0 if report.ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
