"""
Run orchestration: source -> transform -> partition or mask -> aggregate -> encode.

Frame work is synchronous; only fetch, decode and encode suspend. Every encode is
awaited before a run is reported complete.
"""

from __future__ import annotations

import asyncio
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence

import httpx

from .config import Settings, get_settings
from .encoder import clear_output_dir, encode_async
from .errors import EncodeError
from .grid import TilePlan, aggregate_tiles, partition
from .masks import load_mask_catalog
from .models import MaskEntry, OutputDescriptor, RasterFrame, RunReport, RunSpec, TileResult
from .source import load_frames, normalize_locator, source_extension, source_kind, validate_locator
from .transform import transform, validate_target

logger = logging.getLogger(__name__)

DEFAULT_NAME = "emoji"


def default_run_name(locator: str) -> str:
    """Name derived from the source file name, e.g. `party parrot.gif` -> `party-parrot`."""
    filename = normalize_locator(locator).split("/")[-1]
    stem = filename.split(".")[0].replace(" ", "-")
    return re.sub(r"[^a-zA-Z0-9-]", "", stem) or DEFAULT_NAME


def build_grid_plan(frames: Sequence[RasterFrame], spec: RunSpec, settings: Settings, *, gif_output: bool) -> TilePlan:
    width, height = spec.grid.canvas_size(settings.tile_size)
    per_frame_tiles = []
    for frame in frames:
        processed = transform(
            frame,
            spec.resize_mode,
            width,
            height,
            spec.filters,
            gif_output=gif_output,
            gif_posterize_levels=settings.gif_posterize_levels,
        )
        per_frame_tiles.append(partition(processed, spec.grid, settings.tile_size))
    return aggregate_tiles(per_frame_tiles, frames)


def build_mask_sequence(
    frames: Sequence[RasterFrame],
    mask: MaskEntry,
    spec: RunSpec,
    settings: Settings,
    *,
    gif_output: bool,
) -> list[RasterFrame]:
    size = settings.mask_size
    return [
        transform(
            frame,
            spec.resize_mode,
            size,
            size,
            spec.filters,
            mask=mask,
            gif_output=gif_output,
            gif_posterize_levels=settings.gif_posterize_levels,
        )
        for frame in frames
    ]


async def _write_output(
    label: str,
    frames: list[RasterFrame],
    output_path: Path,
    *,
    animated: bool,
    color_scope: str,
) -> TileResult:
    try:
        await encode_async(frames, output_path, animated=animated, color_scope=color_scope)
    except EncodeError as e:
        logger.exception("Encoding %s failed", output_path.name)
        return TileResult(
            success=False,
            label=label,
            output_path=output_path,
            frame_count=len(frames),
            error_code=e.error_code,
            error_message=str(e),
        )
    return TileResult(success=True, label=label, output_path=output_path, frame_count=len(frames))


async def run(
    spec: RunSpec,
    settings: Optional[Settings] = None,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> RunReport:
    """
    Execute one run and write every output under `settings.out_dir / spec.name`.

    ConfigError, FetchError and DecodeError abort the run. EncodeError is recorded
    per output in the returned report and never stops sibling outputs.
    """
    settings = settings or get_settings()
    locator = validate_locator(normalize_locator(spec.source))

    animated = source_kind(locator) == "animated"
    extension = "gif" if animated else source_extension(locator)

    catalog: list[MaskEntry] = []
    if spec.use_masks:
        validate_target(settings.mask_size, settings.mask_size)
        catalog = load_mask_catalog(settings.masks_dir)
    else:
        validate_target(*spec.grid.canvas_size(settings.tile_size))

    output_dir = clear_output_dir(settings.run_dir(spec.name))
    report = RunReport(
        name=spec.name,
        source=locator,
        output_dir=output_dir,
        mode="masks" if spec.use_masks else "grid",
    )

    frames = await load_frames(locator, client=client)
    report.source_frames = len(frames)

    jobs: list[tuple[str, list[RasterFrame], Path]] = []
    if spec.use_masks:
        for mask in catalog:
            sequence = build_mask_sequence(frames, mask, spec, settings, gif_output=animated)
            descriptor = OutputDescriptor(base_name=spec.name, suffix=mask.name, extension=extension)
            jobs.append((mask.name, sequence, output_dir / descriptor.filename))
    else:
        plan = build_grid_plan(frames, spec, settings, gif_output=animated)
        for index, sequence in enumerate(plan):
            descriptor = OutputDescriptor.for_tile(spec.name, index, len(plan), extension)
            jobs.append((descriptor.suffix or spec.name, sequence, output_dir / descriptor.filename))

    outcomes = await asyncio.gather(
        *(
            _write_output(label, sequence, path, animated=animated, color_scope=settings.gif_color_scope)
            for label, sequence, path in jobs
        ),
        return_exceptions=True,
    )

    unexpected: list[BaseException] = []
    for outcome in outcomes:
        if isinstance(outcome, BaseException):
            unexpected.append(outcome)
        else:
            report.add_result(outcome)

    report.completed_at = datetime.now()
    if unexpected:
        raise unexpected[0]

    logger.info(
        "Run %s finished: %d output(s), %d written, %d failed",
        spec.name,
        report.total,
        report.written,
        report.failed,
    )
    return report
