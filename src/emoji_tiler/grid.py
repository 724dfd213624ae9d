"""
Grid partitioning and per-tile frame aggregation.
"""

from __future__ import annotations

from typing import Sequence

from .config import GridShape
from .errors import ConfigError
from .models import RasterFrame

TilePlan = list[list[RasterFrame]]


def partition(frame: RasterFrame, grid: GridShape, cell_size: int) -> list[RasterFrame]:
    """
    Slice a transformed frame into `grid.tile_count` square tiles.

    The frame must already be exactly `cols * cell_size` x `rows * cell_size`.
    Tiles come out row by row, left to right, and each is an independent copy.
    """
    if cell_size <= 0:
        raise ConfigError(f"Tile size must be positive (got {cell_size})")

    expected = grid.canvas_size(cell_size)
    if frame.size != expected:
        raise ConfigError(f"Frame is {frame.size[0]}x{frame.size[1]}, expected {expected[0]}x{expected[1]}")

    tiles: list[RasterFrame] = []
    for col, row in grid.coordinates():
        left = col * cell_size
        upper = row * cell_size
        tiles.append(frame.replace(frame.image.crop((left, upper, left + cell_size, upper + cell_size))))
    return tiles


def aggregate_tiles(
    per_frame_tiles: Sequence[Sequence[RasterFrame]],
    source_frames: Sequence[RasterFrame],
) -> TilePlan:
    """
    Regroup tiles by position: `plan[t][i]` is tile `t` of source frame `i`.

    Delays are copied from the source frame at the same index.
    """
    if len(per_frame_tiles) != len(source_frames):
        raise ValueError(f"Got tiles for {len(per_frame_tiles)} frames but {len(source_frames)} source frames")
    if not per_frame_tiles:
        return []

    tile_count = len(per_frame_tiles[0])
    plan: TilePlan = [[] for _ in range(tile_count)]

    for i, (tiles, source) in enumerate(zip(per_frame_tiles, source_frames)):
        if len(tiles) != tile_count:
            raise ValueError(f"Frame {i} has {len(tiles)} tiles, expected {tile_count}")
        for t, tile in enumerate(tiles):
            plan[t].append(RasterFrame(image=tile.image, delay=source.delay))
    return plan
