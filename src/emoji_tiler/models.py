"""
Data models for frames, run specifications and reports.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from PIL import Image
from pydantic import BaseModel, Field, field_validator

from .config import FilterOp, GridShape, normalize_resize_mode
from .errors import ConfigError, DecodeError, EncodeError, FetchError, TilerError

__all__ = [
    "ConfigError",
    "DecodeError",
    "EncodeError",
    "FetchError",
    "MaskEntry",
    "OutputDescriptor",
    "RasterFrame",
    "RunReport",
    "RunSpec",
    "TileResult",
    "TilerError",
]


@dataclass(frozen=True)
class RasterFrame:
    """One RGBA frame. `delay` (centiseconds) is only set for animation frames."""

    image: Image.Image
    delay: Optional[int] = None

    @property
    def size(self) -> tuple[int, int]:
        return self.image.size

    def replace(self, image: Image.Image) -> "RasterFrame":
        """New frame with the same timing and different pixels."""
        return RasterFrame(image=image, delay=self.delay)


@dataclass(frozen=True)
class MaskEntry:
    """A named mask from the catalog."""

    name: str
    path: Path
    image: Image.Image


class OutputDescriptor(BaseModel):
    """Decides the file name of one output."""

    base_name: str = Field(description="Run name")
    suffix: Optional[str] = Field(default=None, description="Tile number or mask name; omitted for a single tile")
    extension: str = Field(description="File extension without the dot")

    @field_validator("extension")
    @classmethod
    def strip_dot(cls, v: str) -> str:
        return v.lstrip(".")

    @property
    def filename(self) -> str:
        stem = self.base_name if self.suffix is None else f"{self.base_name}-{self.suffix}"
        return f"{stem}.{self.extension}"

    @classmethod
    def for_tile(cls, base_name: str, index: int, tile_count: int, extension: str) -> "OutputDescriptor":
        """Tiles are numbered from 1 in row-major order; a single tile gets no suffix."""
        suffix = str(index + 1) if tile_count > 1 else None
        return cls(base_name=base_name, suffix=suffix, extension=extension)


class RunSpec(BaseModel):
    """Complete specification of one tiling run."""

    source: str = Field(description="Local path or http(s) URL of the source image")
    name: str = Field(description="Run name (output folder and file prefix)")
    grid: GridShape = Field(default_factory=GridShape, description="Grid shape (ignored in mask mode)")
    resize_mode: str = Field(default="stretch", description="Resize mode: 'stretch', 'cover' or 'contain'")
    filters: list[FilterOp] = Field(default_factory=list, description="Filter chain, applied in order")
    use_masks: bool = Field(default=False, description="Overlay each catalog mask instead of tiling")

    @field_validator("resize_mode")
    @classmethod
    def check_resize_mode(cls, v: str) -> str:
        return normalize_resize_mode(v)

    @field_validator("name")
    @classmethod
    def check_name(cls, v: str) -> str:
        name = v.strip()
        if not name or name in (".", "..") or "/" in name or "\\" in name:
            raise ValueError(f"name must be a plain file name (got {v!r})")
        return name


class TileResult(BaseModel):
    """Result of writing one tile or masked output."""

    success: bool = Field(description="Whether the file was written")
    label: str = Field(description="Tile number or mask name")
    output_path: Path = Field(description="Target file path")
    frame_count: int = Field(default=0, description="Frames in the output")

    error_code: Optional[str] = Field(default=None, description="Error code if failed")
    error_message: Optional[str] = Field(default=None, description="Error message if failed")


class RunReport(BaseModel):
    """Report for one run."""

    name: str = Field(description="Run name")
    source: str = Field(description="Source locator")
    output_dir: Path = Field(description="Directory the outputs were written to")
    mode: str = Field(default="grid", description="'grid' or 'masks'")
    source_frames: int = Field(default=0, description="Frames decoded from the source")

    total: int = Field(default=0, description="Outputs attempted")
    written: int = Field(default=0, description="Outputs written")
    failed: int = Field(default=0, description="Outputs that failed")
    results: list[TileResult] = Field(default_factory=list, description="Individual results")

    started_at: datetime = Field(default_factory=datetime.now, description="Run start time")
    completed_at: Optional[datetime] = Field(default=None, description="Run completion time")

    @property
    def ok(self) -> bool:
        return self.failed == 0

    @property
    def errors(self) -> list[TileResult]:
        return [r for r in self.results if not r.success]

    def add_result(self, result: TileResult) -> None:
        """Add a result to the run report."""
        self.results.append(result)
        self.total += 1
        if result.success:
            self.written += 1
        else:
            self.failed += 1
