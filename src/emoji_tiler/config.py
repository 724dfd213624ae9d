"""
Configuration module for emoji_tiler.
Handles environment variables, paths, grid shapes and filter options.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import BaseModel, Field, field_validator

from .errors import ConfigError

RESIZE_MODES = ("stretch", "cover", "contain")
COLOR_SCOPES = ("local", "global")

# Older option name for the stretch policy.
_RESIZE_ALIASES = {"resize": "stretch"}

_GRID_W_H = re.compile(r"^\s*(\d+)\s*[,xX]\s*(\d+)\s*$")
_GRID_N = re.compile(r"^\s*(\d+)\s*$")


def normalize_resize_mode(value: str) -> str:
    mode = str(value).strip().lower()
    mode = _RESIZE_ALIASES.get(mode, mode)
    if mode not in RESIZE_MODES:
        raise ValueError(f"resize mode must be one of {', '.join(RESIZE_MODES)} (got {value!r})")
    return mode


class GridShape(BaseModel):
    """Grid of square tiles, fixed for a whole run."""
    cols: int = Field(default=1, ge=1, description="Number of tile columns")
    rows: int = Field(default=1, ge=1, description="Number of tile rows")

    @property
    def tile_count(self) -> int:
        return self.cols * self.rows

    def canvas_size(self, cell_size: int) -> tuple[int, int]:
        return self.cols * cell_size, self.rows * cell_size

    def coordinates(self) -> list[tuple[int, int]]:
        """Tile coordinates (col, row) in emission order: row outer, column inner."""
        return [(col, row) for row in range(self.rows) for col in range(self.cols)]

    @classmethod
    def parse(cls, text: str) -> "GridShape":
        """Parse `W,H`, `WxH` or a bare `N` (an N x N grid)."""
        raw = "" if text is None else str(text)
        match = _GRID_W_H.match(raw)
        if match:
            cols, rows = int(match.group(1)), int(match.group(2))
        else:
            match = _GRID_N.match(raw)
            if not match:
                raise ConfigError(f"Invalid dimensions: '{raw}'")
            cols = rows = int(match.group(1))

        if cols < 1 or rows < 1:
            raise ConfigError(f"Invalid dimensions: '{raw}' (both sides must be positive)")
        return cls(cols=cols, rows=rows)


# Filters whose UI value is a percentage that the image operation takes as a fraction.
PERCENT_FILTERS = {"brightness", "contrast", "opacity"}
NO_VALUE_FILTERS = {"invert", "greyscale", "sepia", "normalize", "fade"}
FLIP_DIRECTIONS = {
    "horizontal": (True, False),
    "vertical": (False, True),
    "both": (True, True),
}
FILTER_NAMES = (
    "brightness",
    "contrast",
    "invert",
    "greyscale",
    "sepia",
    "normalize",
    "posterize",
    "flip",
    "rotate",
    "fade",
    "opacity",
)

# UI ranges, in UI units.
UI_RANGES: dict[str, tuple[float, float]] = {
    "brightness": (-100, 100),
    "contrast": (-100, 100),
    "opacity": (0, 100),
    "posterize": (1, 255),
}


def _normalize_filter_name(name: str) -> str:
    name = str(name).strip().lower()
    return "greyscale" if name == "grayscale" else name


class FilterOp(BaseModel):
    """
    One step of a filter chain, with its value in operation units.

    - brightness, contrast: fraction in [-1, 1]
    - opacity: alpha multiplier in [0, 1]
    - rotate: degrees, clockwise
    - posterize: number of levels in [1, 255]
    - flip: 'horizontal', 'vertical' or 'both'
    - invert, greyscale, sepia, normalize, fade: no value
    """
    name: str = Field(description="Filter name")
    value: Optional[Union[int, float, str]] = Field(default=None, description="Parameter in operation units")

    @field_validator("name")
    @classmethod
    def normalize_name(cls, v: str) -> str:
        return _normalize_filter_name(v)

    @classmethod
    def from_ui(cls, name: str, raw: Any = None) -> "FilterOp":
        """
        Build a filter step from UI units (the ranges the command line accepts).

        Percentage filters are divided by 100; posterize levels are kept as-is.
        Unknown filter names are passed through and skipped by the transform.
        """
        op_name = _normalize_filter_name(name)

        if op_name in NO_VALUE_FILTERS:
            return cls(name=op_name)

        if op_name == "flip":
            return cls(name=op_name, value=None if raw is None else str(raw).strip().lower())

        if op_name in PERCENT_FILTERS or op_name in ("posterize", "rotate"):
            if raw is None or raw == "":
                raise ConfigError(f"Filter '{op_name}' needs a value")
            try:
                number = float(raw)
            except (TypeError, ValueError) as e:
                raise ConfigError(f"Filter '{op_name}' value must be a number (got {raw!r})") from e

            bounds = UI_RANGES.get(op_name)
            if bounds and not bounds[0] <= number <= bounds[1]:
                raise ConfigError(f"Number must be between {bounds[0]:g} and {bounds[1]:g} (filter '{op_name}')")

            if op_name in PERCENT_FILTERS:
                return cls(name=op_name, value=number / 100)
            if op_name == "posterize":
                return cls(name=op_name, value=int(number))
            return cls(name=op_name, value=number)

        return cls(name=op_name, value=raw)


def parse_filter_arg(text: str) -> FilterOp:
    """Parse a `NAME` or `NAME=VALUE` command line filter."""
    name, sep, value = text.partition("=")
    return FilterOp.from_ui(name, value if sep else None)


class Settings(BaseModel):
    """Application settings from environment variables."""
    out_dir: Path = Field(description="Output root directory")
    data_dir: Path = Field(description="Directory for the history record")
    masks_dir: Path = Field(description="Mask catalog directory")
    tile_size: int = Field(default=64, ge=1, description="Edge length of one grid tile")
    mask_size: int = Field(default=128, ge=1, description="Edge length of one masked output")
    gif_posterize_levels: int = Field(default=15, ge=2, le=255, description="Posterize levels applied to GIF frames")
    gif_color_scope: str = Field(default="local", description="GIF palette scope: 'local' or 'global'")

    @field_validator("gif_color_scope")
    @classmethod
    def check_color_scope(cls, v: str) -> str:
        scope = v.strip().lower()
        if scope not in COLOR_SCOPES:
            raise ValueError(f"gif_color_scope must be one of {', '.join(COLOR_SCOPES)}")
        return scope

    @classmethod
    def from_env(
        cls,
        *,
        out_dir: Optional[Path] = None,
        data_dir: Optional[Path] = None,
        masks_dir: Optional[Path] = None,
    ) -> "Settings":
        """Create settings from environment variables; explicit arguments win."""
        out_dir = out_dir or Path(os.environ.get("OUT_PATH") or "./out")
        data_dir = data_dir or Path(os.environ.get("DATA_PATH") or "./.data")
        masks_dir = masks_dir or Path(os.environ.get("MASKS_PATH") or "./masks")

        return cls(
            out_dir=out_dir.expanduser().resolve(),
            data_dir=data_dir.expanduser().resolve(),
            masks_dir=masks_dir.expanduser().resolve(),
            gif_color_scope=os.environ.get("EMOJI_TILER_COLOR_SCOPE") or "local",
        )

    def ensure_directories(self) -> None:
        """Create output and data directories if they don't exist."""
        for d in [self.out_dir, self.data_dir]:
            d.mkdir(parents=True, exist_ok=True)

    def run_dir(self, name: str) -> Path:
        return self.out_dir / name


# Global settings instance (lazy loaded)
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings
