"""
Error types raised by the tiling pipeline.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class TilerError(Exception):
    """Base error carrying a stable error code for reports and tool responses."""

    default_code = "TILER_ERROR"

    def __init__(self, message: str, *, error_code: Optional[str] = None, path: Optional[Path] = None):
        super().__init__(message)
        self.error_code = error_code or self.default_code
        self.path = path


class ConfigError(TilerError):
    """Bad run options (grid shape, target size, locator). Raised before any frame work."""

    default_code = "CONFIG_INVALID"


class FetchError(TilerError):
    """Remote source could not be downloaded."""

    default_code = "FETCH_FAILED"


class DecodeError(TilerError):
    """Source or mask bytes are not a readable image."""

    default_code = "DECODE_FAILED"


class EncodeError(TilerError):
    """A single output could not be written. Sibling outputs are unaffected."""

    default_code = "ENCODE_FAILED"
