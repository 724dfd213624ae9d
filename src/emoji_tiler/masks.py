"""
Mask catalog: named alpha masks read once per run from a directory.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from .errors import ConfigError, DecodeError
from .models import MaskEntry

logger = logging.getLogger(__name__)

# Mask files are named by their position in this table, starting at 1 (e.g. `1.png` is "A").
MASK_ALPHABET = (
    "A", "B", "C", "D", "E", "F", "G", "H", "I", "J", "K", "L", "M",
    "N", "O", "P", "Q", "R", "S", "T", "U", "V", "W", "X", "Y", "Z",
    "exclamation", "question", "period", "comma",
    "0", "1", "2", "3", "4", "5", "6", "7", "8", "9",
    "open-parenthesis", "close-parenthesis", "open-bracket", "close-bracket",
    "colon", "semi-colon", "equals", "quote", "apostrophe", "underscore",
    "plus", "minus", "asterisk", "slash", "pipe", "less-than", "greater-than",
    "at-sign", "hash", "dollar-sign", "modulo", "caret", "ampersand",
)


def _prefix(filename: str) -> str:
    return filename.split(".", 1)[0]


def mask_name(filename: str) -> str:
    """Symbol name for a mask file; falls back to the raw prefix when it isn't a table index."""
    prefix = _prefix(filename)
    try:
        index = int(prefix)
    except ValueError:
        return prefix
    if 1 <= index <= len(MASK_ALPHABET):
        return MASK_ALPHABET[index - 1]
    return prefix


def _sort_key(filename: str) -> tuple[int, int, str]:
    prefix = _prefix(filename)
    if prefix.isdigit():
        return (0, int(prefix), filename)
    return (1, 0, filename)


def list_mask_files(directory: Path) -> list[Path]:
    """Non-hidden files in `directory`, by numeric prefix then name."""
    if not directory.is_dir():
        raise ConfigError(f"Mask directory not found: {directory}", path=directory)

    names: list[str] = []
    with os.scandir(directory) as it:
        for entry in it:
            if entry.name.startswith("."):
                continue
            if not entry.is_file():
                continue
            names.append(entry.name)

    return [directory / name for name in sorted(names, key=_sort_key)]


def load_mask_catalog(directory: Path) -> list[MaskEntry]:
    """
    Read every mask once; the catalog is not modified during a run.

    Two files that map to the same name (`1.png` and `01.png`, or `1.png` and
    `1.jpg`) would write to the same output path, so they are rejected.
    """
    catalog: list[MaskEntry] = []
    seen: dict[str, Path] = {}
    for path in list_mask_files(directory):
        name = mask_name(path.name)
        if name in seen:
            raise ConfigError(
                f"Masks {seen[name].name} and {path.name} both map to name {name!r}",
                path=path,
            )
        seen[name] = path
        try:
            with Image.open(path) as img:
                image = img.convert("RGBA")
        except (UnidentifiedImageError, OSError) as e:
            raise DecodeError(f"Cannot decode mask {path.name}: {e}", path=path) from e
        catalog.append(MaskEntry(name=name, path=path, image=image))

    logger.info("Loaded %d mask(s) from %s", len(catalog), directory)
    return catalog
