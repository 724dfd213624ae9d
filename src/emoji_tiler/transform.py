"""
Transform pipeline: resize, filter chain, mask overlay and the GIF posterize step.

Every function takes an RGBA frame and returns a new one; inputs are never modified.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence

from PIL import Image, ImageChops, ImageOps

from .config import FLIP_DIRECTIONS, FilterOp, normalize_resize_mode
from .errors import ConfigError
from .models import MaskEntry, RasterFrame

logger = logging.getLogger(__name__)

RESAMPLE = Image.Resampling.BILINEAR

# Rec. 709 luma weights.
GREYSCALE_MATRIX = (0.2126, 0.7152, 0.0722, 0)
SEPIA_MATRIX = (
    0.393, 0.769, 0.189, 0,
    0.349, 0.686, 0.168, 0,
    0.272, 0.534, 0.131, 0,
)
FADE_AMOUNT = 0.5


def validate_target(width: int, height: int) -> None:
    if width <= 0 or height <= 0:
        raise ConfigError(f"Resize target must be positive (got {width}x{height})")


def _rgba(image: Image.Image) -> Image.Image:
    return image if image.mode == "RGBA" else image.convert("RGBA")


def resize(image: Image.Image, mode: str, width: int, height: int) -> Image.Image:
    """Map `image` onto an exact `width` x `height` box using one of the resize policies."""
    validate_target(width, height)
    mode = normalize_resize_mode(mode)
    image = _rgba(image)
    size = (width, height)

    if mode == "stretch":
        return image.resize(size, resample=RESAMPLE)
    if mode == "cover":
        return ImageOps.fit(image, size, method=RESAMPLE, centering=(0.5, 0.5))
    return ImageOps.pad(image, size, method=RESAMPLE, color=(0, 0, 0, 0), centering=(0.5, 0.5))


def _map_rgb(image: Image.Image, fn: Callable[[int], float]) -> Image.Image:
    """Apply a per-channel lookup to R, G and B; alpha is kept."""
    lut = [max(0, min(255, int(fn(c)))) for c in range(256)]
    r, g, b, a = _rgba(image).split()
    return Image.merge("RGBA", (r.point(lut), g.point(lut), b.point(lut), a))


def _with_rgb(image: Image.Image, rgb: Image.Image) -> Image.Image:
    image = _rgba(image)
    result = rgb.convert("RGB").convert("RGBA")
    result.putalpha(image.getchannel("A"))
    return result


def brightness(image: Image.Image, value: float) -> Image.Image:
    """`value` in [-1, 1]: darken towards black or lighten towards white."""
    value = max(-1.0, min(1.0, float(value)))
    if value < 0:
        return _map_rgb(image, lambda c: c * (1 + value))
    return _map_rgb(image, lambda c: c + (255 - c) * value)


def contrast(image: Image.Image, value: float) -> Image.Image:
    """`value` in [-1, 1]; 1 is a hard threshold at mid grey."""
    value = max(-1.0, min(1.0, float(value)))
    if value >= 1:
        return _map_rgb(image, lambda c: 255 if c > 127 else 0)
    factor = (value + 1) / (1 - value)
    return _map_rgb(image, lambda c: factor * (c - 127) + 127)


def opacity(image: Image.Image, value: float) -> Image.Image:
    value = max(0.0, min(1.0, float(value)))
    result = _rgba(image).copy()
    result.putalpha(result.getchannel("A").point(lambda a: int(a * value)))
    return result


def posterize(image: Image.Image, levels: int) -> Image.Image:
    levels = max(2, int(levels))
    step = levels - 1
    return _map_rgb(image, lambda c: round(int(c / 255 * step) / step * 255))


def invert(image: Image.Image) -> Image.Image:
    return _map_rgb(image, lambda c: 255 - c)


def greyscale(image: Image.Image) -> Image.Image:
    return _with_rgb(image, _rgba(image).convert("RGB").convert("L", GREYSCALE_MATRIX))


def sepia(image: Image.Image) -> Image.Image:
    return _with_rgb(image, _rgba(image).convert("RGB").convert("RGB", SEPIA_MATRIX))


def normalize(image: Image.Image) -> Image.Image:
    """Stretch each color channel to the full 0-255 range."""
    return _with_rgb(image, ImageOps.autocontrast(_rgba(image).convert("RGB")))


def fade(image: Image.Image) -> Image.Image:
    return opacity(image, 1 - FADE_AMOUNT)


def rotate(image: Image.Image, degrees: float) -> Image.Image:
    """Rotate clockwise around the center, keeping the canvas size."""
    return _rgba(image).rotate(-float(degrees), resample=RESAMPLE, expand=False, fillcolor=(0, 0, 0, 0))


def flip(image: Image.Image, direction: Optional[str]) -> Image.Image:
    flip_x, flip_y = FLIP_DIRECTIONS.get(str(direction or "").lower(), (False, False))
    result = _rgba(image)
    if flip_x:
        result = ImageOps.mirror(result)
    if flip_y:
        result = ImageOps.flip(result)
    return result if (flip_x or flip_y) else result.copy()


def apply_filter(image: Image.Image, op: FilterOp) -> Image.Image:
    name = op.name
    if name == "brightness":
        return brightness(image, op.value)
    elif name == "contrast":
        return contrast(image, op.value)
    elif name == "opacity":
        return opacity(image, op.value)
    elif name == "rotate":
        return rotate(image, op.value)
    elif name == "posterize":
        return posterize(image, op.value)
    elif name == "flip":
        return flip(image, op.value)
    elif name == "invert":
        return invert(image)
    elif name == "greyscale":
        return greyscale(image)
    elif name == "sepia":
        return sepia(image)
    elif name == "normalize":
        return normalize(image)
    elif name == "fade":
        return fade(image)

    logger.warning("Ignoring unknown filter: %s", name)
    return image


def apply_filters(image: Image.Image, filters: Sequence[FilterOp]) -> Image.Image:
    """Apply `filters` left to right."""
    for op in filters:
        image = apply_filter(image, op)
    return image


def apply_mask(image: Image.Image, mask: Image.Image) -> Image.Image:
    """
    Multiply the frame's alpha by the mask's coverage at origin (0, 0).

    Coverage is the mean of the mask's R, G and B times its own alpha, so white
    opaque mask pixels keep the frame and black or transparent ones cut it out.
    """
    image = _rgba(image)
    mask = _rgba(mask)
    if mask.size != image.size:
        full = Image.new("RGBA", image.size, (0, 0, 0, 0))
        full.paste(mask.crop((0, 0, *image.size)), (0, 0))
        mask = full

    luminance = mask.convert("RGB").convert("L", (1 / 3, 1 / 3, 1 / 3, 0))
    coverage = ImageChops.multiply(luminance, mask.getchannel("A"))

    result = image.copy()
    result.putalpha(ImageChops.multiply(image.getchannel("A"), coverage))
    return result


def transform(
    frame: RasterFrame,
    resize_mode: str,
    width: int,
    height: int,
    filters: Sequence[FilterOp] = (),
    *,
    mask: Optional[MaskEntry] = None,
    gif_output: bool = False,
    gif_posterize_levels: int = 15,
) -> RasterFrame:
    """Resize, filter, mask and (for GIF output) posterize one frame."""
    image = resize(frame.image, resize_mode, width, height)
    image = apply_filters(image, filters)

    if mask is not None:
        image = apply_mask(image, resize(mask.image, resize_mode, width, height))

    # GIF palettes band badly on unreduced RGBA.
    if gif_output:
        image = posterize(image, gif_posterize_levels)

    return frame.replace(image)
