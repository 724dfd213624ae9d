"""
Output encoder: writes one tile or mask output as a static image or an animated GIF.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from pathlib import Path
from typing import Sequence

from PIL import GifImagePlugin, Image

from .errors import EncodeError
from .models import RasterFrame

logger = logging.getLogger(__name__)

_FLATTEN_FORMATS = {"jpg", "jpeg"}
# Palette index kept free for transparency in every GIF frame.
_TRANSPARENT_INDEX = 255


def clear_output_dir(path: Path) -> Path:
    """Empty (or create) a run's output directory."""
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def _static_image(frame: RasterFrame, extension: str) -> Image.Image:
    image = frame.image
    if extension.lower() in _FLATTEN_FORMATS and image.mode != "RGB":
        background = Image.new("RGB", image.size, (255, 255, 255))
        background.paste(image, mask=image.getchannel("A"))
        return background
    return image


def _shared_palette(frames: Sequence[RasterFrame]) -> Image.Image:
    """One palette for every frame, built from a strip of all of them."""
    width, height = frames[0].size
    strip = Image.new("RGB", (width * len(frames), height))
    for i, frame in enumerate(frames):
        strip.paste(frame.image.convert("RGB"), (i * width, 0))
    return strip.quantize(colors=_TRANSPARENT_INDEX, method=Image.Quantize.MEDIANCUT)


def _paletted(frame: RasterFrame, palette: Image.Image) -> Image.Image:
    image = frame.image.convert("RGB").quantize(palette=palette, dither=Image.Dither.NONE)
    colors = (image.getpalette() or [])[: _TRANSPARENT_INDEX * 3]
    image.putpalette(colors + [0] * (768 - len(colors)))
    transparent = frame.image.getchannel("A").point(lambda a: 255 if a < 128 else 0)
    image.paste(_TRANSPARENT_INDEX, mask=transparent)
    image.info["transparency"] = _TRANSPARENT_INDEX
    return image


def _gif_frames(frames: Sequence[RasterFrame], color_scope: str) -> list[Image.Image]:
    if color_scope == "global":
        palette = _shared_palette(frames)
        return [_paletted(frame, palette) for frame in frames]
    return [_paletted(frame, _shared_palette([frame])) for frame in frames]


def _write_gif(images: Sequence[Image.Image], durations: Sequence[int], output_path: Path) -> None:
    """
    Write every frame as its own GIF image block with a local colour table.

    `Image.save(save_all=True)` folds a frame identical to its predecessor into
    the previous one, which would give tiles of the same animation different
    frame counts. Writing the blocks here keeps one block per frame.
    """
    header, _ = GifImagePlugin.getheader(images[0], info={"loop": 0, "duration": durations[0]})
    with open(output_path, "wb") as fp:
        for chunk in header:
            fp.write(chunk)
        for image, duration in zip(images, durations):
            for chunk in GifImagePlugin.getdata(
                image,
                duration=duration,
                disposal=2,
                transparency=_TRANSPARENT_INDEX,
                include_color_table=True,
            ):
                fp.write(chunk)
        fp.write(b";")


def encode(
    frames: Sequence[RasterFrame],
    output_path: Path,
    *,
    animated: bool,
    color_scope: str = "local",
) -> Path:
    """
    Write `frames` to `output_path`.

    Static outputs take the single frame and the file's extension. Animated outputs
    are always GIF; frame k is shown for `frames[k].delay` centiseconds.
    """
    if not frames:
        raise EncodeError(f"No frames to write for {output_path.name}", path=output_path)

    try:
        if not animated:
            if len(frames) != 1:
                raise EncodeError(
                    f"Static output {output_path.name} needs exactly one frame (got {len(frames)})",
                    path=output_path,
                )
            _static_image(frames[0], output_path.suffix.lstrip(".")).save(output_path)
        else:
            images = _gif_frames(frames, color_scope)
            durations = [(frame.delay or 0) * 10 for frame in frames]
            _write_gif(images, durations, output_path)
    except EncodeError:
        raise
    except (OSError, ValueError, KeyError) as e:
        raise EncodeError(f"Failed to write {output_path.name}: {e}", path=output_path) from e

    logger.debug("Wrote %s (%d frame(s))", output_path, len(frames))
    return output_path


async def encode_async(
    frames: Sequence[RasterFrame],
    output_path: Path,
    *,
    animated: bool,
    color_scope: str = "local",
) -> Path:
    """Run `encode` in a worker thread."""
    return await asyncio.to_thread(encode, frames, output_path, animated=animated, color_scope=color_scope)
