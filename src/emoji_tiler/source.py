"""
Frame source: resolves a path or URL to an ordered list of RGBA frames.
"""

from __future__ import annotations

import asyncio
import io
import logging
import re
from pathlib import Path

import httpx
from PIL import Image, ImageSequence, UnidentifiedImageError

from .errors import ConfigError, DecodeError, FetchError
from .models import RasterFrame

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".bmp")
ANIMATED_EXTENSIONS = (".gif",)

_URL_PREFIX = re.compile(r"^https?://", re.IGNORECASE)


def normalize_locator(text: str) -> str:
    """Trim the locator and strip one pair of single quotes left by drag-and-drop pastes."""
    locator = (text or "").strip()
    if len(locator) >= 2 and locator.startswith("'") and locator.endswith("'"):
        locator = locator[1:-1]
    return locator


def is_remote(locator: str) -> bool:
    return bool(_URL_PREFIX.match(locator))


def source_extension(locator: str) -> str:
    """Lower-case extension (without the dot), ignoring any URL query or fragment."""
    path = locator
    if is_remote(locator):
        path = httpx.URL(locator).path
    return Path(path).suffix.lower().lstrip(".")


def validate_locator(locator: str) -> str:
    if not locator:
        raise ConfigError("No image specified")
    ext = source_extension(locator)
    if f".{ext}" not in SUPPORTED_EXTENSIONS:
        raise ConfigError(
            "Supported image formats are: .png, .jpg, .gif & .bmp",
            path=None if is_remote(locator) else Path(locator),
        )
    return locator


def source_kind(locator: str) -> str:
    """'animated' or 'static', from the locator's extension."""
    return "animated" if f".{source_extension(locator)}" in ANIMATED_EXTENSIONS else "static"


async def fetch_bytes(url: str, client: httpx.AsyncClient | None = None) -> bytes:
    """Download a remote source. No retries and no timeout."""
    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(timeout=None, follow_redirects=True)
    try:
        logger.info("Fetching %s", url)
        response = await client.get(url)
        response.raise_for_status()
        return response.content
    except httpx.HTTPStatusError as e:
        raise FetchError(f"Fetching {url} failed with HTTP {e.response.status_code}") from e
    except httpx.HTTPError as e:
        raise FetchError(f"Fetching {url} failed: {e}") from e
    finally:
        if owns_client:
            await client.aclose()


def _read_local(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as e:
        raise DecodeError(f"Cannot read {path}: {e}", path=path) from e


def decode_frames(data: bytes, kind: str) -> list[RasterFrame]:
    """Decode image bytes into RGBA frames; GIF frames keep their delay in centiseconds."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            if kind != "animated":
                img.load()
                return [RasterFrame(image=img.convert("RGBA"))]

            frames: list[RasterFrame] = []
            for frame in ImageSequence.Iterator(img):
                duration = int(frame.info.get("duration", 0) or 0)
                frames.append(RasterFrame(image=frame.convert("RGBA"), delay=duration // 10))
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
        raise DecodeError(f"Cannot decode image: {e}") from e

    if not frames:
        raise DecodeError("Animation contains no frames")
    return frames


async def load_frames(locator: str, *, client: httpx.AsyncClient | None = None) -> list[RasterFrame]:
    """Resolve `locator` to a FrameSequence."""
    kind = source_kind(locator)

    if is_remote(locator):
        data = await fetch_bytes(locator, client=client)
    else:
        data = await asyncio.to_thread(_read_local, Path(locator).expanduser())

    frames = await asyncio.to_thread(decode_frames, data, kind)
    logger.info("Decoded %d %s frame(s) from %s", len(frames), kind, locator)
    return frames
