from __future__ import annotations

import sys
from pathlib import Path

import pytest


def pytest_configure() -> None:
    project_root = Path(__file__).resolve().parents[1]
    src_dir = project_root / "src"
    sys.path.insert(0, str(src_dir))


@pytest.fixture
def settings(tmp_path: Path):
    from emoji_tiler.config import Settings

    return Settings(
        out_dir=tmp_path / "out",
        data_dir=tmp_path / ".data",
        masks_dir=tmp_path / "masks",
    )


def make_quadrants(size: int = 256):
    """Square RGBA image: red, green / blue, yellow quadrants."""
    from PIL import Image

    img = Image.new("RGBA", (size, size), (0, 0, 0, 255))
    half = size // 2
    img.paste((255, 0, 0, 255), (0, 0, half, half))
    img.paste((0, 255, 0, 255), (half, 0, size, half))
    img.paste((0, 0, 255, 255), (0, half, half, size))
    img.paste((255, 255, 0, 255), (half, half, size, size))
    return img


def make_gif(path: Path, colors: list[tuple[int, int, int]], delays_cs: list[int], size: int = 32) -> Path:
    from PIL import Image

    frames = [Image.new("RGB", (size, size), color) for color in colors]
    frames[0].save(
        path,
        save_all=True,
        append_images=frames[1:],
        duration=[d * 10 for d in delays_cs],
        loop=0,
    )
    return path
