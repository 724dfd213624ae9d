from __future__ import annotations

from pathlib import Path

import pytest
from PIL import Image, ImageSequence

from emoji_tiler.encoder import clear_output_dir, encode, encode_async
from emoji_tiler.errors import EncodeError
from emoji_tiler.models import RasterFrame


def _frames(colors, delays, size=(8, 8)) -> list[RasterFrame]:
    return [RasterFrame(image=Image.new("RGBA", size, c), delay=d) for c, d in zip(colors, delays)]


def test_encode_static_png(tmp_path: Path) -> None:
    out = encode(_frames([(1, 2, 3, 255)], [None]), tmp_path / "a.png", animated=False)
    with Image.open(out) as img:
        assert img.format == "PNG"
        assert img.size == (8, 8)


def test_encode_static_jpeg_is_flattened(tmp_path: Path) -> None:
    out = encode(_frames([(200, 0, 0, 255)], [None]), tmp_path / "a.jpg", animated=False)
    with Image.open(out) as img:
        assert img.format == "JPEG"
        assert img.mode == "RGB"


def test_encode_static_rejects_multiple_frames(tmp_path: Path) -> None:
    with pytest.raises(EncodeError):
        encode(_frames([(0, 0, 0, 255)] * 2, [None, None]), tmp_path / "a.png", animated=False)


@pytest.mark.parametrize("scope", ["local", "global"])
def test_encode_gif_keeps_frame_delays(tmp_path: Path, scope: str) -> None:
    colors = [(255, 0, 0, 255), (0, 255, 0, 255), (0, 0, 255, 255)]
    out = encode(_frames(colors, [10, 10, 20]), tmp_path / "a.gif", animated=True, color_scope=scope)

    with Image.open(out) as img:
        assert img.format == "GIF"
        assert img.n_frames == 3
        durations = [frame.info["duration"] for frame in ImageSequence.Iterator(img)]
    assert durations == [100, 100, 200]


def test_encode_failure_raises_encode_error(tmp_path: Path) -> None:
    with pytest.raises(EncodeError):
        encode(_frames([(0, 0, 0, 255)], [None]), tmp_path / "missing-dir" / "a.png", animated=False)


def test_encode_empty_sequence(tmp_path: Path) -> None:
    with pytest.raises(EncodeError):
        encode([], tmp_path / "a.gif", animated=True)


@pytest.mark.asyncio
async def test_encode_async_writes_file(tmp_path: Path) -> None:
    out = await encode_async(_frames([(0, 0, 0, 255)], [5]), tmp_path / "a.gif", animated=True)
    assert out.exists()


def test_clear_output_dir_removes_stale_files(tmp_path: Path) -> None:
    run_dir = tmp_path / "out" / "party"
    run_dir.mkdir(parents=True)
    (run_dir / "party-9.png").write_bytes(b"old")

    assert clear_output_dir(run_dir) == run_dir
    assert run_dir.is_dir()
    assert list(run_dir.iterdir()) == []


@pytest.mark.parametrize("scope", ["local", "global"])
def test_encode_gif_keeps_identical_frames(tmp_path: Path, scope: str) -> None:
    white = (255, 255, 255, 255)
    frames = _frames([white, white, white], [10, 10, 20])
    out = encode(frames, tmp_path / "still.gif", animated=True, color_scope=scope)

    with Image.open(out) as img:
        assert img.info["loop"] == 0
        assert img.n_frames == 3
        durations = [frame.info["duration"] for frame in ImageSequence.Iterator(img)]
    assert durations == [100, 100, 200]


def test_encode_gif_keeps_transparency(tmp_path: Path) -> None:
    out = encode(_frames([(0, 0, 0, 0), (255, 0, 0, 255)], [5, 5]), tmp_path / "fade.gif", animated=True)

    with Image.open(out) as img:
        first, second = [frame.convert("RGBA") for frame in ImageSequence.Iterator(img)]
    assert first.getpixel((0, 0))[3] == 0
    assert second.getpixel((0, 0)) == (255, 0, 0, 255)
