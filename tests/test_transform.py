from __future__ import annotations

import pytest
from PIL import Image

from emoji_tiler.config import FilterOp
from emoji_tiler.errors import ConfigError
from emoji_tiler.models import MaskEntry, RasterFrame
from emoji_tiler.transform import (
    apply_filters,
    apply_mask,
    brightness,
    contrast,
    flip,
    greyscale,
    invert,
    opacity,
    posterize,
    resize,
    transform,
)


def _solid(color=(100, 150, 200, 255), size=(8, 8)) -> Image.Image:
    return Image.new("RGBA", size, color)


@pytest.mark.parametrize("mode", ["stretch", "cover", "contain"])
def test_resize_always_hits_target(mode: str) -> None:
    out = resize(_solid(size=(300, 120)), mode, 128, 64)
    assert out.size == (128, 64)
    assert out.mode == "RGBA"


def test_resize_rejects_non_positive_target() -> None:
    with pytest.raises(ConfigError):
        resize(_solid(), "stretch", 0, 10)


def test_cover_crops_center() -> None:
    # Wide image: blue | red | blue. Cover to a square keeps only the red middle.
    img = Image.new("RGBA", (300, 100), (0, 0, 255, 255))
    img.paste((255, 0, 0, 255), (100, 0, 200, 100))
    out = resize(img, "cover", 10, 10)
    assert out.getpixel((1, 5))[:3] == (255, 0, 0)
    assert out.getpixel((8, 5))[:3] == (255, 0, 0)


def test_contain_pads_with_transparency() -> None:
    out = resize(_solid(size=(200, 100)), "contain", 20, 20)
    assert out.getpixel((10, 0))[3] == 0
    assert out.getpixel((10, 10))[3] == 255


def test_stretch_ignores_aspect_ratio() -> None:
    img = Image.new("RGBA", (200, 100), (0, 0, 255, 255))
    img.paste((255, 0, 0, 255), (0, 0, 100, 100))
    out = resize(img, "stretch", 20, 20)
    assert out.getpixel((2, 10))[:3] == (255, 0, 0)
    assert out.getpixel((17, 10))[:3] == (0, 0, 255)


def test_brightness_and_contrast() -> None:
    assert brightness(_solid((100, 100, 100, 255)), 0.5).getpixel((0, 0))[:3] == (177, 177, 177)
    assert brightness(_solid((100, 100, 100, 255)), -0.5).getpixel((0, 0))[:3] == (50, 50, 50)
    assert contrast(_solid((200, 50, 127, 255)), 1.0).getpixel((0, 0))[:3] == (255, 0, 0)
    assert contrast(_solid((200, 50, 127, 90)), 0).getpixel((0, 0)) == (200, 50, 127, 90)


def test_color_filters_keep_alpha() -> None:
    assert invert(_solid((0, 10, 255, 40))).getpixel((0, 0)) == (255, 245, 0, 40)


def test_opacity_scales_alpha() -> None:
    assert opacity(_solid((1, 2, 3, 200)), 0.5).getpixel((0, 0)) == (1, 2, 3, 100)


def test_posterize_levels() -> None:
    out = posterize(_solid((100, 200, 255, 255)), 2)
    assert out.getpixel((0, 0))[:3] == (0, 0, 255)


def test_flip_directions() -> None:
    img = Image.new("RGBA", (2, 2), (0, 0, 0, 255))
    img.putpixel((0, 0), (255, 0, 0, 255))

    assert flip(img, "horizontal").getpixel((1, 0))[:3] == (255, 0, 0)
    assert flip(img, "vertical").getpixel((0, 1))[:3] == (255, 0, 0)
    assert flip(img, "both").getpixel((1, 1))[:3] == (255, 0, 0)
    assert flip(img, "sideways").getpixel((0, 0))[:3] == (255, 0, 0)


def test_filter_order_matters() -> None:
    img = _solid((0, 64, 200, 255))
    a = apply_filters(img, [FilterOp.from_ui("brightness", 50), FilterOp.from_ui("invert")])
    b = apply_filters(img, [FilterOp.from_ui("invert"), FilterOp.from_ui("brightness", 50)])
    assert a.getpixel((0, 0)) != b.getpixel((0, 0))


def test_unknown_filter_is_ignored() -> None:
    img = _solid()
    out = apply_filters(img, [FilterOp(name="sparkle")])
    assert out.getpixel((0, 0)) == img.getpixel((0, 0))


def test_no_value_filters_run() -> None:
    img = _solid((100, 150, 200, 255))
    for name in ["greyscale", "sepia", "normalize", "fade"]:
        out = apply_filters(img, [FilterOp.from_ui(name)])
        assert out.size == img.size
    grey = apply_filters(img, [FilterOp.from_ui("greyscale")]).getpixel((0, 0))
    assert grey[0] == grey[1] == grey[2]
    assert apply_filters(img, [FilterOp.from_ui("fade")]).getpixel((0, 0))[3] == 127


@pytest.mark.parametrize(
    "color, expected",
    [((255, 0, 0, 255), 54), ((0, 255, 0, 128), 182), ((0, 0, 255, 255), 18)],
)
def test_greyscale_uses_luma_weights(color, expected) -> None:
    out = greyscale(_solid(color))
    assert out.getpixel((0, 0)) == (expected, expected, expected, color[3])


def test_rotate_keeps_size() -> None:
    img = Image.new("RGBA", (10, 6), (255, 0, 0, 255))
    out = apply_filters(img, [FilterOp.from_ui("rotate", 90)])
    assert out.size == (10, 6)


def test_apply_mask_uses_mask_coverage() -> None:
    img = _solid((10, 20, 30, 255), size=(4, 4))
    mask = Image.new("RGBA", (4, 4), (0, 0, 0, 255))
    mask.paste((255, 255, 255, 255), (0, 0, 2, 4))

    out = apply_mask(img, mask)
    assert out.getpixel((0, 0)) == (10, 20, 30, 255)
    assert out.getpixel((3, 0))[3] == 0


def test_transform_does_not_mutate_input() -> None:
    source = RasterFrame(image=_solid((0, 0, 0, 255), size=(16, 16)), delay=7)
    out = transform(source, "stretch", 8, 8, [FilterOp.from_ui("invert")])
    assert out.delay == 7
    assert out.size == (8, 8)
    assert out.image.getpixel((0, 0))[:3] == (255, 255, 255)
    assert source.image.getpixel((0, 0))[:3] == (0, 0, 0)
    assert source.size == (16, 16)


def test_transform_gif_output_posterizes_last() -> None:
    source = RasterFrame(image=_solid((100, 100, 100, 255)), delay=5)
    out = transform(source, "stretch", 8, 8, gif_output=True, gif_posterize_levels=15)
    # 100 / 255 * 14 -> level 5 of 14 -> 91
    assert out.image.getpixel((0, 0))[:3] == (91, 91, 91)


def test_transform_with_mask() -> None:
    source = RasterFrame(image=_solid((255, 0, 0, 255), size=(32, 32)))
    mask_img = Image.new("RGBA", (16, 16), (0, 0, 0, 0))
    mask_img.paste((255, 255, 255, 255), (0, 0, 8, 16))
    entry = MaskEntry(name="A", path=None, image=mask_img)

    out = transform(source, "stretch", 16, 16, mask=entry)
    assert out.image.getpixel((2, 8))[3] == 255
    assert out.image.getpixel((13, 8))[3] == 0
