import io

import pytest
from PIL import Image

from conftest import assert_color_close
from imaging.geometry import resolve_geometry
from imaging.image_operations import composite, decode_image, has_transparency
from imaging.models import SourceImage
from resizer.errors import DecodeError, GeometryError
from resizer.settings import CropAnchor, ProcessingSettings

WHITE = (255, 255, 255)


def _two_tone(size=(200, 100)):
    """Left half red, right half blue."""
    img = Image.new("RGB", size, (255, 0, 0))
    img.paste((0, 0, 255), (size[0] // 2, 0, size[0], size[1]))
    return img


def test_decode_reports_dimensions_and_format(make_source):
    asset = decode_image(make_source(size=(64, 32), fmt="JPEG"))
    assert asset.size == (64, 32)
    assert asset.source_format == "JPEG"


def test_decode_rejects_garbage(broken_source):
    with pytest.raises(DecodeError):
        decode_image(broken_source)


def test_decode_rejects_empty_bytes():
    with pytest.raises(DecodeError, match="empty"):
        decode_image(SourceImage(name="empty.png", data=b""))


def test_decode_rejects_truncated_file():
    img = Image.frombytes("RGB", (120, 120), bytes(range(256)) * 168 + bytes(192))
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    data = buffer.getvalue()
    with pytest.raises(DecodeError):
        decode_image(SourceImage(name="cut.png", data=data[: len(data) // 2]))


def test_decode_keeps_first_gif_frame():
    frames = [Image.new("P", (20, 20), idx) for idx in (1, 2, 3)]
    buffer = io.BytesIO()
    frames[0].save(buffer, format="GIF", save_all=True, append_images=frames[1:])
    asset = decode_image(SourceImage(name="anim.gif", data=buffer.getvalue()))
    assert asset.size == (20, 20)
    assert asset.source_format == "GIF"


def test_decode_applies_exif_orientation():
    img = Image.new("RGB", (60, 30), (0, 128, 0))
    exif = Image.Exif()
    exif[0x0112] = 6  # rotate 90 degrees clockwise
    buffer = io.BytesIO()
    img.save(buffer, format="JPEG", exif=exif)
    asset = decode_image(SourceImage(name="rotated.jpg", data=buffer.getvalue()))
    assert asset.size == (30, 60)


def test_composite_output_has_exact_size():
    settings = ProcessingSettings(width=90, height=70)
    img = _two_tone((333, 177))
    canvas = composite(img, resolve_geometry(img.size, settings), settings.size)
    assert canvas.size == (90, 70)
    assert canvas.mode == "RGB"


def test_composite_left_anchor_keeps_left_side():
    settings = ProcessingSettings(width=100, height=100, crop_anchor=CropAnchor.MIDDLE_LEFT)
    img = _two_tone()
    canvas = composite(img, resolve_geometry(img.size, settings), settings.size)
    assert_color_close(canvas.getpixel((50, 50)), (255, 0, 0))


def test_composite_right_anchor_keeps_right_side():
    settings = ProcessingSettings(width=100, height=100, crop_anchor=CropAnchor.BOTTOM_RIGHT)
    img = _two_tone()
    canvas = composite(img, resolve_geometry(img.size, settings), settings.size)
    assert_color_close(canvas.getpixel((50, 50)), (0, 0, 255))


@pytest.mark.parametrize(
    "edge, strip_pixel, content_pixel",
    [
        ("top", (50, 10), (50, 90)),
        ("bottom", (50, 90), (50, 10)),
        ("left", (10, 50), (90, 50)),
        ("right", (90, 50), (10, 50)),
    ],
)
def test_margin_strip_is_white(edge, strip_pixel, content_pixel):
    settings = ProcessingSettings(
        width=100, height=100, add_space=True, space_size=30, space_position=edge
    )
    img = Image.new("RGB", (50, 50), (0, 0, 0))
    canvas = composite(img, resolve_geometry(img.size, settings), settings.size)
    assert canvas.getpixel(strip_pixel) == WHITE
    assert_color_close(canvas.getpixel(content_pixel), (0, 0, 0))


def test_transparency_is_flattened_onto_white():
    img = Image.new("RGBA", (40, 40), (255, 0, 0, 0))
    img.paste((0, 0, 255, 255), (20, 0, 40, 40))
    assert has_transparency(img)
    settings = ProcessingSettings(width=40, height=40)
    canvas = composite(img, resolve_geometry(img.size, settings), settings.size)
    assert canvas.mode == "RGB"
    assert_color_close(canvas.getpixel((5, 20)), WHITE)
    assert_color_close(canvas.getpixel((35, 20)), (0, 0, 255))


@pytest.mark.parametrize(
    "mode, key, visible",
    [("RGB", (0, 0, 0), (255, 0, 0)), ("L", 0, 200)],
)
def test_colour_key_transparency_is_flattened_onto_white(mode, key, visible):
    img = Image.new(mode, (20, 10), key)
    img.paste(visible, (10, 0, 20, 10))
    buffer = io.BytesIO()
    img.save(buffer, format="PNG", transparency=key)
    asset = decode_image(SourceImage(name="keyed.png", data=buffer.getvalue()))
    assert has_transparency(asset.image)

    settings = ProcessingSettings(width=20, height=10)
    canvas = composite(asset.image, resolve_geometry(asset.size, settings), settings.size)
    assert canvas.getpixel((2, 5)) == WHITE
    expected = visible if mode == "RGB" else (visible, visible, visible)
    assert_color_close(canvas.getpixel((17, 5)), expected)


def test_composite_clears_reused_surface():
    settings = ProcessingSettings(width=60, height=60, add_space=True, space_size=20, space_position="top")
    surface = Image.new("RGB", (60, 60), (0, 255, 0))
    img = Image.new("RGB", (10, 10), (0, 0, 0))
    result = composite(img, resolve_geometry(img.size, settings), settings.size, surface=surface)
    assert result is surface
    assert result.getpixel((30, 5)) == WHITE


def test_composite_rejects_mismatched_surface():
    settings = ProcessingSettings(width=60, height=60)
    img = Image.new("RGB", (10, 10))
    with pytest.raises(GeometryError):
        composite(
            img,
            resolve_geometry(img.size, settings),
            settings.size,
            surface=Image.new("RGB", (30, 30)),
        )


def test_palette_image_composites_to_rgb():
    img = Image.new("P", (20, 20), 0)
    settings = ProcessingSettings(width=25, height=25)
    canvas = composite(img, resolve_geometry(img.size, settings), settings.size)
    assert canvas.mode == "RGB"
    assert canvas.size == (25, 25)
