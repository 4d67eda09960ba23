"""Decoding and compositing helpers.

These functions are intentionally small and free of batch concerns so they
can be tested on their own: :func:`decode_image` turns raw bytes into an
:class:`~imaging.models.ImageAsset`, and :func:`composite` draws the cropped
source onto a white canvas of the output size.
"""

from __future__ import annotations

import io
import logging
from typing import Optional, Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

from resizer import config
from resizer.errors import DecodeError, GeometryError

from .geometry import CropGeometry
from .models import ImageAsset, SourceImage

LOGGER = logging.getLogger(__name__)


def has_transparency(image: Image.Image) -> bool:
    """Return ``True`` when ``image`` carries alpha, palette or colour-key transparency."""
    if "A" in image.getbands():
        return True
    # tRNS chunks: palette indexes for P, a single key colour for L and RGB
    return "transparency" in image.info


def decode_image(source: SourceImage) -> ImageAsset:
    """Decode ``source`` into an :class:`ImageAsset`.

    Only the first frame of multi-frame files is kept.  EXIF orientation is
    applied so the asset dimensions match what a viewer displays.

    Raises:
        DecodeError: If the bytes are empty, malformed or unsupported.
    """
    if not source.data:
        raise DecodeError(f"{source.name}: file is empty")
    try:
        with Image.open(io.BytesIO(source.data)) as img:
            frames = getattr(img, "n_frames", 1)
            if frames > 1:
                LOGGER.debug("%s has %d frames, using the first", source.name, frames)
            img.load()
            fmt = img.format or ""
            decoded = ImageOps.exif_transpose(img)
    except (UnidentifiedImageError, Image.DecompressionBombError) as exc:
        raise DecodeError(f"{source.name}: not a supported image ({exc})") from exc
    except (OSError, ValueError, SyntaxError) as exc:
        raise DecodeError(f"{source.name}: failed to decode ({exc})") from exc

    width, height = decoded.size
    return ImageAsset(
        name=source.name,
        image=decoded,
        width=width,
        height=height,
        source_format=fmt,
    )


def _prepare_source(image: Image.Image) -> Image.Image:
    """Convert to a mode Pillow can resample with filters (RGB or RGBA)."""
    if has_transparency(image):
        return image if image.mode == "RGBA" else image.convert("RGBA")
    return image if image.mode == "RGB" else image.convert("RGB")


def composite(
    image: Image.Image,
    geometry: CropGeometry,
    size: Tuple[int, int],
    *,
    surface: Optional[Image.Image] = None,
) -> Image.Image:
    """Draw the cropped source onto an opaque white canvas of ``size``.

    When ``surface`` is given it is cleared and drawn on in place; otherwise a
    new canvas is allocated.  Transparent pixels are flattened against the
    white background, which also fills any margin strip.

    Returns:
        Image.Image: The RGB canvas, exactly ``size`` pixels.
    """
    if surface is None:
        surface = Image.new("RGB", size, config.BACKGROUND_COLOR)
    elif surface.size != tuple(size) or surface.mode != "RGB":
        raise GeometryError(
            f"Surface {surface.mode} {surface.size} does not match output size {size}"
        )
    else:
        surface.paste(config.BACKGROUND_COLOR, (0, 0, size[0], size[1]))

    dest = geometry.destination
    dest_size = (int(dest.width), int(dest.height))
    if dest_size[0] <= 0 or dest_size[1] <= 0:
        raise GeometryError(f"Destination {dest_size} is empty")

    prepared = _prepare_source(image)
    region = prepared.resize(
        dest_size,
        Image.Resampling.LANCZOS,
        box=geometry.source.box,
    )
    offset = (int(dest.x), int(dest.y))
    if region.mode == "RGBA":
        surface.paste(region, offset, region)
    else:
        surface.paste(region, offset)
    return surface


__all__ = ["composite", "decode_image", "has_transparency"]
