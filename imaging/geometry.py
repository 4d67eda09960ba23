"""Crop and placement geometry for a single image.

The resolver is a pure function of the source dimensions and the batch
settings.  It returns the region of the source to keep and the rectangle it
occupies on the output canvas.  Source and destination rectangles always share
the same aspect ratio, so the compositor never distorts the image.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple, Union

from resizer.errors import ConfigurationError, GeometryError
from resizer.settings import HorizontalAnchor, ProcessingSettings, VerticalAnchor

Number = Union[int, float]


@dataclass(frozen=True)
class Rect:
    x: Number
    y: Number
    width: Number
    height: Number

    @property
    def box(self) -> Tuple[Number, Number, Number, Number]:
        """Return ``(left, upper, right, lower)`` as used by Pillow."""
        return (self.x, self.y, self.x + self.width, self.y + self.height)

    @property
    def size(self) -> Tuple[Number, Number]:
        return self.width, self.height


@dataclass(frozen=True)
class CropGeometry:
    """Source crop rectangle and destination placement on the canvas."""

    source: Rect
    destination: Rect


def _anchor_offset(slack: float, anchor: Union[VerticalAnchor, HorizontalAnchor]) -> float:
    if anchor in (VerticalAnchor.TOP, HorizontalAnchor.LEFT):
        return 0.0
    if anchor in (VerticalAnchor.BOTTOM, HorizontalAnchor.RIGHT):
        return slack
    return slack / 2


def resolve_geometry(image_size: Tuple[int, int], settings: ProcessingSettings) -> CropGeometry:
    """Compute the crop and placement for an image of ``image_size``.

    Args:
        image_size: Intrinsic ``(width, height)`` of the decoded source.
        settings: Batch settings providing output size, anchor and margin.

    Returns:
        CropGeometry: Float source rectangle and integer destination rectangle.

    Raises:
        ConfigurationError: If the margin leaves no room for the image.
        GeometryError: If the source has a non-positive dimension.
    """
    img_w, img_h = image_size
    if img_w <= 0 or img_h <= 0:
        raise GeometryError(f"Source image has invalid dimensions {img_w}x{img_h}")

    target_w, target_h = settings.target_size
    if target_w <= 0 or target_h <= 0:
        raise ConfigurationError(
            f"Effective target size {target_w}x{target_h} is not positive"
        )

    src_x = 0.0
    src_y = 0.0
    src_w: float = img_w
    src_h: float = img_h

    # Integer cross-multiplication keeps the aspect comparison exact
    source_span = img_w * target_h
    target_span = img_h * target_w
    if source_span > target_span:
        # Relatively wider than the target: trim the sides
        src_w = img_h * target_w / target_h
        src_x = _anchor_offset(img_w - src_w, settings.crop_anchor.horizontal)
    elif source_span < target_span:
        # Relatively taller: trim top and/or bottom
        src_h = img_w * target_h / target_w
        src_y = _anchor_offset(img_h - src_h, settings.crop_anchor.vertical)

    dest_x = 0
    dest_y = 0
    if settings.add_space and settings.space_position.is_leading:
        if settings.space_position.is_horizontal:
            dest_x = settings.space_size
        else:
            dest_y = settings.space_size

    return CropGeometry(
        source=Rect(src_x, src_y, src_w, src_h),
        destination=Rect(dest_x, dest_y, target_w, target_h),
    )


__all__ = ["CropGeometry", "Rect", "resolve_geometry"]
