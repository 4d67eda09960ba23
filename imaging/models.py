"""Data containers passed between the pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

from PIL import Image


@dataclass(frozen=True)
class SourceImage:
    """An undecoded input: raw bytes plus the filename they came with."""

    name: str
    data: bytes

    def __repr__(self) -> str:
        return f"SourceImage(name={self.name!r}, bytes={len(self.data)})"


@dataclass(frozen=True)
class ImageAsset:
    """A decoded raster.

    Attributes:
        name (str): Identifier carried through to the output.
        image (Image.Image): Decoded first frame, EXIF orientation applied.
        width (int): Width in pixels.
        height (int): Height in pixels.
        source_format (str): Format reported by the decoder, e.g. ``"PNG"``.
    """

    name: str
    image: Image.Image
    width: int
    height: int
    source_format: str = ""

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height


@dataclass(frozen=True)
class ProcessedItem:
    """An encoded output ready for packaging."""

    name: str
    data: bytes
    format: str
    mime_type: str
    quality: Optional[int]

    @property
    def size_bytes(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class ItemFailure:
    """Why one item of the batch was skipped."""

    index: int
    name: str
    reason: str


@dataclass(frozen=True)
class BatchResult:
    """Successful items in input order plus failure reports."""

    items: Tuple[ProcessedItem, ...] = ()
    failures: Tuple[ItemFailure, ...] = field(default=())

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def succeeded(self) -> int:
        return len(self.items)

    @property
    def total(self) -> int:
        return self.succeeded + self.failed

    @property
    def is_empty(self) -> bool:
        return not self.items
