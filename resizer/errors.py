"""Error taxonomy shared by the imaging core and the batch controller.

Batch-level errors (:class:`ConfigurationError`, :class:`EmptyBatchError`)
propagate to the caller.  Item-level errors (:class:`DecodeError`,
:class:`GeometryError`, :class:`EncodeError`) are caught by the batch driver,
logged and reported as failures without aborting the batch.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:  # pragma: no cover - import only for annotations
    from imaging.models import BatchResult


class ImageProcessingError(Exception):
    """Base exception for image processing errors."""


class ConfigurationError(ImageProcessingError, ValueError):
    """Raised when processing settings cannot produce a valid output."""


class DecodeError(ImageProcessingError):
    """Raised when source bytes cannot be decoded into a raster in time."""


class GeometryError(ImageProcessingError):
    """Raised when a decoded image cannot be mapped onto the output canvas."""


class EncodeError(ImageProcessingError):
    """Raised when a composited raster cannot be serialized."""


class EmptyBatchError(ImageProcessingError):
    """Raised when every item of a batch failed and no archive was produced."""

    def __init__(self, message: str, result: Optional["BatchResult"] = None) -> None:
        super().__init__(message)
        self.result = result


__all__ = [
    "ImageProcessingError",
    "ConfigurationError",
    "DecodeError",
    "GeometryError",
    "EncodeError",
    "EmptyBatchError",
]
