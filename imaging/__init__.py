"""Imaging core for batch resizer."""

from . import archive, encoder, geometry, image_operations, image_processor, models, validation

__all__ = [
    "archive",
    "encoder",
    "geometry",
    "image_operations",
    "image_processor",
    "models",
    "validation",
]
