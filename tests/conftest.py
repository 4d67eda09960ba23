"""Shared fixtures for the batch resizer tests."""
from __future__ import annotations

import io
import logging
from typing import Callable, Tuple

import pytest
from PIL import Image

from imaging.image_processor import processing_metrics
from imaging.models import SourceImage
from resizer import config


def image_bytes(
    size: Tuple[int, int] = (40, 20),
    color=(255, 0, 0),
    fmt: str = "PNG",
    mode: str = "RGB",
) -> bytes:
    img = Image.new(mode, size, color)
    buffer = io.BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


def assert_color_close(actual, expected, tolerance=30):
    assert len(actual) == len(expected)
    for component_actual, component_expected in zip(actual, expected, strict=True):
        assert abs(component_actual - component_expected) <= tolerance


@pytest.fixture
def make_source() -> Callable[..., SourceImage]:
    def _make(name: str = "img.png", size=(40, 20), color=(255, 0, 0), fmt: str = "PNG") -> SourceImage:
        return SourceImage(name=name, data=image_bytes(size, color, fmt))

    return _make


@pytest.fixture
def broken_source() -> SourceImage:
    return SourceImage(name="broken.png", data=b"definitely not an image")


@pytest.fixture(autouse=True)
def reset_metrics():
    processing_metrics.reset()
    yield
    processing_metrics.reset()


@pytest.fixture(autouse=True)
def reset_package_loggers():
    """Undo handlers installed by ``configure_logging`` so caplog keeps working."""
    yield
    for name in config.LOGGER_NAMES:
        pkg = logging.getLogger(name)
        for handler in list(pkg.handlers):
            pkg.removeHandler(handler)
            handler.close()
        pkg.propagate = True
        pkg.setLevel(logging.NOTSET)
