"""Processing settings shared by every item of a batch.

:class:`ProcessingSettings` is an immutable value object validated on
construction.  Crop anchors are modelled as an explicit enum decomposed into
independent vertical and horizontal components; the human readable labels
used by the front end (``"Crop Bottom Middle"``) are accepted through
:meth:`CropAnchor.parse`.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from . import config
from .errors import ConfigurationError

LOGGER = logging.getLogger(__name__)


class VerticalAnchor(str, Enum):
    TOP = "top"
    MIDDLE = "middle"
    BOTTOM = "bottom"


class HorizontalAnchor(str, Enum):
    LEFT = "left"
    MIDDLE = "middle"
    RIGHT = "right"


_MIDDLE_TOKENS = {"middle", "center", "centre"}
_VERTICAL_TOKENS = {"top": VerticalAnchor.TOP, "bottom": VerticalAnchor.BOTTOM}
_HORIZONTAL_TOKENS = {"left": HorizontalAnchor.LEFT, "right": HorizontalAnchor.RIGHT}


class CropAnchor(Enum):
    """Which part of an over-sized source survives the crop."""

    TOP_LEFT = (VerticalAnchor.TOP, HorizontalAnchor.LEFT)
    TOP_MIDDLE = (VerticalAnchor.TOP, HorizontalAnchor.MIDDLE)
    TOP_RIGHT = (VerticalAnchor.TOP, HorizontalAnchor.RIGHT)
    MIDDLE_LEFT = (VerticalAnchor.MIDDLE, HorizontalAnchor.LEFT)
    CENTER = (VerticalAnchor.MIDDLE, HorizontalAnchor.MIDDLE)
    MIDDLE_RIGHT = (VerticalAnchor.MIDDLE, HorizontalAnchor.RIGHT)
    BOTTOM_LEFT = (VerticalAnchor.BOTTOM, HorizontalAnchor.LEFT)
    BOTTOM_MIDDLE = (VerticalAnchor.BOTTOM, HorizontalAnchor.MIDDLE)
    BOTTOM_RIGHT = (VerticalAnchor.BOTTOM, HorizontalAnchor.RIGHT)

    @property
    def vertical(self) -> VerticalAnchor:
        return self.value[0]

    @property
    def horizontal(self) -> HorizontalAnchor:
        return self.value[1]

    @property
    def label(self) -> str:
        """Return the front-end label, e.g. ``"Crop Bottom Middle"``."""
        if self is CropAnchor.CENTER:
            return "Crop Middle"
        return f"Crop {self.vertical.value.title()} {self.horizontal.value.title()}"

    @classmethod
    def from_components(
        cls, vertical: VerticalAnchor, horizontal: HorizontalAnchor
    ) -> "CropAnchor":
        return cls((vertical, horizontal))

    @classmethod
    def parse(cls, value: Any) -> "CropAnchor":
        """Parse a label such as ``"Crop Top Left"`` or ``"bottom-middle"``.

        Tokens are matched case-insensitively; the ``crop`` prefix is optional
        and ``center`` is accepted for ``middle``.  A label naming a single
        axis leaves the other one centered.  Unknown tokens and contradictory
        labels raise :class:`ConfigurationError`.
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise ConfigurationError(f"Invalid crop position: {value!r}")

        tokens = [t for t in re.split(r"[\s_\-]+", value.strip().lower()) if t]
        if tokens and tokens[0] == "crop":
            tokens = tokens[1:]
        if not tokens:
            raise ConfigurationError(f"Invalid crop position: {value!r}")

        vertical: Optional[VerticalAnchor] = None
        horizontal: Optional[HorizontalAnchor] = None
        middles = 0
        for token in tokens:
            if token in _VERTICAL_TOKENS:
                if vertical is not None:
                    raise ConfigurationError(f"Conflicting crop position: {value!r}")
                vertical = _VERTICAL_TOKENS[token]
            elif token in _HORIZONTAL_TOKENS:
                if horizontal is not None:
                    raise ConfigurationError(f"Conflicting crop position: {value!r}")
                horizontal = _HORIZONTAL_TOKENS[token]
            elif token in _MIDDLE_TOKENS:
                middles += 1
            else:
                raise ConfigurationError(f"Invalid crop position: {value!r}")

        named = (vertical is not None) + (horizontal is not None)
        if named + middles > 2:
            raise ConfigurationError(f"Conflicting crop position: {value!r}")

        return cls.from_components(
            vertical or VerticalAnchor.MIDDLE,
            horizontal or HorizontalAnchor.MIDDLE,
        )


class MarginEdge(str, Enum):
    """Canvas edge reserved for the empty-space strip."""

    TOP = "top"
    BOTTOM = "bottom"
    LEFT = "left"
    RIGHT = "right"

    @property
    def is_horizontal(self) -> bool:
        """``True`` when the strip eats into the canvas width."""
        return self in (MarginEdge.LEFT, MarginEdge.RIGHT)

    @property
    def is_leading(self) -> bool:
        """``True`` when the content is pushed away from the origin."""
        return self in (MarginEdge.LEFT, MarginEdge.TOP)

    @classmethod
    def parse(cls, value: Any) -> "MarginEdge":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            raise ConfigurationError(f"Invalid space position: {value!r}") from exc


class OutputFormat(str, Enum):
    WEBP = "webp"
    JPG = "jpg"
    PNG = "png"

    @property
    def pillow_format(self) -> str:
        return {"webp": "WEBP", "jpg": "JPEG", "png": "PNG"}[self.value]

    @property
    def mime_type(self) -> str:
        return config.MIME_TYPES[self.value]

    @property
    def is_lossy(self) -> bool:
        return self is not OutputFormat.PNG

    @classmethod
    def parse(cls, value: Any) -> "OutputFormat":
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower().lstrip(".")
        if text == "jpeg":
            text = "jpg"
        try:
            return cls(text)
        except ValueError as exc:
            raise ConfigurationError(f"Unsupported output format: {value!r}") from exc


# Front-end option names (and snake_case equivalents) -> dataclass fields
_OPTION_ALIASES: Dict[str, str] = {
    "width": "width",
    "height": "height",
    "cropPosition": "crop_anchor",
    "crop_position": "crop_anchor",
    "crop_anchor": "crop_anchor",
    "addSpace": "add_space",
    "add_space": "add_space",
    "spaceSize": "space_size",
    "space_size": "space_size",
    "spacePosition": "space_position",
    "space_position": "space_position",
    "maxFileSize": "max_file_size",
    "max_file_size": "max_file_size",
    "format": "format",
    "output_format": "format",
}

_TRUE_STRINGS = {"1", "true", "yes", "on"}
_FALSE_STRINGS = {"0", "false", "no", "off", ""}


def _coerce_int(name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise ConfigurationError(f"{name} must be an integer, got {value!r}")


def _coerce_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise ConfigurationError(f"{name} must be a boolean, got {value!r}")



def normalize_options(options: Mapping[str, Any]) -> Dict[str, Any]:
    """Map front-end or snake_case option names onto settings field names.

    Unknown keys are ignored with a warning.  An empty ``maxFileSize`` means
    no ceiling.
    """
    normalized: Dict[str, Any] = {}
    for key, value in options.items():
        field_name = _OPTION_ALIASES.get(key)
        if field_name is None:
            LOGGER.warning("Unknown settings option: %s", key)
            continue
        if field_name == "max_file_size" and value in (None, ""):
            value = None
        normalized[field_name] = value
    return normalized

@dataclass(frozen=True)
class ProcessingSettings:
    """Immutable per-batch settings.

    Attributes:
        width (int): Output canvas width in pixels.
        height (int): Output canvas height in pixels.
        crop_anchor (CropAnchor): Region retained when cropping.
        add_space (bool): Whether to reserve an empty strip on one edge.
        space_size (int): Strip thickness in pixels.
        space_position (MarginEdge): Edge holding the strip.
        max_file_size (Optional[int]): Byte ceiling in KiB, ``None`` for none.
        format (OutputFormat): Encoded output format.
    """

    width: int = config.DEFAULT_WIDTH
    height: int = config.DEFAULT_HEIGHT
    crop_anchor: CropAnchor = CropAnchor.BOTTOM_MIDDLE
    add_space: bool = False
    space_size: int = config.DEFAULT_SPACE_SIZE
    space_position: MarginEdge = MarginEdge.BOTTOM
    max_file_size: Optional[int] = None
    format: OutputFormat = OutputFormat.WEBP

    def __post_init__(self) -> None:
        # Frozen dataclass: normalise through object.__setattr__
        object.__setattr__(self, "width", _coerce_int("width", self.width))
        object.__setattr__(self, "height", _coerce_int("height", self.height))
        object.__setattr__(self, "crop_anchor", CropAnchor.parse(self.crop_anchor))
        object.__setattr__(self, "add_space", _coerce_bool("add_space", self.add_space))
        object.__setattr__(self, "space_size", _coerce_int("space_size", self.space_size))
        object.__setattr__(self, "space_position", MarginEdge.parse(self.space_position))
        if self.max_file_size is not None:
            object.__setattr__(
                self, "max_file_size", _coerce_int("max_file_size", self.max_file_size)
            )
        object.__setattr__(self, "format", OutputFormat.parse(self.format))
        self.validate()

    def validate(self) -> None:
        """Raise :class:`ConfigurationError` for settings that cannot render."""
        if self.width <= 0 or self.height <= 0:
            raise ConfigurationError(
                f"Output dimensions must be positive, got {self.width}x{self.height}"
            )
        if self.space_size < 0:
            raise ConfigurationError(f"space_size must be >= 0, got {self.space_size}")
        if self.max_file_size is not None and self.max_file_size <= 0:
            raise ConfigurationError(
                f"max_file_size must be positive or None, got {self.max_file_size}"
            )
        target_width, target_height = self.target_size
        if target_width <= 0 or target_height <= 0:
            raise ConfigurationError(
                "Empty space of "
                f"{self.space_size}px on the {self.space_position.value} edge leaves "
                f"no room for the image ({target_width}x{target_height})"
            )

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    @property
    def target_size(self) -> Tuple[int, int]:
        """Content area left for the image once the margin is reserved."""
        if not self.add_space:
            return self.width, self.height
        if self.space_position.is_horizontal:
            return self.width - self.space_size, self.height
        return self.width, self.height - self.space_size

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> "ProcessingSettings":
        """Build settings from front-end options (``cropPosition`` etc.).

        Missing options take the defaults.
        """
        return cls(**normalize_options(options))

    def to_options(self) -> Dict[str, Any]:
        """Return the front-end option mapping for these settings."""
        return {
            "width": self.width,
            "height": self.height,
            "cropPosition": self.crop_anchor.label,
            "addSpace": self.add_space,
            "spaceSize": self.space_size,
            "spacePosition": self.space_position.value,
            "maxFileSize": self.max_file_size,
            "format": self.format.value,
        }


__all__ = [
    "CropAnchor",
    "HorizontalAnchor",
    "MarginEdge",
    "OutputFormat",
    "ProcessingSettings",
    "VerticalAnchor",
    "normalize_options",
]
