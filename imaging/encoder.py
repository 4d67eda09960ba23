"""Size-constrained encoding of composited rasters.

Lossy formats walk a linear quality ladder (90, 80, ... 10) and stop at the
first encoding that fits the byte ceiling.  When nothing fits, the encoding
made at the quality floor is returned anyway: an unmet ceiling is never an
error.  PNG has no quality parameter, so it is encoded once and the ceiling
is advisory only.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional

from PIL import Image

from resizer import config
from resizer.errors import ConfigurationError, EncodeError
from resizer.settings import OutputFormat

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class EncodedImage:
    """Encoded bytes; ``quality`` is ``None`` for lossless formats."""

    data: bytes
    format: OutputFormat
    quality: Optional[int]

    @property
    def mime_type(self) -> str:
        return self.format.mime_type

    @property
    def size_bytes(self) -> int:
        return len(self.data)


def quality_ladder(
    start: int = config.QUALITY_START,
    step: int = config.QUALITY_STEP,
    floor: int = config.QUALITY_FLOOR,
) -> Iterator[int]:
    """Yield qualities from ``start`` down to ``floor`` inclusive."""
    quality = start
    while quality > floor:
        yield quality
        quality -= step
    yield floor


def _save_params(fmt: OutputFormat, quality: Optional[int]) -> Dict[str, Any]:
    """Return Pillow save options for ``fmt``."""
    save_params: Dict[str, Any] = {'format': fmt.pillow_format}
    if fmt is OutputFormat.JPG:
        save_params.update({
            'quality': quality,
            'optimize': True,
            'subsampling': '4:2:0',
        })
    elif fmt is OutputFormat.WEBP:
        save_params.update({
            'quality': quality,
            'method': config.WEBP_METHOD,
        })
    elif fmt is OutputFormat.PNG:
        save_params.update({
            'optimize': False,
            'compress_level': config.PNG_COMPRESS_LEVEL,
        })
    return save_params


def _encode_once(image: Image.Image, fmt: OutputFormat, quality: Optional[int]) -> bytes:
    buffer = io.BytesIO()
    try:
        image.save(buffer, **_save_params(fmt, quality))
    except (OSError, KeyError, ValueError) as exc:
        setting = "" if quality is None else f" at quality {quality}"
        raise EncodeError(f"Failed to encode {fmt.value}{setting}: {exc}") from exc
    return buffer.getvalue()


def encode_image(
    image: Image.Image,
    fmt: Any,
    max_file_size: Optional[int] = None,
) -> EncodedImage:
    """Encode ``image`` as ``fmt``, lowering quality to fit ``max_file_size``.

    Args:
        image: Composited RGB raster.
        fmt: Output format (``OutputFormat`` or its name, e.g. ``"webp"``).
        max_file_size: Optional ceiling in KiB.

    Returns:
        EncodedImage: The first encoding within the ceiling, or the one made at
        the quality floor when the ceiling cannot be met.

    Raises:
        EncodeError: If the format is unsupported or Pillow cannot encode.
    """
    try:
        output_format = OutputFormat.parse(fmt)
    except ConfigurationError as exc:
        raise EncodeError(str(exc)) from exc

    limit = None if max_file_size is None else max_file_size * 1024

    if not output_format.is_lossy:
        data = _encode_once(image, output_format, None)
        if limit is not None and len(data) > limit:
            LOGGER.warning(
                "PNG output is %d bytes, above the %d byte ceiling; "
                "lossless formats cannot be reduced",
                len(data),
                limit,
            )
        return EncodedImage(data=data, format=output_format, quality=None)

    data = b""
    quality = config.QUALITY_START
    for quality in quality_ladder():
        data = _encode_once(image, output_format, quality)
        if limit is None or len(data) <= limit:
            break
        LOGGER.debug(
            "%s at quality %d is %d bytes (> %d), stepping down",
            output_format.value,
            quality,
            len(data),
            limit,
        )
    else:
        LOGGER.info(
            "Size ceiling of %d bytes not met; keeping %d bytes at quality %d",
            limit,
            len(data),
            quality,
        )

    return EncodedImage(data=data, format=output_format, quality=quality)


__all__ = ["EncodedImage", "encode_image", "quality_ladder"]
