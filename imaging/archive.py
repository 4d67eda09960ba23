"""ZIP packaging of processed images, and ZIP extraction of batch inputs."""

from __future__ import annotations

import io
import logging
import zipfile
from pathlib import PurePosixPath
from typing import Dict, Iterable, List, Optional, Tuple, Union

from resizer import config
from resizer.errors import ConfigurationError, DecodeError
from resizer.settings import OutputFormat

from .models import BatchResult, ProcessedItem, SourceImage

LOGGER = logging.getLogger(__name__)

_RESOURCE_FORK_DIR = "__MACOSX/"


def _split_name(name: str) -> Tuple[str, Optional[str]]:
    """Return ``(stem, extension)`` of the last path component of ``name``."""
    base = PurePosixPath(name.replace("\\", "/")).name
    stem, dot, ext = base.rpartition(".")
    if not dot or not stem:
        return base, None
    return stem, ext


def entry_name(name: str, output_format: Optional[Union[str, OutputFormat]] = None) -> str:
    """Return the archive entry name for an item called ``name``.

    The directory part and the last extension are dropped, then the batch
    output format is appended.  Without an output format the original
    extension is kept, falling back to ``jpg``.
    """
    stem, ext = _split_name(name)
    if output_format:
        extension = OutputFormat.parse(output_format).value
    else:
        extension = ext or config.ARCHIVE_FALLBACK_EXTENSION
    return f"{stem}.{extension}"


def _unique_name(name: str, taken: Dict[str, bytes]) -> str:
    stem, ext = _split_name(name)
    counter = 1
    candidate = name
    while candidate in taken:
        candidate = f"{stem}_{counter}.{ext}" if ext else f"{stem}_{counter}"
        counter += 1
    return candidate


def collect_entries(
    items: Iterable[ProcessedItem],
    output_format: Optional[Union[str, OutputFormat]] = None,
    *,
    collision_policy: str = config.DEFAULT_COLLISION_POLICY,
) -> Dict[str, bytes]:
    """Map archive entry names to payloads, in input order.

    ``collision_policy`` decides what happens when two items share an entry
    name: ``"overwrite"`` keeps the first entry's position with the later
    item's data, ``"rename"`` appends ``_1``, ``_2``... to later duplicates.
    """
    if collision_policy not in config.COLLISION_POLICIES:
        raise ConfigurationError(f"Unknown collision policy: {collision_policy!r}")

    entries: Dict[str, bytes] = {}
    for item in items:
        name = entry_name(item.name, output_format)
        if name in entries:
            if collision_policy == "rename":
                renamed = _unique_name(name, entries)
                LOGGER.info("Archive entry %s already exists, storing as %s", name, renamed)
                name = renamed
            else:
                LOGGER.warning("Archive entry %s already exists and is overwritten", name)
        entries[name] = item.data
    return entries


def create_archive(
    result: Union[BatchResult, Iterable[ProcessedItem]],
    output_format: Optional[Union[str, OutputFormat]] = None,
    *,
    collision_policy: str = config.DEFAULT_COLLISION_POLICY,
) -> bytes:
    """Package processed items into a flat, deflate-compressed ZIP.

    Entries carry a fixed timestamp so identical inputs give identical bytes.

    Returns:
        bytes: The archive.
    """
    items = result.items if isinstance(result, BatchResult) else result
    entries = collect_entries(items, output_format, collision_policy=collision_policy)

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, data in entries.items():
            info = zipfile.ZipInfo(name, date_time=config.ARCHIVE_ENTRY_TIMESTAMP)
            info.compress_type = zipfile.ZIP_DEFLATED
            info.external_attr = 0o644 << 16
            zf.writestr(info, data)
    LOGGER.info("Archive created with %d entries (%d bytes)", len(entries), buffer.tell())
    return buffer.getvalue()


def is_image_file(filename: str) -> bool:
    """Return ``True`` when ``filename`` has a supported image extension."""
    return PurePosixPath(filename.lower()).suffix in config.INPUT_IMAGE_EXTENSIONS


def extract_images(archive: bytes) -> List[SourceImage]:
    """Read image entries from a ZIP archive, in archive order.

    Directories, non-image names, macOS resource forks and empty entries are
    skipped; unreadable entries are skipped with a warning.

    Raises:
        DecodeError: If ``archive`` is not a ZIP file.
    """
    try:
        zf = zipfile.ZipFile(io.BytesIO(archive))
    except zipfile.BadZipFile as exc:
        raise DecodeError(f"Not a valid ZIP archive: {exc}") from exc

    images: List[SourceImage] = []
    with zf:
        for info in zf.infolist():
            if info.is_dir() or not is_image_file(info.filename):
                continue
            if info.filename.startswith(_RESOURCE_FORK_DIR):
                LOGGER.debug("Skipping resource fork %s", info.filename)
                continue
            try:
                data = zf.read(info)
            except (zipfile.BadZipFile, OSError, RuntimeError, NotImplementedError) as exc:
                LOGGER.warning("Failed to extract %s: %s", info.filename, exc)
                continue
            if not data:
                LOGGER.warning("Skipping empty file: %s", info.filename)
                continue
            images.append(SourceImage(name=info.filename, data=data))
    return images


__all__ = [
    "collect_entries",
    "create_archive",
    "entry_name",
    "extract_images",
    "is_image_file",
]
