"""Batch job controller.

:class:`BatchJobController` is the service layer between front ends (the Qt
worker, the command line, tests) and the imaging core.  A run validates the
settings, processes every image, refuses to package an empty result and
builds the archive, reporting each stage through an optional progress
callback.  Every run logs with its own correlation identifier (``cid``) so
the lines of one batch can be traced together.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

from imaging.archive import create_archive, extract_images
from imaging.image_processor import ImageProcessor
from imaging.models import BatchResult, SourceImage
from imaging.validation import expand_input_paths, validate_output_path

from .. import config
from ..errors import ConfigurationError, DecodeError, EmptyBatchError
from ..progress import ProgressCallback, ProgressEvent, ProgressStage, emit
from ..settings import ProcessingSettings

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchOutcome:
    """Archive produced by a successful run, with the per-item report."""

    archive: bytes
    filename: str
    result: BatchResult


class BatchJobController:
    """Run a batch end to end with one set of settings."""

    def __init__(
        self,
        settings: ProcessingSettings,
        *,
        processor: Optional[ImageProcessor] = None,
        max_workers: int = config.DEFAULT_MAX_WORKERS,
        collision_policy: str = config.DEFAULT_COLLISION_POLICY,
        archive_name: str = config.ARCHIVE_FILENAME,
    ) -> None:
        settings.validate()
        if max_workers <= 0:
            raise ConfigurationError("max_workers must be greater than zero")
        if collision_policy not in config.COLLISION_POLICIES:
            raise ConfigurationError(f"Unknown collision policy: {collision_policy!r}")
        self.settings = settings
        self.max_workers = max_workers
        self.collision_policy = collision_policy
        self.archive_name = archive_name
        self._processor = processor

    def run(
        self,
        sources: Sequence[SourceImage],
        progress_callback: Optional[ProgressCallback] = None,
    ) -> BatchOutcome:
        """Process ``sources`` and package the successes.

        Raises:
            EmptyBatchError: If no image could be processed; no archive is built.
        """
        cid = uuid.uuid4().hex
        log = logging.LoggerAdapter(LOGGER, {"cid": cid})
        total = len(sources)
        log.info(
            "batch started",
            extra={"images": total, "settings": self.settings.to_options()},
        )
        emit(progress_callback, ProgressEvent(stage=ProgressStage.INITIALIZING, total=total))

        processor = self._processor or ImageProcessor()
        result = processor.process_batch(
            sources,
            self.settings,
            max_workers=self.max_workers,
            progress_callback=progress_callback,
        )

        if result.is_empty:
            log.error("batch produced no images", extra={"failed": result.failed})
            raise EmptyBatchError("No images could be processed successfully", result)

        for failure in result.failures:
            log.warning(
                "image skipped",
                extra={"item": failure.name, "index": failure.index, "error": failure.reason},
            )

        emit(progress_callback, ProgressEvent(stage=ProgressStage.PACKAGING, total=total))
        archive = create_archive(
            result,
            self.settings.format,
            collision_policy=self.collision_policy,
        )
        emit(progress_callback, ProgressEvent(stage=ProgressStage.COMPLETED, total=total))
        log.info(
            "batch complete",
            extra={
                "succeeded": result.succeeded,
                "failed": result.failed,
                "archive_bytes": len(archive),
            },
        )
        return BatchOutcome(archive=archive, filename=self.archive_name, result=result)


def load_sources(paths: Iterable[Union[str, Path]]) -> List[SourceImage]:
    """Read images from files, directories and ZIP archives.

    Raises:
        ValueError: If a path is missing, a URL, or has an unsupported extension.
    """
    allowed = [*config.INPUT_IMAGE_EXTENSIONS, *config.ARCHIVE_INPUT_EXTENSIONS]
    sources: List[SourceImage] = []
    for path in expand_input_paths(paths, allowed):
        try:
            data = path.read_bytes()
        except OSError as exc:
            LOGGER.warning("Skipping unreadable file %s: %s", path, exc)
            continue
        if path.suffix.lower() in config.ARCHIVE_INPUT_EXTENSIONS:
            try:
                sources.extend(extract_images(data))
            except DecodeError as exc:
                LOGGER.warning("Skipping %s: %s", path, exc)
            continue
        sources.append(SourceImage(name=path.name, data=data))
    return sources


def write_archive(outcome: BatchOutcome, destination: Union[str, Path]) -> Path:
    """Write the archive to ``destination`` (a ``.zip`` path or a directory)."""
    target = Path(destination).expanduser()
    if target.is_dir():
        target = target / outcome.filename
    safe_target = validate_output_path(target, config.ARCHIVE_INPUT_EXTENSIONS)
    safe_target.write_bytes(outcome.archive)
    LOGGER.info("Archive written to %s", safe_target)
    return safe_target
