from __future__ import annotations

import logging
import threading
import time
from collections import Counter
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Dict, List, Optional, Sequence, Tuple, Union

from PIL import Image

from resizer import config
from resizer.errors import ConfigurationError, DecodeError, ImageProcessingError
from resizer.progress import ProgressCallback, ProgressEvent, ProgressStage, emit
from resizer.settings import ProcessingSettings
from resizer.surfaces import SurfacePool, get_pool

from .encoder import encode_image
from .geometry import resolve_geometry
from .image_operations import composite, decode_image
from .models import BatchResult, ImageAsset, ItemFailure, ProcessedItem, SourceImage

LOGGER = logging.getLogger(__name__)

ItemOutcome = Union[ProcessedItem, ItemFailure]


class _ProcessingMetrics:
    """Simple in-memory metrics collector."""

    def __init__(self) -> None:
        self.counters: Counter[str] = Counter()
        self.durations: list[float] = []

    def record(self, name: str, duration: float | None = None) -> None:
        self.counters[name] += 1
        if duration is not None:
            self.durations.append(duration)

    def reset(self) -> None:
        self.counters.clear()
        self.durations.clear()


processing_metrics = _ProcessingMetrics()


class ImageProcessor:
    """Runs decode, crop, composite and encode for each image of a batch."""

    def __init__(
        self,
        pool: Optional[SurfacePool] = None,
        *,
        decode_timeout: float = config.DECODE_TIMEOUT_SECS,
    ) -> None:
        """Initialize the image processor.

        Args:
            pool: Surface pool to draw on; defaults to the shared pool.
            decode_timeout: Seconds to wait for one image to decode.
        """
        self._pool = pool
        self.decode_timeout = decode_timeout

    @property
    def pool(self) -> SurfacePool:
        return self._pool if self._pool is not None else get_pool()

    def decode(self, source: SourceImage) -> ImageAsset:
        """Decode ``source``, giving up after ``decode_timeout`` seconds.

        Raises:
            DecodeError: If decoding fails or does not finish in time.
        """
        outcome: Dict[str, object] = {}

        def _decode() -> None:
            try:
                outcome["asset"] = decode_image(source)
            except Exception as exc:  # re-raised on the calling thread
                outcome["error"] = exc

        # One daemon thread per decode: a hung decoder is abandoned without
        # holding up later items or interpreter exit
        thread = threading.Thread(target=_decode, name=f"decode-{source.name}", daemon=True)
        thread.start()
        thread.join(self.decode_timeout)
        if thread.is_alive():
            raise DecodeError(
                f"{source.name}: decoding timed out after {self.decode_timeout}s"
            )
        if "error" in outcome:
            raise outcome["error"]  # type: ignore[misc]
        return outcome["asset"]  # type: ignore[return-value]

    def render(
        self,
        asset: ImageAsset,
        settings: ProcessingSettings,
        surface: Optional[Image.Image] = None,
    ) -> Image.Image:
        """Crop and composite ``asset`` onto an output-sized canvas."""
        geometry = resolve_geometry(asset.size, settings)
        return composite(asset.image, geometry, settings.size, surface=surface)

    def process_image(
        self,
        source: SourceImage,
        settings: ProcessingSettings,
        *,
        pool: Optional[SurfacePool] = None,
    ) -> ProcessedItem:
        """Process one image end to end.

        The drawing surface is held for the whole item and returned to the
        pool on every exit path.

        Raises:
            ImageProcessingError: Subclass describing the failed stage.
        """
        with (pool or self.pool).acquire(settings.size) as surface:
            asset = self.decode(source)
            canvas = self.render(asset, settings, surface)
            encoded = encode_image(canvas, settings.format, settings.max_file_size)
        return ProcessedItem(
            name=source.name,
            data=encoded.data,
            format=encoded.format.value,
            mime_type=encoded.mime_type,
            quality=encoded.quality,
        )

    def _process_item(
        self,
        index: int,
        source: SourceImage,
        settings: ProcessingSettings,
        pool: SurfacePool,
    ) -> ItemOutcome:
        """Process one item, converting item-level errors into a failure record."""
        start = time.perf_counter()
        try:
            item = self.process_image(source, settings, pool=pool)
        except ConfigurationError:
            raise
        except ImageProcessingError as exc:
            processing_metrics.record("failure")
            LOGGER.warning(
                "Failed to process %s: %s",
                source.name,
                exc,
                extra={"item": source.name, "index": index},
            )
            return ItemFailure(index=index, name=source.name, reason=str(exc))
        except Exception as exc:
            processing_metrics.record("failure")
            LOGGER.exception("Unexpected error processing %s", source.name)
            return ItemFailure(index=index, name=source.name, reason=f"unexpected error: {exc}")

        duration = (time.perf_counter() - start) * 1000
        processing_metrics.record("success", duration)
        LOGGER.debug(
            "Processed %s",
            source.name,
            extra={"item": source.name, "bytes": item.size_bytes, "quality": item.quality},
        )
        return item

    def process_batch(
        self,
        sources: Sequence[SourceImage],
        settings: ProcessingSettings,
        *,
        max_workers: int = config.DEFAULT_MAX_WORKERS,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> BatchResult:
        """
        Process every source with the shared ``settings``.

        Item failures are logged and reported in the result; they never abort
        the batch.  Results keep the input order even when ``max_workers`` is
        greater than one.

        Args:
            sources: Ordered input images.
            settings: Batch settings.
            max_workers: Items processed concurrently (1 means sequential).
            progress_callback: Receives a ``PROCESSING`` event per item.

        Returns:
            BatchResult: Successful items and failure reports.

        Raises:
            ConfigurationError: If ``settings`` cannot produce any output.
        """
        settings.validate()
        if max_workers <= 0:
            raise ConfigurationError("max_workers must be greater than zero")
        max_workers = min(max_workers, config.MAX_WORKERS_LIMIT)

        total = len(sources)
        outcomes: List[ItemOutcome] = []

        def _report(index: int, outcome: ItemOutcome) -> None:
            outcomes.append(outcome)
            emit(
                progress_callback,
                ProgressEvent(
                    stage=ProgressStage.PROCESSING,
                    total=total,
                    index=index,
                    name=sources[index].name,
                    succeeded=isinstance(outcome, ProcessedItem),
                ),
            )

        pool = self.pool
        if pool.max_surfaces < max_workers:
            # One surface per in-flight item
            pool = SurfacePool(max_surfaces=max_workers)

        if max_workers == 1 or total <= 1:
            for index, source in enumerate(sources):
                LOGGER.info("Processing image %d/%d: %s", index + 1, total, source.name)
                _report(index, self._process_item(index, source, settings, pool))
        else:
            futures: List[Tuple[int, Future[ItemOutcome]]] = []
            with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="item") as executor:
                for index, source in enumerate(sources):
                    futures.append(
                        (index, executor.submit(self._process_item, index, source, settings, pool))
                    )
                for index, future in futures:
                    _report(index, future.result())

        items = tuple(o for o in outcomes if isinstance(o, ProcessedItem))
        failures = tuple(o for o in outcomes if isinstance(o, ItemFailure))
        LOGGER.info("Batch processed: %d succeeded, %d failed", len(items), len(failures))
        return BatchResult(items=items, failures=failures)


__all__ = ["ImageProcessor", "processing_metrics"]
