# workers.py
"""
Background task execution utilities for Batch Resizer.
Defines a Worker for QRunnable tasks and a helper that runs a whole batch on a
QThreadPool while forwarding progress through Qt signals.
"""
import logging
from typing import Any, Callable, Optional, Sequence

from PySide6.QtCore import QObject, QRunnable, QThreadPool, Signal

from imaging.models import SourceImage

from .controllers import BatchJobController, BatchOutcome
from .errors import EmptyBatchError
from .progress import ProgressEvent

LOGGER = logging.getLogger(__name__)


class WorkerSignals(QObject):
    started = Signal()
    finished = Signal()
    error = Signal(str)
    progress = Signal(object)
    result = Signal(object)


class Worker(QRunnable):
    """Wraps any function to run in a QThreadPool."""
    def __init__(
        self,
        fn: Callable,
        *args,
        progress_callback: Optional[Callable[[Any], Any]] = None,
        **kwargs
    ):
        super().__init__()
        self.fn = fn
        self.args = args
        self.kwargs = kwargs
        self.signals = WorkerSignals()
        if progress_callback:
            self.signals.progress.connect(progress_callback)

    def run(self) -> None:
        try:
            self.signals.started.emit()
            result = self.fn(*self.args, **self.kwargs)
            self.signals.result.emit(result)
        except EmptyBatchError as e:
            LOGGER.warning("Worker finished without output: %s", e)
            self.signals.error.emit(str(e))
        except Exception as e:
            LOGGER.error("Worker error: %s", e)
            self.signals.error.emit(str(e))
        finally:
            self.signals.finished.emit()


def create_batch_worker(
    controller: BatchJobController,
    sources: Sequence[SourceImage],
    *,
    on_progress: Optional[Callable[[ProgressEvent], Any]] = None,
    on_result: Optional[Callable[[BatchOutcome], Any]] = None,
    on_error: Optional[Callable[[str], Any]] = None,
) -> Worker:
    """Build a Worker that runs ``controller`` over ``sources``.

    Progress events are re-emitted through ``worker.signals.progress`` so
    slots run on the receiver's thread.
    """
    def _run_batch() -> BatchOutcome:
        return controller.run(sources, progress_callback=worker.signals.progress.emit)

    worker = Worker(_run_batch, progress_callback=on_progress)
    if on_result:
        worker.signals.result.connect(on_result)
    if on_error:
        worker.signals.error.connect(on_error)
    return worker


def submit_batch(
    controller: BatchJobController,
    sources: Sequence[SourceImage],
    *,
    pool: Optional[QThreadPool] = None,
    **callbacks: Any,
) -> Worker:
    """Start a batch on ``pool`` (the global pool by default) and return its worker."""
    worker = create_batch_worker(controller, sources, **callbacks)
    (pool or QThreadPool.globalInstance()).start(worker)
    return worker


__all__ = ["Worker", "WorkerSignals", "create_batch_worker", "submit_batch"]
