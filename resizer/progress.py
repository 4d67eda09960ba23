"""Progress events emitted while a batch runs."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional


class ProgressStage(str, Enum):
    INITIALIZING = "initializing"
    PROCESSING = "processing"
    PACKAGING = "packaging"
    COMPLETED = "completed"


@dataclass(frozen=True)
class ProgressEvent:
    """A single progress notification.

    ``index`` is zero-based and ``None`` for stage-level events.
    """

    stage: ProgressStage
    total: int
    index: Optional[int] = None
    name: Optional[str] = None
    succeeded: Optional[bool] = None

    @property
    def percent(self) -> int:
        if self.stage is ProgressStage.COMPLETED:
            return 100
        if self.stage is ProgressStage.PACKAGING:
            return 95
        if self.stage is ProgressStage.INITIALIZING or not self.total:
            return 0
        done = 0 if self.index is None else self.index + 1
        return int(done / self.total * 90)


ProgressCallback = Callable[[ProgressEvent], None]


def emit(callback: Optional[ProgressCallback], event: ProgressEvent) -> None:
    """Forward ``event`` to ``callback`` when one is registered."""
    if callback is not None:
        callback(event)


__all__ = ["ProgressCallback", "ProgressEvent", "ProgressStage", "emit"]
