"""Controller layer running batches independently of any front end."""

from .batch import BatchJobController, BatchOutcome, load_sources, write_archive

__all__ = [
    "BatchJobController",
    "BatchOutcome",
    "load_sources",
    "write_archive",
]
