"""Batch resizer: crop, pad and re-encode image batches into one archive."""

__version__ = "0.1.0"
