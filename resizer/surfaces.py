"""Thread-safe pool of reusable drawing surfaces.

The compositor draws every item onto an RGB surface of the output size.
Allocating one per item is wasteful, but a single module-level surface can
only serve one item at a time.  :class:`SurfacePool` keeps a bounded set of
idle surfaces; :meth:`SurfacePool.acquire` hands one out exclusively for the
duration of a ``with`` block and returns it on every exit path, including
errors raised while the surface is held.

The module exposes factory and context-manager helpers so tests and
alternative workers can swap the pool without relying on import order.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from contextlib import contextmanager
from threading import BoundedSemaphore, RLock
from typing import Callable, DefaultDict, Iterator, List, Optional, Tuple

from PIL import Image

from . import config

LOGGER = logging.getLogger(__name__)

Size = Tuple[int, int]


class SurfacePool:
    """Bounded pool of RGB surfaces keyed by size."""

    def __init__(self, max_surfaces: int = config.DEFAULT_MAX_WORKERS) -> None:
        if max_surfaces <= 0:
            raise ValueError("max_surfaces must be greater than zero")
        self.max_surfaces = max_surfaces
        self._idle: DefaultDict[Size, List[Image.Image]] = defaultdict(list)
        self._lock = RLock()
        self._slots = BoundedSemaphore(max_surfaces)
        self.allocations = 0

    @contextmanager
    def acquire(self, size: Size) -> Iterator[Image.Image]:
        """Yield a surface of ``size`` owned exclusively by the caller.

        Blocks while ``max_surfaces`` surfaces are already checked out.
        """
        self._slots.acquire()
        try:
            surface = self._checkout(size)
            try:
                yield surface
            finally:
                self._checkin(surface)
        finally:
            self._slots.release()

    def _checkout(self, size: Size) -> Image.Image:
        with self._lock:
            idle = self._idle.get(size)
            if idle:
                return idle.pop()
            # Drop surfaces of other sizes so the pool never grows unbounded
            self._idle.clear()
            self.allocations += 1
        LOGGER.debug("Allocating %dx%d surface", *size)
        return Image.new("RGB", size, config.BACKGROUND_COLOR)

    def _checkin(self, surface: Image.Image) -> None:
        with self._lock:
            idle = self._idle[surface.size]
            if len(idle) < self.max_surfaces:
                idle.append(surface)

    def idle_count(self) -> int:
        """Return the number of surfaces waiting to be reused."""
        with self._lock:
            return sum(len(items) for items in self._idle.values())

    def clear(self) -> None:
        """Release all idle surfaces."""
        with self._lock:
            self._idle.clear()


_pool_factory: Callable[[], SurfacePool]
_pool_instance: Optional[SurfacePool]
_pool_factory_lock = RLock()


def _default_pool_factory() -> SurfacePool:
    """Return a new :class:`SurfacePool` using default configuration."""

    return SurfacePool()


_pool_factory = _default_pool_factory
_pool_instance = None


def configure_pool(factory: Callable[[], SurfacePool], *, reset: bool = True) -> None:
    """Configure the factory used to lazily supply the shared pool.

    Parameters
    ----------
    factory:
        A callable returning a configured :class:`SurfacePool`.  It is invoked
        lazily when :func:`get_pool` is called.
    reset:
        When ``True`` (default) the current pool is discarded so the next
        :func:`get_pool` call yields a fresh instance from ``factory``.
    """

    if not callable(factory):
        raise TypeError("factory must be callable")

    with _pool_factory_lock:
        global _pool_factory, _pool_instance
        _pool_factory = factory
        if reset:
            _pool_instance = None


def get_pool() -> SurfacePool:
    """Return the lazily constructed shared pool."""

    with _pool_factory_lock:
        global _pool_instance
        if _pool_instance is None:
            _pool_instance = _pool_factory()
        return _pool_instance


@contextmanager
def override_pool(pool: SurfacePool) -> Iterator[SurfacePool]:
    """Temporarily replace the shared pool within a ``with`` block.

    >>> with override_pool(SurfacePool(max_surfaces=2)) as temporary:
    ...     assert get_pool() is temporary
    ...
    >>> assert get_pool() is not temporary
    """

    with _pool_factory_lock:
        global _pool_factory, _pool_instance
        previous_factory = _pool_factory
        previous_instance = _pool_instance

        def _factory() -> SurfacePool:
            return pool

        _pool_factory = _factory
        _pool_instance = pool
    try:
        yield pool
    finally:
        with _pool_factory_lock:
            _pool_factory = previous_factory
            _pool_instance = previous_instance


__all__ = [
    "SurfacePool",
    "configure_pool",
    "get_pool",
    "override_pool",
]
