"""Viewport-change coalescing for large record sets.

Clustering is quadratic in the number of visible records, so a map that
fires many move events per second can hold them here and recompute once
the viewport has been still for `settle_s` seconds.
"""

from __future__ import annotations

import time
from typing import Callable

from .models import Bounds


class ViewportCoalescer:
    """Keeps only the latest viewport and releases it once motion settles."""

    def __init__(self, settle_s: float, clock: Callable[[], float] = time.monotonic) -> None:
        if settle_s < 0:
            raise ValueError("settle_s must be >= 0")
        self.settle_s = settle_s
        self._clock = clock
        self._pending: tuple[int, Bounds | None] | None = None
        self._last_submit: float | None = None

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def submit(self, zoom: int, bounds: Bounds | None, now: float | None = None) -> None:
        self._pending = (zoom, bounds)
        self._last_submit = self._clock() if now is None else now

    def poll(self, now: float | None = None) -> tuple[int, Bounds | None] | None:
        if self._pending is None or self._last_submit is None:
            return None
        current = self._clock() if now is None else now
        if current - self._last_submit < self.settle_s:
            return None
        return self.take()

    def take(self) -> tuple[int, Bounds | None] | None:
        """Release the pending viewport now, settled or not."""
        pending = self._pending
        self.discard()
        return pending

    def discard(self) -> None:
        self._pending = None
        self._last_submit = None
