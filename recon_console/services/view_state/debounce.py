"""Coalesce rapid repeated triggers into one action."""

from __future__ import annotations

import time
from typing import Callable, Hashable, Optional


class Debouncer:
    """Leading-edge debounce keyed by an arbitrary hashable.

    The first trigger for a key runs immediately; further triggers for the
    same key within ``window_seconds`` of the last accepted one are
    dropped.  A double-click on a row therefore opens it once.
    """

    def __init__(
        self,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.window_seconds = window_seconds
        self._clock = clock
        self._last: dict[Hashable, float] = {}

    def should_fire(self, key: Hashable = None) -> bool:
        now = self._clock()
        self._last = {
            k: t for k, t in self._last.items() if now - t < self.window_seconds
        }
        last: Optional[float] = self._last.get(key)
        if last is not None and now - last < self.window_seconds:
            return False
        self._last[key] = now
        return True

    def reset(self) -> None:
        self._last.clear()

    def __len__(self) -> int:
        return len(self._last)
