# trunkskel/scheduler.py
"""Frame-callback scheduler with at most one pending request."""
from __future__ import annotations

import itertools
from typing import Callable, Optional

from utils.logger import Logger

LOG = Logger.get_logger("sched")

FrameCallback = Callable[[float], None]


class FrameScheduler:
    """
    Host-driven stand-in for an animation-frame loop. ``tick`` runs the
    pending callback with a synthetic timestamp (ms at ``fps``).
    """

    def __init__(self, fps: float = 60.0) -> None:
        self._ids = itertools.count(1)
        self._pending: Optional[tuple[int, FrameCallback]] = None
        self.frame = 0
        self.fps = float(fps)

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def request_callback(self, fn: FrameCallback) -> int:
        if self._pending is not None:
            raise RuntimeError("a frame callback is already pending")
        handle = next(self._ids)
        self._pending = (handle, fn)
        return handle

    def cancel(self, handle: Optional[int]) -> bool:
        if self._pending is not None and self._pending[0] == handle:
            self._pending = None
            return True
        return False

    def tick(self) -> bool:
        """Run the pending callback, if any. Returns whether one ran."""
        if self._pending is None:
            return False
        _, fn = self._pending
        self._pending = None
        timestamp = self.frame * 1000.0 / self.fps
        self.frame += 1
        fn(timestamp)
        return True

    def run_until_idle(self, max_frames: Optional[int] = None) -> int:
        ran = 0
        while self.pending and (max_frames is None or ran < max_frames):
            self.tick()
            ran += 1
        LOG.debug(f"ran {ran} frame(s); pending={self.pending}")
        return ran
