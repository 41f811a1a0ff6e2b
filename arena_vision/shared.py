"""The two stores shared between the capture and detect/publish threads."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from .calibration import BoundaryCalibration
from .ip_types import Agent


class FrameSlot:
    """
    Single-slot, latest-wins frame buffer.

    ``put`` overwrites whatever is there; a frame that was never taken is
    counted in ``dropped``. ``take`` hands out a copy so the lock is only held
    while copying.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._image: Optional[np.ndarray] = None
        self._seq = 0
        self._taken_seq = 0
        self.dropped = 0

    @property
    def seq(self) -> int:
        with self._lock:
            return self._seq

    def put(self, image: np.ndarray) -> int:
        with self._lock:
            if self._image is not None and self._taken_seq < self._seq:
                self.dropped += 1
            self._image = image.copy()
            self._seq += 1
            return self._seq

    def take(self, after_seq: int = 0) -> Optional[tuple[int, np.ndarray]]:
        """Newest frame if it is newer than ``after_seq``, else None."""
        with self._lock:
            if self._image is None or self._seq <= after_seq:
                return None
            self._taken_seq = self._seq
            return self._seq, self._image.copy()


@dataclass(frozen=True)
class LastKnownDerivedState:
    calibration: BoundaryCalibration
    agents: tuple[Agent, ...]
    updated_at: Optional[float]


class DerivedStateStore:
    """Last successful calibration and agent list, each updated independently."""

    def __init__(self):
        self._lock = threading.Lock()
        self._calibration = BoundaryCalibration.empty()
        self._agents: tuple[Agent, ...] = ()
        self._updated_at: Optional[float] = None

    def update(
        self,
        calibration: Optional[BoundaryCalibration] = None,
        agents: Optional[Sequence[Agent]] = None,
        now: Optional[float] = None,
    ) -> bool:
        """Store the non-empty results; returns True if anything changed."""
        changed = False
        with self._lock:
            if calibration is not None and calibration.has_value:
                self._calibration = calibration
                changed = True
            if agents:
                self._agents = tuple(agents)
                changed = True
            if changed:
                self._updated_at = time.monotonic() if now is None else now
        return changed

    def snapshot(self) -> LastKnownDerivedState:
        with self._lock:
            return LastKnownDerivedState(self._calibration, self._agents, self._updated_at)


class PublishThrottle:
    """Wall-clock gate: ``due(now)`` is True at most once per interval."""

    _EPS = 1e-9

    def __init__(self, interval_sec: float = 0.1):
        if interval_sec < 0:
            raise ValueError("interval_sec must be >= 0")
        self.interval_sec = float(interval_sec)
        self._last: Optional[float] = None

    def due(self, now: float) -> bool:
        if self._last is None or (now - self._last) >= self.interval_sec - self._EPS:
            self._last = now
            return True
        return False
