"""Arena calibration: pixel -> canonical top-down homography from 4 boundary markers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import cv2
import numpy as np

from .agents import marker_center
from .ip_types import MarkerObservation


@dataclass(frozen=True, eq=False)
class BoundaryCalibration:
    homography: Optional[np.ndarray] = None

    def __post_init__(self):
        if self.homography is not None:
            H = np.array(self.homography, dtype=np.float64).reshape(3, 3)
            H.setflags(write=False)
            object.__setattr__(self, "homography", H)

    @classmethod
    def empty(cls) -> "BoundaryCalibration":
        return cls(None)

    @property
    def has_value(self) -> bool:
        return self.homography is not None

    def matrix(self) -> np.ndarray:
        """Copy of the 3x3 homography."""
        if self.homography is None:
            raise ValueError("no calibration available")
        return self.homography.copy()

    def project(self, points) -> np.ndarray:
        """
        Map pixel points to canonical arena coordinates.

        Args:
            points: sequence of (x, y) pairs, any array-like reshapable to (N, 2)

        Returns:
            (N, 2) float array
        """
        if self.homography is None:
            raise ValueError("no calibration available")
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        if len(pts) == 0:
            return np.empty((0, 2), dtype=np.float64)
        out = cv2.perspectiveTransform(pts.reshape(-1, 1, 2), self.homography)
        return out.reshape(-1, 2)


class ArenaCalibrator:
    """
    Keeps the last good arena homography.

    ``boundary_ids`` are the markers at the top-left, top-right, bottom-right
    and bottom-left corners of the arena, in that order. The stored
    calibration is only replaced when all four are seen in the same frame.
    """

    def __init__(
        self,
        boundary_ids: Sequence[int] = (46, 47, 48, 49),
        arena_size: float = 480.0,
        logger: Optional[logging.Logger] = None,
    ):
        if len(boundary_ids) != 4 or len(set(boundary_ids)) != 4:
            raise ValueError("boundary_ids must name 4 distinct markers (TL, TR, BR, BL)")
        if arena_size <= 0:
            raise ValueError("arena_size must be positive")
        self.boundary_ids = tuple(int(i) for i in boundary_ids)
        self.arena_size = float(arena_size)
        self.log = logger or logging.getLogger(__name__)
        s = self.arena_size
        self.destination = np.array([[0, 0], [s, 0], [s, s], [0, s]], dtype=np.float32)
        self._current = BoundaryCalibration.empty()

    @property
    def current(self) -> BoundaryCalibration:
        return self._current

    def boundary_centroids(self, observations: Sequence[MarkerObservation]) -> Optional[np.ndarray]:
        """Centroids of the boundary markers in TL, TR, BR, BL order, or None if any is missing."""
        centers: dict[int, np.ndarray] = {}
        for obs in observations:
            if obs.marker_id in self.boundary_ids and obs.marker_id not in centers:
                centers[obs.marker_id] = marker_center(obs.corners)
        if len(centers) < 4:
            return None
        return np.array([centers[i] for i in self.boundary_ids], dtype=np.float32)

    def update(self, observations: Sequence[MarkerObservation]) -> BoundaryCalibration:
        src = self.boundary_centroids(observations)
        if src is None:
            return self._current

        try:
            H = cv2.getPerspectiveTransform(src, self.destination)
        except cv2.error as e:
            self.log.warning("Arena homography failed: %s", e)
            return self._current

        if H is None or not np.all(np.isfinite(H)) or abs(np.linalg.det(H)) < 1e-12:
            self.log.warning("Rejected degenerate arena homography from centroids %s", src.tolist())
            return self._current

        if not self._current.has_value:
            self.log.info("Arena calibrated (size=%.1f)", self.arena_size)
        self._current = BoundaryCalibration(H.astype(np.float64))
        return self._current
