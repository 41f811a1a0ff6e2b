"""Per-marker pose debounce and exponential smoothing."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np


@dataclass
class TrackedPose:
    id: int
    smoothed_rotation: Optional[np.ndarray] = None
    smoothed_translation: Optional[np.ndarray] = None
    observation_count: int = 0

    @property
    def has_value(self) -> bool:
        return self.smoothed_rotation is not None


class PoseStabilizer:
    """
    Debounces and smooths raw per-marker poses.

    A marker is hidden until it has been observed ``min_observations`` times.
    The count is cumulative over the lifetime of the stabilizer, so a marker
    that drops out and comes back is trusted immediately. Smoothing starts
    with the first eligible observation, which is returned unchanged:

        smoothed = alpha * raw + (1 - alpha) * previous
    """

    def __init__(self, alpha: float = 0.2, min_observations: int = 3):
        if not 0.0 < alpha <= 1.0:
            raise ValueError("alpha must be in (0, 1]")
        if min_observations < 1:
            raise ValueError("min_observations must be >= 1")
        self.alpha = float(alpha)
        self.min_observations = int(min_observations)
        self._poses: dict[int, TrackedPose] = {}

    def __len__(self) -> int:
        return len(self._poses)

    def tracked(self, marker_id: int) -> Optional[TrackedPose]:
        return self._poses.get(int(marker_id))

    def observation_count(self, marker_id: int) -> int:
        pose = self._poses.get(int(marker_id))
        return pose.observation_count if pose is not None else 0

    def reset(self) -> None:
        self._poses.clear()

    def stabilize(
        self, marker_id: int, raw_rotation, raw_translation
    ) -> Optional[Tuple[np.ndarray, np.ndarray]]:
        marker_id = int(marker_id)
        pose = self._poses.setdefault(marker_id, TrackedPose(marker_id))
        pose.observation_count += 1
        if pose.observation_count < self.min_observations:
            return None

        rvec = np.asarray(raw_rotation, dtype=np.float64).reshape(3)
        tvec = np.asarray(raw_translation, dtype=np.float64).reshape(3)
        if not pose.has_value:
            pose.smoothed_rotation = rvec.copy()
            pose.smoothed_translation = tvec.copy()
        else:
            a = self.alpha
            pose.smoothed_rotation = a * rvec + (1.0 - a) * pose.smoothed_rotation
            pose.smoothed_translation = a * tvec + (1.0 - a) * pose.smoothed_translation

        return pose.smoothed_rotation.copy(), pose.smoothed_translation.copy()
