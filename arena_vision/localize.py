import math
from typing import Optional, Tuple

import cv2
import numpy as np

from .agents import heading_degrees, marker_center
from .ip_types import MarkerObservation

RawPose = Tuple[np.ndarray, np.ndarray]


class PnPLocalize:
    """Marker pose in the camera frame from its corners and the camera intrinsics."""

    # rvec/tvec are metric camera-frame values, not arena pixels
    pixel_space = False

    def __init__(self, K, dist, marker_length_m: float):
        if marker_length_m <= 0:
            raise ValueError("marker_length_m must be positive")
        self.K, self.dist, self.L = K, dist, marker_length_m
        half = marker_length_m / 2.0
        # IPPE_SQUARE object point order: TL, TR, BR, BL
        self.object_points = np.array(
            [[-half, half, 0], [half, half, 0], [half, -half, 0], [-half, -half, 0]],
            dtype=np.float64,
        )

    def estimate(self, obs: MarkerObservation) -> Optional[RawPose]:
        ok, rvec, tvec = cv2.solvePnP(
            self.object_points,
            obs.corners.astype(np.float64),
            self.K,
            self.dist,
            flags=cv2.SOLVEPNP_IPPE_SQUARE,
        )
        if not ok:
            return None
        return rvec.reshape(3), tvec.reshape(3)


class PlanarLocalize:
    """Pixel-space pseudo pose for setups without camera intrinsics.

    rotation = [0, 0, heading_rad], translation = [cx, cy, 0]
    """

    pixel_space = True

    def estimate(self, obs: MarkerObservation) -> Optional[RawPose]:
        cx, cy = marker_center(obs.corners)
        rvec = np.array([0.0, 0.0, math.radians(heading_degrees(obs.corners))])
        tvec = np.array([cx, cy, 0.0])
        return rvec, tvec
