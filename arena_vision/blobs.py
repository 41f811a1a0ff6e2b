import math
from typing import Sequence

import cv2
import numpy as np

from .ip_types import Ball


class BallObserver:
    """
    Blob observer for coloured balls.

    HSV threshold, open/close with a 5x5 ellipse, then keep external contours
    that are large and round enough. Bounds use OpenCV's HSV ranges
    (H 0-179, S/V 0-255).
    """

    def __init__(
        self,
        hsv_lower: Sequence[int] = (0, 119, 210),
        hsv_upper: Sequence[int] = (51, 196, 255),
        min_area: float = 100.0,
        min_circularity: float = 0.6,
    ):
        self.lower = np.array(hsv_lower, dtype=np.uint8)
        self.upper = np.array(hsv_upper, dtype=np.uint8)
        self.min_area = float(min_area)
        self.min_circularity = float(min_circularity)
        self.kernel = cv2.getStructuringElement(cv2.MORPH_ELLIPSE, (5, 5))

    def mask(self, image) -> np.ndarray:
        hsv = cv2.cvtColor(image, cv2.COLOR_BGR2HSV)
        mask = cv2.inRange(hsv, self.lower, self.upper)
        mask = cv2.morphologyEx(mask, cv2.MORPH_OPEN, self.kernel)
        mask = cv2.morphologyEx(mask, cv2.MORPH_CLOSE, self.kernel)
        return mask

    def __call__(self, image) -> list[Ball]:
        if image is None or image.ndim != 3:
            return []
        contours, _ = cv2.findContours(self.mask(image), cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)

        balls: list[Ball] = []
        for contour in contours:
            area = cv2.contourArea(contour)
            if area <= self.min_area:
                continue
            (x, y), radius = cv2.minEnclosingCircle(contour)
            if radius <= 0:
                continue
            circularity = area / (math.pi * radius * radius)
            if circularity > self.min_circularity:
                balls.append(Ball((float(x), float(y)), float(radius)))
        return balls
