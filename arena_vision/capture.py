import math
import re
import time
from abc import ABC, abstractmethod
from typing import Any, Sequence

import cv2
import numpy as np

from .detect import get_dict
from .ip_types import Frame


class BaseCapture(ABC):
    @abstractmethod
    def start(self) -> None: ...

    @abstractmethod
    def next_frame(self) -> Frame | None: ...

    @abstractmethod
    def stop(self) -> None: ...


class USBOpenCVCapture(BaseCapture):
    def __init__(self, device: int | str, fps: int, width: int, height: int):
        self.device = device
        self.fps = fps
        self.width = width
        self.height = height
        self.cap: Any = None
        self.idx = 0

    def start(self) -> None:
        if isinstance(self.device, int):
            self.cap = cv2.VideoCapture(self.device, cv2.CAP_V4L2)
        else:
            dev_str = str(self.device)
            match = re.match(r"^/dev/video(\d+)$", dev_str)
            if match:
                dev_idx = int(match.group(1))
                self.cap = cv2.VideoCapture(dev_idx, cv2.CAP_V4L2)
            else:
                self.cap = cv2.VideoCapture(dev_str)

        self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        self.cap.set(cv2.CAP_PROP_FPS, self.fps)

        if not self.cap.isOpened():
            raise RuntimeError(f"Failed to open camera: {self.device}")

    def next_frame(self) -> Frame | None:
        ok, img = self.cap.read()
        if not ok:
            return None
        self.idx += 1
        ts = time.strftime("%Y-%m-%dT%H:%M:%S")
        return Frame(self.idx, ts, img)

    def stop(self) -> None:
        if self.cap is not None:
            self.cap.release()


class SyntheticArenaCapture(BaseCapture):
    """
    Renders a fake arena for dry runs: the four boundary markers in the image
    corners, agent markers orbiting the center and one orange ball.
    """

    BALL_BGR = (100, 180, 255)

    def __init__(
        self,
        fps: int,
        width: int,
        height: int,
        boundary_ids: Sequence[int] = (46, 47, 48, 49),
        agent_ids: Sequence[int] = (1, 3),
        aruco_dict: str = "4x4_50",
    ):
        self.fps = fps
        self.width = width
        self.height = height
        self.boundary_ids = list(boundary_ids)
        self.agent_ids = list(agent_ids)
        self.side = max(24, min(width, height) // 8)
        self.margin = self.side // 2
        dictionary = get_dict(aruco_dict)
        self._tiles = {
            mid: cv2.cvtColor(
                cv2.aruco.generateImageMarker(dictionary, mid, self.side), cv2.COLOR_GRAY2BGR
            )
            for mid in self.boundary_ids + self.agent_ids
        }
        self.idx = 0
        self._last = 0.0

    def start(self) -> None:
        self._last = time.time()

    def _paste(self, img: np.ndarray, tile: np.ndarray, x: int, y: int) -> None:
        h, w = tile.shape[:2]
        x = int(min(max(x, 0), self.width - w))
        y = int(min(max(y, 0), self.height - h))
        img[y:y + h, x:x + w] = tile

    def render(self, idx: int) -> np.ndarray:
        img = np.full((self.height, self.width, 3), 255, dtype=np.uint8)
        s, m = self.side, self.margin
        corners = [
            (m, m),
            (self.width - m - s, m),
            (self.width - m - s, self.height - m - s),
            (m, self.height - m - s),
        ]
        for mid, (x, y) in zip(self.boundary_ids, corners):
            self._paste(img, self._tiles[mid], x, y)

        cx, cy = self.width / 2.0, self.height / 2.0
        orbit = min(self.width, self.height) / 5.0
        phase = idx / max(1, self.fps)
        for k, mid in enumerate(self.agent_ids):
            a = phase + k * 2.0 * math.pi / max(1, len(self.agent_ids))
            tile = np.ascontiguousarray(np.rot90(self._tiles[mid], k=int(phase) % 4))
            self._paste(img, tile, cx + orbit * math.cos(a) - s / 2, cy + orbit * math.sin(a) - s / 2)

        bx = int(cx + orbit * 0.25 * math.cos(-phase))
        by = int(cy + orbit * 0.25 * math.sin(-phase))
        cv2.circle(img, (bx, by), max(8, s // 4), self.BALL_BGR, -1)
        return img

    def next_frame(self) -> Frame | None:
        now = time.time()
        if self.fps > 0:
            wait = max(0.0, (1.0 / self.fps) - (now - self._last))
            if wait > 0:
                time.sleep(wait)
        self._last = time.time()
        self.idx += 1
        ts = time.strftime("%Y-%m-%dT%H:%M:%S")
        return Frame(self.idx, ts, self.render(self.idx))

    def stop(self) -> None:
        return None
