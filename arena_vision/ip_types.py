from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

import numpy as np


@dataclass
class Frame:
    idx: int
    ts_iso: str
    image: Any  # numpy array


@dataclass
class MarkerObservation:
    marker_id: int
    corners: np.ndarray  # (4,2), detector order

    def __post_init__(self):
        self.marker_id = int(self.marker_id)
        self.corners = np.asarray(self.corners, dtype=np.float64).reshape(4, 2)


class Role(str, Enum):
    PLAYER = "player"
    AI = "ai"


@dataclass(frozen=True)
class Agent:
    id: int
    center: tuple[float, float]
    heading_deg: float
    role: Role

    @property
    def is_ai(self) -> bool:
        return self.role is Role.AI


@dataclass(frozen=True)
class Ball:
    center: tuple[float, float]
    radius: float


@dataclass(frozen=True)
class MotorCommand:
    left: float
    right: float
