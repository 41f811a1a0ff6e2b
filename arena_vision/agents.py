"""Mobile-agent extraction from per-frame marker observations."""

from __future__ import annotations

import math
from typing import Iterable, Sequence

import numpy as np

from .ip_types import Agent, MarkerObservation, Role


def marker_center(corners) -> np.ndarray:
    """Mean of the four marker corners, shape (2,)."""
    pts = np.asarray(corners, dtype=np.float64).reshape(4, 2)
    return pts.mean(axis=0)


def heading_degrees(corners) -> float:
    """
    Heading of a marker in image coordinates (y axis pointing down).

    corners[0]-corners[1] is the front edge and corners[2]-corners[3] the back
    edge, so an upright marker faces -90 degrees.
    """
    pts = np.asarray(corners, dtype=np.float64).reshape(4, 2)
    front = (pts[0] + pts[1]) / 2.0
    back = (pts[2] + pts[3]) / 2.0
    return math.degrees(math.atan2(front[1] - back[1], front[0] - back[0]))


def wrap_degrees(angle: float) -> float:
    """Angle folded into (-180, 180]."""
    a = math.fmod(angle, 360.0)
    if a <= -180.0:
        a += 360.0
    elif a > 180.0:
        a -= 360.0
    return a


class AgentTracker:
    """
    Turns marker observations into Agents.

    Only ids inside ``agent_ids`` are kept. Ids below ``ai_id_cutoff`` are
    player controlled, ids at or above it are driven by the policy.
    """

    def __init__(self, agent_ids: Iterable[int] = range(1, 46), ai_id_cutoff: int = 3):
        self.agent_ids = frozenset(int(i) for i in agent_ids)
        self.ai_id_cutoff = int(ai_id_cutoff)

    def is_agent(self, marker_id: int) -> bool:
        return marker_id in self.agent_ids

    def role_for(self, marker_id: int) -> Role:
        return Role.AI if marker_id >= self.ai_id_cutoff else Role.PLAYER

    def extract(self, observations: Sequence[MarkerObservation]) -> list[Agent]:
        agents: list[Agent] = []
        for obs in observations:
            if not self.is_agent(obs.marker_id):
                continue
            cx, cy = marker_center(obs.corners)
            agents.append(
                Agent(
                    id=obs.marker_id,
                    center=(float(cx), float(cy)),
                    heading_deg=heading_degrees(obs.corners),
                    role=self.role_for(obs.marker_id),
                )
            )
        return agents
