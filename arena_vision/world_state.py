"""World-state synthesis and wire encoding."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

from .calibration import BoundaryCalibration
from .ip_types import Agent, Ball, MotorCommand

WORLD_STATE_SCHEMA_VERSION = 1


@dataclass(frozen=True)
class WorldState:
    agents: tuple[Agent, ...] = ()
    balls: tuple[Ball, ...] = ()
    timestamp: float = 0.0

    @property
    def is_empty(self) -> bool:
        return not self.agents and not self.balls


def synthesize(
    calibration: BoundaryCalibration,
    agents_px: Sequence[Agent],
    balls_px: Sequence[Ball],
    timestamp: Optional[float] = None,
) -> WorldState:
    """
    Build a canonical-frame WorldState from pixel-space agents and balls.

    Without a calibration the snapshot is empty. Headings are carried over from
    pixel space as-is; the perspective distortion of angles is not corrected.
    Ball radii stay in pixels.
    """
    ts = time.time() if timestamp is None else float(timestamp)
    if not calibration.has_value:
        return WorldState((), (), ts)

    centers = [a.center for a in agents_px] + [b.center for b in balls_px]
    projected = calibration.project(centers)

    n = len(agents_px)
    agents = tuple(
        Agent(a.id, (float(p[0]), float(p[1])), a.heading_deg, a.role)
        for a, p in zip(agents_px, projected[:n])
    )
    balls = tuple(
        Ball((float(p[0]), float(p[1])), b.radius)
        for b, p in zip(balls_px, projected[n:])
    )
    return WorldState(agents, balls, ts)


def encode_world_state(world: WorldState) -> dict[str, Any]:
    return {
        "bots": [
            {
                "id": int(a.id),
                "center": [float(a.center[0]), float(a.center[1])],
                "angle": float(a.heading_deg),
                "is_ai": bool(a.is_ai),
            }
            for a in world.agents
        ],
        "balls": [
            {
                "center": [float(b.center[0]), float(b.center[1])],
                "radius": float(b.radius),
            }
            for b in world.balls
        ],
    }


def encode_commands(commands: Mapping[int, MotorCommand]) -> dict[str, Any]:
    return {
        "commands": [
            {"id": int(agent_id), "left": float(cmd.left), "right": float(cmd.right)}
            for agent_id, cmd in sorted(commands.items())
        ]
    }


def to_json(payload: Mapping[str, Any]) -> str:
    return json.dumps(payload, separators=(",", ":"))
