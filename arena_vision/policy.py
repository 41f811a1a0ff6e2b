from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional

import numpy as np

from .ip_types import MotorCommand
from .world_state import WorldState


def _clamp(value: float, lo: float = -1.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, float(value)))


def clamp_commands(commands: Mapping[int, MotorCommand]) -> dict[int, MotorCommand]:
    """Pass-through of policy output with both wheels limited to [-1, 1]."""
    return {
        int(agent_id): MotorCommand(_clamp(cmd.left), _clamp(cmd.right))
        for agent_id, cmd in commands.items()
    }


class CommandPolicy(ABC):
    @abstractmethod
    def predict(self, world: WorldState) -> dict[int, MotorCommand]: ...


class NullPolicy(CommandPolicy):
    def predict(self, world: WorldState) -> dict[int, MotorCommand]:
        return {}


class OnnxPolicy(CommandPolicy):
    """
    Runs a trained ONNX model on the world state.

    Input is an (N, 2) float32 tensor of agent centers normalised to [0, 1] by
    the arena size; output is read as [left0, right0, left1, right1, ...] in
    the same agent order.
    """

    def __init__(
        self,
        model_path: str,
        arena_size: float = 480.0,
        logger: Optional[logging.Logger] = None,
        session: Any = None,
    ):
        self.arena_size = float(arena_size)
        self.log = logger or logging.getLogger(__name__)
        self.session = session if session is not None else self._load(model_path)
        self.input_name = self.session.get_inputs()[0].name
        self.output_name = self.session.get_outputs()[0].name
        self.log.info("ONNX model loaded from %s", model_path)

    @staticmethod
    def _load(model_path: str):
        try:
            import onnxruntime as ort  # type: ignore
        except Exception as exc:  # pragma: no cover - optional dependency
            raise RuntimeError(
                "ONNX policy requested but onnxruntime is not installed. "
                "Install with: pip install onnxruntime"
            ) from exc
        return ort.InferenceSession(model_path, providers=["CPUExecutionProvider"])

    def predict(self, world: WorldState) -> dict[int, MotorCommand]:
        if not world.agents:
            return {}
        inputs = np.array(
            [[a.center[0] / self.arena_size, a.center[1] / self.arena_size] for a in world.agents],
            dtype=np.float32,
        )
        outputs = self.session.run([self.output_name], {self.input_name: inputs})
        flat = np.asarray(outputs[0], dtype=np.float64).reshape(-1)
        if len(flat) < 2 * len(world.agents):
            raise ValueError(
                f"model returned {len(flat)} values for {len(world.agents)} agents"
            )
        return {
            a.id: MotorCommand(float(flat[2 * i]), float(flat[2 * i + 1]))
            for i, a in enumerate(world.agents)
        }
