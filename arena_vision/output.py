from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Mapping, Optional

import paho.mqtt.client as mqtt

from .ip_types import MotorCommand
from .services.csv_writer import CsvWriter
from .world_state import WorldState, encode_commands, encode_world_state, to_json


class OutputSink(ABC):
    @abstractmethod
    def open(self, session_dir: Path) -> None: ...

    @abstractmethod
    def write_world(self, world: WorldState, commands: Mapping[int, MotorCommand]) -> None: ...

    @abstractmethod
    def close(self) -> None: ...


class CsvOutput(OutputSink):
    def __init__(self, filename: str = "telemetry.csv"):
        self.filename = filename
        self.path: Optional[Path] = None
        self._writer: Optional[CsvWriter] = None

    def open(self, session_dir: Path) -> None:
        self.path = Path(session_dir) / self.filename
        self._writer = CsvWriter(str(self.path))
        self._writer.open()

    def write_world(self, world: WorldState, commands: Mapping[int, MotorCommand]) -> None:
        if self._writer is None:
            return
        for agent in world.agents:
            self._writer.append_agent(world.timestamp, agent, commands.get(agent.id))
        for i, ball in enumerate(world.balls):
            self._writer.append_ball(world.timestamp, i, ball)
        self._writer.flush()

    def close(self) -> None:
        if self._writer is not None:
            self._writer.close()
            self._writer = None


class MqttOutput(OutputSink):
    """
    Publishes the encoded world state and the motor commands over MQTT.

    World states go out at QoS 0 (the next one supersedes them), commands at
    QoS 1. Empty command maps are not published.
    """

    def __init__(
        self,
        host: str,
        port: int = 1883,
        world_topic: str = "arena/world/v1",
        command_topic: str = "robots/commands",
        client_id: str = "vision_publisher",
        logger: Optional[logging.Logger] = None,
        client: Any = None,
    ):
        self.host = host
        self.port = port
        self.world_topic = world_topic
        self.command_topic = command_topic
        self.log = logger or logging.getLogger(__name__)
        self.client = client if client is not None else mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=client_id,
        )
        self._connected = False

    def open(self, session_dir: Path) -> None:
        try:
            self.client.connect(self.host, self.port, 60)
            self.client.loop_start()
            self._connected = True
            self.log.info("[MQTT] Connected to %s:%d", self.host, self.port)
        except Exception as e:
            self.log.warning("[MQTT] Connection to %s:%d failed: %s", self.host, self.port, e)

    def write_world(self, world: WorldState, commands: Mapping[int, MotorCommand]) -> None:
        if not self._connected:
            return
        self.client.publish(self.world_topic, to_json(encode_world_state(world)), qos=0)
        if commands:
            payload = to_json(encode_commands(commands))
            self.log.debug("Publishing commands: %s", payload)
            self.client.publish(self.command_topic, payload, qos=1)

    def close(self) -> None:
        if not self._connected:
            return
        try:
            self.client.loop_stop()
            self.client.disconnect()
            self.log.info("[MQTT] Disconnected.")
        except Exception as e:
            self.log.warning("[MQTT] Disconnect failed: %s", e)
        finally:
            self._connected = False


class NullOutput(OutputSink):
    def open(self, session_dir: Path) -> None:
        return None

    def write_world(self, world: WorldState, commands: Mapping[int, MotorCommand]) -> None:
        return None

    def close(self) -> None:
        return None
