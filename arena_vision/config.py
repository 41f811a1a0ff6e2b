from __future__ import annotations

import json
from dataclasses import dataclass, asdict, field
from pathlib import Path
from typing import Any, Optional


@dataclass
class ArenaConfig:
    """Arena geometry and marker id assignment."""

    boundary_ids: list[int] = field(default_factory=lambda: [46, 47, 48, 49])  # TL, TR, BR, BL
    arena_size: float = 480.0
    agent_id_min: int = 1
    agent_id_max: int = 45  # inclusive
    ai_id_cutoff: int = 3  # ids >= cutoff are AI driven

    @property
    def agent_ids(self) -> range:
        return range(self.agent_id_min, self.agent_id_max + 1)

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class StabilizerConfig:
    alpha: float = 0.2
    min_observations: int = 3

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class BallConfig:
    hsv_lower: list[int] = field(default_factory=lambda: [0, 119, 210])
    hsv_upper: list[int] = field(default_factory=lambda: [51, 196, 255])
    min_area: float = 100.0
    min_circularity: float = 0.6

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class MqttConfig:
    enabled: bool = False
    host: str = "localhost"
    port: int = 1883
    world_topic: str = "arena/world/v1"
    command_topic: str = "robots/commands"
    client_id: str = "vision_publisher"

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class WorkerConfig:
    camera_name: str = "arena"
    device: int | str = 0
    fps: int = 30
    width: int = 640
    height: int = 480
    calibration_path: Optional[str] = None
    aruco_dict: str = "4x4_50"
    marker_length_m: float = 0.15
    session_root: str = "data/sessions"
    duration_sec: Optional[float] = None
    max_frames: Optional[int] = None
    dry_run: bool = False
    publish_interval_sec: float = 0.1
    model_path: Optional[str] = None
    telemetry_csv: bool = True
    arena: ArenaConfig = field(default_factory=ArenaConfig)
    stabilizer: StabilizerConfig = field(default_factory=StabilizerConfig)
    ball: BallConfig = field(default_factory=BallConfig)
    mqtt: MqttConfig = field(default_factory=MqttConfig)

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)

    def apply_overrides(self, **kwargs: Any) -> "WorkerConfig":
        for key, value in kwargs.items():
            if value is not None and hasattr(self, key):
                setattr(self, key, value)
        return self

    def validate(self) -> "WorkerConfig":
        arena = self.arena
        if len(arena.boundary_ids) != 4 or len(set(arena.boundary_ids)) != 4:
            raise ValueError("arena.boundary_ids must list 4 distinct ids (TL, TR, BR, BL)")
        if arena.arena_size <= 0:
            raise ValueError("arena.arena_size must be positive")
        if arena.agent_id_min > arena.agent_id_max:
            raise ValueError("arena.agent_id_min must be <= arena.agent_id_max")
        overlap = set(arena.boundary_ids) & set(arena.agent_ids)
        if overlap:
            raise ValueError(f"boundary ids overlap agent ids: {sorted(overlap)}")
        if self.marker_length_m <= 0:
            raise ValueError("marker_length_m must be positive")
        if self.publish_interval_sec <= 0:
            raise ValueError("publish_interval_sec must be positive")
        if not 0.0 < self.stabilizer.alpha <= 1.0:
            raise ValueError("stabilizer.alpha must be in (0, 1]")
        if self.stabilizer.min_observations < 1:
            raise ValueError("stabilizer.min_observations must be >= 1")
        return self


def _int_list(value: Any, name: str) -> list[int]:
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"{name} must be a list")
    return [int(v) for v in value]


def _load_yaml(path: Path) -> dict[str, Any]:
    try:
        import yaml  # type: ignore
    except Exception as exc:  # pragma: no cover - optional dependency
        raise RuntimeError(
            "YAML config requested but PyYAML is not installed. "
            "Install with: pip install pyyaml"
        ) from exc
    with path.open("r", encoding="utf-8") as fp:
        data = yaml.safe_load(fp) or {}
    if not isinstance(data, dict):
        raise ValueError("YAML config root must be a mapping")
    return data


def load_config(path: str | Path) -> WorkerConfig:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config not found: {p}")

    if p.suffix.lower() in {".yaml", ".yml"}:
        raw = _load_yaml(p)
    else:
        with p.open("r", encoding="utf-8") as fp:
            raw = json.load(fp)

    if not isinstance(raw, dict):
        raise ValueError("Config root must be a JSON/YAML object")

    cfg = WorkerConfig()
    cfg.camera_name = str(raw.get("camera_name", cfg.camera_name))
    cfg.device = raw.get("device", cfg.device)
    cfg.fps = int(raw.get("fps", cfg.fps))
    cfg.width = int(raw.get("width", cfg.width))
    cfg.height = int(raw.get("height", cfg.height))
    cfg.calibration_path = raw.get("calibration_path", cfg.calibration_path)
    cfg.aruco_dict = str(raw.get("aruco_dict", cfg.aruco_dict))
    cfg.marker_length_m = float(raw.get("marker_length_m", cfg.marker_length_m))
    cfg.session_root = str(raw.get("session_root", cfg.session_root))
    cfg.duration_sec = raw.get("duration_sec", cfg.duration_sec)
    if cfg.duration_sec is not None:
        cfg.duration_sec = float(cfg.duration_sec)
    cfg.max_frames = raw.get("max_frames", cfg.max_frames)
    if cfg.max_frames is not None:
        cfg.max_frames = int(cfg.max_frames)
    cfg.dry_run = bool(raw.get("dry_run", cfg.dry_run))
    cfg.publish_interval_sec = float(raw.get("publish_interval_sec", cfg.publish_interval_sec))
    cfg.model_path = raw.get("model_path", cfg.model_path)
    cfg.telemetry_csv = bool(raw.get("telemetry_csv", cfg.telemetry_csv))

    arena_raw = raw.get("arena")
    if isinstance(arena_raw, dict):
        a = cfg.arena
        if "boundary_ids" in arena_raw:
            a.boundary_ids = _int_list(arena_raw["boundary_ids"], "arena.boundary_ids")
        a.arena_size = float(arena_raw.get("arena_size", a.arena_size))
        a.agent_id_min = int(arena_raw.get("agent_id_min", a.agent_id_min))
        a.agent_id_max = int(arena_raw.get("agent_id_max", a.agent_id_max))
        a.ai_id_cutoff = int(arena_raw.get("ai_id_cutoff", a.ai_id_cutoff))

    stab_raw = raw.get("stabilizer")
    if isinstance(stab_raw, dict):
        s = cfg.stabilizer
        s.alpha = float(stab_raw.get("alpha", s.alpha))
        s.min_observations = int(stab_raw.get("min_observations", s.min_observations))

    ball_raw = raw.get("ball")
    if isinstance(ball_raw, dict):
        b = cfg.ball
        if "hsv_lower" in ball_raw:
            b.hsv_lower = _int_list(ball_raw["hsv_lower"], "ball.hsv_lower")
        if "hsv_upper" in ball_raw:
            b.hsv_upper = _int_list(ball_raw["hsv_upper"], "ball.hsv_upper")
        b.min_area = float(ball_raw.get("min_area", b.min_area))
        b.min_circularity = float(ball_raw.get("min_circularity", b.min_circularity))

    mqtt_raw = raw.get("mqtt")
    if isinstance(mqtt_raw, dict):
        m = cfg.mqtt
        m.enabled = bool(mqtt_raw.get("enabled", m.enabled))
        m.host = str(mqtt_raw.get("host", m.host))
        m.port = int(mqtt_raw.get("port", m.port))
        m.world_topic = str(mqtt_raw.get("world_topic", m.world_topic))
        m.command_topic = str(mqtt_raw.get("command_topic", m.command_topic))
        m.client_id = str(mqtt_raw.get("client_id", m.client_id))

    return cfg.validate()
