import json
from pathlib import Path

import pytest

from arena_vision.config import WorkerConfig, load_config


def test_config_defaults():
    cfg = WorkerConfig()
    assert cfg.session_root
    assert cfg.arena.boundary_ids == [46, 47, 48, 49]
    assert cfg.arena.arena_size == 480.0
    assert cfg.stabilizer.alpha == 0.2
    assert cfg.stabilizer.min_observations == 3
    assert cfg.publish_interval_sec == 0.1
    assert cfg.mqtt.enabled is False
    assert 46 not in cfg.arena.agent_ids
    cfg.validate()


def test_load_config_json(tmp_path: Path):
    cfg_path = tmp_path / "arena.json"
    cfg_path.write_text(
        json.dumps(
            {
                "camera_name": "overhead",
                "device": "/dev/video0",
                "fps": 20,
                "width": 640,
                "height": 480,
                "publish_interval_sec": 0.2,
                "arena": {"boundary_ids": [10, 11, 12, 13], "arena_size": 400, "agent_id_max": 9},
                "stabilizer": {"alpha": 0.5, "min_observations": 2},
                "ball": {"hsv_lower": [5, 100, 100], "min_area": 50},
                "mqtt": {"enabled": True, "host": "10.0.0.2", "port": 1884},
            }
        ),
        encoding="utf-8",
    )

    cfg = load_config(cfg_path)
    assert cfg.camera_name == "overhead"
    assert cfg.device == "/dev/video0"
    assert cfg.fps == 20
    assert cfg.publish_interval_sec == 0.2
    assert cfg.arena.boundary_ids == [10, 11, 12, 13]
    assert cfg.arena.arena_size == 400.0
    assert list(cfg.arena.agent_ids) == list(range(1, 10))
    assert cfg.stabilizer.alpha == 0.5
    assert cfg.stabilizer.min_observations == 2
    assert cfg.ball.hsv_lower == [5, 100, 100]
    assert cfg.ball.hsv_upper == [51, 196, 255]
    assert cfg.ball.min_area == 50.0
    assert cfg.mqtt.enabled is True
    assert cfg.mqtt.host == "10.0.0.2"
    assert cfg.mqtt.port == 1884

    cfg.apply_overrides(camera_name="other", fps=None)
    assert cfg.camera_name == "other"
    assert cfg.fps == 20


def test_load_config_yaml(tmp_path: Path):
    cfg_path = tmp_path / "arena.yaml"
    cfg_path.write_text(
        "camera_name: yamlcam\n"
        "dry_run: true\n"
        "max_frames: 12\n"
        "arena:\n"
        "  arena_size: 450\n",
        encoding="utf-8",
    )
    cfg = load_config(cfg_path)
    assert cfg.camera_name == "yamlcam"
    assert cfg.dry_run is True
    assert cfg.max_frames == 12
    assert cfg.arena.arena_size == 450.0


def test_load_config_missing_file(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.json")


def test_load_config_rejects_non_object(tmp_path: Path):
    cfg_path = tmp_path / "bad.json"
    cfg_path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(cfg_path)


def test_validate_rejects_overlapping_ids():
    cfg = WorkerConfig()
    cfg.arena.boundary_ids = [1, 47, 48, 49]
    with pytest.raises(ValueError, match="overlap"):
        cfg.validate()


@pytest.mark.parametrize(
    "mutate",
    [
        lambda c: setattr(c.arena, "boundary_ids", [46, 47, 48]),
        lambda c: setattr(c.arena, "boundary_ids", [46, 46, 48, 49]),
        lambda c: setattr(c.arena, "arena_size", 0),
        lambda c: setattr(c, "publish_interval_sec", 0),
        lambda c: setattr(c, "marker_length_m", 0.0),
        lambda c: setattr(c, "marker_length_m", -0.15),
        lambda c: setattr(c.stabilizer, "alpha", 0),
        lambda c: setattr(c.stabilizer, "min_observations", 0),
        lambda c: setattr(c.arena, "agent_id_min", 50),
    ],
)
def test_validate_rejects_bad_values(mutate):
    cfg = WorkerConfig()
    mutate(cfg)
    with pytest.raises(ValueError):
        cfg.validate()
