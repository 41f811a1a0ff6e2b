import argparse
import logging
import signal
import sys

from .config import WorkerConfig, load_config
from .logging_utils import setup_logger
from .worker import ArenaWorker


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Run the arena vision worker")
    ap.add_argument("--config", help="Path to JSON/YAML config")

    ap.add_argument("--camera-name")
    ap.add_argument("--device")
    ap.add_argument("--fps", type=int)
    ap.add_argument("--width", type=int)
    ap.add_argument("--height", type=int)
    ap.add_argument("--calib", help="Camera intrinsics (OpenCV YAML or JSON with mtx/dist)")
    ap.add_argument("--out", help="Session root directory")
    ap.add_argument("--duration", type=float)
    ap.add_argument("--max-frames", type=int)
    ap.add_argument("--dict")
    ap.add_argument("--marker-length-m", type=float)
    ap.add_argument("--arena-size", type=float)
    ap.add_argument("--publish-interval", type=float)
    ap.add_argument("--model", help="ONNX policy model")
    ap.add_argument("--broker", help="MQTT broker host; enables MQTT publishing")
    ap.add_argument("--broker-port", type=int)
    ap.add_argument("--dry-run", action="store_true")
    ap.add_argument("--no-telemetry", action="store_true")
    ap.add_argument("--verbose", "-v", action="store_true")

    return ap


def _apply_args(cfg: WorkerConfig, args: argparse.Namespace) -> WorkerConfig:
    device = args.device
    if isinstance(device, str) and device.isdigit():
        device = int(device)

    cfg.apply_overrides(
        camera_name=args.camera_name,
        device=device,
        fps=args.fps,
        width=args.width,
        height=args.height,
        calibration_path=args.calib,
        session_root=args.out,
        duration_sec=args.duration,
        max_frames=args.max_frames,
        aruco_dict=args.dict,
        marker_length_m=args.marker_length_m,
        publish_interval_sec=args.publish_interval,
        model_path=args.model,
        dry_run=args.dry_run if args.dry_run else None,
        telemetry_csv=False if args.no_telemetry else None,
    )
    if args.arena_size is not None:
        cfg.arena.arena_size = args.arena_size
    if args.broker:
        cfg.mqtt.enabled = True
        cfg.mqtt.host = args.broker
    if args.broker_port is not None:
        cfg.mqtt.port = args.broker_port
    return cfg.validate()


def main() -> int:
    ap = _build_parser()
    args = ap.parse_args()

    cfg = load_config(args.config) if args.config else WorkerConfig()
    try:
        cfg = _apply_args(cfg, args)
    except ValueError as e:
        ap.error(str(e))

    logger = setup_logger(cfg.camera_name, logging.DEBUG if args.verbose else logging.INFO)
    worker = ArenaWorker(cfg, logger=logger)

    def _handle_signal(_sig, _frame):
        worker.stop()

    signal.signal(signal.SIGINT, _handle_signal)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, _handle_signal)

    summary = worker.run()
    print(summary)
    return 0


if __name__ == "__main__":
    sys.exit(main())
