from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, Optional, Sequence

import numpy as np

from .agents import AgentTracker, wrap_degrees
from .blobs import BallObserver
from .calibration import ArenaCalibrator
from .capture import BaseCapture, SyntheticArenaCapture, USBOpenCVCapture
from .config import WorkerConfig
from .detect import ArucoObserver
from .ip_types import Agent, Ball, MarkerObservation, MotorCommand
from .localize import PlanarLocalize, PnPLocalize
from .logging_utils import add_file_handler, setup_logger
from .output import CsvOutput, MqttOutput, OutputSink
from .policy import CommandPolicy, NullPolicy, OnnxPolicy, clamp_commands
from .services.calib import load_calib
from .services.storage import SessionStorage
from .shared import DerivedStateStore, FrameSlot, PublishThrottle
from .stabilizer import PoseStabilizer
from .world_state import WorldState, synthesize

MarkerObserver = Callable[[np.ndarray], Sequence[MarkerObservation]]
BlobObserver = Callable[[np.ndarray], Sequence[Ball]]


@dataclass
class SessionSummary:
    session_path: str
    frames_processed: int
    worlds_published: int
    telemetry_path: Optional[str]
    log_path: str
    avg_fps: float
    errors: int
    frames_dropped: int


class ArenaWorker:
    """
    Capture thread + detect/publish thread around two shared stores.

    The capture thread writes every frame into a latest-wins FrameSlot. The
    detect thread runs marker detection, ball detection, arena calibration and
    agent tracking on every new frame and keeps the last successful results in
    a DerivedStateStore. Every ``publish_interval_sec`` it snapshots the store,
    synthesizes a WorldState, asks the policy for motor commands and hands
    both to the outputs. Locks are only held to copy in and out of the stores.
    """

    def __init__(
        self,
        config: WorkerConfig,
        logger: Optional[logging.Logger] = None,
        outputs: Optional[list[OutputSink]] = None,
        capture: Optional[BaseCapture] = None,
        marker_observer: Optional[MarkerObserver] = None,
        blob_observer: Optional[BlobObserver] = None,
        localizer=None,
        policy: Optional[CommandPolicy] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config.validate()
        self.logger = logger or setup_logger(config.camera_name)
        self.outputs = outputs if outputs is not None else self._build_outputs()
        self.capture = capture
        self.clock = clock

        arena = config.arena
        self.marker_observer = marker_observer or ArucoObserver(config.aruco_dict)
        self.blob_observer = blob_observer or BallObserver(
            config.ball.hsv_lower,
            config.ball.hsv_upper,
            config.ball.min_area,
            config.ball.min_circularity,
        )
        self.localizer = localizer or self._build_localizer()
        self.policy = policy or self._build_policy()

        self.calibrator = ArenaCalibrator(arena.boundary_ids, arena.arena_size, logger=self.logger)
        self.tracker = AgentTracker(arena.agent_ids, arena.ai_id_cutoff)
        self.stabilizer = PoseStabilizer(config.stabilizer.alpha, config.stabilizer.min_observations)

        self.frame_slot = FrameSlot()
        self.store = DerivedStateStore()
        self.throttle = PublishThrottle(config.publish_interval_sec)

        self._stop_event = threading.Event()
        self._last_seq = 0
        self._last_balls: list[Ball] = []
        self.frames_processed = 0
        self.worlds_published = 0
        self.capture_errors = 0
        self.stage_errors = 0

    # -- construction -----------------------------------------------------

    def _build_outputs(self) -> list[OutputSink]:
        outputs: list[OutputSink] = []
        if self.config.telemetry_csv:
            outputs.append(CsvOutput())
        m = self.config.mqtt
        if m.enabled:
            outputs.append(
                MqttOutput(m.host, m.port, m.world_topic, m.command_topic, m.client_id, logger=self.logger)
            )
        return outputs

    def _build_localizer(self):
        if self.config.calibration_path and not self.config.dry_run:
            K, dist, _ = load_calib(self.config.calibration_path)
            return PnPLocalize(K, dist, self.config.marker_length_m)
        return PlanarLocalize()

    def _build_policy(self) -> CommandPolicy:
        if self.config.model_path:
            return OnnxPolicy(self.config.model_path, self.config.arena.arena_size, logger=self.logger)
        return NullPolicy()

    def _build_capture(self) -> BaseCapture:
        if self.capture is not None:
            return self.capture
        if self.config.dry_run:
            return SyntheticArenaCapture(
                self.config.fps,
                self.config.width,
                self.config.height,
                boundary_ids=self.config.arena.boundary_ids,
                aruco_dict=self.config.aruco_dict,
            )
        return USBOpenCVCapture(
            self.config.device,
            self.config.fps,
            self.config.width,
            self.config.height,
        )

    # -- run flag ---------------------------------------------------------

    def stop(self) -> None:
        self._stop_event.set()

    @property
    def running(self) -> bool:
        return not self._stop_event.is_set()

    # -- detection --------------------------------------------------------

    def _observe(self, image: np.ndarray) -> tuple[list[MarkerObservation], list[Ball]]:
        try:
            observations = list(self.marker_observer(image))
        except Exception as e:
            self.stage_errors += 1
            self.logger.warning("Marker detection failed: %s", e)
            observations = []
        try:
            balls = list(self.blob_observer(image))
        except Exception as e:
            self.stage_errors += 1
            self.logger.warning("Ball detection failed: %s", e)
            balls = []
        return observations, balls

    def _unwrap_heading(self, marker_id: int, rvec: np.ndarray) -> np.ndarray:
        """Shift the raw heading by whole turns so it lies within pi of the smoothed one."""
        prev = self.stabilizer.tracked(marker_id)
        if prev is None or not prev.has_value:
            return rvec
        ref = prev.smoothed_rotation[2]
        rvec = np.array(rvec, dtype=np.float64)
        rvec[2] = ref + math.atan2(math.sin(rvec[2] - ref), math.cos(rvec[2] - ref))
        return rvec

    def stable_agents(self, observations: Sequence[MarkerObservation]) -> list[Agent]:
        """
        Agents whose marker pose has passed the stabilizer's observation gate.

        With a pixel-space localizer the agent carries the smoothed center and
        heading. Metric PnP poses only gate the marker; the agent then keeps
        its per-frame pixel center and heading.
        """
        pixel_space = getattr(self.localizer, "pixel_space", False)
        agent_obs = [o for o in observations if self.tracker.is_agent(o.marker_id)]
        stable: list[Agent] = []
        for obs, agent in zip(agent_obs, self.tracker.extract(agent_obs)):
            try:
                raw = self.localizer.estimate(obs)
            except Exception as e:
                self.stage_errors += 1
                self.logger.warning("Pose estimate failed for marker %d: %s", obs.marker_id, e)
                continue
            if raw is None:
                continue
            rvec, tvec = raw
            if pixel_space:
                rvec = self._unwrap_heading(obs.marker_id, rvec)
            smoothed = self.stabilizer.stabilize(obs.marker_id, rvec, tvec)
            if smoothed is None:
                continue
            if pixel_space:
                rot, trans = smoothed
                agent = replace(
                    agent,
                    center=(float(trans[0]), float(trans[1])),
                    heading_deg=wrap_degrees(math.degrees(rot[2])),
                )
            stable.append(agent)
        return stable

    def process_step(self, image: np.ndarray, now: Optional[float] = None) -> Optional[WorldState]:
        """
        One detect/publish iteration on ``image``.

        Detection always runs; returns the published WorldState when the
        publish throttle was due, else None.
        """
        now = self.clock() if now is None else now
        observations, balls = self._observe(image)

        previous = self.calibrator.current
        calibration = self.calibrator.update(observations)
        agents = self.stable_agents(observations)
        # the calibrator hands back its cached value when the boundary was not seen
        fresh = calibration if calibration is not previous else None
        self.store.update(calibration=fresh, agents=agents, now=now)
        self._last_balls = balls
        self.frames_processed += 1

        self.logger.debug(
            "frame=%d markers=%d agents=%d balls=%d calibrated=%s",
            self._last_seq, len(observations), len(agents), len(balls), calibration.has_value,
        )
        return self.publish_if_due(now)

    def process_once(self, now: Optional[float] = None) -> Optional[WorldState]:
        """
        Run ``process_step`` on the newest unseen frame.

        Without a new frame the publish cadence still holds: the stored state
        goes out with the balls of the last processed frame.
        """
        item = self.frame_slot.take(self._last_seq)
        if item is None:
            return self.publish_if_due(now)
        self._last_seq, image = item
        return self.process_step(image, now)

    def publish_if_due(self, now: Optional[float] = None) -> Optional[WorldState]:
        now = self.clock() if now is None else now
        if not self.throttle.due(now):
            return None
        return self._publish(self._last_balls)

    # -- publishing -------------------------------------------------------

    def _publish(self, balls: Sequence[Ball]) -> Optional[WorldState]:
        snap = self.store.snapshot()
        try:
            world = synthesize(snap.calibration, snap.agents, balls)
        except Exception as e:
            self.stage_errors += 1
            self.logger.warning("World state synthesis failed: %s", e)
            return None

        commands: dict[int, MotorCommand] = {}
        try:
            commands = clamp_commands(self.policy.predict(world))
        except Exception as e:
            self.stage_errors += 1
            self.logger.warning("Policy inference failed, no commands this cycle: %s", e)

        for out in self.outputs:
            try:
                out.write_world(world, commands)
            except Exception as e:
                self.stage_errors += 1
                self.logger.warning("Output %s failed: %s", type(out).__name__, e)

        self.worlds_published += 1
        self.logger.debug(
            "published bots=%d balls=%d commands=%d", len(world.agents), len(world.balls), len(commands)
        )
        return world

    # -- threads ----------------------------------------------------------

    def capture_loop(self, cap: BaseCapture) -> None:
        while self.running:
            try:
                f = cap.next_frame()
            except Exception:
                self.logger.exception("Frame source failed, stopping")
                self.stop()
                break
            if f is None:
                self.capture_errors += 1
                time.sleep(0.01)
                continue
            self.frame_slot.put(f.image)
            time.sleep(0.001)

    def detect_loop(self) -> None:
        max_frames = self.config.max_frames
        while self.running:
            seq = self._last_seq
            self.process_once()
            if self._last_seq == seq:
                # stalled camera: publishing above kept its cadence
                self._stop_event.wait(0.01)
                continue
            if max_frames and self.frames_processed >= max_frames:
                self.stop()

    def run(self) -> SessionSummary:
        storage = SessionStorage(self.config.session_root, name=f"{self.config.camera_name}_session")
        session_path = storage.begin()
        storage.write_manifest(self.config.as_dict())

        log_file = str(Path(storage.logs_dir) / "session.log")
        file_handler = add_file_handler(self.logger, self.config.camera_name, log_file)

        cap: Optional[BaseCapture] = None
        threads: list[threading.Thread] = []
        t0 = time.time()
        try:
            for out in self.outputs:
                out.open(Path(storage.session_dir))

            self.logger.info("session started: %s", session_path)
            self.logger.info("config: %s", self.config.as_dict())

            cap = self._build_capture()
            cap.start()
            t0 = time.time()

            threads = [
                threading.Thread(target=self.capture_loop, args=(cap,), name="capture", daemon=True),
                threading.Thread(target=self.detect_loop, name="detect", daemon=True),
            ]
            for t in threads:
                t.start()

            while self.running:
                if self.config.duration_sec and (time.time() - t0) >= self.config.duration_sec:
                    break
                self._stop_event.wait(0.05)
        finally:
            self.stop()
            for t in threads:
                t.join(timeout=5.0)
            if cap is not None:
                try:
                    cap.stop()
                except Exception as e:
                    self.logger.warning("Frame source stop failed: %s", e)

            for out in self.outputs:
                try:
                    out.close()
                except Exception as e:
                    self.logger.warning("Output close failed: %s", e)

            elapsed = max(1e-6, time.time() - t0)
            avg = self.frames_processed / elapsed
            errors = self.capture_errors + self.stage_errors
            self.logger.info(
                "summary frames=%d published=%d avg_fps=%.2f errors=%d dropped=%d",
                self.frames_processed, self.worlds_published, avg, errors, self.frame_slot.dropped,
            )
            self.logger.removeHandler(file_handler)
            file_handler.close()

        telemetry = next((o.path for o in self.outputs if isinstance(o, CsvOutput)), None)
        return SessionSummary(
            str(session_path),
            self.frames_processed,
            self.worlds_published,
            str(telemetry) if telemetry is not None else None,
            log_file,
            avg,
            errors,
            self.frame_slot.dropped,
        )
