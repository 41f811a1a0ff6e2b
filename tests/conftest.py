import numpy as np
import pytest

from arena_vision.config import WorkerConfig
from arena_vision.ip_types import Frame, MarkerObservation
from arena_vision.output import OutputSink


def square_corners(cx, cy, size=20.0):
    """Upright marker corners in detector order: TL, TR, BR, BL (image y down)."""
    h = size / 2.0
    return np.array(
        [[cx - h, cy - h], [cx + h, cy - h], [cx + h, cy + h], [cx - h, cy + h]],
        dtype=np.float64,
    )


@pytest.fixture
def make_marker():
    def _make(marker_id, cx, cy, size=20.0):
        return MarkerObservation(marker_id, square_corners(cx, cy, size))

    return _make


@pytest.fixture
def boundary_markers(make_marker):
    """Boundary markers 46..49 centred on (100,100) (500,100) (500,500) (100,500)."""

    def _make(ids=(46, 47, 48, 49), points=((100, 100), (500, 100), (500, 500), (100, 500))):
        return [make_marker(mid, x, y) for mid, (x, y) in zip(ids, points)]

    return _make


@pytest.fixture
def worker_config(tmp_path):
    return WorkerConfig(
        camera_name="testcam",
        session_root=str(tmp_path),
        telemetry_csv=False,
    )


class ScriptedObserver:
    """Returns the queued results in order, then repeats the last one."""

    def __init__(self, results):
        self.results = list(results)
        self.calls = 0

    def __call__(self, image):
        self.calls += 1
        if len(self.results) > 1:
            return self.results.pop(0)
        return self.results[0] if self.results else []


class RecordingOutput(OutputSink):
    def __init__(self):
        self.opened = False
        self.closed = False
        self.worlds = []
        self.commands = []

    def open(self, session_dir):
        self.opened = True

    def write_world(self, world, commands):
        self.worlds.append(world)
        self.commands.append(dict(commands))

    def close(self):
        self.closed = True


class FakeCapture:
    """Endless stream of small black frames."""

    def __init__(self, shape=(48, 64, 3)):
        self.shape = shape
        self.idx = 0
        self.started = False
        self.stopped = False

    def start(self):
        self.started = True

    def next_frame(self):
        self.idx += 1
        return Frame(self.idx, "2026-01-01T00:00:00", np.zeros(self.shape, dtype=np.uint8))

    def stop(self):
        self.stopped = True


@pytest.fixture
def blank_image():
    return np.zeros((48, 64, 3), dtype=np.uint8)


@pytest.fixture
def scripted():
    return ScriptedObserver


@pytest.fixture
def recording_output():
    return RecordingOutput()


@pytest.fixture
def fake_capture():
    return FakeCapture()
