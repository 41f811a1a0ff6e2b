import threading

import numpy as np
import pytest

from arena_vision.calibration import ArenaCalibrator, BoundaryCalibration
from arena_vision.ip_types import Agent, Role
from arena_vision.shared import DerivedStateStore, FrameSlot, PublishThrottle


def _img(value):
    return np.full((2, 2, 3), value, dtype=np.uint8)


def test_frame_slot_empty():
    slot = FrameSlot()
    assert slot.take() is None
    assert slot.seq == 0


def test_frame_slot_latest_wins_and_counts_drops():
    slot = FrameSlot()
    slot.put(_img(1))
    slot.put(_img(2))
    slot.put(_img(3))

    seq, image = slot.take()
    assert seq == 3
    assert image[0, 0, 0] == 3
    assert slot.dropped == 2

    # consumed frame is not a drop
    slot.put(_img(4))
    assert slot.dropped == 2


def test_frame_slot_take_only_newer():
    slot = FrameSlot()
    slot.put(_img(1))
    seq, _ = slot.take()
    assert slot.take(after_seq=seq) is None
    slot.put(_img(2))
    assert slot.take(after_seq=seq)[0] == seq + 1


def test_frame_slot_copies_in_and_out():
    slot = FrameSlot()
    src = _img(5)
    slot.put(src)
    src[:] = 0

    _, out = slot.take()
    assert out[0, 0, 0] == 5
    out[:] = 9
    assert slot.take()[1][0, 0, 0] == 5


def test_frame_slot_concurrent_writers_and_reader():
    slot = FrameSlot()
    stop = threading.Event()
    seen = []

    def writer():
        for i in range(200):
            slot.put(_img(i % 255))

    def reader():
        last = 0
        while not stop.is_set():
            item = slot.take(last)
            if item is not None:
                last = item[0]
                seen.append(last)

    r = threading.Thread(target=reader)
    r.start()
    w = threading.Thread(target=writer)
    w.start()
    w.join()
    stop.set()
    r.join()

    assert slot.seq == 200
    assert seen == sorted(seen)
    assert len(set(seen)) == len(seen)


def test_derived_store_ignores_empty_results(boundary_markers):
    store = DerivedStateStore()
    cal = ArenaCalibrator().update(boundary_markers())
    agents = [Agent(1, (1.0, 1.0), 0.0, Role.PLAYER)]

    assert store.update(calibration=cal, agents=agents, now=1.0) is True
    assert store.update(calibration=BoundaryCalibration.empty(), agents=[], now=2.0) is False

    snap = store.snapshot()
    assert snap.calibration is cal
    assert snap.agents == tuple(agents)
    assert snap.updated_at == 1.0


def test_derived_store_fields_update_independently(boundary_markers):
    store = DerivedStateStore()
    cal = ArenaCalibrator().update(boundary_markers())
    store.update(calibration=cal, now=1.0)
    store.update(agents=[Agent(2, (0.0, 0.0), 0.0, Role.PLAYER)], now=2.0)

    snap = store.snapshot()
    assert snap.calibration.has_value
    assert [a.id for a in snap.agents] == [2]


def test_derived_store_snapshot_is_a_value():
    store = DerivedStateStore()
    agents = [Agent(1, (1.0, 1.0), 0.0, Role.PLAYER)]
    store.update(agents=agents)
    snap = store.snapshot()
    agents.append(Agent(2, (2.0, 2.0), 0.0, Role.PLAYER))
    assert len(snap.agents) == 1
    assert len(store.snapshot().agents) == 1


def test_publish_throttle_cadence():
    throttle = PublishThrottle(0.1)
    fired = [i for i in range(100) if throttle.due(i * 0.01)]
    assert len(fired) == 10
    assert fired[0] == 0


def test_publish_throttle_rejects_negative_interval():
    with pytest.raises(ValueError):
        PublishThrottle(-1.0)
