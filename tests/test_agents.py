import numpy as np
import pytest

from arena_vision.agents import AgentTracker, heading_degrees, marker_center, wrap_degrees
from arena_vision.ip_types import MarkerObservation, Role


def test_center_is_corner_mean(make_marker):
    obs = make_marker(1, 120.0, 80.0)
    assert np.allclose(marker_center(obs.corners), [120.0, 80.0])


def test_upright_marker_faces_up_in_image(make_marker):
    # front edge (corners 0-1) is above the back edge, y grows downwards
    assert heading_degrees(make_marker(1, 0, 0).corners) == pytest.approx(-90.0)


def test_heading_follows_front_edge():
    # front edge on the right-hand side: TL/TR rotated to the right
    corners = np.array([[10, -10], [10, 10], [-10, 10], [-10, -10]], dtype=float)
    assert heading_degrees(corners) == pytest.approx(0.0)
    # facing left
    corners = np.array([[-10, 10], [-10, -10], [10, -10], [10, 10]], dtype=float)
    assert abs(heading_degrees(corners)) == pytest.approx(180.0)
    # facing down
    corners = np.array([[10, 10], [-10, 10], [-10, -10], [10, -10]], dtype=float)
    assert heading_degrees(corners) == pytest.approx(90.0)


def test_extract_filters_agent_range_and_assigns_roles(make_marker):
    tracker = AgentTracker(agent_ids=range(1, 46), ai_id_cutoff=3)
    observations = [
        make_marker(1, 10, 10),
        make_marker(2, 20, 20),
        make_marker(3, 30, 30),
        make_marker(4, 40, 40),
        make_marker(46, 0, 0),
        make_marker(0, 5, 5),
    ]

    agents = tracker.extract(observations)

    assert [a.id for a in agents] == [1, 2, 3, 4]
    assert [a.role for a in agents] == [Role.PLAYER, Role.PLAYER, Role.AI, Role.AI]
    assert [a.is_ai for a in agents] == [False, False, True, True]
    assert agents[2].center == pytest.approx((30.0, 30.0))


def test_extract_empty():
    assert AgentTracker().extract([]) == []


def test_marker_observation_normalises_corners():
    obs = MarkerObservation(np.int32(5), np.zeros((1, 4, 2), dtype=np.float32))
    assert isinstance(obs.marker_id, int)
    assert obs.corners.shape == (4, 2)


@pytest.mark.parametrize(
    "angle, expected",
    [(0.0, 0.0), (180.0, 180.0), (-180.0, 180.0), (181.0, -179.0), (-540.5, 179.5), (725.0, 5.0)],
)
def test_wrap_degrees(angle, expected):
    assert wrap_degrees(angle) == pytest.approx(expected)
