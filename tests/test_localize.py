import math

import cv2
import numpy as np
import pytest

from arena_vision.ip_types import MarkerObservation
from arena_vision.localize import PlanarLocalize, PnPLocalize


def test_planar_localize_uses_pixels_and_heading(make_marker):
    rvec, tvec = PlanarLocalize().estimate(make_marker(1, 100, 50))
    assert np.allclose(tvec, [100, 50, 0])
    assert rvec[2] == pytest.approx(math.radians(-90.0))


def test_pnp_localize_recovers_translation():
    K = np.array([[800.0, 0, 320.0], [0, 800.0, 240.0], [0, 0, 1.0]])
    dist = np.zeros(5)
    loc = PnPLocalize(K, dist, 0.1)

    rvec_true = np.array([0.1, -0.2, 0.3])
    tvec_true = np.array([0.05, -0.02, 1.0])
    img_pts, _ = cv2.projectPoints(loc.object_points, rvec_true, tvec_true, K, dist)

    rvec, tvec = loc.estimate(MarkerObservation(1, img_pts.reshape(4, 2)))

    assert np.allclose(tvec, tvec_true, atol=1e-3)
    assert np.allclose(rvec, rvec_true, atol=1e-2)


def test_pnp_localize_rejects_non_positive_length():
    with pytest.raises(ValueError):
        PnPLocalize(np.eye(3), np.zeros(5), 0.0)
