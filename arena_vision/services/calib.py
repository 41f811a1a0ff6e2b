import json
from pathlib import Path
from typing import Tuple

import cv2
import numpy as np


def load_calib(path: str) -> Tuple[np.ndarray, np.ndarray, tuple[int, int] | None]:
    """Camera intrinsics from an OpenCV YAML file or a JSON file with ``mtx``/``dist`` keys."""
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Calibration not found: {p}")

    if p.suffix.lower() == ".json":
        with p.open("r", encoding="utf-8") as fp:
            raw = json.load(fp)
        K = np.array(raw["mtx"], dtype=np.float64).reshape(3, 3)
        dist = np.array(raw["dist"], dtype=np.float64).reshape(1, -1)
        size = None
        if "image_width" in raw and "image_height" in raw:
            size = (int(raw["image_width"]), int(raw["image_height"]))
        return K, dist, size

    fs = cv2.FileStorage(str(p), cv2.FILE_STORAGE_READ)
    K = fs.getNode("camera_matrix").mat()
    dist = fs.getNode("dist_coeffs").mat()
    w = int(fs.getNode("image_width").real()); h = int(fs.getNode("image_height").real())
    fs.release()
    return K, dist, (w, h)
