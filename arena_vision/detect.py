import cv2

from .ip_types import MarkerObservation

_DICTS = {
    "4x4_50": cv2.aruco.DICT_4X4_50,
    "4x4_100": cv2.aruco.DICT_4X4_100,
    "5x5_50": cv2.aruco.DICT_5X5_50,
    "5x5_100": cv2.aruco.DICT_5X5_100,
    "6x6_50": cv2.aruco.DICT_6X6_50,
    "6x6_100": cv2.aruco.DICT_6X6_100,
    "7x7_50": cv2.aruco.DICT_7X7_50,
    "7x7_100": cv2.aruco.DICT_7X7_100,
}


def get_dict(name: str):
    """
    ArUco dictionary by short name ("4x4_50" or "DICT_4X4_50").
    Falls back to 4x4_50 if the name is not recognized.
    """
    key = (name or "").strip()
    if key.upper().startswith("DICT_"):
        key = key[5:]
    code = _DICTS.get(key.lower(), cv2.aruco.DICT_4X4_50)
    return cv2.aruco.getPredefinedDictionary(code)


def build_detector(dict_name: str) -> cv2.aruco.ArucoDetector:
    return cv2.aruco.ArucoDetector(get_dict(dict_name), cv2.aruco.DetectorParameters())


def detect_markers(image, detector: cv2.aruco.ArucoDetector) -> list[MarkerObservation]:
    corners, ids, _rej = detector.detectMarkers(image)

    obs: list[MarkerObservation] = []
    if ids is not None and len(ids) > 0:
        for i, mid in enumerate(ids.flatten()):
            obs.append(MarkerObservation(int(mid), corners[i].reshape(4, 2)))
    return obs


class ArucoObserver:
    """Marker observer: image -> list[MarkerObservation]."""

    def __init__(self, dict_name: str = "4x4_50"):
        self.dict_name = dict_name
        self.detector = build_detector(dict_name)

    def __call__(self, image) -> list[MarkerObservation]:
        return detect_markers(image, self.detector)
