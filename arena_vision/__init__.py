"""Arena vision: canonical world state from overhead ArUco and ball detections."""

from .config import WorkerConfig
from .worker import ArenaWorker

__all__ = ["WorkerConfig", "ArenaWorker"]
