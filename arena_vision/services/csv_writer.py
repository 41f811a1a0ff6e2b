import csv


class CsvWriter:
    """Telemetry rows, one per agent or ball per published world state."""

    HEADER = [
        "recorded_at",
        "kind", "id",
        "x", "y",
        "angle_deg", "is_ai", "radius",
        "left", "right",
    ]

    def __init__(self, csv_path: str):
        self.csv_path = csv_path
        self._opened = False
        self._fh = None
        self._w = None

    def open(self):
        self._fh = open(self.csv_path, "w", newline="", encoding="utf-8")
        self._w = csv.writer(self._fh)
        self._w.writerow(self.HEADER)
        self._opened = True

    def append_agent(self, ts_unix, agent, command=None):
        left = command.left if command is not None else ""
        right = command.right if command is not None else ""
        self._w.writerow([
            f"{ts_unix:.6f}",
            "bot", agent.id,
            f"{agent.center[0]:.3f}", f"{agent.center[1]:.3f}",
            f"{agent.heading_deg:.3f}", int(agent.is_ai), "",
            left, right,
        ])

    def append_ball(self, ts_unix, index, ball):
        self._w.writerow([
            f"{ts_unix:.6f}",
            "ball", index,
            f"{ball.center[0]:.3f}", f"{ball.center[1]:.3f}",
            "", "", f"{ball.radius:.3f}",
            "", "",
        ])

    def flush(self):
        if self._fh is not None:
            self._fh.flush()

    def close(self):
        if self._opened and self._fh:
            self._fh.close()
            self._opened = False
            self._fh = None
            self._w = None
