import json
import threading
from pathlib import Path


class SafetyLogger:
    def __init__(self, run_dir: Path):
        self.log_path = Path(run_dir) / "alerts.jsonl"
        self.last_state = None
        self._lock = threading.Lock()
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        self.log_path.touch(exist_ok=True)

    def log(self, frame_idx: int, timestamp_s: float, safety_state: str, message: str, details: dict):
        """Append an event only when the alert state or instruction changes."""
        key = (safety_state, message)
        with self._lock:
            if key == self.last_state:
                return
            event = {
                "tick": frame_idx,
                "time_s": round(timestamp_s, 3),
                "state": safety_state,
                "message": message,
                "details": details,
            }
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(event) + "\n")
            self.last_state = key
