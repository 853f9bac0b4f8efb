import json

from safepath.safety.safety_logger import SafetyLogger


def test_logs_only_on_state_change(tmp_path):
    logger = SafetyLogger(tmp_path)
    logger.log(1, 0.0, "PATH_CLEAR", "PATH CLEAR", {})
    logger.log(2, 1.5, "PATH_CLEAR", "PATH CLEAR", {})
    logger.log(3, 3.0, "CRITICAL", "CAR AHEAD!", {"detections": []})
    logger.log(4, 4.5, "PATH_CLEAR", "PATH CLEAR", {})
    events = [json.loads(line) for line in (tmp_path / "alerts.jsonl").read_text().splitlines()]
    assert [e["tick"] for e in events] == [1, 3, 4]
    assert events[1] == {"tick": 3, "time_s": 3.0, "state": "CRITICAL", "message": "CAR AHEAD!", "details": {"detections": []}}


def test_creates_empty_log_file(tmp_path):
    SafetyLogger(tmp_path / "run")
    assert (tmp_path / "run" / "alerts.jsonl").read_text() == ""
