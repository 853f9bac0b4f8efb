from safepath.safety.alert_debouncer import AlertDebouncer, AlertKind, AlertState
from safepath.utils.types import Detection, Direction, Proximity, Severity


def det(label="car", direction=Direction.CENTER, proximity=Proximity.NEAR, severity=Severity.HIGH):
    return Detection(label, direction, proximity, severity, "<1m")


def never():
    return 1.0


def always():
    return 0.0


def test_critical_alert_fires_then_suppresses():
    deb = AlertDebouncer(rng=never)
    first = deb.step([det()], 0)
    assert first.kind == AlertKind.CRITICAL
    assert first.text == "car ahead!"
    assert first.pan == 0.0
    assert deb.state == AlertState.SUPPRESSING

    assert deb.step([det()], 1500).kind == AlertKind.NONE
    assert deb.memory.text == "car ahead!"
    assert deb.memory.timestamp_ms == 0


def test_constant_hazard_repeats_only_after_debounce_window():
    deb = AlertDebouncer(rng=never)
    spoken = []
    for i in range(14):  # 0 .. 19.5 s in 1.5 s ticks
        now = i * 1500
        if deb.step([det()], now).kind == AlertKind.CRITICAL:
            spoken.append(now)
    assert spoken == [0, 9000, 18000]


def test_exactly_debounce_ms_later_does_not_repeat():
    deb = AlertDebouncer(rng=never)
    deb.step([det()], 0)
    assert deb.step([det()], 8000).kind == AlertKind.NONE
    assert deb.step([det()], 8001).kind == AlertKind.CRITICAL


def test_different_critical_label_fires_immediately():
    deb = AlertDebouncer(rng=never)
    deb.step([det("car")], 0)
    decision = deb.step([det("person", direction=Direction.LEFT)], 1500)
    assert decision.kind == AlertKind.CRITICAL
    assert decision.text == "person ahead!"
    assert decision.pan == -1.0


def test_first_critical_in_list_order_wins():
    deb = AlertDebouncer(rng=never)
    far_car = det("car", proximity=Proximity.FAR)
    decision = deb.step([far_car, det("bus", direction=Direction.RIGHT), det("truck")], 0)
    assert decision.text == "bus ahead!"
    assert decision.pan == 1.0


def test_memory_cleared_after_clear_path_window():
    deb = AlertDebouncer(rng=never)
    deb.step([det()], 0)
    kept = deb.step([], 5000)
    assert not kept.memory_cleared
    assert deb.state == AlertState.CLEAR_PENDING

    cleared = deb.step([], 6000)
    assert cleared.memory_cleared
    assert deb.memory is None
    assert deb.state == AlertState.IDLE

    assert deb.step([det()], 6500).kind == AlertKind.CRITICAL


def test_non_critical_detections_also_count_as_clear_path():
    deb = AlertDebouncer(rng=never)
    deb.step([det()], 0)
    deb.step([det("chair", severity=Severity.MEDIUM)], 6000)
    assert deb.memory is None


def test_busy_speech_suppresses_critical_without_touching_memory():
    deb = AlertDebouncer(rng=never)
    decision = deb.step([det()], 0, speech_busy=True)
    assert decision.kind == AlertKind.NONE
    assert deb.memory is None
    assert deb.step([det()], 1500).kind == AlertKind.CRITICAL


def test_ambient_narration_uses_first_detection():
    deb = AlertDebouncer(rng=always)
    decision = deb.step([det("cup", Direction.RIGHT, Proximity.FAR, Severity.LOW), det("chair", severity=Severity.MEDIUM)], 0)
    assert decision.kind == AlertKind.AMBIENT
    assert decision.text == "CUP DETECTED"
    assert decision.pan == 1.0
    assert deb.memory is None


def test_ambient_needs_detections_and_idle_speech():
    deb = AlertDebouncer(rng=always)
    assert deb.step([], 0).kind == AlertKind.NONE
    low = det("cup", proximity=Proximity.FAR, severity=Severity.LOW)
    assert deb.step([low], 0, speech_busy=True).kind == AlertKind.NONE


def test_ambient_probability_threshold():
    deb = AlertDebouncer(ambient_probability=0.15, rng=lambda: 0.15)
    low = det("cup", proximity=Proximity.FAR, severity=Severity.LOW)
    assert deb.step([low], 0).kind == AlertKind.NONE


def test_reset_and_from_config():
    deb = AlertDebouncer.from_config({"alerts": {"debounce_ms": 1000, "clear_reset_ms": 500}}, rng=never)
    assert deb.debounce_ms == 1000.0
    deb.step([det()], 0)
    deb.reset()
    assert deb.memory is None
    assert deb.step([det()], 10).kind == AlertKind.CRITICAL
