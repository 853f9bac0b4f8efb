import threading

import numpy as np

from safepath.indoor.wayfinding import ENTRY_ID, INDOOR_MAP, NO_QR_REMINDER, IndoorNavigator


class FakeSpeech:
    def __init__(self):
        self.spoken = []

    def is_busy(self):
        return False

    def speak(self, text, pan=0.0):
        self.spoken.append(text)

    def cancel_all(self):
        pass

    def close(self):
        pass


def make_nav(**kwargs):
    speech = FakeSpeech()
    instructions = []
    nav = IndoorNavigator(speech, on_instruction=instructions.append, clock=lambda: 0.0, **kwargs)
    return nav, speech, instructions


def test_known_payload_announces_location():
    nav, speech, instructions = make_nav()
    node = nav.handle_scan("safe-hallway", now=0)
    assert node.id == "safe-hallway"
    assert speech.spoken == [f"Central Hallway. {INDOOR_MAP['safe-hallway'].voice_instruction}"]
    assert instructions == ["Walk 10 steps, then Turn Left."]


def test_repeated_payload_is_ignored():
    nav, speech, _ = make_nav()
    nav.handle_scan("safe-entry", now=0)
    assert nav.handle_scan("safe-entry", now=100) is None
    assert len(speech.spoken) == 1


def test_unknown_payload_walks_the_route():
    nav, _, _ = make_nav()
    assert nav.handle_scan("poster-1", now=0).id == ENTRY_ID
    assert nav.handle_scan("poster-2", now=0).id == "safe-hallway"
    assert nav.handle_scan("safe-dest", now=0).id == "safe-dest"
    assert nav.handle_scan("poster-3", now=0) is None
    assert nav.current.id == "safe-dest"


def test_no_qr_reminder_after_consecutive_misses_with_cooldown():
    nav, speech, _ = make_nav(no_qr_frames=3, no_qr_cooldown_ms=15000)
    results = [nav.note_miss(now=1000) for _ in range(4)]
    assert results == [False, False, False, True]
    assert speech.spoken == [NO_QR_REMINDER]

    assert not any(nav.note_miss(now=5000) for _ in range(4))
    assert any(nav.note_miss(now=17000) for _ in range(4))
    assert speech.spoken.count(NO_QR_REMINDER) == 2


def test_no_reminder_once_located():
    nav, speech, _ = make_nav(no_qr_frames=1)
    nav.handle_scan("safe-entry", now=0)
    assert not any(nav.note_miss(now=60000) for _ in range(5))
    assert NO_QR_REMINDER not in speech.spoken


def test_process_frame_counts_blank_frames_as_misses():
    nav, speech, _ = make_nav(no_qr_frames=1)
    blank = np.zeros((64, 64, 3), dtype=np.uint8)
    assert nav.process_frame(blank, now=0) is None
    nav.process_frame(blank, now=0)
    assert speech.spoken == [NO_QR_REMINDER]


def test_inactivity_prompt_then_escalation():
    nav, speech, _ = make_nav()
    nav.touch(now=0)
    assert nav.check_inactivity(now=30000) is None
    first = nav.check_inactivity(now=30001)
    assert first.startswith("Are you still there?")
    assert nav.check_inactivity(now=45000) is None
    second = nav.check_inactivity(now=60001)
    assert "caregiver" in second
    assert nav.check_inactivity(now=120000) is None
    assert len(speech.spoken) == 2


def test_interaction_resets_inactivity():
    nav, _, _ = make_nav()
    nav.touch(now=0)
    nav.check_inactivity(now=31000)
    nav.touch(now=31000)
    assert nav.check_inactivity(now=50000) is None
    assert nav.check_inactivity(now=61001).startswith("Are you still there?")


def test_repeat_instruction():
    nav, speech, _ = make_nav()
    assert nav.repeat_instruction() == "Scan a QR code to begin navigation."
    nav.handle_scan("safe-turn", now=0)
    assert nav.repeat_instruction() == INDOOR_MAP["safe-turn"].voice_instruction


def test_from_config_reads_indoor_section():
    nav = IndoorNavigator.from_config({"indoor": {"no_qr_frames": 5}}, FakeSpeech(), clock=lambda: 0.0)
    assert nav.no_qr_frames == 5
    assert nav.inactivity_prompt_ms == 30000.0


def test_concurrent_inactivity_checks_prompt_once():
    nav, speech, _ = make_nav()
    barrier = threading.Barrier(8)

    def check():
        barrier.wait()
        nav.check_inactivity(now=31000)

    threads = [threading.Thread(target=check) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=2.0)
    assert len(speech.spoken) == 1
    assert speech.spoken[0].startswith("Are you still there?")
