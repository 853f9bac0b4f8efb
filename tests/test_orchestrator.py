import threading
import time

import numpy as np
import pytest

from safepath.indoor.commands import CommandAction
from safepath.indoor.emergency import EmergencyController, EmergencyState
from safepath.indoor.wayfinding import IndoorNavigator
from safepath.inputs.camera_input import CameraUnavailableError
from safepath.runtime.orchestrator import Orchestrator, build_detector
from safepath.runtime.session import DetectionSession
from safepath.safety.alert_debouncer import AlertDebouncer
from safepath.utils.types import FramePacket


class FakeSpeech:
    def __init__(self):
        self.spoken = []
        self.cancelled = 0
        self.closed = False

    def is_busy(self):
        return False

    def speak(self, text, pan=0.0):
        self.spoken.append(text)

    def cancel_all(self):
        self.cancelled += 1

    def close(self):
        self.closed = True


class FakeCamera:
    def __init__(self, fail_start=False, fail_stop=False):
        self.fail_start = fail_start
        self.fail_stop = fail_stop
        self.started = False
        self.stopped = False
        self.finished = threading.Event()
        self.packet = FramePacket(frame=np.full((40, 60, 3), 100, dtype=np.uint8), timestamp=0.0)

    def start(self):
        if self.fail_start:
            raise CameraUnavailableError("no camera")
        self.started = True

    def latest(self):
        return self.packet if self.started else None

    def stop(self):
        self.stopped = True
        if self.fail_stop:
            raise RuntimeError("release failed")


class FakeNotifier:
    def __init__(self):
        self.sent = []
        self.closed = False

    def send(self, body, location=None):
        self.sent.append(body)
        return True

    def close(self):
        self.closed = True


class EmptyDetector:
    def detect(self, frame):
        return []

    def close(self):
        pass


def make(camera=None, cfg=None, indoor=False):
    speech = FakeSpeech()
    session = DetectionSession(EmptyDetector(), speech, debouncer=AlertDebouncer(rng=lambda: 1.0))
    navigator = IndoorNavigator(speech, on_instruction=session.set_instruction) if indoor else None
    cfg = cfg or {"sampling": {"interval_s": 0.01}, "display": {"target_fps": 200}}
    orch = Orchestrator(cfg, camera or FakeCamera(), session, speech, navigator=navigator)
    orch.emergency = EmergencyController(
        speech, FakeNotifier(), countdown_s=0.05, on_instruction=session.set_instruction, spawn=orch._spawn
    )
    return orch, speech, session


def test_camera_failure_stops_before_loop_and_still_cleans_up():
    camera = FakeCamera(fail_start=True)
    orch, speech, session = make(camera)
    with pytest.raises(CameraUnavailableError):
        orch.run(display=False)
    assert speech.closed
    assert orch.sampler.ticks == 0
    assert orch.sampler._thread is None
    assert session.is_busy() is False


def test_cleanup_runs_every_step_even_if_one_fails():
    camera = FakeCamera(fail_stop=True)
    orch, speech, session = make(camera)
    orch.open()
    with pytest.raises(RuntimeError):
        orch.close()
    assert camera.stopped
    assert speech.closed
    assert orch.sampler._thread is None


def test_headless_run_stops_after_max_ticks():
    cfg = {"sampling": {"interval_s": 0.01}, "display": {"target_fps": 200}, "runtime": {"max_ticks": 2}}
    camera = FakeCamera()
    orch, speech, session = make(camera, cfg)
    assert orch.run(display=False) == 0
    assert orch.sampler.ticks >= 2
    assert camera.stopped
    assert speech.closed
    assert orch.last_tick.instruction == "PATH CLEAR"


def test_headless_run_ends_when_replay_finishes():
    camera = FakeCamera()
    camera.finished.set()
    orch, speech, _ = make(camera)
    assert orch.run(display=False) == 0
    assert camera.stopped


def test_voice_commands_drive_actions():
    orch, speech, session = make(indoor=True)
    assert orch.handle_command("mute").action == CommandAction.MUTE
    assert speech.cancelled == 1

    response = orch.handle_command("where am i")
    assert session.instruction == response.text
    assert speech.spoken[-1] == response.text

    assert orch.handle_command("goodbye").action == CommandAction.EXIT
    assert orch.stopping


def test_commands_ignored_outside_indoor_mode():
    orch, _, _ = make()
    assert orch.handle_command("where am i") is None


def test_unknown_detector_kind():
    with pytest.raises(ValueError):
        build_detector({}, "sonar")


def test_voice_sos_counts_down_and_alerts_from_frame_loop():
    orch, speech, session = make(indoor=True)
    response = orch.handle_command("sos")
    assert response.action == CommandAction.EMERGENCY
    assert orch.emergency.state == EmergencyState.COUNTDOWN
    assert session.instruction.startswith("EMERGENCY ALERT IN")

    time.sleep(0.08)
    orch._per_frame(orch.camera.packet)
    orch._join_workers()
    assert orch.emergency.state == EmergencyState.TRIGGERED
    assert len(orch.emergency.notifier.sent) == 1
    assert speech.spoken[-1].startswith("Stay calm, help is on the way.")


def test_voice_cancel_stops_countdown():
    orch, speech, _ = make(indoor=True)
    orch.handle_command("help")
    orch.handle_command("cancel emergency")
    assert orch.emergency.state == EmergencyState.IDLE
    time.sleep(0.08)
    orch._per_frame(orch.camera.packet)
    assert orch.emergency.notifier.sent == []
    assert speech.spoken[-1] == "Emergency cancelled."


def test_emergency_notifier_closed_with_session():
    orch, _, _ = make()
    orch.open()
    orch.close()
    assert orch.emergency.notifier.closed


def test_finished_workers_are_pruned():
    orch, _, _ = make()
    done = threading.Event()
    for _ in range(5):
        orch._spawn(done.wait, 1.0)
    done.set()
    for worker in list(orch._workers):
        worker.join(timeout=1.0)
    orch._spawn(lambda: None)
    assert len(orch._workers) == 1
