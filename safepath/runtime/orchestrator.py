from __future__ import annotations

import threading
import time
from contextlib import ExitStack
from pathlib import Path
from typing import Any, Dict, Optional

try:
    import cv2
except ImportError:  # pragma: no cover
    cv2 = None

from safepath.audio.cues import DirectionalCue
from safepath.audio.listener import SpeechListener
from safepath.audio.speech import Pyttsx3Speech, SpeechChannel
from safepath.indoor.commands import CommandAction, CommandResponse, CommandRouter
from safepath.indoor.emergency import EmergencyController
from safepath.indoor.wayfinding import IndoorNavigator
from safepath.inputs.camera_input import CameraInput
from safepath.perception.detection.base_detector import BaseDetector
from safepath.perception.scene.scene_analyzer import SceneAnalyzer
from safepath.runtime.sampler import FrameSampler
from safepath.runtime.session import DetectionSession, TickResult
from safepath.safety.alert_debouncer import AlertDebouncer
from safepath.safety.safety_logger import SafetyLogger
from safepath.utils.config import get, get_secret
from safepath.utils.logger import get_logger
from safepath.utils.timing import FPSMeter
from safepath.visualization.overlay import render_view

WINDOW_NAME = "SafePath"


def build_detector(cfg: Dict[str, Any], kind: Optional[str] = None) -> BaseDetector:
    kind = (kind or get(cfg, "detector.kind", "yolo")).lower()
    if kind == "remote":
        from safepath.perception.detection.remote import RemoteDetector

        return RemoteDetector(
            url=get(cfg, "detector.remote.url", "https://api.bytez.com/models/v2/hustvl/yolos-tiny"),
            api_key=get_secret(cfg, "detector.remote.api_key_env", "SAFEPATH_DETECTOR_KEY"),
            timeout_s=float(get(cfg, "detector.remote.timeout_s", 10.0)),
            jpeg_quality=float(get(cfg, "detector.remote.jpeg_quality", 0.5)),
        )
    if kind == "yolo":
        from safepath.perception.detection.yolo import YOLODetector

        return YOLODetector(
            model_name=get(cfg, "detector.yolo.model", "yolov8n.pt"),
            device=get(cfg, "detector.yolo.device"),
            conf_thres=float(get(cfg, "detector.yolo.conf_thres", 0.35)),
            classes=get(cfg, "detector.yolo.classes"),
        )
    raise ValueError(f"Unknown detector kind: {kind}")


def build_scene_analyzer(cfg: Dict[str, Any]) -> Optional[SceneAnalyzer]:
    if not bool(get(cfg, "scene.enabled", True)):
        return None
    return SceneAnalyzer(
        base_url=get(cfg, "scene.base_url", "https://openrouter.ai/api/v1/chat/completions"),
        model=get(cfg, "scene.model", "google/gemini-2.0-flash-001"),
        api_key=get_secret(cfg, "scene.api_key_env", "OPENROUTER_API_KEY"),
        timeout_s=float(get(cfg, "scene.timeout_s", 20.0)),
        jpeg_quality=float(get(cfg, "scene.jpeg_quality", 0.6)),
    )


class Orchestrator:
    """
    Camera session runtime: capture thread → sampler thread → session, plus
    the display loop that redraws the overlay from session snapshots.

    All resources are registered on an ExitStack as they are acquired, so
    ``close()`` runs every release step (sampler, listener, window, camera,
    speech) even when one of them raises.
    """

    def __init__(
        self,
        cfg: Dict[str, Any],
        camera: CameraInput,
        session: DetectionSession,
        speech: SpeechChannel,
        cue: Optional[DirectionalCue] = None,
        listener: Optional[SpeechListener] = None,
        navigator: Optional[IndoorNavigator] = None,
        emergency: Optional[EmergencyController] = None,
        logger=None,
    ):
        self.cfg = cfg
        self.camera = camera
        self.session = session
        self.speech = speech
        self.cue = cue
        self.listener = listener
        self.navigator = navigator
        self.emergency = emergency
        self.router = CommandRouter(navigator, detections=lambda: session.detections) if navigator else None
        self.logger = logger or get_logger(__name__)
        self.sampler = FrameSampler(
            session,
            frame_source=camera.latest,
            interval_s=float(get(cfg, "sampling.interval_s", 1.5)),
            on_result=self._on_tick,
        )
        self.fps_meter = FPSMeter(smoothing=float(get(cfg, "display.fps_smoothing", 0.9)))
        self.last_tick: Optional[TickResult] = None
        self._stop_event = threading.Event()
        self._stack = ExitStack()
        self._workers: list[threading.Thread] = []

    @classmethod
    def from_config(
        cls,
        cfg: Dict[str, Any],
        source: Any = None,
        detector_kind: Optional[str] = None,
        indoor: bool = False,
        run_dir: Optional[Path] = None,
        logger=None,
    ) -> "Orchestrator":
        camera = CameraInput(
            source if source is not None else get(cfg, "camera.source", 0),
            width=get(cfg, "camera.width"),
            height=get(cfg, "camera.height"),
            loop=bool(get(cfg, "camera.loop", False)),
        )
        speech = Pyttsx3Speech(rate=int(get(cfg, "speech.rate", 185)), volume=float(get(cfg, "speech.volume", 1.0)))
        cue = DirectionalCue(enabled=bool(get(cfg, "speech.cues", True)))
        session = DetectionSession(
            detector=build_detector(cfg, detector_kind),
            speech=speech,
            cue=cue,
            debouncer=AlertDebouncer.from_config(cfg),
            scene=build_scene_analyzer(cfg),
            safety_logger=SafetyLogger(run_dir) if run_dir is not None else None,
            low_light_threshold=float(get(cfg, "brightness.low_light_threshold", 30)),
            brightness_stride=int(get(cfg, "brightness.stride", 1)),
        )
        navigator = None
        if indoor:
            navigator = IndoorNavigator.from_config(cfg, speech, on_instruction=session.set_instruction)
        orchestrator = cls(cfg, camera, session, speech, cue=cue, navigator=navigator, logger=logger)
        orchestrator.emergency = EmergencyController.from_config(
            cfg,
            speech,
            cue=cue,
            location=lambda: navigator.current.name if navigator and navigator.current else None,
            on_instruction=session.set_instruction,
            spawn=orchestrator._spawn,
        )
        if bool(get(cfg, "voice.enabled", True)):
            on_text = orchestrator.handle_command if indoor else None
            orchestrator.listener = SpeechListener(
                on_transcript=on_text or (lambda _text: None),
                language=get(cfg, "voice.language", "en-US"),
                phrase_time_limit_s=float(get(cfg, "voice.phrase_time_limit_s", 6.0)),
            )
        return orchestrator

    # -- lifecycle ------------------------------------------------------------

    def open(self) -> None:
        """Acquire the camera first; a CameraUnavailableError leaves nothing running."""
        self._stack.callback(self.speech.close)
        if self.cue is not None:
            self._stack.callback(self.cue.close)
        self._stack.callback(self.session.close)
        if self.emergency is not None:
            self._stack.callback(self.emergency.close)
        self.camera.start()
        self._stack.callback(self.camera.stop)
        self.sampler.start()
        self._stack.callback(self.sampler.stop)
        if self.navigator is not None and self.listener is not None:
            if self.listener.start():
                self._stack.callback(self.listener.stop)
        self._stack.callback(self._join_workers)
        self.logger.info("Session open")

    def close(self) -> None:
        self._stop_event.set()
        self._stack.close()
        self.logger.info("Session closed")

    def __enter__(self) -> "Orchestrator":
        try:
            self.open()
        except BaseException:
            self.close()
            raise
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def request_stop(self) -> None:
        self._stop_event.set()

    @property
    def stopping(self) -> bool:
        return self._stop_event.is_set()

    # -- callbacks ------------------------------------------------------------

    def _on_tick(self, result: TickResult) -> None:
        self.last_tick = result
        max_ticks = get(self.cfg, "runtime.max_ticks")
        if max_ticks and self.sampler.ticks >= int(max_ticks):
            self.request_stop()

    def _spawn(self, target, *args) -> None:
        worker = threading.Thread(target=target, args=args, daemon=True)
        self._workers = [w for w in self._workers if w.is_alive()]
        self._workers.append(worker)
        worker.start()

    def _join_workers(self) -> None:
        for worker in self._workers:
            worker.join(timeout=2.0)
        self._workers.clear()

    def describe_scene(self) -> None:
        packet = self.camera.latest()
        if packet is not None:
            self._spawn(self.session.describe_scene, packet)

    def ask_by_voice(self) -> None:
        if self.listener is not None:
            self._spawn(self._ask_by_voice)

    def _ask_by_voice(self) -> None:
        with self.session.listening() as claimed:
            if not claimed:
                return
            if self.cue is not None:
                self.cue.play(0.0)
            question = self.listener.listen_once()
            packet = self.camera.latest()
            if question and packet is not None:
                self.session.ask(packet, question)
            else:
                self.session.set_instruction("No question heard.")

    def handle_command(self, transcript: str) -> Optional[CommandResponse]:
        if self.router is None:
            return None
        response = self.router.handle(transcript)
        if response.action == CommandAction.MUTE:
            self.speech.cancel_all()
            return response
        if response.text:
            self.session.set_instruction(response.text)
            self.speech.speak(response.text)
        if response.action == CommandAction.REPEAT:
            self.navigator.repeat_instruction()
        elif response.action == CommandAction.DESCRIBE:
            self.describe_scene()
        elif response.action == CommandAction.EXIT:
            self.request_stop()
        elif response.action == CommandAction.EMERGENCY:
            self.logger.warning("[INDOOR] Emergency requested by voice: %r", transcript)
            if self.emergency is not None:
                self.emergency.activate()
        elif response.action == CommandAction.CANCEL_EMERGENCY:
            if self.emergency is not None:
                self.emergency.cancel()
        return response

    # -- loops ----------------------------------------------------------------

    def _per_frame(self, packet) -> None:
        if self.emergency is not None:
            self.emergency.update()
        if self.navigator is None:
            return
        self.navigator.process_frame(packet.frame)
        self.navigator.check_inactivity()

    def run(self, display: bool = True) -> int:
        with self:
            if display:
                self._display_loop()
            else:
                self._headless_loop()
        return 0

    def _headless_loop(self) -> None:
        period = 1.0 / float(get(self.cfg, "display.target_fps", 30))
        while not self._stop_event.wait(period):
            if self.camera.finished.is_set():
                break
            packet = self.camera.latest()
            if packet is not None:
                self._per_frame(packet)

    def _display_loop(self) -> None:
        if cv2 is None:
            raise ImportError("opencv-python is required for the display loop")
        cv2.namedWindow(WINDOW_NAME, cv2.WINDOW_NORMAL)
        self._stack.callback(cv2.destroyAllWindows)
        show_hud = bool(get(self.cfg, "display.hud", True))
        t0 = time.monotonic()
        while not self._stop_event.is_set():
            if self.camera.finished.is_set():
                break
            packet = self.camera.latest()
            if packet is not None:
                self._per_frame(packet)
                snapshot = self.session.snapshot()
                fps = self.fps_meter.tick()
                stages = self.last_tick.stages_ms if self.last_tick else {}
                render = render_view(
                    packet.frame,
                    snapshot,
                    time.monotonic() - t0,
                    fps=fps if show_hud else None,
                    stages_ms=stages,
                )
                cv2.imshow(WINDOW_NAME, render)
            key = cv2.waitKey(16) & 0xFF
            if key in (ord("q"), 27):
                break
            if key == ord("s"):
                self.describe_scene()
            elif key == ord("m"):
                self.ask_by_voice()
            elif key == ord("e") and self.emergency is not None:
                self.emergency.activate()
