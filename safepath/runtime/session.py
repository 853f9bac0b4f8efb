from __future__ import annotations

import logging
import threading
import time
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from safepath.audio.speech import SpeechChannel
from safepath.perception.brightness import LOW_LIGHT_THRESHOLD, estimate_brightness
from safepath.perception.detection.base_detector import BaseDetector
from safepath.perception.detection.mapper import map_detections
from safepath.perception.scene.scene_analyzer import ASK_FALLBACK, DESCRIBE_FALLBACK, SceneAnalyzer
from safepath.safety.alert_debouncer import AlertDebouncer, AlertDecision, AlertKind
from safepath.safety.safety_logger import SafetyLogger
from safepath.utils.logger import get_logger
from safepath.utils.timing import StageTimer, now_ms
from safepath.utils.types import BrightnessReading, Detection, FramePacket, RawBox

PATH_CLEAR = "PATH CLEAR"
NOT_SEEN = "I don't see that here."


@dataclass
class TickResult:
    frame_id: int
    skipped: bool = False
    brightness: Optional[BrightnessReading] = None
    detections: List[Detection] = field(default_factory=list)
    decision: Optional[AlertDecision] = None
    instruction: str = ""
    stages_ms: Dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class SessionSnapshot:
    """Immutable view handed to the renderer each display frame."""

    detections: Tuple[Detection, ...]
    instruction: str
    low_light: bool
    analyzing: bool
    listening: bool

    @property
    def critical(self) -> bool:
        return any(d.is_critical for d in self.detections)


class DetectionSession:
    """
    Owner of all per-camera-session state: the current detection list, the
    alert memory (inside the debouncer), the low-light flag, the instruction
    line and the busy flags.

    Created when the camera view opens and closed when it exits. Every write
    goes through ``self._lock`` so the sampler thread, the voice thread and
    the display loop can share one instance.
    """

    def __init__(
        self,
        detector: BaseDetector,
        speech: SpeechChannel,
        cue: Any = None,
        debouncer: Optional[AlertDebouncer] = None,
        scene: Optional[SceneAnalyzer] = None,
        safety_logger: Optional[SafetyLogger] = None,
        low_light_threshold: float = LOW_LIGHT_THRESHOLD,
        brightness_stride: int = 1,
        clock: Callable[[], float] = now_ms,
    ):
        self.detector = detector
        self.speech = speech
        self.cue = cue
        self.debouncer = debouncer or AlertDebouncer()
        self.scene = scene
        self.safety_logger = safety_logger
        self.low_light_threshold = float(low_light_threshold)
        self.brightness_stride = int(brightness_stride)
        self.clock = clock
        self.logger = get_logger(__name__)

        self._lock = threading.Lock()
        self._detections: List[Detection] = []
        self._instruction = "Initializing SafePath..."
        self._low_light = False
        self._in_flight = False
        self._analyzing = False
        self._listening = False
        self._frame_id = 0
        self._closed = False
        self._started_ms = clock()

    # -- shared state -------------------------------------------------------

    @property
    def detections(self) -> List[Detection]:
        with self._lock:
            return list(self._detections)

    @property
    def instruction(self) -> str:
        with self._lock:
            return self._instruction

    @property
    def low_light(self) -> bool:
        with self._lock:
            return self._low_light

    def set_instruction(self, text: str) -> None:
        with self._lock:
            self._instruction = text

    def is_busy(self) -> bool:
        with self._lock:
            return self._in_flight or self._analyzing or self._listening

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            return SessionSnapshot(
                detections=tuple(self._detections),
                instruction=self._instruction,
                low_light=self._low_light,
                analyzing=self._analyzing,
                listening=self._listening,
            )

    def _claim(self, flag: str) -> bool:
        with self._lock:
            if self._closed or self._in_flight or self._analyzing or self._listening:
                return False
            setattr(self, flag, True)
            return True

    def _release(self, flag: str) -> None:
        with self._lock:
            setattr(self, flag, False)

    @contextmanager
    def listening(self) -> Iterator[bool]:
        """Hold the busy guard while the microphone is open; yields False if busy."""
        claimed = self._claim("_listening")
        if claimed:
            self.set_instruction("LISTENING...")
        try:
            yield claimed
        finally:
            if claimed:
                self._release("_listening")

    # -- sampling tick ------------------------------------------------------

    def _detect(self, packet: FramePacket) -> List[RawBox]:
        try:
            return list(self.detector.detect(packet.frame))
        except Exception as exc:  # any detector failure means "nothing seen this tick"
            self.logger.warning("Detection skipped: %s", exc, exc_info=self.logger.isEnabledFor(logging.DEBUG))
            return []

    def tick(self, packet: FramePacket, now: Optional[float] = None) -> TickResult:
        if not self._claim("_in_flight"):
            return TickResult(frame_id=self._frame_id, skipped=True, instruction=self.instruction)

        try:
            self._frame_id += 1
            timer = StageTimer()

            t0 = time.perf_counter()
            reading = estimate_brightness(packet.frame, threshold=self.low_light_threshold, stride=self.brightness_stride)
            timer.mark("brightness", t0)

            t1 = time.perf_counter()
            boxes = self._detect(packet)
            timer.mark("detection", t1)

            w, h = packet.size
            detections = map_detections(boxes, w, h)
            now = self.clock() if now is None else now
            decision = self.debouncer.step(detections, now, speech_busy=self.speech.is_busy())

            with self._lock:
                self._low_light = reading.low_light
                self._detections = detections
                if not detections:
                    self._instruction = PATH_CLEAR
                elif decision.kind == AlertKind.CRITICAL:
                    self._instruction = decision.text.upper()
                elif decision.kind == AlertKind.AMBIENT:
                    self._instruction = decision.text
                instruction = self._instruction

            self._emit(decision)
            self._log_state(now, reading, detections, decision, instruction)
            return TickResult(
                frame_id=self._frame_id,
                brightness=reading,
                detections=detections,
                decision=decision,
                instruction=instruction,
                stages_ms=timer.stages_ms,
            )
        finally:
            self._release("_in_flight")

    def _emit(self, decision: AlertDecision) -> None:
        if decision.kind == AlertKind.CRITICAL:
            if self.cue is not None:
                self.cue.play(decision.pan)
            self.speech.speak(decision.text, decision.pan)
        elif decision.kind == AlertKind.AMBIENT:
            self.speech.speak(decision.text.capitalize(), decision.pan)

    def _log_state(self, now: float, reading: BrightnessReading, detections, decision, instruction: str) -> None:
        if self.safety_logger is None:
            return
        if decision.kind != AlertKind.NONE:
            state = decision.kind.value
        elif not detections:
            state = "PATH_CLEAR"
        else:
            state = "OBSTACLES"
        if reading.low_light:
            state += "+LOW_LIGHT"
        self.safety_logger.log(
            frame_idx=self._frame_id,
            timestamp_s=(now - self._started_ms) / 1000.0,
            safety_state=state,
            message=instruction,
            details={
                "mean_luma": round(reading.mean_luma, 2),
                "detections": [d.to_dict() for d in detections],
            },
        )

    # -- on-demand assistance -------------------------------------------------

    def describe_scene(self, packet: FramePacket) -> Optional[str]:
        """Rich scene scan; returns the narrated summary or None when busy."""
        if not self._claim("_analyzing"):
            return None
        try:
            self.set_instruction("Scanning environment...")
            analysis = self.scene.analyze(packet.frame) if self.scene is not None else None
            if analysis is None:
                summary = DESCRIBE_FALLBACK
            else:
                summary = analysis.scene_summary or DESCRIBE_FALLBACK
                with self._lock:
                    self._detections = list(analysis.objects)
            self.set_instruction(summary)
            self.speech.speak(summary)
            return summary
        finally:
            self._release("_analyzing")

    def ask(self, packet: FramePacket, question: str) -> str:
        """
        Answer a spoken question about the current frame.
        Callers hold ``listening()`` while the question is captured, so the
        sampler is already paused when this runs.
        """
        self.set_instruction(f"Searching for: {question}")
        self.speech.speak("Checking surroundings...")
        answer = self.scene.ask(packet.frame, question) if self.scene is not None else ASK_FALLBACK
        self.set_instruction(answer or "No info.")
        self.speech.speak(answer or NOT_SEEN)
        return answer

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._detections = []
        self.debouncer.reset()
        with ExitStack() as stack:
            stack.callback(self.detector.close)
            if self.scene is not None:
                stack.callback(self.scene.close)
