from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

try:
    import cv2
except ImportError:  # pragma: no cover
    cv2 = None

from safepath.audio.speech import SpeechChannel
from safepath.utils.logger import get_logger
from safepath.utils.timing import now_ms

SCAN_PROMPT = "Scan any QR code for step-by-step guidance."
NO_QR_REMINDER = "No QR code found. Please point the camera toward a QR marker."


@dataclass(frozen=True)
class LocationNode:
    id: str
    name: str
    next_id: Optional[str]
    instruction: str
    voice_instruction: str


INDOOR_MAP: Dict[str, LocationNode] = {
    "safe-entry": LocationNode(
        id="safe-entry",
        name="Main Entrance",
        next_id="safe-hallway",
        instruction="Move forward 25 steps to Central Hallway.",
        voice_instruction="Move forward twenty-five steps. You will reach the Central Hallway.",
    ),
    "safe-hallway": LocationNode(
        id="safe-hallway",
        name="Central Hallway",
        next_id="safe-turn",
        instruction="Walk 10 steps, then Turn Left.",
        voice_instruction="Walk forward ten steps. Then, turn left immediately at the water cooler.",
    ),
    "safe-turn": LocationNode(
        id="safe-turn",
        name="East Wing Junction",
        next_id="safe-dest",
        instruction="Turn Right Now. Pharmacy is 15 steps ahead.",
        voice_instruction="Turn right now. Move forward fifteen steps. The Pharmacy will be on your right.",
    ),
    "safe-dest": LocationNode(
        id="safe-dest",
        name="Pharmacy",
        next_id=None,
        instruction="You have arrived.",
        voice_instruction="You have arrived at the Pharmacy. Assistance is available at the counter.",
    ),
}
ENTRY_ID = "safe-entry"


class IndoorNavigator:
    """
    QR-marker wayfinding over a static map.

    Unknown payloads still move the user along: with no location yet they
    resolve to the entrance, otherwise to the current node's successor.
    Also tracks user inactivity and escalates from a prompt to a caregiver
    notice.
    """

    def __init__(
        self,
        speech: SpeechChannel,
        indoor_map: Optional[Dict[str, LocationNode]] = None,
        no_qr_frames: int = 300,
        no_qr_cooldown_ms: float = 15000.0,
        inactivity_prompt_ms: float = 30000.0,
        inactivity_escalate_ms: float = 60000.0,
        on_instruction: Optional[Callable[[str], None]] = None,
        clock: Callable[[], float] = now_ms,
    ):
        self.speech = speech
        self.map = indoor_map or INDOOR_MAP
        self.no_qr_frames = int(no_qr_frames)
        self.no_qr_cooldown_ms = float(no_qr_cooldown_ms)
        self.inactivity_prompt_ms = float(inactivity_prompt_ms)
        self.inactivity_escalate_ms = float(inactivity_escalate_ms)
        self.on_instruction = on_instruction
        self.clock = clock
        self.logger = get_logger(__name__)

        self.current: Optional[LocationNode] = None
        self.last_scanned_id: Optional[str] = None
        self.instruction = SCAN_PROMPT
        self._no_qr_count = 0
        self._last_no_qr_alert_ms = -float("inf")
        self._last_interaction_ms = clock()
        self._lock = threading.RLock()
        self._inactivity_level = 0
        self._qr = cv2.QRCodeDetector() if cv2 is not None else None

    @classmethod
    def from_config(cls, cfg: dict, speech: SpeechChannel, **kwargs) -> "IndoorNavigator":
        indoor = cfg.get("indoor", {}) if isinstance(cfg, dict) else {}
        return cls(
            speech,
            no_qr_frames=int(indoor.get("no_qr_frames", 300)),
            no_qr_cooldown_ms=float(indoor.get("no_qr_cooldown_ms", 15000)),
            inactivity_prompt_ms=float(indoor.get("inactivity_prompt_ms", 30000)),
            inactivity_escalate_ms=float(indoor.get("inactivity_escalate_ms", 60000)),
            **kwargs,
        )

    def _set_instruction(self, text: str) -> None:
        self.instruction = text
        if self.on_instruction is not None:
            self.on_instruction(text)

    def touch(self, now: Optional[float] = None) -> None:
        """Record a user interaction (scan or voice command)."""
        with self._lock:
            self._last_interaction_ms = self.clock() if now is None else now
            self._inactivity_level = 0

    def handle_scan(self, payload: str, now: Optional[float] = None) -> Optional[LocationNode]:
        with self._lock:
            self.touch(now)
            if payload == self.last_scanned_id:
                return None

            node = self.map.get(payload)
            if node is None:
                if self.current is None:
                    node = self.map.get(ENTRY_ID)
                elif self.current.next_id:
                    node = self.map.get(self.current.next_id)

            if node is None:
                return None
            self.last_scanned_id = payload
            self.current = node
            self._set_instruction(node.instruction)
            self.speech.speak(f"{node.name}. {node.voice_instruction}")
        self.logger.info("[INDOOR] %s -> %s", payload, node.id)
        return node

    def decode(self, frame: Any) -> Optional[str]:
        if self._qr is None:
            return None
        try:
            data, _points, _ = self._qr.detectAndDecode(frame)
        except cv2.error as exc:
            self.logger.debug("QR decode failed: %s", exc)
            return None
        return data or None

    def process_frame(self, frame: Any, now: Optional[float] = None) -> Optional[LocationNode]:
        """Scan one display frame; counts misses toward the no-QR reminder."""
        payload = self.decode(frame)
        if payload:
            with self._lock:
                self._no_qr_count = 0
            return self.handle_scan(payload, now)
        self.note_miss(now)
        return None

    def note_miss(self, now: Optional[float] = None) -> bool:
        """Returns True when the reminder was spoken."""
        with self._lock:
            self._no_qr_count += 1
            if self._no_qr_count <= self.no_qr_frames:
                return False
            self._no_qr_count = 0
            now = self.clock() if now is None else now
            if self.current is not None or now - self._last_no_qr_alert_ms <= self.no_qr_cooldown_ms:
                return False
            self._last_no_qr_alert_ms = now
            self.speech.speak(NO_QR_REMINDER)
            return True

    def check_inactivity(self, now: Optional[float] = None) -> Optional[str]:
        # voice commands touch this state from the listener thread
        with self._lock:
            now = self.clock() if now is None else now
            idle = now - self._last_interaction_ms
            if idle <= self.inactivity_prompt_ms:
                return None
            if self._inactivity_level == 0:
                guidance = self.current.voice_instruction if self.current else self.instruction
                message = f"Are you still there? {guidance}"
                self._inactivity_level = 1
            elif self._inactivity_level == 1 and idle > self.inactivity_escalate_ms:
                message = "No response detected. Automatically notifying caregiver with your location."
                self._inactivity_level = 2
                self.logger.warning("[INDOOR] No response for %.0fs; caregiver notice raised", idle / 1000.0)
            else:
                return None
            self.speech.speak(message)
            return message

    def repeat_instruction(self) -> str:
        with self._lock:
            text = self.current.voice_instruction if self.current else "Scan a QR code to begin navigation."
            self.speech.speak(text)
        return text
