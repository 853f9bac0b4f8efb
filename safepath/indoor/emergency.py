"""Spoken SOS countdown and caregiver alert."""

from __future__ import annotations

import math
import threading
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional

import requests

from safepath.audio.speech import SpeechChannel
from safepath.utils.config import get, get_secret
from safepath.utils.logger import get_logger
from safepath.utils.timing import now_ms

ALERT_SUBJECT = "URGENT: SafePath Emergency Alert"
HELP_ON_THE_WAY = "Stay calm, help is on the way."
EMERGENCY_CANCELLED = "Emergency cancelled."


class EmergencyNotifier:
    """
    Posts the alert as JSON to a caregiver webhook (mail relay, chat hook).
    With no webhook configured the alert is only logged.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        recipient: str = "caregiver",
        timeout_s: float = 10.0,
        session: Optional[requests.Session] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.url = url
        self.recipient = recipient
        self.timeout_s = float(timeout_s)
        self.session = session or requests.Session()
        self.clock = clock
        self.logger = get_logger(__name__)

    def payload(self, body: str, location: Optional[str] = None) -> Dict[str, Any]:
        return {
            "recipient": self.recipient,
            "subject": ALERT_SUBJECT,
            "body": body,
            "timestamp": self.clock().isoformat(timespec="seconds"),
            "location": location,
        }

    def send(self, body: str, location: Optional[str] = None) -> bool:
        """Returns True only when the webhook accepted the alert."""
        if not self.url:
            self.logger.warning("[EMERGENCY] No webhook configured; alert logged only: %s", body)
            return False
        try:
            resp = self.session.post(self.url, json=self.payload(body, location), timeout=self.timeout_s)
            resp.raise_for_status()
        except requests.RequestException as exc:
            self.logger.error("[EMERGENCY] Alert delivery failed: %s", exc)
            return False
        self.logger.warning("[EMERGENCY] Alert delivered to %s", self.recipient)
        return True

    def close(self) -> None:
        self.session.close()


class EmergencyState(str, Enum):
    IDLE = "idle"
    COUNTDOWN = "countdown"
    TRIGGERED = "triggered"


def _start_thread(target, *args) -> None:
    threading.Thread(target=target, args=args, daemon=True).start()


class EmergencyController:
    """
    Cancellable SOS countdown: one cue beep per second, then a single alert
    to the caregiver and a spoken confirmation.

    ``activate``/``cancel`` arrive from the voice thread while the display
    loop drives ``update``; the state machine sits behind one lock. Delivery
    runs through ``spawn`` so a slow webhook never stalls the display.
    """

    def __init__(
        self,
        speech: SpeechChannel,
        notifier: EmergencyNotifier,
        countdown_s: float = 5.0,
        cue=None,
        location: Callable[[], Optional[str]] = lambda: None,
        on_instruction: Optional[Callable[[str], None]] = None,
        spawn: Callable[..., None] = _start_thread,
        clock: Callable[[], float] = now_ms,
    ):
        self.speech = speech
        self.notifier = notifier
        self.countdown_s = float(countdown_s)
        self.cue = cue
        self.location = location
        self.on_instruction = on_instruction
        self.spawn = spawn
        self.clock = clock
        self.logger = get_logger(__name__)

        self.state = EmergencyState.IDLE
        self.delivered: Optional[bool] = None
        self._deadline_ms = 0.0
        self._next_beep_ms = 0.0
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, cfg: Dict[str, Any], speech: SpeechChannel, **kwargs) -> "EmergencyController":
        notifier = EmergencyNotifier(
            url=get_secret(cfg, "emergency.webhook_url_env", "SAFEPATH_EMERGENCY_WEBHOOK"),
            recipient=get(cfg, "emergency.recipient", "caregiver"),
            timeout_s=float(get(cfg, "emergency.timeout_s", 10.0)),
        )
        return cls(speech, notifier, countdown_s=float(get(cfg, "emergency.countdown_s", 5)), **kwargs)

    @property
    def active(self) -> bool:
        return self.state != EmergencyState.IDLE

    def remaining_s(self, now: Optional[float] = None) -> int:
        if self.state != EmergencyState.COUNTDOWN:
            return 0
        now = self.clock() if now is None else now
        return max(0, math.ceil((self._deadline_ms - now) / 1000.0))

    def _set_instruction(self, text: str) -> None:
        if self.on_instruction is not None:
            self.on_instruction(text)

    def activate(self, now: Optional[float] = None) -> bool:
        """Start the countdown. Returns False if one is already running or sent."""
        now = self.clock() if now is None else now
        with self._lock:
            if self.state != EmergencyState.IDLE:
                return False
            self.state = EmergencyState.COUNTDOWN
            self.delivered = None
            self._deadline_ms = now + self.countdown_s * 1000.0
            self._next_beep_ms = now

        seconds = int(math.ceil(self.countdown_s))
        self.logger.warning("[EMERGENCY] Countdown started (%ds)", seconds)
        self._set_instruction(f"EMERGENCY ALERT IN {seconds}s")
        self.speech.speak(f"Emergency alert in {seconds} seconds. Say cancel emergency to stop.")
        self.update(now)
        return True

    def cancel(self) -> bool:
        with self._lock:
            if self.state == EmergencyState.IDLE:
                return False
            self.state = EmergencyState.IDLE
        self.logger.info("[EMERGENCY] Cancelled by user")
        self._set_instruction(EMERGENCY_CANCELLED)
        self.speech.speak(EMERGENCY_CANCELLED)
        return True

    def update(self, now: Optional[float] = None) -> bool:
        """Advance the countdown; returns True on the call that fires the alert."""
        now = self.clock() if now is None else now
        beep = False
        with self._lock:
            if self.state != EmergencyState.COUNTDOWN:
                return False
            fire = now >= self._deadline_ms
            if fire:
                self.state = EmergencyState.TRIGGERED
            elif now >= self._next_beep_ms:
                beep = True
                self._next_beep_ms += 1000.0

        if fire:
            self._trigger()
            return True
        if beep and self.cue is not None:
            self.cue.play(0.0)
        return False

    def _trigger(self) -> None:
        where = self.location()
        place = f"near the {where}" if where else "at an unknown location"
        body = f"The user has triggered an emergency alert {place}. Immediate assistance required."
        self.logger.warning("[EMERGENCY] Triggered %s", place)
        self._set_instruction("EMERGENCY: NOTIFYING CAREGIVER")
        self.spawn(self._deliver, body, where)

    def _deliver(self, body: str, where: Optional[str]) -> None:
        self.delivered = self.notifier.send(body, where)
        outcome = "Alert sent to your caregiver." if self.delivered else "Could not reach your caregiver."
        self.speech.speak(f"{HELP_ON_THE_WAY} {outcome}")

    def close(self) -> None:
        self.notifier.close()
