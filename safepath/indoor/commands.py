"""Keyword routing for spoken commands in indoor mode."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional, Sequence, Tuple

from safepath.indoor.wayfinding import IndoorNavigator
from safepath.utils.types import Detection, Proximity

UNKNOWN_COMMAND = "I did not understand that command, please say it again clearly."


class CommandAction(str, Enum):
    NONE = "none"
    REPEAT = "repeat"
    MUTE = "mute"
    EXIT = "exit"
    EMERGENCY = "emergency"
    CANCEL_EMERGENCY = "cancel_emergency"
    DESCRIBE = "describe"


@dataclass(frozen=True)
class CommandResponse:
    text: str
    action: CommandAction = CommandAction.NONE


# Ordered: the first rule whose keyword appears in the transcript wins.
_SIMPLE_RULES: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("move forward", "go forward"), "Moving forward."),
    (("turn left",), "Turning left."),
    (("turn right",), "Turning right."),
    (("stop everything",), "All actions stopped."),
    (("go back",), "Turning around."),
    (("slow down",), "Slowing guidance speed."),
    (("speed up",), "Increasing guidance speed."),
    (("scan qr code",), "Scanning for QR code now."),
    (("next location",), "Proceed to the next marker."),
    (("call caregiver",), "Calling your caregiver."),
    (("i am lost",), "Stay calm. I will guide you."),
)


def _nearest(detections: Sequence[Detection]) -> Optional[Detection]:
    for det in detections:
        if det.proximity == Proximity.NEAR:
            return det
    return detections[0] if detections else None


class CommandRouter:
    """
    Maps a final transcript to a spoken response and an optional action.
    ``detections`` is a callable so the router always sees the latest tick.
    Emergency actions carry no text; the emergency controller speaks for them.
    """

    def __init__(
        self,
        navigator: IndoorNavigator,
        detections: Callable[[], Sequence[Detection]] = lambda: (),
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.navigator = navigator
        self.detections = detections
        self.clock = clock
        self.emergency = False

    def handle(self, transcript: str) -> CommandResponse:
        cmd = transcript.strip().lower()
        self.navigator.touch()

        if cmd in ("mute", "quiet"):
            return CommandResponse("", CommandAction.MUTE)
        if cmd in ("repeat", "say again") or "repeat direction" in cmd or "repeat instruction" in cmd:
            return CommandResponse("Repeating last instruction.", CommandAction.REPEAT)
        if cmd == "exit" or "exit indoor mode" in cmd or "goodbye" in cmd:
            return CommandResponse("Exiting navigation.", CommandAction.EXIT)
        if "cancel emergency" in cmd:
            self.emergency = False
            return CommandResponse("", CommandAction.CANCEL_EMERGENCY)
        if "help" in cmd or "sos" in cmd:
            self.emergency = True
            return CommandResponse("", CommandAction.EMERGENCY)

        for keywords, reply in _SIMPLE_RULES:
            if any(k in cmd for k in keywords):
                return CommandResponse(reply)

        if "where am i" in cmd:
            node = self.navigator.current
            return CommandResponse(f"You are near the {node.name}." if node else "You are near the main entrance.")
        if "what is in front" in cmd or "what's in front" in cmd:
            det = _nearest(self.detections())
            return CommandResponse(f"There is a {det.label} ahead." if det else "Your path ahead looks clear.")
        if "detect object" in cmd or "identify object" in cmd or "what is this" in cmd:
            labels = [d.label for d in self.detections()]
            if labels:
                return CommandResponse(f"I have detected: {' and '.join(labels)} in your path.")
            return CommandResponse("Scanning surroundings... No specific objects identified yet.")
        if "what is around me" in cmd or "describe" in cmd:
            return CommandResponse("Describing your surroundings.", CommandAction.DESCRIBE)
        if "am i safe" in cmd:
            critical = any(d.is_critical for d in self.detections())
            return CommandResponse("Caution, obstacle close ahead." if critical else "Yes, your path is clear.")
        if "what time is it" in cmd or "current time" in cmd:
            return CommandResponse(f"The current time is {self.clock().strftime('%H:%M')}")
        if cmd in ("status", "update"):
            mode = "Emergency mode on." if self.emergency else "Normal mode."
            return CommandResponse(f"System active. {mode}")
        if cmd in ("yes", "ok", "correct"):
            return CommandResponse("Confirmed.")
        if cmd in ("no", "cancel"):
            return CommandResponse("Cancelled.")
        if "hello" in cmd or cmd == "hi":
            return CommandResponse("Hello. I am your SafePath assistant. I am listening for your commands.")
        return CommandResponse(UNKNOWN_COMMAND)
