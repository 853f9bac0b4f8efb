from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class Direction(str, Enum):
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


class Proximity(str, Enum):
    NEAR = "near"
    FAR = "far"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass
class FramePacket:
    frame: object
    timestamp: float

    @property
    def size(self) -> tuple[int, int]:
        """(width, height) of the captured bitmap."""
        h, w = self.frame.shape[:2]
        return int(w), int(h)


@dataclass
class RawBox:
    """Detector output, either normalized (xmax <= 1.0) or in pixels."""

    xmin: float
    ymin: float
    xmax: float
    ymax: float
    label: str
    score: Optional[float] = None

    @property
    def is_normalized(self) -> bool:
        return self.xmax <= 1.0

    @property
    def area(self) -> float:
        return (self.xmax - self.xmin) * (self.ymax - self.ymin)


@dataclass(frozen=True)
class Detection:
    label: str
    direction: Direction
    proximity: Proximity
    severity: Severity
    distance: str

    @property
    def is_critical(self) -> bool:
        return self.severity == Severity.HIGH and self.proximity == Proximity.NEAR

    def to_dict(self) -> Dict[str, str]:
        return {
            "label": self.label,
            "direction": self.direction.value,
            "proximity": self.proximity.value,
            "severity": self.severity.value,
            "distance": self.distance,
        }


@dataclass(frozen=True)
class AlertMemory:
    text: str
    timestamp_ms: float


@dataclass(frozen=True)
class BrightnessReading:
    mean_luma: float
    low_light: bool


@dataclass
class SceneAnalysis:
    objects: List[Detection] = field(default_factory=list)
    scene_summary: str = ""
