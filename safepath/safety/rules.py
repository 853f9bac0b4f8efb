from typing import FrozenSet, Iterable, Optional

from safepath.utils.types import Detection, Direction, Severity

HIGH_SEVERITY_LABELS: FrozenSet[str] = frozenset({"car", "truck", "bus", "train", "fire", "person"})
MEDIUM_SEVERITY_LABELS: FrozenSet[str] = frozenset({"bicycle", "motorcycle", "dog", "chair", "couch", "tv"})

_PAN_BY_DIRECTION = {
    Direction.LEFT: -1.0,
    Direction.CENTER: 0.0,
    Direction.RIGHT: 1.0,
}


def classify_severity(label: str) -> Severity:
    name = label.strip().lower()
    if name in HIGH_SEVERITY_LABELS:
        return Severity.HIGH
    if name in MEDIUM_SEVERITY_LABELS:
        return Severity.MEDIUM
    return Severity.LOW


def pick_critical(detections: Iterable[Detection]) -> Optional[Detection]:
    """First high-severity, near detection in result order (no re-ranking)."""
    for det in detections:
        if det.is_critical:
            return det
    return None


def pan_for(direction: Direction) -> float:
    return _PAN_BY_DIRECTION.get(direction, 0.0)
