from __future__ import annotations

from typing import Iterable, List

from safepath.safety.distance import coverage_ratio, distance_label, proximity_from_coverage
from safepath.safety.rules import classify_severity
from safepath.utils.types import Detection, Direction, RawBox

LEFT_RATIO = 0.33
RIGHT_RATIO = 0.66


def direction_from_ratio(ratio: float) -> Direction:
    # Both boundaries resolve to center.
    if ratio < LEFT_RATIO:
        return Direction.LEFT
    if ratio > RIGHT_RATIO:
        return Direction.RIGHT
    return Direction.CENTER


def map_box(box: RawBox, frame_w: int, frame_h: int) -> Detection:
    """
    Convert one detector box into a semantic Detection.

    The coordinate space is guessed from ``xmax <= 1.0``. A pixel box on an
    image at most one pixel wide is therefore read as normalized; the detector
    contract does not say which space it answers in, so the heuristic stays.
    """
    normalized = box.is_normalized
    width = 1.0 if normalized else float(frame_w)
    image_area = 1.0 if normalized else float(frame_w) * float(frame_h)

    center_x = (box.xmin + box.xmax) / 2.0
    ratio = center_x / width if width > 0 else 0.5
    coverage = coverage_ratio(box.area, image_area)

    return Detection(
        label=box.label,
        direction=direction_from_ratio(ratio),
        proximity=proximity_from_coverage(coverage),
        severity=classify_severity(box.label),
        distance=distance_label(coverage),
    )


def map_detections(boxes: Iterable[RawBox], frame_w: int, frame_h: int) -> List[Detection]:
    """Map boxes in input order; nothing is sorted or filtered."""
    return [map_box(box, frame_w, frame_h) for box in boxes]
