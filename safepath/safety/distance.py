from __future__ import annotations

from safepath.utils.types import Proximity

NEAR_COVERAGE = 0.15
CLOSE_COVERAGE = 0.3
MID_COVERAGE = 0.1


def coverage_ratio(box_area: float, image_area: float) -> float:
    """
    Share of the frame covered by a box.
    Larger coverage → closer object.
    """
    if image_area <= 0:
        return 0.0
    return box_area / image_area


def proximity_from_coverage(coverage: float) -> Proximity:
    return Proximity.NEAR if coverage > NEAR_COVERAGE else Proximity.FAR


def distance_label(coverage: float) -> str:
    """
    Coarse spoken distance bucket.
    Returns a proxy string, not a metric estimate.
    """
    if coverage > CLOSE_COVERAGE:
        return "<1m"
    if coverage > MID_COVERAGE:
        return "2m"
    return ">3m"
