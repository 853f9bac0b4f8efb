from __future__ import annotations

from typing import Any

import numpy as np

from safepath.utils.types import BrightnessReading

LOW_LIGHT_THRESHOLD = 30.0


def mean_luma(frame: Any, stride: int = 1) -> float:
    """
    Mean of (R+G+B)/3 over the frame.
    Channel order does not matter for this average, so BGR frames work as is.
    """
    arr = np.asarray(frame)
    if arr.size == 0:
        return 0.0
    stride = max(1, int(stride))
    if stride > 1:
        arr = arr[::stride, ::stride]
    if arr.ndim == 3:
        arr = arr[..., :3]
    return float(arr.mean(dtype=np.float64))


def estimate_brightness(frame: Any, threshold: float = LOW_LIGHT_THRESHOLD, stride: int = 1) -> BrightnessReading:
    luma = mean_luma(frame, stride=stride)
    return BrightnessReading(mean_luma=luma, low_light=luma < threshold)
