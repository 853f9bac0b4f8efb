from __future__ import annotations

import abc
from typing import List

import numpy as np

from safepath.utils.types import RawBox


class BaseDetector(abc.ABC):
    @abc.abstractmethod
    def detect(self, frame: np.ndarray) -> List[RawBox]:
        """
        Input:
            frame: BGR image (H, W, 3)
        Output:
            ordered boxes, normalized or pixel space; score is informational
        """
        raise NotImplementedError

    def close(self) -> None:
        return
