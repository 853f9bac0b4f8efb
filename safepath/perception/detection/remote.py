from __future__ import annotations

from typing import Any, Dict, List, Optional

import numpy as np
import requests

from safepath.perception.detection.base_detector import BaseDetector
from safepath.perception.encoding import to_data_url
from safepath.utils.logger import get_logger
from safepath.utils.types import RawBox


def parse_boxes(payload: Any) -> List[RawBox]:
    """
    Accepts ``[{label, score, box: {xmin, ymin, xmax, ymax}}]`` or
    ``{"output": [...]}``. Malformed entries are dropped, order is kept.
    """
    if isinstance(payload, dict):
        payload = payload.get("output")
    if not isinstance(payload, list):
        return []

    boxes: List[RawBox] = []
    for item in payload:
        if not isinstance(item, dict):
            continue
        box = item.get("box")
        label = item.get("label")
        if not isinstance(box, dict) or not label:
            continue
        try:
            boxes.append(
                RawBox(
                    xmin=float(box["xmin"]),
                    ymin=float(box["ymin"]),
                    xmax=float(box["xmax"]),
                    ymax=float(box["ymax"]),
                    label=str(label),
                    score=float(item["score"]) if item.get("score") is not None else None,
                )
            )
        except (KeyError, TypeError, ValueError):
            continue
    return boxes


class RemoteDetector(BaseDetector):
    """
    Hosted object-detection endpoint (yolos-tiny style JSON).
    Any transport or payload failure is reported as no detections.
    """

    def __init__(
        self,
        url: str,
        api_key: Optional[str] = None,
        timeout_s: float = 10.0,
        jpeg_quality: float = 0.5,
        session: Optional[requests.Session] = None,
    ):
        self.url = url
        self.api_key = api_key
        self.timeout_s = float(timeout_s)
        self.jpeg_quality = float(jpeg_quality)
        self.session = session or requests.Session()
        self.logger = get_logger(__name__)

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Key {self.api_key}"
        return headers

    def detect(self, frame: np.ndarray) -> List[RawBox]:
        try:
            body = {"url": to_data_url(frame, self.jpeg_quality)}
            resp = self.session.post(self.url, json=body, headers=self._headers(), timeout=self.timeout_s)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as exc:
            self.logger.warning("Remote detection failed: %s", exc)
            return []

        if isinstance(data, dict) and data.get("error"):
            self.logger.warning("Remote detection error: %s", data.get("error"))
            return []
        return parse_boxes(data)

    def close(self) -> None:
        self.session.close()
