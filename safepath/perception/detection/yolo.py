from __future__ import annotations

from typing import Iterable, List, Optional

import numpy as np
import torch
from ultralytics import YOLO

from safepath.perception.detection.base_detector import BaseDetector
from safepath.utils.logger import get_logger
from safepath.utils.types import RawBox


def pick_device(device: str | None = None) -> str:
    if device:
        return device
    if torch.cuda.is_available():
        return "cuda"
    if torch.backends.mps.is_available():
        return "mps"
    return "cpu"


class YOLODetector(BaseDetector):
    """
    On-device YOLOv8 detector.
    Emits pixel-space boxes with COCO class names, in model output order.
    """

    def __init__(
        self,
        model_name: str = "yolov8n.pt",
        device: str | None = None,
        conf_thres: float = 0.35,
        classes: Optional[Iterable[str]] = None,
    ):
        self.logger = get_logger(__name__)
        self.device = pick_device(device)
        self.conf_thres = float(conf_thres)
        self.model = YOLO(model_name)
        self.model.to(self.device)
        self.allowed = {c.lower() for c in classes} if classes else None
        self.logger.info("YOLO model %s on %s (conf>=%.2f)", model_name, self.device, self.conf_thres)

    def detect(self, frame: np.ndarray) -> List[RawBox]:
        results = self.model(
            frame,
            device=self.device,
            conf=self.conf_thres,
            verbose=False,
        )[0]

        boxes: List[RawBox] = []

        if results.boxes is None:
            return boxes

        names = results.names
        for box in results.boxes:
            cls_id = int(box.cls.item())
            label = str(names.get(cls_id, cls_id)) if isinstance(names, dict) else str(names[cls_id])
            if self.allowed is not None and label.lower() not in self.allowed:
                continue

            x1, y1, x2, y2 = (float(v) for v in box.xyxy[0].tolist())
            boxes.append(RawBox(xmin=x1, ymin=y1, xmax=x2, ymax=y2, label=label, score=float(box.conf.item())))

        return boxes
