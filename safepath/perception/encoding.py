from __future__ import annotations

import base64

import cv2
import numpy as np


def encode_jpeg(frame: np.ndarray, quality: float = 0.6) -> bytes:
    """Compress a BGR frame to JPEG; quality is the 0..1 scale used by browser canvases."""
    q = int(round(max(0.0, min(1.0, quality)) * 100))
    ok, buf = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), q])
    if not ok:
        raise ValueError("JPEG encoding failed")
    return buf.tobytes()


def to_base64(frame: np.ndarray, quality: float = 0.6) -> str:
    return base64.b64encode(encode_jpeg(frame, quality)).decode("ascii")


def to_data_url(frame: np.ndarray, quality: float = 0.6) -> str:
    return f"data:image/jpeg;base64,{to_base64(frame, quality)}"
