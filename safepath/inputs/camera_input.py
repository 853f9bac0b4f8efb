from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Generator, Optional, Tuple, Union

try:
    import cv2
except ImportError:  # pragma: no cover
    cv2 = None

from safepath.inputs.base_input import BaseInput
from safepath.runtime.frame_sync import FrameSync
from safepath.utils.logger import get_logger
from safepath.utils.types import FramePacket


class CameraUnavailableError(RuntimeError):
    """The camera (or replay file) could not be opened; the detection loop must not start."""


@dataclass
class VideoMeta:
    fps: float
    width: int
    height: int
    frame_count: int


def parse_source(source: Union[int, str, Path]) -> Union[int, str]:
    """"0" → device 0; anything else is a path or stream URL."""
    if isinstance(source, int):
        return source
    text = str(source).strip()
    return int(text) if text.isdigit() else text


class CameraInput(BaseInput):
    """
    Live camera, network stream or video file.

    ``start()`` opens the device and spawns a capture thread that keeps the
    newest frame in a FrameSync; the sampler and the display loop both read
    ``latest()`` so neither waits on the other. File sources are paced at
    their native fps.
    """

    def __init__(
        self,
        source: Union[int, str, Path] = 0,
        width: Optional[int] = None,
        height: Optional[int] = None,
        frame_rate: Optional[float] = None,
        loop: bool = False,
    ):
        self.source = parse_source(source)
        self.width = width
        self.height = height
        self.frame_rate = frame_rate
        self.loop = loop
        self.logger = get_logger(__name__)
        self.cap = None
        self.meta: Optional[VideoMeta] = None
        self.sync = FrameSync()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._frame_idx = 0
        self.finished = threading.Event()

    @property
    def is_file(self) -> bool:
        return isinstance(self.source, str) and Path(self.source).exists()

    def open(self) -> None:
        if cv2 is None:
            raise CameraUnavailableError("opencv-python is required for CameraInput")
        if self.cap is not None:
            return

        cap = cv2.VideoCapture(self.source)
        if not cap.isOpened():
            cap.release()
            raise CameraUnavailableError(f"Could not open camera source: {self.source}")
        if self.width and self.height and not self.is_file:
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, int(self.width))
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, int(self.height))

        self.cap = cap
        self.meta = VideoMeta(
            fps=float(cap.get(cv2.CAP_PROP_FPS) or (self.frame_rate or 30.0)),
            width=int(cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            height=int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
            frame_count=int(cap.get(cv2.CAP_PROP_FRAME_COUNT) or 0),
        )
        self.logger.info(
            "Camera opened: %s fps=%.2f size=%dx%d frames=%d",
            self.source,
            self.meta.fps,
            self.meta.width,
            self.meta.height,
            self.meta.frame_count,
        )

    def start(self) -> None:
        self.open()
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self.finished.clear()
        self._thread = threading.Thread(target=self._capture_loop, name="safepath-capture", daemon=True)
        self._thread.start()

    def _read(self) -> Optional[FramePacket]:
        if self.cap is None:
            return None
        ok, frame = self.cap.read()
        if not ok and self.loop and self.is_file:
            self.cap.set(cv2.CAP_PROP_POS_FRAMES, 0)
            ok, frame = self.cap.read()
        if not ok:
            return None
        self._frame_idx += 1
        return FramePacket(frame=frame, timestamp=time.monotonic())

    def _capture_loop(self) -> None:
        pace = 1.0 / (self.meta.fps if self.meta and self.meta.fps > 0 else 30.0) if self.is_file else 0.0
        misses = 0
        while not self._stop_event.is_set():
            packet = self._read()
            if packet is None:
                if self.is_file:
                    self.logger.info("End of replay after %d frames", self._frame_idx)
                    break
                misses += 1
                if misses == 30:
                    self.logger.warning("Camera returned no frames for 30 reads")
                self._stop_event.wait(0.03)
                continue
            misses = 0
            self.sync.push(packet)
            if pace:
                self._stop_event.wait(pace)
        self.finished.set()

    def latest(self) -> Optional[FramePacket]:
        return self.sync.latest()

    def frames(self) -> Generator[Tuple[int, FramePacket], None, None]:
        """Synchronous iteration for replays (no capture thread)."""
        self.open()
        while True:
            packet = self._read()
            if packet is None:
                break
            yield self._frame_idx, packet

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=2.0)
            if self._thread.is_alive():
                self.logger.warning("Capture thread did not stop within timeout")
            self._thread = None
        if self.cap is not None:
            self.cap.release()
            self.cap = None
            self.logger.info("Released camera %s", self.source)
        self.sync.clear()
