from __future__ import annotations

import threading
from typing import Callable, Optional

from safepath.runtime.session import DetectionSession, TickResult
from safepath.utils.logger import get_logger
from safepath.utils.types import FramePacket


class FrameSampler:
    """
    Fixed-interval sampling timer.

    Each tick grabs the newest frame and hands it to the session. Ticks that
    land while the session is busy (previous tick, scene scan or microphone)
    are dropped, never queued, so the detection list on screen simply stays
    as it was for that interval.
    """

    def __init__(
        self,
        session: DetectionSession,
        frame_source: Callable[[], Optional[FramePacket]],
        interval_s: float = 1.5,
        on_result: Optional[Callable[[TickResult], None]] = None,
    ):
        self.session = session
        self.frame_source = frame_source
        self.interval_s = float(interval_s)
        self.on_result = on_result
        self.logger = get_logger(__name__)
        self.ticks = 0
        self.skipped = 0
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def tick_once(self) -> Optional[TickResult]:
        if self.session.is_busy():
            self.skipped += 1
            self.logger.debug("Tick skipped: session busy")
            return None
        packet = self.frame_source()
        if packet is None:
            return None
        try:
            result = self.session.tick(packet)
        except Exception:  # nothing unwinds past the tick boundary
            self.logger.exception("Sampling tick failed")
            return None
        if result.skipped:
            self.skipped += 1
            return result
        self.ticks += 1
        if self.on_result is not None:
            try:
                self.on_result(result)
            except Exception:
                self.logger.exception("Tick result callback failed")
        return result

    def _loop(self) -> None:
        while not self._stop_event.wait(self.interval_s):
            self.tick_once()

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="safepath-sampler", daemon=True)
        self._thread.start()
        self.logger.info("Sampler started (every %.2fs)", self.interval_s)

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=max(2.0, self.interval_s))
            if self._thread.is_alive():
                self.logger.warning("Sampler did not stop within timeout (tick still in flight)")
            self._thread = None
            self.logger.info("Sampler stopped after %d ticks (%d skipped)", self.ticks, self.skipped)
