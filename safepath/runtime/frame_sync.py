import threading
from collections import deque
from typing import Deque, Optional

from safepath.utils.types import FramePacket


class FrameSync:
    """Latest-frame hand-off between the capture thread and its readers."""

    def __init__(self, max_buffer: int = 2):
        self.buffer: Deque[FramePacket] = deque(maxlen=max_buffer)
        self._lock = threading.Lock()

    def push(self, packet: FramePacket) -> None:
        with self._lock:
            self.buffer.append(packet)

    def latest(self) -> Optional[FramePacket]:
        with self._lock:
            return self.buffer[-1] if self.buffer else None

    def clear(self) -> None:
        with self._lock:
            self.buffer.clear()
