import abc
from typing import Iterator, Optional, Tuple

from safepath.utils.types import FramePacket


class BaseInput(abc.ABC):
    @abc.abstractmethod
    def start(self) -> None:
        ...

    @abc.abstractmethod
    def stop(self) -> None:
        ...

    @abc.abstractmethod
    def frames(self) -> Iterator[Tuple[int, FramePacket]]:
        ...

    @abc.abstractmethod
    def latest(self) -> Optional[FramePacket]:
        """Most recent frame, or None before the first one arrives."""
        ...
