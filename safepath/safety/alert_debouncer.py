from __future__ import annotations

import random
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Sequence

from safepath.safety.rules import pan_for, pick_critical
from safepath.utils.types import AlertMemory, Detection


class AlertState(str, Enum):
    IDLE = "IDLE"  # nothing remembered
    SUPPRESSING = "SUPPRESSING"  # critical alert spoken recently, still in view
    CLEAR_PENDING = "CLEAR_PENDING"  # path clear, memory kept until the reset window passes


class AlertKind(str, Enum):
    NONE = "NONE"
    CRITICAL = "CRITICAL"
    AMBIENT = "AMBIENT"


@dataclass(frozen=True)
class AlertDecision:
    kind: AlertKind
    text: str = ""
    pan: float = 0.0
    detection: Optional[Detection] = None
    memory_cleared: bool = False

    @property
    def should_speak(self) -> bool:
        return self.kind != AlertKind.NONE


class AlertDebouncer:
    """
    Decides which spoken alert (if any) a tick produces.

    One memory cell holds the last critical alert. The same text is not
    repeated until ``debounce_ms`` has passed; once no critical obstacle has
    been seen and the memory is older than ``clear_reset_ms`` it is dropped so
    a returning hazard is announced at once. The ambient channel is driven by
    an injectable ``rng`` returning floats in [0, 1).
    """

    def __init__(
        self,
        debounce_ms: float = 8000.0,
        clear_reset_ms: float = 5000.0,
        ambient_probability: float = 0.15,
        rng: Optional[Callable[[], float]] = None,
    ):
        self.debounce_ms = float(debounce_ms)
        self.clear_reset_ms = float(clear_reset_ms)
        self.ambient_probability = float(ambient_probability)
        self._rng = rng or random.random
        self._memory: Optional[AlertMemory] = None
        self._critical_in_view = False

    @classmethod
    def from_config(cls, cfg: dict, rng: Optional[Callable[[], float]] = None) -> "AlertDebouncer":
        alerts = cfg.get("alerts", {}) if isinstance(cfg, dict) else {}
        return cls(
            debounce_ms=float(alerts.get("debounce_ms", 8000)),
            clear_reset_ms=float(alerts.get("clear_reset_ms", 5000)),
            ambient_probability=float(alerts.get("ambient_probability", 0.15)),
            rng=rng,
        )

    @property
    def memory(self) -> Optional[AlertMemory]:
        return self._memory

    @property
    def state(self) -> AlertState:
        if self._memory is None:
            return AlertState.IDLE
        return AlertState.SUPPRESSING if self._critical_in_view else AlertState.CLEAR_PENDING

    def reset(self) -> None:
        self._memory = None
        self._critical_in_view = False

    def _may_repeat(self, text: str, now_ms: float) -> bool:
        mem = self._memory
        return mem is None or mem.text != text or (now_ms - mem.timestamp_ms) > self.debounce_ms

    def step(self, detections: Sequence[Detection], now_ms: float, speech_busy: bool = False) -> AlertDecision:
        critical = pick_critical(detections)
        self._critical_in_view = critical is not None

        if critical is not None:
            text = f"{critical.label} ahead!"
            if self._may_repeat(text, now_ms) and not speech_busy:
                self._memory = AlertMemory(text=text, timestamp_ms=now_ms)
                return AlertDecision(AlertKind.CRITICAL, text=text, pan=pan_for(critical.direction), detection=critical)
            return AlertDecision(AlertKind.NONE, detection=critical)

        cleared = False
        if self._memory is not None and (now_ms - self._memory.timestamp_ms) > self.clear_reset_ms:
            self._memory = None
            cleared = True

        if detections and not speech_busy and self._rng() < self.ambient_probability:
            first = detections[0]
            return AlertDecision(
                AlertKind.AMBIENT,
                text=f"{first.label.upper()} DETECTED",
                pan=pan_for(first.direction),
                detection=first,
                memory_cleared=cleared,
            )
        return AlertDecision(AlertKind.NONE, memory_cleared=cleared)
