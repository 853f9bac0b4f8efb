from __future__ import annotations

import queue
import threading
from typing import Optional, Protocol

import pyttsx3

from safepath.utils.logger import get_logger


class SpeechChannel(Protocol):
    def is_busy(self) -> bool:
        ...

    def speak(self, text: str, pan: float = 0.0) -> None:
        ...

    def cancel_all(self) -> None:
        ...

    def close(self) -> None:
        ...


class Pyttsx3Speech:
    """
    Offline TTS on a dedicated worker thread.

    pyttsx3 engines must be driven from the thread that created them, so the
    engine lives entirely inside the worker. Other threads only touch the
    queue and the cancel flag; the worker stops the engine itself from its
    word callback. A new utterance replaces whatever is pending or playing.
    """

    def __init__(self, rate: int = 185, volume: float = 1.0, voice: Optional[str] = None):
        self.rate = int(rate)
        self.volume = float(volume)
        self.voice = voice
        self.logger = get_logger(__name__)
        self._queue: "queue.Queue[Optional[str]]" = queue.Queue()
        self._state_lock = threading.Lock()
        self._pending = 0
        self._cancel = threading.Event()
        self._ready = threading.Event()
        self._engine = None
        self._available = True
        self._thread = threading.Thread(target=self._worker, name="safepath-speech", daemon=True)
        self._thread.start()
        self._ready.wait(timeout=5.0)

    def _init_engine(self):
        engine = pyttsx3.init()
        engine.setProperty("rate", self.rate)
        engine.setProperty("volume", self.volume)
        if self.voice:
            engine.setProperty("voice", self.voice)
        engine.connect("started-word", self._on_word)
        return engine

    def _on_word(self, name, location, length) -> None:
        # runs inside runAndWait on the worker thread
        if self._cancel.is_set():
            self._engine.stop()

    def _worker(self) -> None:
        try:
            self._engine = self._init_engine()
        except Exception:  # driver load errors vary by platform
            self.logger.exception("TTS engine unavailable; utterances will only be logged")
            self._available = False
            return
        finally:
            self._ready.set()

        while True:
            text = self._queue.get()
            if text is None:
                self._queue.task_done()
                break
            self._cancel.clear()
            try:
                self._engine.say(text)
                self._engine.runAndWait()
            except RuntimeError as exc:
                self.logger.warning("TTS failed for %r: %s", text, exc)
            finally:
                with self._state_lock:
                    self._pending -= 1
                self._queue.task_done()

    def is_busy(self) -> bool:
        with self._state_lock:
            return self._pending > 0

    def _drain(self) -> int:
        dropped = 0
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return dropped
            self._queue.task_done()
            if item is not None:
                dropped += 1

    def speak(self, text: str, pan: float = 0.0) -> None:
        if not text:
            return
        self.logger.info("[SPEECH] %s (pan=%+.0f)", text, pan)
        if not self._available:
            return
        with self._state_lock:
            self._pending -= self._drain()
            self._cancel.set()
            self._pending += 1
            self._queue.put(text)

    def cancel_all(self) -> None:
        with self._state_lock:
            self._pending -= self._drain()
            self._cancel.set()

    def close(self) -> None:
        self.cancel_all()
        if self._thread.is_alive():
            self._queue.put(None)
            self._thread.join(timeout=2.0)
            if self._thread.is_alive():
                self.logger.warning("Speech worker did not stop within timeout")
