from __future__ import annotations

from typing import Callable, Optional

import speech_recognition as sr

from safepath.utils.logger import get_logger


class SpeechListener:
    """
    Microphone transcription via speech_recognition.
    Only final transcripts reach ``on_transcript``; empty or unintelligible
    audio is dropped.
    """

    def __init__(
        self,
        on_transcript: Callable[[str], None],
        language: str = "en-US",
        timeout_s: float = 5.0,
        phrase_time_limit_s: float = 6.0,
        recognizer: Optional[sr.Recognizer] = None,
    ):
        self.on_transcript = on_transcript
        self.language = language
        self.timeout_s = float(timeout_s)
        self.phrase_time_limit_s = float(phrase_time_limit_s)
        self.recognizer = recognizer or sr.Recognizer()
        self.logger = get_logger(__name__)
        self._stop_background: Optional[Callable[..., None]] = None

    def transcribe(self, audio: sr.AudioData) -> Optional[str]:
        try:
            text = self.recognizer.recognize_google(audio, language=self.language)
        except sr.UnknownValueError:
            return None
        except sr.RequestError as exc:
            self.logger.warning("Speech recognition request failed: %s", exc)
            return None
        text = (text or "").strip()
        return text or None

    def _handle(self, _recognizer: sr.Recognizer, audio: sr.AudioData) -> None:
        text = self.transcribe(audio)
        if text:
            self.logger.info("[VOICE] heard: %s", text)
            self.on_transcript(text)

    def listen_once(self) -> Optional[str]:
        """Push-to-talk: block for one phrase and return its transcript."""
        try:
            with sr.Microphone() as source:
                self.recognizer.adjust_for_ambient_noise(source, duration=0.3)
                audio = self.recognizer.listen(source, timeout=self.timeout_s, phrase_time_limit=self.phrase_time_limit_s)
        except sr.WaitTimeoutError:
            return None
        except (OSError, AttributeError) as exc:  # AttributeError: PyAudio missing
            self.logger.warning("Microphone unavailable: %s", exc)
            return None
        return self.transcribe(audio)

    def start(self) -> bool:
        """Continuous listening (indoor mode). Returns False when no microphone is present."""
        if self._stop_background is not None:
            return True
        try:
            mic = sr.Microphone()
            with mic as source:
                self.recognizer.adjust_for_ambient_noise(source, duration=0.5)
        except (OSError, AttributeError) as exc:  # AttributeError: PyAudio missing
            self.logger.warning("Microphone unavailable: %s", exc)
            return False
        self._stop_background = self.recognizer.listen_in_background(
            mic, self._handle, phrase_time_limit=self.phrase_time_limit_s
        )
        return True

    def stop(self) -> None:
        if self._stop_background is not None:
            self._stop_background(wait_for_stop=False)
            self._stop_background = None
