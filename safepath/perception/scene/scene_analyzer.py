from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional

import numpy as np
import requests

from safepath.perception.encoding import to_base64
from safepath.utils.logger import get_logger
from safepath.utils.types import Detection, Direction, Proximity, SceneAnalysis, Severity

ASK_FALLBACK = "I couldn't identify that."
DESCRIBE_FALLBACK = "Scanning failed."

SCENE_PROMPT = (
    "Act as a high-precision spatial assistant for a visually impaired person. "
    "Detect ALL visible objects that might affect navigation. "
    "Return ONLY a valid JSON object: "
    '{"objects": [{"label": "string", "direction": "left|center|right", '
    '"proximity": "near|far", "severity": "low|medium|high", "distance": "string"}], '
    '"sceneSummary": "short summary phrase"}'
)
DESCRIBE_PROMPT = "Describe the environment layout briefly for a visually impaired person. Focus on floor paths."

_FENCE_RE = re.compile(r"```(?:json)?\n?|\n?```")


def strip_fences(content: str) -> str:
    return _FENCE_RE.sub("", content).strip()


def _enum_or(enum_cls, value: Any, default):
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        return default


def parse_scene(content: str) -> Optional[SceneAnalysis]:
    """Parse the model's JSON answer; unknown enum values fall back to the mildest reading."""
    try:
        data = json.loads(strip_fences(content))
    except (TypeError, ValueError):
        return None
    if not isinstance(data, dict):
        return None

    objects: List[Detection] = []
    for obj in data.get("objects") or []:
        if not isinstance(obj, dict) or not obj.get("label"):
            continue
        objects.append(
            Detection(
                label=str(obj["label"]),
                direction=_enum_or(Direction, obj.get("direction"), Direction.CENTER),
                proximity=_enum_or(Proximity, obj.get("proximity"), Proximity.FAR),
                severity=_enum_or(Severity, obj.get("severity"), Severity.LOW),
                distance=str(obj.get("distance", "")),
            )
        )
    return SceneAnalysis(objects=objects, scene_summary=str(data.get("sceneSummary", "")))


class SceneAnalyzer:
    """
    Vision-LLM client speaking the OpenAI-compatible chat completions API.
    Never raises: analysis failures return None, questions return a fallback line.
    """

    def __init__(
        self,
        base_url: str = "https://openrouter.ai/api/v1/chat/completions",
        model: str = "google/gemini-2.0-flash-001",
        api_key: Optional[str] = None,
        timeout_s: float = 20.0,
        jpeg_quality: float = 0.6,
        app_title: str = "SafePath",
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url
        self.model = model
        self.api_key = api_key
        self.timeout_s = float(timeout_s)
        self.jpeg_quality = float(jpeg_quality)
        self.app_title = app_title
        self.session = session or requests.Session()
        self.logger = get_logger(__name__)

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "X-Title": self.app_title}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _image_message(self, frame: np.ndarray, text: str) -> Dict[str, Any]:
        b64 = to_base64(frame, self.jpeg_quality)
        return {
            "role": "user",
            "content": [
                {"type": "text", "text": text},
                {"type": "image_url", "image_url": {"url": f"data:image/jpeg;base64,{b64}"}},
            ],
        }

    def _complete(self, messages: List[Dict[str, Any]], json_mode: bool = False) -> Optional[str]:
        body: Dict[str, Any] = {"model": self.model, "messages": messages}
        if json_mode:
            body["response_format"] = {"type": "json_object"}
        try:
            resp = self.session.post(self.base_url, json=body, headers=self._headers(), timeout=self.timeout_s)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as exc:
            self.logger.warning("Scene request failed: %s", exc)
            return None

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            self.logger.warning("Scene response had no content")
            return None
        return content if isinstance(content, str) and content.strip() else None

    def analyze(self, frame: np.ndarray) -> Optional[SceneAnalysis]:
        try:
            message = self._image_message(frame, SCENE_PROMPT)
        except ValueError as exc:
            self.logger.warning("Could not encode frame: %s", exc)
            return None
        content = self._complete([message], json_mode=True)
        if content is None:
            return None
        scene = parse_scene(content)
        if scene is None:
            self.logger.warning("Scene response was not valid JSON")
        return scene

    def ask(self, frame: np.ndarray, question: str) -> str:
        prompt = f'You are an assistant for a visually impaired person. Answer: "{question}". MAX 10 WORDS.'
        try:
            message = self._image_message(frame, prompt)
        except ValueError as exc:
            self.logger.warning("Could not encode frame: %s", exc)
            return ASK_FALLBACK
        return (self._complete([message]) or ASK_FALLBACK).strip()

    def describe_surroundings(self, frame: np.ndarray) -> str:
        try:
            message = self._image_message(frame, DESCRIBE_PROMPT)
        except ValueError as exc:
            self.logger.warning("Could not encode frame: %s", exc)
            return DESCRIBE_FALLBACK
        return (self._complete([message]) or DESCRIBE_FALLBACK).strip()

    def close(self) -> None:
        self.session.close()
