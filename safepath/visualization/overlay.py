from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

import numpy as np

try:
    import cv2
except ImportError:  # pragma: no cover
    cv2 = None

from safepath.utils.types import Detection, Direction, Proximity, Severity

BGR = Tuple[int, int, int]


def hex_to_bgr(value: str) -> BGR:
    value = value.lstrip("#")
    r, g, b = (int(value[i : i + 2], 16) for i in (0, 2, 4))
    return (b, g, r)


# severity -> (color, pulse speed rad/s, glow intensity)
SEVERITY_STYLE: Dict[Severity, Tuple[BGR, float, float]] = {
    Severity.LOW: (hex_to_bgr("#3b82f6"), 4.0, 0.4),
    Severity.MEDIUM: (hex_to_bgr("#f59e0b"), 7.0, 0.6),
    Severity.HIGH: (hex_to_bgr("#ef4444"), 12.0, 0.9),
}
DIRECTION_X = {Direction.LEFT: 0.25, Direction.CENTER: 0.5, Direction.RIGHT: 0.75}
MARKER_Y = 0.55
WHITE: BGR = (255, 255, 255)
ALARM_RED: BGR = hex_to_bgr("#dc2626")
PATH_GREEN: BGR = (129, 185, 16)

# Marker sizes are tuned for a 720px short side.
REFERENCE_SIDE = 720.0


@dataclass(frozen=True)
class MarkerGeometry:
    x: int
    y: int
    radius: float
    color: BGR
    intensity: float
    ring_thickness: int
    label_size: float
    label_offset: int
    scale: float


def marker_geometry(det: Detection, width: int, height: int, t: float) -> MarkerGeometry:
    """Position, size and colour of one detection's marker at time ``t`` (seconds)."""
    scale = min(width, height) / REFERENCE_SIDE
    color, speed, intensity = SEVERITY_STYLE[det.severity]
    near = det.proximity == Proximity.NEAR
    base = 110.0 if near else 70.0
    pulse = math.sin(t * speed) * (12.0 if near else 6.0)
    return MarkerGeometry(
        x=int(round(width * DIRECTION_X[det.direction])),
        y=int(round(height * MARKER_Y)),
        radius=max(1.0, (base + pulse) * scale),
        color=color,
        intensity=intensity,
        ring_thickness=max(1, int(round((10 if near else 5) * scale))),
        label_size=(1.2 if near else 0.9) * scale,
        label_offset=int(round((170 if near else 130) * scale)),
        scale=scale,
    )


def _radial_glow(frame: np.ndarray, cx: int, cy: int, radius: float, color: BGR, intensity: float) -> None:
    """Alpha-blend a radial gradient (intensity at the centre, 0 at the rim) in place."""
    h, w = frame.shape[:2]
    r = int(math.ceil(radius))
    x0, x1 = max(0, cx - r), min(w, cx + r + 1)
    y0, y1 = max(0, cy - r), min(h, cy + r + 1)
    if x0 >= x1 or y0 >= y1:
        return
    yy, xx = np.mgrid[y0:y1, x0:x1]
    dist = np.sqrt((xx - cx) ** 2 + (yy - cy) ** 2)
    alpha = np.clip(1.0 - dist / radius, 0.0, 1.0) * intensity
    roi = frame[y0:y1, x0:x1].astype(np.float32)
    tint = np.array(color, dtype=np.float32)
    frame[y0:y1, x0:x1] = (roi * (1.0 - alpha[..., None]) + tint * alpha[..., None]).astype(np.uint8)


def _rounded_rect(frame: np.ndarray, x: int, y: int, w: int, h: int, r: int, color: BGR) -> None:
    r = max(0, min(r, w // 2, h // 2))
    cv2.rectangle(frame, (x + r, y), (x + w - r, y + h), color, -1)
    cv2.rectangle(frame, (x, y + r), (x + w, y + h - r), color, -1)
    for cx, cy in ((x + r, y + r), (x + w - r, y + r), (x + r, y + h - r), (x + w - r, y + h - r)):
        cv2.circle(frame, (cx, cy), r, color, -1, cv2.LINE_AA)


def draw_marker(frame: np.ndarray, det: Detection, t: float) -> np.ndarray:
    h, w = frame.shape[:2]
    g = marker_geometry(det, w, h, t)
    near = det.proximity == Proximity.NEAR

    # Ground ellipse
    ground_r = int(round(g.radius + 40 * g.scale))
    cv2.ellipse(
        frame,
        (g.x, g.y + int(round(140 * g.scale))),
        (ground_r, max(1, int(round(ground_r * 0.2)))),
        0,
        0,
        360,
        g.color,
        max(1, int(round((10 if near else 4) * g.scale))),
        cv2.LINE_AA,
    )

    _radial_glow(frame, g.x, g.y, g.radius, g.color, g.intensity)
    cv2.circle(frame, (g.x, g.y), int(round(g.radius)), WHITE, g.ring_thickness, cv2.LINE_AA)

    # Label plate
    label = det.label.upper()
    thickness = max(1, int(round(2 * g.scale)))
    (tw, th), _ = cv2.getTextSize(label, cv2.FONT_HERSHEY_DUPLEX, g.label_size, thickness)
    pad = int(round(30 * g.scale))
    plate_w = tw + 2 * pad
    plate_h = int(round((65 if near else 45) * g.scale))
    plate_x = g.x - plate_w // 2
    plate_y = g.y - g.label_offset
    _rounded_rect(frame, plate_x, plate_y, plate_w, plate_h, int(round(15 * g.scale)), g.color)
    cv2.putText(
        frame,
        label,
        (g.x - tw // 2, plate_y + (plate_h + th) // 2),
        cv2.FONT_HERSHEY_DUPLEX,
        g.label_size,
        WHITE,
        thickness,
        cv2.LINE_AA,
    )
    return frame


def draw_markers(frame: Any, detections: Iterable[Detection], t: float) -> Any:
    if cv2 is None:
        return frame
    render = frame.copy()
    for det in detections:
        draw_marker(render, det, t)
    return render


def draw_path_vector(frame: Any) -> Any:
    """Dashed centre line from 45% to 90% of the frame height."""
    if cv2 is None:
        return frame
    h, w = frame.shape[:2]
    scale = min(w, h) / REFERENCE_SIDE
    overlay = frame.copy()
    x = w // 2
    dash, gap = max(2, int(20 * scale)), max(2, int(15 * scale))
    y, y_end = int(h * 0.45), int(h * 0.9)
    while y < y_end:
        cv2.line(overlay, (x, y), (x, min(y + dash, y_end)), PATH_GREEN, max(1, int(15 * scale)))
        y += dash + gap
    return cv2.addWeighted(overlay, 0.4, frame, 0.6, 0)


def draw_alarm_border(frame: Any, t: float) -> Any:
    """Pulsing red frame shown while a critical obstacle is in view."""
    if cv2 is None:
        return frame
    h, w = frame.shape[:2]
    thickness = max(4, int(20 * min(w, h) / REFERENCE_SIDE))
    overlay = frame.copy()
    cv2.rectangle(overlay, (0, 0), (w - 1, h - 1), ALARM_RED, thickness * 2)
    alpha = 0.4 * (0.6 + 0.4 * math.sin(t * 2.0 * math.pi))
    return cv2.addWeighted(overlay, alpha, frame, 1 - alpha, 0)


def draw_instruction_banner(frame: Any, text: str, critical_center: bool = False, listening: bool = False) -> Any:
    if cv2 is None or not text:
        return frame
    h, w = frame.shape[:2]
    if critical_center:
        color = (27, 27, 153)
    elif listening:
        color = (235, 99, 37)
    else:
        color = (0, 0, 0)
    x, y = 10, 10
    bh = 56
    overlay = frame.copy()
    cv2.rectangle(overlay, (x, y), (w - x, y + bh), color, -1)
    frame = cv2.addWeighted(overlay, 0.75, frame, 0.25, 0)
    scale = 0.9
    (tw, th), _ = cv2.getTextSize(text, cv2.FONT_HERSHEY_DUPLEX, scale, 2)
    while tw > w - 4 * x and scale > 0.4:
        scale -= 0.1
        (tw, th), _ = cv2.getTextSize(text, cv2.FONT_HERSHEY_DUPLEX, scale, 2)
    cv2.putText(frame, text, ((w - tw) // 2, y + (bh + th) // 2), cv2.FONT_HERSHEY_DUPLEX, scale, WHITE, 2, cv2.LINE_AA)
    return frame


def draw_low_light(frame: Any) -> Any:
    if cv2 is None:
        return frame
    h, w = frame.shape[:2]
    pw, ph = min(w - 20, 360), 90
    x, y = (w - pw) // 2, (h - ph) // 2
    overlay = frame.copy()
    cv2.rectangle(overlay, (x, y), (x + pw, y + ph), (10, 10, 10), -1)
    frame = cv2.addWeighted(overlay, 0.85, frame, 0.15, 0)
    cv2.rectangle(frame, (x, y), (x + pw, y + ph), (68, 68, 239), 3)
    cv2.putText(frame, "LOW LIGHT SIGNAL", (x + 30, y + 55), cv2.FONT_HERSHEY_DUPLEX, 0.9, WHITE, 2, cv2.LINE_AA)
    return frame


def draw_hud(frame: Any, fps: float, stages_ms: Dict[str, float], warnings: Optional[List[str]] = None):
    """Minimal HUD with display FPS and the last tick's stage timings."""
    if cv2 is None:
        return frame

    render = frame.copy()
    h = render.shape[0]
    y = h - 20 - 22 * (min(len(stages_ms), 4) + (len(warnings[:2]) if warnings else 0))
    cv2.putText(render, f"SafePath | FPS: {fps:5.1f}", (15, y), cv2.FONT_HERSHEY_SIMPLEX, 0.55, WHITE, 1)
    y += 22

    for name, ms in list(stages_ms.items())[:4]:
        cv2.putText(render, f"{name}: {ms:6.1f} ms", (15, y), cv2.FONT_HERSHEY_SIMPLEX, 0.5, (220, 220, 220), 1)
        y += 22

    if warnings:
        for warning in warnings[:2]:
            cv2.putText(render, warning, (15, y), cv2.FONT_HERSHEY_SIMPLEX, 0.5, (0, 0, 255), 1)
            y += 22

    return render


def render_view(
    frame: Any,
    snapshot: Any,
    t: float,
    fps: Optional[float] = None,
    stages_ms: Optional[Dict[str, float]] = None,
    warnings: Optional[List[str]] = None,
) -> Any:
    """
    Compose the full camera view from a session snapshot.
    Reads only the snapshot; nothing here feeds back into detection state.
    """
    if cv2 is None:
        return frame
    render = draw_markers(frame, snapshot.detections, t)
    render = draw_path_vector(render)
    if snapshot.critical:
        render = draw_alarm_border(render, t)
    critical_center = any(d.is_critical and d.direction == Direction.CENTER for d in snapshot.detections)
    render = draw_instruction_banner(render, snapshot.instruction, critical_center, snapshot.listening)
    if snapshot.low_light:
        render = draw_low_light(render)
    if fps is not None:
        render = draw_hud(render, fps, stages_ms or {}, warnings)
    return render
