import numpy as np

from safepath.runtime.session import SessionSnapshot
from safepath.utils.types import Detection, Direction, Proximity, Severity
from safepath.visualization.overlay import SEVERITY_STYLE, draw_path_vector, hex_to_bgr, marker_geometry, render_view


def det(direction=Direction.CENTER, proximity=Proximity.NEAR, severity=Severity.HIGH):
    return Detection("car", direction, proximity, severity, "<1m")


def test_hex_to_bgr():
    assert hex_to_bgr("#ef4444") == (0x44, 0x44, 0xEF)


def test_marker_position_follows_direction():
    g = marker_geometry(det(Direction.LEFT), 1280, 720, 0.0)
    assert (g.x, g.y) == (320, 396)
    assert marker_geometry(det(Direction.RIGHT), 1280, 720, 0.0).x == 960


def test_marker_radius_scales_with_short_side():
    near = marker_geometry(det(), 1280, 720, 0.0)
    assert near.radius == 110.0
    far = marker_geometry(det(proximity=Proximity.FAR), 640, 360, 0.0)
    assert far.radius == 35.0


def test_marker_pulse_and_color_follow_severity():
    speed = SEVERITY_STYLE[Severity.HIGH][1]
    t = (np.pi / 2) / speed
    g = marker_geometry(det(), 1280, 720, t)
    assert abs(g.radius - 122.0) < 1e-6
    assert g.color == hex_to_bgr("#ef4444")
    low = marker_geometry(det(severity=Severity.LOW), 1280, 720, 0.0)
    assert low.color == hex_to_bgr("#3b82f6")


def test_render_view_keeps_shape_and_input_untouched():
    frame = np.full((360, 640, 3), 80, dtype=np.uint8)
    original = frame.copy()
    snapshot = SessionSnapshot(
        detections=(det(), det(Direction.LEFT, Proximity.FAR, Severity.LOW)),
        instruction="CAR AHEAD!",
        low_light=True,
        analyzing=False,
        listening=False,
    )
    render = render_view(frame, snapshot, 0.5, fps=30.0, stages_ms={"detection": 12.0})
    assert render.shape == frame.shape
    assert render.dtype == np.uint8
    assert np.array_equal(frame, original)
    assert not np.array_equal(render, frame)


def test_render_view_with_empty_snapshot():
    frame = np.zeros((120, 160, 3), dtype=np.uint8)
    snapshot = SessionSnapshot(detections=(), instruction="", low_light=False, analyzing=False, listening=False)
    assert render_view(frame, snapshot, 0.0).shape == (120, 160, 3)


def test_empty_snapshot_draws_no_markers():
    frame = np.full((360, 640, 3), 60, dtype=np.uint8)
    empty = SessionSnapshot(detections=(), instruction="", low_light=False, analyzing=False, listening=False)
    assert np.array_equal(render_view(frame, empty, 1.0), draw_path_vector(frame))

    one = SessionSnapshot(detections=(det(Direction.LEFT),), instruction="", low_light=False, analyzing=False, listening=False)
    g = marker_geometry(det(Direction.LEFT), 640, 360, 1.0)
    with_marker = render_view(frame, one, 1.0)
    patch = (slice(g.y - 5, g.y + 5), slice(g.x - 5, g.x + 5))
    assert not np.array_equal(with_marker[patch], draw_path_vector(frame)[patch])
