import numpy as np
import pytest

from safepath.inputs.camera_input import CameraInput, CameraUnavailableError, parse_source
from safepath.runtime.frame_sync import FrameSync
from safepath.utils.types import FramePacket


def test_frame_sync_keeps_latest():
    sync = FrameSync(max_buffer=2)
    assert sync.latest() is None
    for i in range(3):
        sync.push(FramePacket(frame=np.zeros((1, 1, 3)), timestamp=float(i)))
    assert sync.latest().timestamp == 2.0
    assert len(sync.buffer) == 2
    sync.clear()
    assert sync.latest() is None


def test_packet_size_is_width_height():
    packet = FramePacket(frame=np.zeros((480, 640, 3)), timestamp=0.0)
    assert packet.size == (640, 480)


def test_parse_source():
    assert parse_source("0") == 0
    assert parse_source(2) == 2
    assert parse_source("rtsp://cam/stream") == "rtsp://cam/stream"


def test_missing_video_raises_camera_error(tmp_path):
    cam = CameraInput(str(tmp_path / "missing.mp4"))
    with pytest.raises(CameraUnavailableError):
        cam.start()
    assert cam.cap is None
    cam.stop()
