import numpy as np

from safepath.audio.cues import CUE_FLOOR, CUE_GAIN, DirectionalCue, pan_gains, tone_buffer


def test_pan_gains_are_equal_power():
    left, right = pan_gains(0.0)
    assert abs(left - right) < 1e-9
    assert abs(left**2 + right**2 - 1.0) < 1e-9
    assert pan_gains(-1.0)[1] < 1e-9
    assert pan_gains(1.0)[0] < 1e-9
    assert pan_gains(5.0) == pan_gains(1.0)


def test_tone_buffer_shape_and_decay():
    buf = tone_buffer(0.0, sample_rate=8000)
    assert buf.shape == (3200, 2)
    assert buf.dtype == np.float32
    peak = np.abs(buf).max()
    assert peak <= CUE_GAIN
    assert np.abs(buf[-100:]).max() < CUE_GAIN * 0.01
    assert np.abs(buf[-1]).max() <= CUE_FLOOR


def test_tone_buffer_left_pan_silences_right_channel():
    buf = tone_buffer(-1.0, sample_rate=8000)
    assert np.abs(buf[:, 1]).max() < 1e-6
    assert np.abs(buf[:, 0]).max() > 0.01


def test_disabled_cue_is_a_no_op():
    cue = DirectionalCue(enabled=False)
    cue.play(1.0)
