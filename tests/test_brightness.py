import numpy as np

from safepath.perception.brightness import estimate_brightness, mean_luma


def test_uniform_frame_just_below_threshold_is_low_light():
    frame = np.full((48, 64, 3), 29, dtype=np.uint8)
    reading = estimate_brightness(frame)
    assert reading.mean_luma == 29.0
    assert reading.low_light


def test_threshold_value_itself_is_not_low_light():
    frame = np.full((48, 64, 3), 30, dtype=np.uint8)
    assert not estimate_brightness(frame).low_light


def test_mean_luma_averages_channels():
    frame = np.zeros((10, 10, 3), dtype=np.uint8)
    frame[..., 2] = 90
    assert mean_luma(frame) == 30.0


def test_alpha_channel_is_ignored():
    frame = np.zeros((4, 4, 4), dtype=np.uint8)
    frame[..., 3] = 255
    assert mean_luma(frame) == 0.0


def test_stride_samples_uniform_frame_exactly():
    frame = np.full((100, 100, 3), 200, dtype=np.uint8)
    assert mean_luma(frame, stride=4) == 200.0


def test_empty_frame_reads_dark():
    assert estimate_brightness(np.zeros((0, 0, 3), dtype=np.uint8)).low_light


def test_grayscale_frame():
    assert mean_luma(np.full((8, 8), 12, dtype=np.uint8)) == 12.0
