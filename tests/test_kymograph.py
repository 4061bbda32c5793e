import numpy as np
import pytest

from kymoflow.domain import Interval, Segment
from kymoflow.errors import RangeError
from kymoflow.io import ArrayVideo
from kymoflow.processing import build_kymograph, resample_polyline, save_kymograph


def test_resample_polyline_unit_steps():
    samples = resample_polyline(np.array([[0.0, 0.0], [10.0, 0.0], [10.0, 5.5]]))
    # 15.5 px of arc length -> 16 samples starting at the first point
    assert samples.shape == (16, 2)
    np.testing.assert_allclose(samples[0], [0.0, 0.0])
    np.testing.assert_allclose(samples[10], [10.0, 0.0])
    np.testing.assert_allclose(samples[-1], [10.0, 5.0])


def test_resample_polyline_drops_repeated_points():
    samples = resample_polyline(np.array([[0.0, 0.0], [0.0, 0.0], [4.0, 0.0]]))
    np.testing.assert_allclose(samples[:, 0], [0, 1, 2, 3, 4])


def test_kymograph_shape_is_frames_by_positions(stripe_video):
    segment = Segment(1, [[0.0, 10.0], [63.0, 10.0]])
    kymo = build_kymograph(stripe_video, segment, Interval(1, 5, 24))
    assert kymo.shape == (20, 64)


def test_kymograph_columns_track_fixed_positions():
    # intensity = x coordinate in every frame
    frames = np.broadcast_to(np.arange(32, dtype=float)[None, None, :], (6, 16, 32)).copy()
    frames += np.arange(6)[:, None, None] * 100.0
    video = ArrayVideo(frames)
    segment = Segment(1, [[2.0, 8.0], [12.0, 8.0]])
    kymo = build_kymograph(video, segment, Interval(1, 2, 6))

    positions = np.arange(2.0, 13.0)
    for row, frame_index in enumerate(range(1, 6)):
        np.testing.assert_allclose(kymo[row], positions + frame_index * 100.0)


def test_kymograph_follows_stripe_motion(stripe_video):
    from conftest import stripe_kymograph

    segment = Segment(1, [[0.0, 10.0], [63.0, 10.0]])
    kymo = build_kymograph(stripe_video, segment, Interval(1, 1, 16))
    expected = 100.0 + 50.0 * stripe_kymograph(16, 64, velocity=1.0, wavelength=8.0)
    np.testing.assert_allclose(kymo, expected, atol=1e-3)


def test_interval_beyond_video_raises(stripe_video):
    segment = Segment(1, [[0.0, 10.0], [63.0, 10.0]])
    with pytest.raises(RangeError):
        build_kymograph(stripe_video, segment, Interval(1, 60, 65))


def test_video_is_not_modified(stripe_stack):
    video = ArrayVideo(stripe_stack)
    before = stripe_stack.copy()
    build_kymograph(video, Segment(1, [[0.0, 3.0], [20.0, 3.0]]), Interval(1, 1, 10))
    np.testing.assert_array_equal(stripe_stack, before)


def test_save_kymograph_writes_float_tiff(tmp_path):
    import tifffile

    kymo = np.arange(12, dtype=float).reshape(3, 4)
    path = save_kymograph(kymo, tmp_path / "k" / "kymo.tif")
    loaded = tifffile.imread(str(path))
    assert loaded.dtype == np.float32
    np.testing.assert_allclose(loaded, kymo)
