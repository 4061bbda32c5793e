import math

import numpy as np
import pandas as pd
import pytest

from kymoflow.domain import Interval, IntervalCatalog, Segment, SegmentCatalog
from kymoflow.errors import RangeError
from kymoflow.io import read_intervals, read_segments, write_intervals, write_segments
from kymoflow.io.catalogs import parse_interval_lines, segments_from_frame


def test_interval_lines_skip_comments_and_blanks():
    ranges = parse_interval_lines(["// startFrame,endFrame\n", "1,100\n", "\n", "  // gap\n", "150, 300\n"])
    assert ranges == [(1, 100), (150, 300)]


def test_interval_line_without_end_frame():
    with pytest.raises(ValueError):
        parse_interval_lines(["1\n"])


def test_intervals_round_trip(tmp_path):
    catalog = IntervalCatalog.from_ranges([(1, 10), (11, 20), (40, 41)])
    path = write_intervals(catalog, tmp_path / "intervals.txt")
    loaded = read_intervals(path)
    assert loaded.ranges() == [(1, 10), (11, 20), (40, 41)]
    assert loaded.ids == [1, 2, 3]


def test_interval_is_one_based_and_inclusive():
    interval = Interval(1, 5, 9)
    assert interval.frame_count == 5
    assert list(interval.frames()) == [5, 6, 7, 8, 9]
    interval.check_within(9)
    with pytest.raises(RangeError):
        interval.check_within(8)


@pytest.mark.parametrize("start,end", [(0, 5), (10, 9)])
def test_invalid_interval(start, end):
    with pytest.raises(RangeError):
        Interval(1, start, end)


def test_overlapping_intervals_are_rejected():
    with pytest.raises(RangeError) as excinfo:
        IntervalCatalog.from_ranges([(1, 10), (10, 20)])
    assert "overlaps" in str(excinfo.value)


def test_descending_intervals_are_not_reported_as_overlap():
    with pytest.raises(RangeError) as excinfo:
        IntervalCatalog.from_ranges([(50, 60), (1, 10)])
    assert "ascending frame order" in str(excinfo.value)
    assert "overlaps" not in str(excinfo.value)


def test_segment_length_scales_with_pixel_size():
    points = np.array([[0.0, 0.0], [3.0, 4.0], [3.0, 10.0]])
    segment = Segment(1, points)
    assert math.isclose(segment.pixel_length, 11.0)
    assert math.isclose(segment.length_um, 11.0)

    catalog = SegmentCatalog((segment,)).with_pixel_size(0.25)
    assert math.isclose(catalog[0].length_um, 2.75)
    # original catalog untouched
    assert math.isclose(segment.length_um, 11.0)


def test_segment_points_are_read_only():
    segment = Segment(1, [[0, 0], [1, 1]])
    with pytest.raises(ValueError):
        segment.points[0, 0] = 5.0
    assert segment.name == "Segment 1"


def test_segment_ids_must_ascend():
    with pytest.raises(ValueError):
        SegmentCatalog((Segment(2, [[0, 0], [1, 0]]), Segment(1, [[0, 0], [1, 0]])))


def test_segments_from_frame_sorts_ids_and_keeps_point_order():
    df = pd.DataFrame(
        {
            "segment": [7, 7, 7, 3, 3],
            "name": ["b", "b", "b", "a", "a"],
            "x": [5.0, 6.0, 8.0, 0.0, 0.0],
            "y": [0.0, 0.0, 0.0, 1.0, 4.0],
        }
    )
    catalog = segments_from_frame(df, pixel_size=2.0)
    assert catalog.ids == [3, 7]
    assert catalog.names == ["a", "b"]
    np.testing.assert_array_equal(catalog[1].points[:, 0], [5.0, 6.0, 8.0])
    assert math.isclose(catalog[0].length_um, 6.0)


def test_segments_round_trip(tmp_path, segments):
    path = write_segments(segments, tmp_path / "segments.csv")
    loaded = read_segments(path, pixel_size=0.5)
    assert loaded.ids == segments.ids
    assert loaded.names == segments.names
    for original, reloaded in zip(segments, loaded):
        np.testing.assert_allclose(reloaded.points, original.points)
    assert math.isclose(loaded[0].length_um, 31.5)


def test_segment_table_requires_coordinates():
    with pytest.raises(ValueError):
        segments_from_frame(pd.DataFrame({"segment": [1], "x": [0.0]}))
