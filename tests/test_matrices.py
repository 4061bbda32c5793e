import math

import numpy as np
import pytest

from kymoflow.domain import (
    CellStatus,
    MeasurementMatrices,
    NumericMatrix,
    OrientationResult,
    VelocityEntry,
    VelocityMatrix,
)
from kymoflow.domain.measurements import AnomalyRecord
from kymoflow.errors import DataIntegrityError, RangeError
from kymoflow.io import (
    read_numeric_matrix,
    read_velocity_matrix,
    require_numeric,
    write_numeric_matrix,
    write_velocity_matrix,
)
from kymoflow.io.matrices import angles_in_degrees, format_entry, parse_entry


NAMES = ("Segment 1", "Segment 2", "Segment 3")


def _matrix():
    entries = (
        (VelocityEntry.numeric(15.0), VelocityEntry.too_short(), VelocityEntry.numeric(-3.254)),
        (VelocityEntry.out_of_range(), VelocityEntry.too_short(), VelocityEntry.numeric(12.1)),
    )
    return VelocityMatrix((1, 2), NAMES, entries)


def test_velocity_matrix_file_layout(tmp_path):
    path = write_velocity_matrix(_matrix(), tmp_path / "velocity.csv")
    lines = path.read_text(encoding="utf-8").splitlines()
    assert lines == [
        "// Segment 1,Segment 2,Segment 3",
        "15.00,short,-3.25",
        "out,short,12.10",
    ]


def test_velocity_matrix_round_trip(tmp_path):
    path = write_velocity_matrix(_matrix(), tmp_path / "velocity.csv")
    loaded = read_velocity_matrix(path, interval_ids=[1, 2])
    assert loaded.segment_names == NAMES
    assert loaded.interval_ids == (1, 2)
    assert loaded.row(0)[0] == VelocityEntry.numeric(15.0)
    assert loaded.row(0)[1].status == CellStatus.TOO_SHORT
    assert loaded.row(1)[0].status == CellStatus.OUT_OF_RANGE
    assert loaded.row(1)[2].value == 12.1


def test_rewrite_keeps_backup(tmp_path):
    path = tmp_path / "velocity.csv"
    write_velocity_matrix(_matrix(), path)
    write_velocity_matrix(_matrix(), path)
    write_velocity_matrix(_matrix(), path)
    assert (tmp_path / "velocity.csv.bak").exists()
    assert (tmp_path / "velocity.csv.bak1").exists()
    assert path.exists()


def test_row_count_must_match_intervals(tmp_path):
    path = write_velocity_matrix(_matrix(), tmp_path / "velocity.csv")
    with pytest.raises(RangeError):
        read_velocity_matrix(path, interval_ids=[1, 2, 3])


def test_row_with_wrong_width(tmp_path):
    path = tmp_path / "velocity.csv"
    path.write_text("// a,b\n1.00,2.00\n3.00\n", encoding="utf-8")
    with pytest.raises(DataIntegrityError) as excinfo:
        read_velocity_matrix(path)
    assert excinfo.value.row == 2


def test_malformed_cell(tmp_path):
    path = tmp_path / "velocity.csv"
    path.write_text("// a,b\n1.00,fast\n", encoding="utf-8")
    with pytest.raises(DataIntegrityError) as excinfo:
        read_velocity_matrix(path)
    assert excinfo.value.row == 1


@pytest.mark.parametrize("token", ["nan", "NaN", "inf", "-inf", "Infinity"])
def test_non_finite_cell_is_rejected(tmp_path, token):
    path = tmp_path / "velocity.csv"
    path.write_text(f"// a,b\n1.00,2.00\n3.00,{token}\n", encoding="utf-8")
    with pytest.raises(DataIntegrityError) as excinfo:
        read_velocity_matrix(path)
    assert excinfo.value.row == 2

    with pytest.raises(DataIntegrityError):
        read_numeric_matrix(path)


def test_non_finite_numeric_cells_are_written_as_out(tmp_path):
    matrix = NumericMatrix((1, 2), ("a", "b"), np.array([[np.nan, 1.0], [np.inf, 0.5]]))
    path = write_numeric_matrix(matrix, tmp_path / "angle.csv")
    assert path.read_text(encoding="utf-8").splitlines()[1:] == ["out,1.00", "out,0.50"]

    with pytest.raises(DataIntegrityError) as excinfo:
        read_numeric_matrix(path)
    assert excinfo.value.row == 1


def test_sentinel_in_numeric_context(tmp_path):
    path = write_velocity_matrix(_matrix(), tmp_path / "velocity.csv")
    with pytest.raises(DataIntegrityError) as excinfo:
        read_numeric_matrix(path)
    assert excinfo.value.row == 1

    with pytest.raises(DataIntegrityError):
        require_numeric(_matrix())


def test_require_numeric_on_complete_matrix():
    matrix = VelocityMatrix((1,), ("a", "b"), ((VelocityEntry.numeric(1.5), VelocityEntry.numeric(-2.0)),))
    np.testing.assert_allclose(require_numeric(matrix), [[1.5, -2.0]])


def test_numeric_matrix_round_trip(tmp_path):
    matrix = NumericMatrix((1, 2), ("a", "b"), np.array([[0.123, 1.0], [2.5, 3.457]]))
    loaded = read_numeric_matrix(write_numeric_matrix(matrix, tmp_path / "fit.csv"))
    np.testing.assert_allclose(loaded.values, [[0.12, 1.0], [2.5, 3.46]])


def test_cell_tokens():
    assert format_entry(VelocityEntry.numeric(7)) == "7.00"
    assert format_entry(VelocityEntry.too_short()) == "short"
    assert format_entry(VelocityEntry.out_of_range()) == "out"
    assert parse_entry(" OUT ").status == CellStatus.OUT_OF_RANGE


def test_angles_are_persisted_in_degrees():
    matrix = NumericMatrix((1,), ("a",), np.array([[math.pi / 4]]))
    assert math.isclose(angles_in_degrees(matrix).values[0, 0], 45.0)


def test_keyed_insert_is_order_independent():
    cells = [(i, s) for i in (1, 2) for s in (10, 20, 30)]

    def fill(order):
        matrices = MeasurementMatrices((1, 2), (10, 20, 30), ("a", "b", "c"))
        for i, s in order:
            matrices.insert(i, s, VelocityEntry.numeric(i * 100 + s), OrientationResult(0.1 * s, 0.5))
        return matrices

    forward = fill(cells)
    backward = fill(list(reversed(cells)))
    assert forward.velocity_matrix() == backward.velocity_matrix()
    assert forward.velocity_matrix().row(1)[2] == VelocityEntry.numeric(230)
    np.testing.assert_allclose(forward.angle_matrix().values, backward.angle_matrix().values)


def test_incomplete_matrix_cannot_be_exported():
    matrices = MeasurementMatrices((1,), (1, 2), ("a", "b"))
    matrices.insert(1, 1, VelocityEntry.too_short(), OrientationResult(float("nan"), 0.0))
    assert matrices.missing() == [(1, 2)]
    with pytest.raises(ValueError):
        matrices.velocity_matrix()
    with pytest.raises(KeyError):
        matrices.insert(3, 1, VelocityEntry.too_short(), OrientationResult(0.0, 0.0))


def test_anomalies_frame():
    matrices = MeasurementMatrices((1,), (1,), ("a",))
    matrices.record_anomaly(AnomalyRecord(segment_id=1, interval_id=1, raw_angle=float("nan")))
    frame = matrices.anomalies_frame()
    assert list(frame.columns) == ["segment_id", "interval_id", "raw_angle"]
    assert len(frame) == 1
