# kymoflow/io/matrices.py
"""
Delimited text persistence of the velocity, angle and fit matrices.

Layout::

    // Segment 1,Segment 2,Segment 3
    15.00,short,-3.25
    out,short,12.10

The header comment names the segment columns; one row per interval in
ascending order. Numeric cells always carry two decimals, sentinel cells are
the literal tokens ``short`` and ``out``.
"""
from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from ..config.constants import FileFormat
from ..domain.measurements import CellStatus, NumericMatrix, VelocityEntry, VelocityMatrix
from ..errors import DataIntegrityError, RangeError
from .backup import backup_existing


logger = logging.getLogger(__name__)

_SENTINELS = {
    FileFormat.TOO_SHORT_TOKEN: CellStatus.TOO_SHORT,
    FileFormat.OUT_OF_RANGE_TOKEN: CellStatus.OUT_OF_RANGE,
}


def format_number(value: float) -> str:
    return f"{value:.{FileFormat.DECIMALS}f}"


def format_cell(value: float) -> str:
    """Numeric matrix cell; a non-finite value is written as the ``out`` token."""
    if not np.isfinite(value):
        return FileFormat.OUT_OF_RANGE_TOKEN
    return format_number(value)


def format_entry(entry: VelocityEntry) -> str:
    if entry.status == CellStatus.TOO_SHORT:
        return FileFormat.TOO_SHORT_TOKEN
    if entry.status == CellStatus.OUT_OF_RANGE:
        return FileFormat.OUT_OF_RANGE_TOKEN
    return format_number(entry.value)


def parse_entry(token: str, row: Optional[int] = None) -> VelocityEntry:
    token = token.strip()
    status = _SENTINELS.get(token.lower())
    if status is not None:
        return VelocityEntry(status)
    try:
        value = float(token)
    except ValueError:
        raise DataIntegrityError(f"Malformed matrix cell {token!r}", row) from None
    if not math.isfinite(value):
        raise DataIntegrityError(f"Non-finite matrix cell {token!r}", row)
    return VelocityEntry(CellStatus.NUMERIC, value)


def _header_line(names: Sequence[str]) -> str:
    cleaned = [str(n).replace(FileFormat.DELIMITER, " ") for n in names]
    return f"{FileFormat.COMMENT_PREFIX} {FileFormat.DELIMITER.join(cleaned)}\n"


def _write_rows(path: Union[str, Path], names: Sequence[str], rows: List[List[str]]) -> Path:
    path = Path(path)
    backup_existing(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(_header_line(names))
        for cells in rows:
            f.write(FileFormat.DELIMITER.join(cells) + "\n")
    logger.info("Wrote %d x %d matrix to %s", len(rows), len(names), path)
    return path


def write_velocity_matrix(matrix: VelocityMatrix, path: Union[str, Path]) -> Path:
    rows = [[format_entry(e) for e in row] for row in matrix.entries]
    return _write_rows(path, matrix.segment_names, rows)


def write_numeric_matrix(matrix: NumericMatrix, path: Union[str, Path]) -> Path:
    rows = [[format_cell(v) for v in row] for row in matrix.values]
    return _write_rows(path, matrix.segment_names, rows)


def _read_rows(path: Union[str, Path]) -> Tuple[List[str], List[List[str]]]:
    names: Optional[List[str]] = None
    rows: List[List[str]] = []
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            stripped = line.strip()
            if not stripped:
                continue
            if stripped.startswith(FileFormat.COMMENT_PREFIX):
                if names is None and not rows:
                    header = stripped[len(FileFormat.COMMENT_PREFIX):].strip()
                    names = [n.strip() for n in header.split(FileFormat.DELIMITER)]
                continue
            rows.append(stripped.split(FileFormat.DELIMITER))
    if names is None:
        width = len(rows[0]) if rows else 0
        names = [f"Segment {i}" for i in range(1, width + 1)]
    for index, cells in enumerate(rows, start=1):
        if len(cells) != len(names):
            raise DataIntegrityError(f"Expected {len(names)} cells, found {len(cells)}", index)
    return names, rows


def _interval_ids(n_rows: int, interval_ids: Optional[Sequence[int]]) -> Tuple[int, ...]:
    if interval_ids is None:
        return tuple(range(1, n_rows + 1))
    if len(interval_ids) != n_rows:
        raise RangeError(f"Matrix has {n_rows} rows but {len(interval_ids)} intervals are defined")
    return tuple(interval_ids)


def read_velocity_matrix(
    path: Union[str, Path],
    interval_ids: Optional[Sequence[int]] = None,
) -> VelocityMatrix:
    """
    Read a velocity matrix.

    Raises:
        RangeError: if ``interval_ids`` is given and the row count differs.
        DataIntegrityError: on a malformed cell or a row with the wrong width.
    """
    names, rows = _read_rows(path)
    ids = _interval_ids(len(rows), interval_ids)
    entries = tuple(
        tuple(parse_entry(token, row=index) for token in cells) for index, cells in enumerate(rows, start=1)
    )
    return VelocityMatrix(ids, tuple(names), entries)


def read_numeric_matrix(
    path: Union[str, Path],
    interval_ids: Optional[Sequence[int]] = None,
) -> NumericMatrix:
    """Read an all-numeric matrix; a sentinel token raises ``DataIntegrityError``."""
    names, rows = _read_rows(path)
    ids = _interval_ids(len(rows), interval_ids)
    values = np.full((len(rows), len(names)), np.nan, dtype=float)
    for index, cells in enumerate(rows, start=1):
        for col, token in enumerate(cells):
            entry = parse_entry(token, row=index)
            if entry.is_sentinel:
                raise DataIntegrityError(f"Sentinel {token.strip()!r} where a number is required", index)
            values[index - 1, col] = entry.value
    return NumericMatrix(ids, tuple(names), values)


def require_numeric(matrix: VelocityMatrix) -> np.ndarray:
    """Velocity values as floats; any sentinel raises ``DataIntegrityError`` naming its row."""
    for index, row in enumerate(matrix.entries, start=1):
        for entry in row:
            if entry.is_sentinel:
                raise DataIntegrityError("Sentinel cell where a number is required", index)
    out = matrix.to_numeric()
    if not np.all(np.isfinite(out)):
        bad = int(np.argwhere(~np.isfinite(out))[0][0]) + 1
        raise DataIntegrityError("Non-finite velocity", bad)
    return out


def angles_in_degrees(matrix: NumericMatrix) -> NumericMatrix:
    """Angle matrix converted from radians to degrees for persistence."""
    return NumericMatrix(matrix.interval_ids, matrix.segment_names, np.degrees(matrix.values))
