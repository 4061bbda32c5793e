# kymoflow/plotting.py
from __future__ import annotations

from pathlib import Path
from typing import Union

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.colors import ListedColormap, Normalize

from .domain.measurements import VelocityMatrix
from .io.backup import backup_existing
from .rendering.lut import ColorLUT


def plot_velocity_heatmap(matrix: VelocityMatrix, lut: ColorLUT, path: Union[str, Path]) -> Path:
    """
    Velocity matrix as heat map (intervals x segments).

    Sentinel cells are left blank.
    """
    values = np.ma.masked_invalid(matrix.to_numeric())
    limit = float(np.abs(values).max()) if values.count() else 1.0
    limit = limit or 1.0

    fig, ax = plt.subplots(figsize=(max(4, 0.4 * matrix.shape[1] + 2), max(3, 0.3 * matrix.shape[0] + 2)))
    image = ax.imshow(values, aspect="auto", cmap="coolwarm", vmin=-limit, vmax=limit, interpolation="nearest")
    ax.set_xlabel("Segment")
    ax.set_ylabel("Interval")
    ax.set_xticks(range(matrix.shape[1]))
    ax.set_xticklabels(matrix.segment_names, rotation=90, fontsize="small")
    ax.set_yticks(range(matrix.shape[0]))
    ax.set_yticklabels([str(i) for i in matrix.interval_ids], fontsize="small")
    ax.set_title(f"Flow velocity [um/s] ({lut.name} map)")
    fig.colorbar(image, ax=ax, label="Velocity [um/s]")
    fig.tight_layout()
    return _save(fig, path)


def plot_color_bar(lut: ColorLUT, max_plot_speed: float, path: Union[str, Path]) -> Path:
    """Legend for the spatial map: LUT colours from 0 to ``max_plot_speed``."""
    cmap = ListedColormap(lut.table / 255.0, name=lut.name)
    fig, ax = plt.subplots(figsize=(1.6, 4))
    mappable = plt.cm.ScalarMappable(norm=Normalize(0, max_plot_speed), cmap=cmap)
    fig.colorbar(mappable, cax=ax, label="Speed [um/s]")
    fig.tight_layout()
    return _save(fig, path)


def _save(fig, path: Union[str, Path]) -> Path:
    path = Path(path)
    backup_existing(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path, dpi=150, bbox_inches="tight")
    plt.close(fig)
    return path
