"""256-entry colour lookup tables built from named matplotlib palettes."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple

import matplotlib
import numpy as np

from ..config.constants import RenderConstants


@dataclass(frozen=True)
class ColorLUT:
    name: str
    table: np.ndarray

    def __post_init__(self) -> None:
        table = np.asarray(self.table, dtype=np.uint8)
        if table.shape != (RenderConstants.LUT_SIZE, 3):
            raise ValueError(f"LUT must have shape ({RenderConstants.LUT_SIZE}, 3), got {table.shape}")
        object.__setattr__(self, "table", table)

    @classmethod
    def from_palette(cls, name: str) -> "ColorLUT":
        cmap = matplotlib.colormaps[name]
        rgba = cmap(np.linspace(0.0, 1.0, RenderConstants.LUT_SIZE))
        return cls(name, np.round(rgba[:, :3] * 255).astype(np.uint8))

    def __len__(self) -> int:
        return len(self.table)

    def __getitem__(self, index: int) -> Tuple[int, int, int]:
        r, g, b = self.table[index]
        return (int(r), int(g), int(b))


def color_index(velocity: float, max_plot_speed: float) -> int:
    """LUT index of ``|velocity|``, saturating at ``max_plot_speed``."""
    speed = min(abs(velocity), max_plot_speed)
    index = math.floor(speed * (RenderConstants.LUT_SIZE - 1) / max_plot_speed)
    return max(0, min(RenderConstants.LUT_SIZE - 1, index))
