"""Spatial map rendering."""

from .lut import ColorLUT, color_index
from .spatial_map import (
    arrow_anchors,
    arrow_direction,
    draw_segment,
    render_interval_frame,
    render_spatial_map,
    write_spatial_map,
    FORWARD,
    REVERSED,
    NO_ARROW,
)

__all__ = [
    "ColorLUT",
    "color_index",
    "arrow_anchors",
    "arrow_direction",
    "draw_segment",
    "render_interval_frame",
    "render_spatial_map",
    "write_spatial_map",
    "FORWARD",
    "REVERSED",
    "NO_ARROW",
]
