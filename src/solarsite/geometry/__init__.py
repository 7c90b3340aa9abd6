"""Geometry engine: polygon area and roof orientation."""

from .area import close_ring, geodesic_area, planar_area, polygon_area
from .orientation import (
    angular_distance,
    average_orientation,
    average_tilt,
    circular_mean,
    estimate_tilt_from_area,
    facing_from_ridge,
    ring_azimuth,
)

__all__ = [
    "close_ring",
    "geodesic_area",
    "planar_area",
    "polygon_area",
    "angular_distance",
    "average_orientation",
    "average_tilt",
    "circular_mean",
    "estimate_tilt_from_area",
    "facing_from_ridge",
    "ring_azimuth",
]
