"""Roof orientation helpers (azimuth: 0 = north, clockwise, degrees)."""
from __future__ import annotations

import math
from typing import Iterable, Optional, Sequence

import numpy as np

from solarsite.core.models import RoofSegment
from solarsite.geometry.area import Ring, close_ring


def normalize_azimuth(azimuth_deg: float) -> float:
    return float(azimuth_deg) % 360.0


def angular_distance(a_deg: float, b_deg: float) -> float:
    """Smallest angle between two headings, in [0, 180]."""
    return abs((float(a_deg) - float(b_deg) + 180.0) % 360.0 - 180.0)


def circular_mean(angles_deg: Sequence[float], weights: Optional[Sequence[float]] = None) -> float:
    """Mean heading of ``angles_deg`` in [0, 360).

    Sums unit vectors instead of raw degrees so that 350° and 10° average to 0°,
    not 180°.
    """

    angles = np.radians(np.asarray(list(angles_deg), dtype=float))
    if angles.size == 0:
        raise ValueError("circular_mean requires at least one angle")
    w = np.ones_like(angles) if weights is None else np.asarray(list(weights), dtype=float)
    if w.shape != angles.shape:
        raise ValueError("weights must match angles")
    s = float(np.sum(w * np.sin(angles)))
    c = float(np.sum(w * np.cos(angles)))
    mean = math.degrees(math.atan2(s, c)) % 360.0
    # atan2 noise can land a hair below 360
    return 0.0 if math.isclose(mean, 360.0, abs_tol=1e-9) else mean


def average_orientation(segments: Iterable[RoofSegment]) -> float:
    """Area-weighted circular mean of segment azimuths."""
    segs = list(segments)
    if not segs:
        raise ValueError("average_orientation requires at least one segment")
    weights = [s.area_m2 for s in segs]
    if sum(weights) <= 0:
        weights = None
    return circular_mean([s.azimuth_deg for s in segs], weights)


def average_tilt(segments: Iterable[RoofSegment]) -> float:
    segs = list(segments)
    if not segs:
        raise ValueError("average_tilt requires at least one segment")
    total = sum(s.area_m2 for s in segs)
    if total <= 0:
        return sum(s.tilt_deg for s in segs) / len(segs)
    return sum(s.tilt_deg * s.area_m2 for s in segs) / total


def ring_azimuth(ring: Ring) -> float:
    """Bearing of the ring's longest edge, i.e. the ridge direction of a footprint.

    Edge lengths are measured with longitude scaled by cos(latitude) so that
    east-west edges are not overstated away from the equator.
    """

    pts = close_ring(ring)
    best_len = -1.0
    best_bearing = 0.0
    for (lng1, lat1), (lng2, lat2) in zip(pts[:-1], pts[1:]):
        dx = (lng2 - lng1) * math.cos(math.radians((lat1 + lat2) / 2.0))
        dy = lat2 - lat1
        length = math.hypot(dx, dy)
        if length > best_len:
            best_len = length
            best_bearing = math.degrees(math.atan2(dx, dy)) % 360.0
    return round(best_bearing, 6)


def facing_from_ridge(ridge_bearing_deg: float, ideal_azimuth_deg: float) -> float:
    """Pick the roof face perpendicular to the ridge that is closest to the ideal heading."""
    faces = [normalize_azimuth(ridge_bearing_deg + 90.0), normalize_azimuth(ridge_bearing_deg - 90.0)]
    return min(faces, key=lambda f: (angular_distance(f, ideal_azimuth_deg), f))


def estimate_tilt_from_area(footprint_area_m2: float) -> float:
    """Typical pitch for a footprint size: small houses are steeper, large buildings flatter."""
    if footprint_area_m2 < 50:
        return 25.0
    if footprint_area_m2 > 200:
        return 10.0
    return 15.0


__all__ = [
    "normalize_azimuth",
    "angular_distance",
    "circular_mean",
    "average_orientation",
    "average_tilt",
    "ring_azimuth",
    "facing_from_ridge",
    "estimate_tilt_from_area",
]
