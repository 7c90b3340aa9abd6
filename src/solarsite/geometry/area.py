"""Polygon area on the Earth's surface.

Rings are sequences of ``(lng, lat)`` pairs in degrees. The geodesic method
(spherical excess) is preferred; the equirectangular shoelace area is used only
when the geodesic result is degenerate.
"""
from __future__ import annotations

import math
from typing import List, Sequence, Tuple

import numpy as np

from solarsite.core.debug import DebugCollector, NullDebugCollector

EARTH_RADIUS_M = 6_378_137.0
METERS_PER_DEGREE = 111_000.0

Ring = Sequence[Sequence[float]]


def close_ring(points: Ring) -> List[Tuple[float, float]]:
    """Return the ring with its first vertex repeated at the end (never twice)."""
    pts = [(float(p[0]), float(p[1])) for p in points]
    if not pts:
        return []
    if pts[0] != pts[-1]:
        pts.append(pts[0])
    return pts


def _open_vertices(ring: Ring) -> np.ndarray:
    pts = close_ring(ring)[:-1] if ring else []
    return np.asarray(pts, dtype=float).reshape(-1, 2)


def geodesic_area(ring: Ring, radius_m: float = EARTH_RADIUS_M) -> float:
    """Spherical-excess area (m²) of a simple ring on a sphere.

    Uses the line-integral form ``A = R²/2 · |Σ (λ₂−λ₁)(2 + sin φ₁ + sin φ₂)|``
    which is stable for small roof-sized polygons.
    """
    verts = _open_vertices(ring)
    if len(verts) < 3:
        return 0.0
    lng = np.radians(verts[:, 0])
    lat = np.radians(verts[:, 1])
    lng_next = np.roll(lng, -1)
    lat_next = np.roll(lat, -1)
    dlng = lng_next - lng
    # unwrap edges that cross the antimeridian
    dlng = (dlng + np.pi) % (2 * np.pi) - np.pi
    total = np.sum(dlng * (2.0 + np.sin(lat) + np.sin(lat_next)))
    return float(abs(total) * radius_m * radius_m / 2.0)


def planar_area(ring: Ring) -> float:
    """Equirectangular shoelace area (m²).

    Longitude is scaled by the cosine of each vertex's own latitude; both axes
    use 111 km per degree.
    """
    verts = _open_vertices(ring)
    if len(verts) < 3:
        return 0.0
    x = verts[:, 0] * np.cos(np.radians(verts[:, 1])) * METERS_PER_DEGREE
    y = verts[:, 1] * METERS_PER_DEGREE
    cross = x * np.roll(y, -1) - np.roll(x, -1) * y
    return float(abs(np.sum(cross)) / 2.0)


def polygon_area(ring: Ring, debug: DebugCollector | None = None) -> float:
    """Area of a lng/lat ring in m², geodesic first, planar as fallback.

    Rings with fewer than three distinct vertices have zero area. Self-intersecting
    rings are not detected; the caller supplies simple polygons.
    """

    debug = debug or NullDebugCollector()
    verts = _open_vertices(ring)
    if len({tuple(v) for v in verts.tolist()}) < 3:
        debug.emit("geometry.area", {"method": "degenerate", "area_m2": 0.0, "vertices": len(verts)})
        return 0.0

    area = geodesic_area(ring)
    method = "geodesic"
    if not math.isfinite(area) or area <= 0:
        area = planar_area(ring)
        method = "planar"
        if not math.isfinite(area):
            area = 0.0
    debug.emit("geometry.area", {"method": method, "area_m2": area, "vertices": len(verts)})
    return area


__all__ = [
    "EARTH_RADIUS_M",
    "close_ring",
    "geodesic_area",
    "planar_area",
    "polygon_area",
]
