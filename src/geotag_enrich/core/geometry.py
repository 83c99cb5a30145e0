"""Great-circle distance, point projection and highway segment chaining.

Points are any objects exposing ``lat`` and ``lon`` attributes in decimal
degrees (Coordinate, GeoPoint, Milestone).
"""

import math
from typing import NamedTuple, Optional, Sequence

import numpy as np

from ..models import GeoPoint

EARTH_RADIUS_M = 6_371_000.0

# ~15m: endpoints closer than this on both axes are considered connected
CHAIN_TOLERANCE_DEG = 0.00015


class SegmentProjection(NamedTuple):
    fraction: float
    distance: float


class PolylineProjection(NamedTuple):
    distance_along: float
    distance_from_line: float


def haversine_distance(a, b) -> float:
    """Great-circle distance in meters between two points."""
    phi1 = math.radians(a.lat)
    phi2 = math.radians(b.lat)
    dphi = math.radians(b.lat - a.lat)
    dlmb = math.radians(b.lon - a.lon)

    s = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(s), math.sqrt(1 - s))


def haversine_many(origin, lats: np.ndarray, lons: np.ndarray) -> np.ndarray:
    """Vectorized distance in meters from ``origin`` to each (lat, lon) pair."""
    phi1 = math.radians(origin.lat)
    phi2 = np.radians(lats)
    dphi = phi2 - phi1
    dlmb = np.radians(lons - origin.lon)

    s = np.sin(dphi / 2) ** 2 + math.cos(phi1) * np.cos(phi2) * np.sin(dlmb / 2) ** 2
    s = np.clip(s, 0.0, 1.0)
    return 2 * EARTH_RADIUS_M * np.arctan2(np.sqrt(s), np.sqrt(1 - s))


def polyline_length(polyline: Sequence) -> float:
    total = 0.0
    for i in range(1, len(polyline)):
        total += haversine_distance(polyline[i - 1], polyline[i])
    return total


def project_point_on_segment(p, a, b) -> SegmentProjection:
    """Project ``p`` onto segment a-b.

    Uses a local flat approximation centered on ``p`` with longitude scaled
    by cos(latitude). The fraction is clamped to [0, 1]; the distance is the
    great-circle distance from ``p`` to the projected point.
    """
    cos_lat = math.cos(math.radians(p.lat))
    ax = (a.lon - p.lon) * cos_lat
    ay = a.lat - p.lat
    bx = (b.lon - p.lon) * cos_lat
    by = b.lat - p.lat

    dx = bx - ax
    dy = by - ay
    len_sq = dx * dx + dy * dy

    if len_sq == 0:
        return SegmentProjection(0.0, haversine_distance(p, a))

    t = (-ax * dx - ay * dy) / len_sq
    t = max(0.0, min(1.0, t))

    projected = GeoPoint(lat=a.lat + t * (b.lat - a.lat), lon=a.lon + t * (b.lon - a.lon))
    return SegmentProjection(t, haversine_distance(p, projected))


def project_point_on_polyline(p, polyline: Sequence) -> Optional[PolylineProjection]:
    """Project ``p`` onto the closest segment of ``polyline``.

    Returns the along-line distance from the polyline's first vertex to the
    projection, and the perpendicular distance. None for fewer than 2 vertices.
    """
    if len(polyline) < 2:
        return None

    min_dist = math.inf
    best_segment = 0
    best_fraction = 0.0
    for i in range(len(polyline) - 1):
        proj = project_point_on_segment(p, polyline[i], polyline[i + 1])
        if proj.distance < min_dist:
            min_dist = proj.distance
            best_segment = i
            best_fraction = proj.fraction

    along = polyline_length(polyline[: best_segment + 1])
    along += best_fraction * haversine_distance(polyline[best_segment], polyline[best_segment + 1])
    return PolylineProjection(along, min_dist)


def _coords_close(p1, p2, tolerance: float) -> bool:
    return abs(p1.lat - p2.lat) < tolerance and abs(p1.lon - p2.lon) < tolerance


def chain_way_segments(
    geometries: Sequence[Sequence[GeoPoint]],
    tolerance: float = CHAIN_TOLERANCE_DEG,
) -> list[GeoPoint]:
    """Join way geometries into one continuous polyline.

    Starts from the first geometry and repeatedly attaches any unused geometry
    whose endpoint touches either end of the chain, in either orientation.
    Geometries that never touch the chain are dropped.
    """
    geometries = [list(g) for g in geometries if g]
    if not geometries:
        return []
    if len(geometries) == 1:
        return geometries[0]

    used = {0}
    chain = list(geometries[0])

    changed = True
    while changed:
        changed = False
        for i, seg in enumerate(geometries):
            if i in used:
                continue
            seg_start, seg_end = seg[0], seg[-1]
            chain_start, chain_end = chain[0], chain[-1]

            if _coords_close(chain_end, seg_start, tolerance):
                chain.extend(seg[1:])
            elif _coords_close(chain_end, seg_end, tolerance):
                chain.extend(reversed(seg[:-1]))
            elif _coords_close(chain_start, seg_end, tolerance):
                chain[:0] = seg[:-1]
            elif _coords_close(chain_start, seg_start, tolerance):
                chain[:0] = list(reversed(seg[1:]))
            else:
                continue
            used.add(i)
            changed = True

    return chain
