"""Highway identification and kilometer-marker estimation.

A single Overpass query returns numbered highway geometry near the point and
milestone nodes in a wider radius (milestones are sparse). The closest
highway's ways are chained into one polyline; the point and the milestones
are projected onto it and the km value is interpolated or extrapolated by
along-line distance.
"""

import logging
import math
import re
from typing import NamedTuple, Optional, Sequence

import numpy as np

from geotag_enrich.config import Settings
from geotag_enrich.models import (
    Coordinate, GeoPoint, HighwayInfo, HighwaySegment, KmEstimate, Milestone,
)
from .cache import HIGHWAY, GeoCache
from .fetch import FetchError
from .geometry import (
    chain_way_segments, haversine_distance, haversine_many, project_point_on_polyline,
)
from .models import HighwayQueryResult, Resolution
from .osm import query_overpass

logger = logging.getLogger(__name__)

MILESTONE_KM_TAGS = ("distance", "pk", "distance:ref", "addr:milestone")
MAX_MILESTONE_KM = 2000.0

_LEADING_NUMBER = re.compile(r"^\s*([+-]?(?:\d+(?:[.,]\d*)?|[.,]\d+))")
_PURE_NUMBER = re.compile(r"^\d+(?:\.\d+)?$")


class ClosestHighway(NamedTuple):
    ref: str
    name: Optional[str]
    distance: float


class ProjectedMilestone(NamedTuple):
    km: float
    distance_along: float
    distance_from_line: float


def _round1(value: float) -> float:
    return math.floor(value * 10 + 0.5) / 10


def _parse_leading_float(value) -> Optional[float]:
    match = _LEADING_NUMBER.match(str(value))
    if not match:
        return None
    return float(match.group(1).replace(",", "."))


def extract_milestone_km(tags: dict) -> Optional[float]:
    """Read the km value of a milestone node from its tags.

    ``distance``, ``pk``, ``distance:ref`` and ``addr:milestone`` are tried in
    order. ``ref`` is only used when purely numeric, since on many milestones
    it holds the highway code instead.
    """
    for tag in MILESTONE_KM_TAGS:
        value = tags.get(tag)
        if not value:
            continue
        km = _parse_leading_float(value)
        if km is not None and 0 <= km < MAX_MILESTONE_KM:
            return km
    ref = str(tags.get("ref") or "").strip()
    if _PURE_NUMBER.match(ref):
        km = float(ref)
        if km < MAX_MILESTONE_KM:
            return km
    return None


def build_highway_query(coord: Coordinate, settings: Settings) -> str:
    lat, lon = coord.lat, coord.lon
    return (
        "[out:json][timeout:20];"
        f'(way["ref"~"{settings.highway_ref_pattern}"]'
        f"(around:{settings.highway_geometry_radius_m:.0f},{lat},{lon}););"
        "out body geom;"
        f'node["highway"="milestone"](around:{settings.milestone_radius_m:.0f},{lat},{lon});'
        "out body;"
    )


def parse_highway_elements(elements: list[dict]) -> HighwayQueryResult:
    segments = []
    milestones = []
    for elem in elements:
        tags = elem.get("tags") or {}
        if elem.get("type") == "way" and tags.get("ref") and elem.get("geometry"):
            points = [
                GeoPoint(lat=pt["lat"], lon=pt["lon"])
                for pt in elem["geometry"]
                if pt and pt.get("lat") is not None and pt.get("lon") is not None
            ]
            if points:
                segments.append(HighwaySegment(ref=tags["ref"], name=tags.get("name"), points=points))
        elif elem.get("type") == "node" and tags.get("highway") == "milestone":
            if elem.get("lat") is None or elem.get("lon") is None:
                continue
            km = extract_milestone_km(tags)
            if km is None:
                logger.debug("Discarding milestone %s with tags %s", elem.get("id"), tags)
                continue
            milestones.append(Milestone(lat=elem["lat"], lon=elem["lon"], km=km))
    return HighwayQueryResult(segments=segments, milestones=milestones)


def select_closest_highway(
    coord: Coordinate,
    segments: Sequence[HighwaySegment],
    priority_prefix: str = "BR-",
    priority_margin: float = 50.0,
) -> Optional[ClosestHighway]:
    """Pick the highway with the vertex nearest to ``coord``.

    A priority-class highway (e.g. a federal route) wins over a closer
    non-priority one when it is less than ``priority_margin`` meters farther.
    """
    best: Optional[ClosestHighway] = None
    best_priority: Optional[ClosestHighway] = None
    for seg in segments:
        if not seg.points:
            continue
        lats = np.array([p.lat for p in seg.points])
        lons = np.array([p.lon for p in seg.points])
        candidate = ClosestHighway(seg.ref, seg.name, float(haversine_many(coord, lats, lons).min()))
        if best is None or candidate.distance < best.distance:
            best = candidate
        if seg.ref.startswith(priority_prefix) and (
            best_priority is None or candidate.distance < best_priority.distance
        ):
            best_priority = candidate

    if best_priority is not None and best_priority.distance < best.distance + priority_margin:
        return best_priority
    return best


def nearest_milestone(coord, milestones: Sequence[Milestone]) -> Optional[tuple[Milestone, float]]:
    nearest = None
    nearest_dist = math.inf
    for ms in milestones:
        dist = haversine_distance(coord, ms)
        if dist < nearest_dist:
            nearest, nearest_dist = ms, dist
    if nearest is None:
        return None
    return nearest, nearest_dist


def estimate_km_by_interpolation(
    point,
    polyline: Sequence,
    milestones: Sequence[Milestone],
    *,
    max_line_distance: float = 200.0,
    nearest_max: float = 5000.0,
    direction_min_spread: float = 10.0,
    exact_match: float = 10.0,
) -> Optional[KmEstimate]:
    """Estimate the km marker at ``point`` along ``polyline``.

    Milestones farther than ``max_line_distance`` from the line are ignored.
    With milestones on both sides of the point the km is interpolated; with
    milestones on one side only it is extrapolated in the direction the km
    values grow along the line. Without any usable milestone on the line the
    straight-line nearest one within ``nearest_max`` is used.
    """
    user = project_point_on_polyline(point, polyline)
    if user is None:
        return None

    projected = []
    for ms in milestones:
        proj = project_point_on_polyline(ms, polyline)
        if proj.distance_from_line > max_line_distance:
            continue
        projected.append(ProjectedMilestone(ms.km, proj.distance_along, proj.distance_from_line))
    projected.sort(key=lambda m: m.distance_along)

    if not projected:
        found = nearest_milestone(point, milestones)
        if found is None or found[1] >= nearest_max:
            return None
        ms, dist = found
        return KmEstimate(km=ms.km, estimated=True, method="nearest", distance_from_line=round(dist))

    along = user.distance_along
    from_line = round(user.distance_from_line)

    closest = min(projected, key=lambda m: abs(m.distance_along - along))
    if abs(closest.distance_along - along) <= exact_match:
        return KmEstimate(km=closest.km, estimated=False, method="exact", distance_from_line=from_line)

    before = after = None
    for ms in projected:
        if ms.distance_along <= along:
            before = ms
        elif after is None:
            after = ms

    if before and after:
        span = after.distance_along - before.distance_along
        if span > 0:
            fraction = (along - before.distance_along) / span
            km = before.km + fraction * (after.km - before.km)
            return KmEstimate(
                km=_round1(km), estimated=True, method="interpolation", distance_from_line=from_line,
            )

    ref = before or after
    direction = 1
    if len(projected) >= 2:
        first, last = projected[0], projected[-1]
        if abs(last.distance_along - first.distance_along) > direction_min_spread:
            if last.km < first.km:
                direction = -1
    km = ref.km + (along - ref.distance_along) / 1000.0 * direction
    return KmEstimate(
        km=_round1(max(km, 0.0)), estimated=True, method="extrapolation", distance_from_line=from_line,
    )


class HighwayLocator:
    def __init__(self, settings: Settings, cache: GeoCache):
        self.settings = settings
        self.cache = cache

    def _estimate(self, coord: Coordinate, polyline: list, milestones: list[Milestone]) -> Optional[KmEstimate]:
        s = self.settings
        if len(polyline) >= 2 and milestones:
            return estimate_km_by_interpolation(
                coord, polyline, milestones,
                max_line_distance=s.milestone_max_line_distance_m,
                nearest_max=s.nearest_milestone_max_m,
                direction_min_spread=s.direction_min_spread_m,
                exact_match=s.exact_match_m,
            )
        found = nearest_milestone(coord, milestones)
        if found is None:
            return None
        ms, dist = found
        return KmEstimate(km=ms.km, estimated=True, method="nearest", distance_from_line=round(dist))

    async def find_highway_info(self, coord: Coordinate) -> Resolution[HighwayInfo]:
        cached = self.cache.get(HIGHWAY, coord)
        if cached is not None:
            return cached

        s = self.settings
        try:
            elements = await query_overpass(
                build_highway_query(coord, s),
                s.overpass_urls,
                user_agent=s.user_agent,
                timeout=s.highway_timeout_s,
                max_retries=s.highway_max_retries,
                backoff_step=s.backoff_step_s,
            )
        except FetchError as exc:
            logger.warning("Highway lookup failed for %s,%s: %s", coord.lat, coord.lon, exc)
            return Resolution[HighwayInfo].failure(str(exc), HighwayInfo())

        try:
            result = self._resolve(coord, elements)
        except (ValueError, TypeError, KeyError, AttributeError) as exc:
            logger.warning("Malformed highway data for %s,%s: %r", coord.lat, coord.lon, exc)
            return Resolution[HighwayInfo].failure(f"malformed highway data: {exc!r}", HighwayInfo())

        self.cache.set(HIGHWAY, coord, result)
        return result

    def _resolve(self, coord: Coordinate, elements: list[dict]) -> Resolution[HighwayInfo]:
        s = self.settings
        parsed = parse_highway_elements(elements)
        closest = select_closest_highway(
            coord, parsed.segments, s.priority_ref_prefix, s.priority_margin_m,
        )
        if closest is None or closest.distance > s.highway_search_radius_m:
            return Resolution[HighwayInfo].empty(HighwayInfo())

        polyline = chain_way_segments(
            [seg.points for seg in parsed.segments if seg.ref == closest.ref],
            s.chain_tolerance_deg,
        )
        estimate = self._estimate(coord, polyline, parsed.milestones)
        logger.debug(
            "Closest highway %s at %.0fm, polyline of %d points, estimate %s",
            closest.ref, closest.distance, len(polyline), estimate,
        )
        return Resolution[HighwayInfo].of(
            HighwayInfo(ref=closest.ref, name=closest.name, estimate=estimate)
        )
