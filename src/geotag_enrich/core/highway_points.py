"""Km references from a curated dataset of notable highway points.

Each point (police post, bridge, access, fuel station...) carries its highway
number and km. The km at a location is interpolated between the two points of
the nearest point's highway that are closest to it, weighted by straight-line
distance. This works offline and complements the milestone-based estimate.
"""

import json
import logging
import math
from collections import Counter
from pathlib import Path
from typing import Optional, Sequence

import numpy as np
from pydantic import ValidationError

from geotag_enrich.config import Settings
from geotag_enrich.models import HighwayPoint, PointKmEstimate
from .geometry import haversine_many

logger = logging.getLogger(__name__)

POINT_ICONS = {
    "prf": "🚔",
    "ponte": "🌉",
    "viaduto": "🛤️",
    "acesso": "↗️",
    "posto": "⛽",
    "fiscal": "🏛️",
    "retorno": "↩️",
    "industria": "🏭",
    "comercio": "🏪",
    "passarela": "🚶",
    "referencia": "📍",
}

POINT_TYPE_LABELS = {
    "prf": "Posto PRF",
    "ponte": "Ponte",
    "viaduto": "Viaduto",
    "acesso": "Acesso",
    "posto": "Posto de Combustível",
    "fiscal": "Posto Fiscal",
    "retorno": "Retorno",
    "industria": "Indústria",
    "comercio": "Comércio",
    "passarela": "Passarela",
    "referencia": "Referência",
}


def point_icon(point: HighwayPoint) -> str:
    return POINT_ICONS.get(point.type, POINT_ICONS["referencia"])


def point_label(point: HighwayPoint) -> str:
    return POINT_TYPE_LABELS.get(point.type, POINT_TYPE_LABELS["referencia"])


def load_highway_points(path) -> list[HighwayPoint]:
    """Read a ``{"points": [...]}`` JSON file.

    An unreadable file yields no points. Individual records that fail
    validation are skipped.
    """
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.error("Could not load highway points from %s: %s", path, exc)
        return []

    raw = data.get("points") if isinstance(data, dict) else None
    if not isinstance(raw, list):
        logger.error("Highway points file %s has no 'points' list", path)
        return []

    points = []
    for item in raw:
        try:
            points.append(HighwayPoint.model_validate(item))
        except ValidationError as exc:
            logger.debug("Skipping highway point %r: %s", item, exc)
    logger.info("Loaded %d highway points from %s", len(points), path)
    return points


class HighwayPointIndex:
    def __init__(
        self,
        points: Sequence[HighwayPoint] = (),
        *,
        nearest_max: float = 5000.0,
        reliable_max: float = 3000.0,
        high_precision: float = 1000.0,
        medium_precision: float = 2000.0,
    ):
        self.points = list(points)
        self.nearest_max = nearest_max
        self.reliable_max = reliable_max
        self.high_precision = high_precision
        self.medium_precision = medium_precision
        self._lats = np.array([p.lat for p in self.points], dtype=float)
        self._lons = np.array([p.lon for p in self.points], dtype=float)
        self._brs = np.array([p.br for p in self.points], dtype=object)

    @classmethod
    def from_settings(cls, settings: Settings) -> "HighwayPointIndex":
        points = []
        if settings.highway_points_path is not None:
            points = load_highway_points(settings.highway_points_path)
        return cls(
            points,
            nearest_max=settings.points_nearest_max_m,
            reliable_max=settings.points_reliable_max_m,
            high_precision=settings.points_high_precision_m,
            medium_precision=settings.points_medium_precision_m,
        )

    def __len__(self) -> int:
        return len(self.points)

    def _distances(self, coord) -> np.ndarray:
        return haversine_many(coord, self._lats, self._lons)

    def find_nearest(self, coord, max_distance: float = 2000.0) -> Optional[tuple[HighwayPoint, float]]:
        """Closest point within ``max_distance`` meters, with its distance."""
        if not self.points:
            return None
        dists = self._distances(coord)
        i = int(np.argmin(dists))
        if dists[i] > max_distance:
            return None
        return self.points[i], float(dists[i])

    def find_surrounding(self, coord, br: Optional[str] = None) -> Optional[list[tuple[HighwayPoint, float]]]:
        """The two points closest to ``coord``, optionally on highway ``br`` only."""
        idx = np.arange(len(self.points))
        if br is not None:
            idx = idx[self._brs == br]
        if len(idx) < 2:
            return None
        dists = self._distances(coord)[idx]
        order = np.argsort(dists, kind="stable")[:2]
        return [(self.points[idx[j]], float(dists[j])) for j in order]

    def _precision(self, distance: float) -> str:
        if distance <= self.high_precision:
            return "high"
        if distance <= self.medium_precision:
            return "medium"
        return "low"

    def estimate_km(self, coord) -> Optional[PointKmEstimate]:
        """Estimate the highway and km at ``coord`` from the dataset.

        The nearest point within ``nearest_max`` picks the highway. With two
        points on it, the km is interpolated between them by the ratio of
        their distances; when the closer one is beyond ``reliable_max`` the
        nearest point's km is returned unestimated with low precision.
        """
        found = self.find_nearest(coord, self.nearest_max)
        if found is None:
            return None
        nearest, nearest_dist = found

        surrounding = self.find_surrounding(coord, nearest.br)
        if surrounding is None:
            return PointKmEstimate(
                br=nearest.br, km=nearest.km, estimated=False,
                nearest=nearest, distance=round(nearest_dist),
            )

        (p1, d1), (p2, d2) = surrounding
        if d1 > self.reliable_max:
            return PointKmEstimate(
                br=nearest.br, km=nearest.km, estimated=False,
                nearest=nearest, distance=round(nearest_dist), precision="low",
            )

        total = d1 + d2
        ratio = d1 / total if total > 0 else 0.0
        km = p1.km + (p2.km - p1.km) * ratio
        return PointKmEstimate(
            br=nearest.br,
            km=math.floor(km * 10 + 0.5) / 10,
            estimated=True,
            nearest=nearest,
            distance=round(d1),
            precision=self._precision(d1),
            references=[p1, p2],
        )

    def available_brs(self) -> list[str]:
        return sorted({p.br for p in self.points})

    def available_types(self) -> list[str]:
        return sorted({p.type for p in self.points})

    def stats(self) -> dict:
        return {
            "total": len(self.points),
            "by_br": dict(Counter(p.br for p in self.points)),
            "by_type": dict(Counter(p.type for p in self.points)),
            "by_municipality": dict(Counter(p.municipality for p in self.points)),
        }
