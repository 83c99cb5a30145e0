"""Grid-quantized, time-expiring memoization of resolver results."""

import logging
import math
import time
from typing import Any, Callable, NamedTuple, Optional

logger = logging.getLogger(__name__)

ADDRESS = "address"
HIGHWAY = "highway"
POIS = "pois"

DEFAULT_GRID_SIZES = {
    ADDRESS: 0.0001,  # ~11m, house-number precision
    HIGHWAY: 0.001,   # ~110m, highway identity is stable over a wide band
    POIS: 0.0003,     # ~33m, landmark search radius is 100m
}


class CacheEntry(NamedTuple):
    data: Any
    timestamp: float


class GeoCache:
    """Per-category caches keyed by coordinates rounded to a grid cell.

    Entries older than ``max_age`` seconds are treated as absent and dropped
    on lookup. Each category holds at most ``max_entries`` entries; the oldest
    inserted entry is evicted first.
    """

    def __init__(
        self,
        *,
        max_age: float = 600.0,
        max_entries: int = 100,
        grid_sizes: Optional[dict[str, float]] = None,
        default_grid_size: float = 0.0005,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_age = max_age
        self.max_entries = max_entries
        self.grid_sizes = dict(DEFAULT_GRID_SIZES if grid_sizes is None else grid_sizes)
        self.default_grid_size = default_grid_size
        self._clock = clock
        self._stores: dict[str, dict[str, CacheEntry]] = {}

    def key(self, category: str, lat: float, lon: float) -> str:
        grid = self.grid_sizes.get(category, self.default_grid_size)
        grid_lat = math.floor(lat / grid + 0.5) * grid
        grid_lon = math.floor(lon / grid + 0.5) * grid
        return f"{grid_lat:.6f},{grid_lon:.6f}"

    def get(self, category: str, coord) -> Optional[Any]:
        store = self._stores.get(category)
        if not store:
            return None
        key = self.key(category, coord.lat, coord.lon)
        entry = store.get(key)
        if entry is None:
            return None
        if self._clock() - entry.timestamp > self.max_age:
            del store[key]
            logger.debug("Cache entry %s/%s expired", category, key)
            return None
        logger.debug("Cache hit %s/%s", category, key)
        return entry.data

    def set(self, category: str, coord, data: Any) -> None:
        store = self._stores.setdefault(category, {})
        key = self.key(category, coord.lat, coord.lon)
        store[key] = CacheEntry(data, self._clock())
        if len(store) > self.max_entries:
            oldest = next(iter(store))
            del store[oldest]

    def clear(self, category: Optional[str] = None) -> None:
        if category is None:
            self._stores.clear()
        else:
            self._stores.pop(category, None)

    def sizes(self) -> dict[str, int]:
        return {category: len(self._stores.get(category, {})) for category in (ADDRESS, HIGHWAY, POIS)}
