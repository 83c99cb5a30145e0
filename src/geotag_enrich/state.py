"""Process-wide service state for the geotag-enrich MCP server.

Holds the settings, the geospatial cache, the Nominatim rate limiter, the
curated highway points and the resolvers built on them, plus the last
enrichment result for status queries.
"""

from typing import Optional

from aiolimiter import AsyncLimiter
from pydantic import BaseModel, ConfigDict, Field

from geotag_enrich.config import Settings, get_settings
from geotag_enrich.core.address import AddressResolver
from geotag_enrich.core.cache import GeoCache
from geotag_enrich.core.enrich import LocationEnricher
from geotag_enrich.core.fetch import min_interval_limiter
from geotag_enrich.core.highway import HighwayLocator
from geotag_enrich.core.highway_points import HighwayPointIndex
from geotag_enrich.core.landmarks import LandmarkAggregator
from geotag_enrich.models import Coordinate, LocationInfo


class Services(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    settings: Settings
    cache: GeoCache
    nominatim_limiter: AsyncLimiter
    address: AddressResolver
    highway: HighwayLocator
    landmarks: LandmarkAggregator
    enricher: LocationEnricher
    highway_points: HighwayPointIndex

    @classmethod
    def build(cls, settings: Optional[Settings] = None) -> "Services":
        settings = settings or get_settings()
        cache = GeoCache(
            max_age=settings.cache_max_age_s,
            max_entries=settings.cache_max_entries,
            grid_sizes=settings.grid_sizes,
            default_grid_size=settings.default_grid_size,
        )
        # One limiter shared by every Nominatim caller
        limiter = min_interval_limiter(settings.nominatim_min_interval_s)
        address = AddressResolver(settings, cache, limiter)
        highway = HighwayLocator(settings, cache)
        landmarks = LandmarkAggregator(settings, cache, limiter)
        return cls(
            settings=settings,
            cache=cache,
            nominatim_limiter=limiter,
            address=address,
            highway=highway,
            landmarks=landmarks,
            enricher=LocationEnricher(address, highway, landmarks),
            highway_points=HighwayPointIndex.from_settings(settings),
        )


class SessionState(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    services: Services = Field(default_factory=Services.build)
    last_coordinate: Optional[Coordinate] = None
    last_location: Optional[LocationInfo] = None

    def remember(self, coord: Coordinate, info: LocationInfo) -> None:
        self.last_coordinate = coord
        self.last_location = info

    def summary(self) -> dict:
        s = self.services.settings
        last = self.last_location
        return {
            "cache": {
                "entries": self.services.cache.sizes(),
                "max_entries": s.cache_max_entries,
                "max_age_s": s.cache_max_age_s,
            },
            "providers": {
                "nominatim": s.nominatim_url,
                "overpass": list(s.overpass_urls),
                "wikidata": s.wikidata_url,
                "nominatim_min_interval_s": s.nominatim_min_interval_s,
            },
            "highway_points": {
                "total": len(self.services.highway_points),
                "highways": self.services.highway_points.available_brs(),
            },
            "last_enrichment": {
                "lat": self.last_coordinate.lat,
                "lon": self.last_coordinate.lon,
                "address_found": last.address is not None,
                "highway": last.highway.ref,
                "km": last.highway.estimate.km if last.highway.estimate else None,
                "landmarks": len(last.landmarks),
            } if last is not None and self.last_coordinate is not None else None,
        }


# Global session state, one per MCP server process
state = SessionState()
