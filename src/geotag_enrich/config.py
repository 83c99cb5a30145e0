"""Runtime configuration using Pydantic Settings."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

BRAZIL_REF_PATTERN = (
    "^(BR|AC|AL|AP|AM|BA|CE|DF|ES|GO|MA|MT|MS|MG|PA|PB|PR|PE|PI|RJ|RN|RS|RO|RR|SC|SE|SP|TO)-"
)


class Settings(BaseSettings):
    """Provider endpoints and tunable resolution thresholds.

    Every value can be overridden with a ``GEOTAG_``-prefixed environment
    variable, e.g. ``GEOTAG_HIGHWAY_SEARCH_RADIUS_M=300``.
    """

    model_config = SettingsConfigDict(env_prefix="GEOTAG_", extra="ignore")

    log_level: str = Field(default="INFO", description="Root log level for the stdio server")

    # Providers
    user_agent: str = Field(
        default="geotag-enrich/1.0",
        description="Client identification sent to every provider (Nominatim usage policy)",
    )
    accept_language: str = Field(default="pt-BR", description="Locale hint for Nominatim")
    nominatim_url: str = "https://nominatim.openstreetmap.org"
    overpass_urls: list[str] = Field(
        default_factory=lambda: [
            "https://overpass-api.de/api/interpreter",
            "https://overpass.kumi.systems/api/interpreter",
        ],
        min_length=1,
    )
    wikidata_url: str = "https://query.wikidata.org/sparql"

    # Fetch policy
    nominatim_min_interval_s: float = Field(default=1.1, ge=1.1)
    backoff_step_s: float = Field(default=1.0, ge=0)
    address_timeout_s: float = Field(default=10.0, gt=0)
    address_max_retries: int = Field(default=2, ge=0)
    highway_timeout_s: float = Field(default=25.0, gt=0)
    highway_max_retries: int = Field(default=1, ge=0)
    overpass_poi_timeout_s: float = Field(default=18.0, gt=0)
    nominatim_poi_timeout_s: float = Field(default=10.0, gt=0)
    wikidata_timeout_s: float = Field(default=12.0, gt=0)
    landmark_max_retries: int = Field(default=1, ge=0)

    # Cache
    cache_max_age_s: float = Field(default=600.0, gt=0)
    cache_max_entries: int = Field(default=100, gt=0)
    grid_sizes: dict[str, float] = Field(
        default_factory=lambda: {"address": 0.0001, "highway": 0.001, "pois": 0.0003}
    )
    default_grid_size: float = Field(default=0.0005, gt=0)

    # Highway locator
    highway_ref_pattern: str = BRAZIL_REF_PATTERN
    priority_ref_prefix: str = "BR-"
    priority_margin_m: float = Field(default=50.0, ge=0)
    highway_search_radius_m: float = Field(default=200.0, gt=0)
    highway_geometry_radius_m: float = Field(default=2000.0, gt=0)
    milestone_radius_m: float = Field(default=5000.0, gt=0)
    milestone_max_line_distance_m: float = Field(default=200.0, gt=0)
    nearest_milestone_max_m: float = Field(default=5000.0, gt=0)
    direction_min_spread_m: float = Field(default=10.0, ge=0)
    exact_match_m: float = Field(default=10.0, ge=0)
    chain_tolerance_deg: float = Field(default=0.00015, gt=0)

    # Landmark aggregator
    landmark_radius_m: float = Field(default=100.0, gt=0)
    landmark_viewbox_delta_deg: float = Field(default=0.0009, gt=0)
    nominatim_poi_query: Optional[str] = Field(
        default=None,
        description="Free-form 'q' for the Nominatim viewbox search, e.g. a special phrase like 'igreja'",
    )
    max_landmarks: int = Field(default=3, gt=0)

    # Curated highway points (optional local dataset)
    highway_points_path: Optional[Path] = Field(
        default=None,
        description="JSON file with a 'points' list of notable highway points",
    )
    points_nearest_max_m: float = Field(default=5000.0, gt=0)
    points_reliable_max_m: float = Field(default=3000.0, gt=0)
    points_high_precision_m: float = Field(default=1000.0, gt=0)
    points_medium_precision_m: float = Field(default=2000.0, gt=0)


@lru_cache
def get_settings() -> Settings:
    return Settings()
