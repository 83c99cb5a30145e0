"""Reverse geocoding via Nominatim."""

import logging
from typing import Optional

import httpx
from aiolimiter import AsyncLimiter

from geotag_enrich.config import Settings
from geotag_enrich.models import Address, Coordinate
from .cache import ADDRESS, GeoCache
from .fetch import FetchError, fetch_with_retry
from .models import Resolution

logger = logging.getLogger(__name__)


def _first(fields: dict, *names: str) -> Optional[str]:
    for name in names:
        value = fields.get(name)
        if value:
            return str(value)
    return None


def parse_nominatim_address(data: dict) -> Address:
    """Normalize a Nominatim /reverse response into an Address.

    The composite string prefers road and number, then neighbourhood (or
    hamlet and county in rural areas with neither), then postcode, then
    city/state. Falls back to the provider's display name.
    """
    fields = data.get("address") or {}
    road = _first(fields, "road")
    house_number = _first(fields, "house_number")
    neighbourhood = _first(fields, "neighbourhood", "suburb")
    city = _first(fields, "city", "town", "village")
    state = _first(fields, "state")
    postcode = _first(fields, "postcode")
    hamlet = _first(fields, "hamlet")
    county = _first(fields, "county")

    parts = []
    if road:
        parts.append(f"{road}, {house_number}" if house_number else road)
    if neighbourhood:
        parts.append(neighbourhood)
    if not neighbourhood and not road:
        if hamlet:
            parts.append(hamlet)
        if county:
            parts.append(county)
    if postcode:
        parts.append(postcode)
    if city:
        parts.append(f"{city}/{state}" if state else city)
    elif state:
        parts.append(state)

    full_address = data.get("display_name") or None
    return Address(
        formatted_address=", ".join(parts) or full_address,
        full_address=full_address,
        road=road,
        house_number=house_number,
        neighbourhood=neighbourhood,
        city=city,
        state=state,
        postcode=postcode,
        hamlet=hamlet,
        county=county,
    )


class AddressResolver:
    def __init__(self, settings: Settings, cache: GeoCache, rate_limiter: AsyncLimiter):
        self.settings = settings
        self.cache = cache
        self.rate_limiter = rate_limiter

    async def reverse_geocode(self, coord: Coordinate) -> Resolution[Address]:
        cached = self.cache.get(ADDRESS, coord)
        if cached is not None:
            return cached

        s = self.settings
        try:
            async with httpx.AsyncClient(headers={"User-Agent": s.user_agent}) as client:
                response = await fetch_with_retry(
                    client, "GET", f"{s.nominatim_url}/reverse",
                    params={
                        "format": "json",
                        "lat": coord.lat,
                        "lon": coord.lon,
                        "zoom": 18,
                        "addressdetails": 1,
                        "accept-language": s.accept_language,
                    },
                    timeout=s.address_timeout_s,
                    max_retries=s.address_max_retries,
                    backoff_step=s.backoff_step_s,
                    rate_limiter=self.rate_limiter,
                )
                data = response.json()
        except FetchError as exc:
            logger.warning("Reverse geocoding failed for %s,%s: %s", coord.lat, coord.lon, exc)
            return Resolution[Address].failure(str(exc))
        except ValueError as exc:
            logger.warning("Reverse geocoding returned invalid JSON: %s", exc)
            return Resolution[Address].failure(f"Invalid JSON: {exc}")

        if not isinstance(data, dict) or "error" in data:
            logger.debug("No address for %s,%s", coord.lat, coord.lon)
            return Resolution[Address].empty()

        try:
            address = parse_nominatim_address(data)
        except (ValueError, TypeError, AttributeError) as exc:
            logger.warning("Malformed reverse geocoding answer for %s,%s: %r", coord.lat, coord.lon, exc)
            return Resolution[Address].failure(f"malformed address data: {exc!r}")
        if address.formatted_address is None:
            return Resolution[Address].empty()

        result = Resolution[Address].of(address)
        self.cache.set(ADDRESS, coord, result)
        return result
