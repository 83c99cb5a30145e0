"""Location enrichment: address, highway and landmarks for one coordinate."""

import asyncio
import logging
from typing import Optional

from geotag_enrich.models import Address, Coordinate, HighwayInfo, LocationInfo
from .address import AddressResolver
from .highway import HighwayLocator
from .landmarks import LandmarkAggregator
from .models import Resolution

logger = logging.getLogger(__name__)


class LocationEnricher:
    """Runs the three resolvers concurrently; they hit different providers."""

    def __init__(
        self,
        address: AddressResolver,
        highway: HighwayLocator,
        landmarks: LandmarkAggregator,
    ):
        self.address = address
        self.highway = highway
        self.landmarks = landmarks

    async def _gather(self, coord: Coordinate, **calls) -> dict[str, Resolution]:
        """Await the resolver calls together; one raising never sinks the others."""
        outcomes = await asyncio.gather(*calls.values(), return_exceptions=True)
        results = {}
        for name, outcome in zip(calls, outcomes):
            if isinstance(outcome, Exception):
                logger.warning(
                    "Resolver %s raised for %s,%s: %r", name, coord.lat, coord.lon, outcome,
                    exc_info=outcome,
                )
                outcome = Resolution.failure(repr(outcome))
            elif isinstance(outcome, BaseException):
                raise outcome
            if outcome.failed:
                logger.info("Enrichment of %s,%s without %s: %s", coord.lat, coord.lon, name, outcome.reason)
            results[name] = outcome
        return results

    async def get_address_info(self, coord: Coordinate) -> LocationInfo:
        res = await self._gather(
            coord,
            address=self.address.reverse_geocode(coord),
            highway=self.highway.find_highway_info(coord),
        )
        return LocationInfo(
            address=res["address"].value,
            highway=res["highway"].value or HighwayInfo(),
        )

    async def get_location_info(self, coord: Coordinate) -> LocationInfo:
        res = await self._gather(
            coord,
            address=self.address.reverse_geocode(coord),
            highway=self.highway.find_highway_info(coord),
            landmarks=self.landmarks.find_nearby_landmarks(coord),
        )
        return LocationInfo(
            address=res["address"].value,
            highway=res["highway"].value or HighwayInfo(),
            landmarks=res["landmarks"].value or [],
        )


def display_address(address: Optional[Address]) -> Optional[str]:
    if address is None:
        return None
    return address.display


def format_highway(highway: HighwayInfo) -> Optional[str]:
    if not highway.on_highway:
        return None
    text = highway.ref
    if highway.name:
        text += f" ({highway.name})"
    est = highway.estimate
    if est is not None:
        if est.estimated:
            text += f" - ~KM {est.km:g} (estimated)"
        else:
            text += f" - KM {est.km:g}"
            if est.distance_from_line > 50:
                text += f" (~{est.distance_from_line}m from marker)"
    return text


def format_location_info(info: Optional[LocationInfo]) -> str:
    """Render enrichment data as plain text for copying or sharing."""
    if info is None:
        return ""
    lines = []
    addr = display_address(info.address)
    if addr:
        lines.append(f"📌 Address: {addr}")
    highway = format_highway(info.highway)
    if highway:
        lines.append(f"🛣️ Highway: {highway}")
    if info.landmarks:
        lines.append("🏪 Nearby:")
        lines.extend(f"  {lm.icon} {lm.name} ({lm.distance}m)" for lm in info.landmarks)
    return "\n".join(lines)
