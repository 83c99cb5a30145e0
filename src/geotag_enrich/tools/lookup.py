"""Single-resolver tools: fetch_address, find_highway, find_landmarks, suggest_km_reference."""

import logging

from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations

from ..state import state
from ..core.enrich import format_highway
from ..core.highway_points import point_icon, point_label
from ._prereqs import require_coordinate

logger = logging.getLogger(__name__)


def register_lookup_tools(mcp: FastMCP):

    @mcp.tool(annotations=ToolAnnotations(readOnlyHint=True, openWorldHint=True))
    async def fetch_address(lat: float, lon: float) -> str:
        """Reverse-geocode a coordinate into a human-readable street address.

        Uses Nominatim (rate limited to one request every 1.1s).
        A missing address is a normal outcome, not an error.

        Args:
            lat: Latitude in decimal degrees.
            lon: Longitude in decimal degrees.
        """
        try:
            coord = require_coordinate(lat, lon)
        except ValueError as e:
            return f"Error: {e}"

        res = await state.services.address.reverse_geocode(coord)
        if res.value is None or not res.value.display:
            if res.failed:
                logger.debug("fetch_address failed: %s", res.reason)
                return "Address not available (geocoding service unreachable)."
            return "Address not available for this location."
        return f"Address: {res.value.display}"

    @mcp.tool(annotations=ToolAnnotations(readOnlyHint=True, openWorldHint=True))
    async def find_highway(lat: float, lon: float) -> str:
        """Identify the numbered highway at a coordinate and estimate its km marker.

        The km value is interpolated between mapped milestones along the
        highway geometry, extrapolated from the nearest one, or taken from the
        nearest milestone when no geometry is usable.

        Args:
            lat: Latitude in decimal degrees.
            lon: Longitude in decimal degrees.
        """
        try:
            coord = require_coordinate(lat, lon)
        except ValueError as e:
            return f"Error: {e}"

        res = await state.services.highway.find_highway_info(coord)
        text = format_highway(res.value) if res.value else None
        if text is None:
            if res.failed:
                return "Highway not available (map data service unreachable)."
            return "Not on a known highway."
        est = res.value.estimate
        if est is not None:
            text += f" [method: {est.method}, {est.distance_from_line}m]"
        return f"Highway: {text}"

    @mcp.tool(annotations=ToolAnnotations(readOnlyHint=True, openWorldHint=True))
    async def find_landmarks(lat: float, lon: float) -> str:
        """List up to three named landmarks within ~100m, most relevant first.

        Combines OpenStreetMap (Overpass), Nominatim and Wikidata. Any single
        provider may fail without affecting the others.

        Args:
            lat: Latitude in decimal degrees.
            lon: Longitude in decimal degrees.
        """
        try:
            coord = require_coordinate(lat, lon)
        except ValueError as e:
            return f"Error: {e}"

        res = await state.services.landmarks.find_nearby_landmarks(coord)
        if not res.value:
            if res.failed:
                return "Landmarks not available (all providers unreachable)."
            return "No landmarks found nearby."
        lines = [f"Found {len(res.value)} landmark(s):"]
        for lm in res.value:
            lines.append(f"{lm.icon} {lm.name} ({lm.distance}m, {lm.category}, via {lm.source})")
        return "\n".join(lines)

    @mcp.tool(annotations=ToolAnnotations(readOnlyHint=True))
    async def suggest_km_reference(lat: float, lon: float) -> str:
        """Suggest a federal highway km reference from the local highway points.

        Works offline from the curated dataset configured with
        GEOTAG_HIGHWAY_POINTS_PATH. The km is interpolated between the two
        closest points of the nearest highway, with a precision rating.
        **Next:** find_highway for the milestone-based estimate.

        Args:
            lat: Latitude in decimal degrees.
            lon: Longitude in decimal degrees.
        """
        try:
            coord = require_coordinate(lat, lon)
        except ValueError as e:
            return f"Error: {e}"

        index = state.services.highway_points
        if not len(index):
            return (
                "Error: No highway points loaded. Set GEOTAG_HIGHWAY_POINTS_PATH "
                "to a JSON file with a 'points' list."
            )
        est = index.estimate_km(coord)
        if est is None:
            return f"No highway point within {index.nearest_max / 1000:g} km."
        lines = [
            f"{point_icon(est.nearest)} {est.suggestion}",
            f"Precision: {est.precision} ({est.distance}m to nearest reference)",
            f"Reference: {point_label(est.nearest)}, {est.nearest.municipality}/{est.nearest.state}",
        ]
        return "\n".join(lines)
