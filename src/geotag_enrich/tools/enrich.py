"""Enrichment tools: get_address_info, enrich_location, format_location."""

from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations

from ..state import state
from ..core.enrich import format_location_info
from ._prereqs import require_coordinate


def register_enrich_tools(mcp: FastMCP):

    @mcp.tool(annotations=ToolAnnotations(readOnlyHint=True, openWorldHint=True))
    async def get_address_info(lat: float, lon: float) -> str:
        """Fetch address and highway for a coordinate as JSON (no landmarks).

        Args:
            lat: Latitude in decimal degrees.
            lon: Longitude in decimal degrees.
        """
        try:
            coord = require_coordinate(lat, lon)
        except ValueError as e:
            return f"Error: {e}"

        info = await state.services.enricher.get_address_info(coord)
        return info.model_dump_json(indent=2, exclude={"landmarks"})

    @mcp.tool(annotations=ToolAnnotations(readOnlyHint=False, destructiveHint=False, openWorldHint=True))
    async def enrich_location(lat: float, lon: float) -> str:
        """Resolve address, highway and nearby landmarks for a capture coordinate.

        Returns the enrichment payload as JSON: {address, highway, landmarks}.
        Any part may be empty; store the payload alongside the capture record
        and re-run later if needed.
        **Next:** format_location for a shareable text version.

        Args:
            lat: Latitude in decimal degrees.
            lon: Longitude in decimal degrees.
        """
        try:
            coord = require_coordinate(lat, lon)
        except ValueError as e:
            return f"Error: {e}"

        info = await state.services.enricher.get_location_info(coord)
        state.remember(coord, info)
        return info.model_dump_json(indent=2)

    @mcp.tool(annotations=ToolAnnotations(readOnlyHint=True, openWorldHint=True))
    async def format_location(lat: float, lon: float) -> str:
        """Describe a coordinate as shareable text: address, highway km and landmarks.

        Args:
            lat: Latitude in decimal degrees.
            lon: Longitude in decimal degrees.
        """
        try:
            coord = require_coordinate(lat, lon)
        except ValueError as e:
            return f"Error: {e}"

        info = await state.services.enricher.get_location_info(coord)
        state.remember(coord, info)
        return format_location_info(info) or "No additional information found for this location."
