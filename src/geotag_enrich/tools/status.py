"""Status tools: get_status, clear_cache, get_highway_points_stats."""

import json
from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations

from ..state import state
from ..core.cache import ADDRESS, HIGHWAY, POIS


def register_status_tools(mcp: FastMCP):

    @mcp.tool(annotations=ToolAnnotations(readOnlyHint=True))
    def get_status() -> str:
        """Return a summary of the service state.

        Shows cache occupancy per category, configured providers and the
        last enrichment result.
        """
        return json.dumps(state.summary(), indent=2)

    @mcp.tool(annotations=ToolAnnotations(readOnlyHint=False, destructiveHint=True))
    def clear_cache(category: str | None = None) -> str:
        """Drop cached lookups so the next request queries the providers again.

        Args:
            category: One of 'address', 'highway', 'pois'. Default: all.
        """
        if category is not None and category not in (ADDRESS, HIGHWAY, POIS):
            return f"Error: Unknown cache category '{category}'. Use 'address', 'highway' or 'pois'."
        state.services.cache.clear(category)
        return f"Cache cleared: {category or 'all categories'}"

    @mcp.tool(annotations=ToolAnnotations(readOnlyHint=True))
    def get_highway_points_stats() -> str:
        """Count the loaded highway points per highway, type and municipality."""
        index = state.services.highway_points
        stats = index.stats()
        stats["types"] = index.available_types()
        return json.dumps(stats, indent=2, ensure_ascii=False)
