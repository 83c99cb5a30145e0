"""MCP server for geotag-enrich.

Registers all tools and runs via stdio transport.
"""

import json
import logging
import sys

from mcp.server.fastmcp import FastMCP

from .config import get_settings
from .state import state
from .tools.lookup import register_lookup_tools
from .tools.enrich import register_enrich_tools
from .tools.status import register_status_tools

mcp = FastMCP(
    "geotag-enrich",
    instructions=(
        "Enrich geotagged captures with street address, highway km marker "
        "and nearby landmarks"
    ),
)

# Register all tool groups
register_lookup_tools(mcp)
register_enrich_tools(mcp)
register_status_tools(mcp)


@mcp.resource("state://session")
def session_state() -> str:
    """Current cache and last-enrichment summary."""
    return json.dumps(state.summary(), indent=2)


def main():
    # stdout carries the MCP protocol
    logging.basicConfig(
        stream=sys.stderr,
        level=get_settings().log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
