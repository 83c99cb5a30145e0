"""MCP server smoke test: verifies the server starts and responds to initialize."""

import sys
import pytest
from mcp.client.stdio import stdio_client, StdioServerParameters
from mcp import ClientSession


@pytest.mark.anyio
async def test_mcp_server_initializes():
    """Server starts and responds to MCP initialize with correct name."""
    params = StdioServerParameters(
        command=sys.executable,
        args=["-m", "geotag_enrich"],
    )
    async with stdio_client(params) as (read, write):
        async with ClientSession(read, write) as session:
            result = await session.initialize()

            assert result.serverInfo.name == "geotag-enrich"


@pytest.mark.anyio
async def test_mcp_server_exposes_expected_tools():
    """Server exposes the expected MCP tools."""
    params = StdioServerParameters(
        command=sys.executable,
        args=["-m", "geotag_enrich"],
    )
    async with stdio_client(params) as (read, write):
        async with ClientSession(read, write) as session:
            await session.initialize()
            tools = await session.list_tools()

        tool_names = {t.name for t in tools.tools}
        assert {
            "fetch_address", "find_highway", "find_landmarks",
            "get_address_info", "enrich_location", "format_location",
            "get_status", "clear_cache",
            "suggest_km_reference", "get_highway_points_stats",
        } <= tool_names
