"""Tests for the MCP tool functions."""
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from geotag_enrich.core.highway_points import HighwayPointIndex
from geotag_enrich.core.models import Resolution
from geotag_enrich.models import (
    Address, Coordinate, HighwayInfo, HighwayPoint, KmEstimate, Landmark, LocationInfo,
)
from geotag_enrich.state import Services, state

ADDRESS = Address(formatted_address="Rua Felipe Schmidt, 10, Centro")
HIGHWAY = HighwayInfo(
    ref="BR-101", estimate=KmEstimate(km=205.3, method="interpolation", distance_from_line=12),
)
LANDMARKS = [Landmark(name="Ponte Hercílio Luz", icon="🌉", distance=40, source="overpass")]


def _get_tools():
    from geotag_enrich.tools.enrich import register_enrich_tools
    from geotag_enrich.tools.lookup import register_lookup_tools
    from geotag_enrich.tools.status import register_status_tools
    tools = {}
    mock_mcp = MagicMock()
    def capture(**kwargs):
        def decorator(fn):
            tools[fn.__name__] = fn
            return fn
        return decorator
    mock_mcp.tool = capture
    register_lookup_tools(mock_mcp)
    register_enrich_tools(mock_mcp)
    register_status_tools(mock_mcp)
    return tools


@pytest.fixture
def services(settings, monkeypatch):
    """Real service wiring with the three resolvers replaced by mocks."""
    s = Services.build(settings)
    s.address.reverse_geocode = AsyncMock(return_value=Resolution[Address].of(ADDRESS))
    s.highway.find_highway_info = AsyncMock(return_value=Resolution[HighwayInfo].of(HIGHWAY))
    s.landmarks.find_nearby_landmarks = AsyncMock(
        return_value=Resolution[list[Landmark]].of(LANDMARKS)
    )
    monkeypatch.setattr(state, "services", s)
    monkeypatch.setattr(state, "last_coordinate", None)
    monkeypatch.setattr(state, "last_location", None)
    return s


@pytest.fixture
def tools():
    return _get_tools()


def test_all_tools_registered(tools):
    assert set(tools) == {
        "fetch_address", "find_highway", "find_landmarks",
        "get_address_info", "enrich_location", "format_location",
        "get_status", "clear_cache",
        "suggest_km_reference", "get_highway_points_stats",
    }


class TestLookupTools:
    @pytest.mark.anyio
    async def test_fetch_address(self, tools, services):
        assert await tools["fetch_address"](lat=-27.5969, lon=-48.5495) == (
            "Address: Rua Felipe Schmidt, 10, Centro"
        )
        services.address.reverse_geocode.assert_awaited_once_with(
            Coordinate(lat=-27.5969, lon=-48.5495)
        )

    @pytest.mark.anyio
    async def test_invalid_coordinate_rejected_without_lookup(self, tools, services):
        result = await tools["fetch_address"](lat=123.0, lon=0.0)
        assert result.startswith("Error: Invalid coordinate")
        services.address.reverse_geocode.assert_not_awaited()

    @pytest.mark.anyio
    async def test_fetch_address_unreachable_vs_missing(self, tools, services):
        services.address.reverse_geocode.return_value = Resolution[Address].failure("HTTP 503")
        assert "unreachable" in await tools["fetch_address"](lat=0.0, lon=0.0)
        services.address.reverse_geocode.return_value = Resolution[Address].empty()
        assert await tools["fetch_address"](lat=0.0, lon=0.0) == "Address not available for this location."

    @pytest.mark.anyio
    async def test_find_highway(self, tools, services):
        result = await tools["find_highway"](lat=-27.5969, lon=-48.5495)
        assert result == "Highway: BR-101 - ~KM 205.3 (estimated) [method: interpolation, 12m]"

    @pytest.mark.anyio
    async def test_find_highway_not_on_highway(self, tools, services):
        services.highway.find_highway_info.return_value = Resolution[HighwayInfo].empty(HighwayInfo())
        assert await tools["find_highway"](lat=0.0, lon=0.0) == "Not on a known highway."
        services.highway.find_highway_info.return_value = Resolution[HighwayInfo].failure(
            "timed out", HighwayInfo()
        )
        assert "unreachable" in await tools["find_highway"](lat=0.0, lon=0.0)

    @pytest.mark.anyio
    async def test_find_landmarks(self, tools, services):
        result = await tools["find_landmarks"](lat=0.0, lon=0.0)
        lines = result.splitlines()
        assert lines[0] == "Found 1 landmark(s):"
        assert lines[1] == "🌉 Ponte Hercílio Luz (40m, other, via overpass)"

    @pytest.mark.anyio
    async def test_find_landmarks_none(self, tools, services):
        services.landmarks.find_nearby_landmarks.return_value = Resolution[list[Landmark]].empty([])
        assert await tools["find_landmarks"](lat=0.0, lon=0.0) == "No landmarks found nearby."
        services.landmarks.find_nearby_landmarks.return_value = Resolution[list[Landmark]].failure(
            "all down", []
        )
        assert "unreachable" in await tools["find_landmarks"](lat=0.0, lon=0.0)


POINTS = [
    HighwayPoint(br="101", km=10, lat=0.0, lng=0.0, tipo="ponte",
                 descricao="Ponte sobre o Rio Cubatão", municipio="Palhoça", uf="SC"),
    HighwayPoint(br="101", km=12, lat=0.0, lng=0.018, tipo="acesso",
                 descricao="Acesso Enseada", municipio="Palhoça", uf="SC"),
]


class TestHighwayPointTools:
    @pytest.mark.anyio
    async def test_suggest_km_reference(self, tools, services):
        services.highway_points = HighwayPointIndex(POINTS)
        result = await tools["suggest_km_reference"](lat=0.0, lon=0.006)
        assert result.splitlines() == [
            "🌉 BR-101, km ~10.7 - Near: Ponte sobre o Rio Cubatão",
            "Precision: high (667m to nearest reference)",
            "Reference: Ponte, Palhoça/SC",
        ]

    @pytest.mark.anyio
    async def test_suggest_km_reference_out_of_reach(self, tools, services):
        services.highway_points = HighwayPointIndex(POINTS)
        assert await tools["suggest_km_reference"](lat=0.0, lon=0.5) == "No highway point within 5 km."

    @pytest.mark.anyio
    async def test_suggest_km_reference_without_dataset(self, tools, services):
        result = await tools["suggest_km_reference"](lat=0.0, lon=0.0)
        assert result.startswith("Error: No highway points loaded")

    @pytest.mark.anyio
    async def test_suggest_km_reference_invalid_coordinate(self, tools, services):
        services.highway_points = HighwayPointIndex(POINTS)
        assert (await tools["suggest_km_reference"](lat=0.0, lon=200.0)).startswith("Error:")

    def test_highway_points_stats(self, tools, services):
        services.highway_points = HighwayPointIndex(POINTS)
        stats = json.loads(tools["get_highway_points_stats"]())
        assert stats["total"] == 2
        assert stats["by_br"] == {"101": 2}
        assert stats["types"] == ["acesso", "ponte"]

    def test_status_lists_loaded_highways(self, tools, services):
        services.highway_points = HighwayPointIndex(POINTS)
        status = json.loads(tools["get_status"]())
        assert status["highway_points"] == {"total": 2, "highways": ["101"]}


class TestEnrichTools:
    @pytest.mark.anyio
    async def test_enrich_location_returns_payload_and_remembers(self, tools, services):
        result = await tools["enrich_location"](lat=-27.5969, lon=-48.5495)
        payload = json.loads(result)
        assert LocationInfo.model_validate(payload) == LocationInfo(
            address=ADDRESS, highway=HIGHWAY, landmarks=LANDMARKS,
        )
        assert state.last_coordinate == Coordinate(lat=-27.5969, lon=-48.5495)
        assert state.last_location.highway.ref == "BR-101"

    @pytest.mark.anyio
    async def test_get_address_info_has_no_landmarks(self, tools, services):
        payload = json.loads(await tools["get_address_info"](lat=-27.5969, lon=-48.5495))
        assert set(payload) == {"address", "highway"}
        assert payload["highway"]["ref"] == "BR-101"
        services.landmarks.find_nearby_landmarks.assert_not_awaited()

    @pytest.mark.anyio
    async def test_format_location(self, tools, services):
        text = await tools["format_location"](lat=-27.5969, lon=-48.5495)
        assert text.splitlines()[0] == "📌 Address: Rua Felipe Schmidt, 10, Centro"
        assert "  🌉 Ponte Hercílio Luz (40m)" in text.splitlines()

    @pytest.mark.anyio
    async def test_format_location_nothing_found(self, tools, services):
        services.address.reverse_geocode.return_value = Resolution[Address].empty()
        services.highway.find_highway_info.return_value = Resolution[HighwayInfo].empty(HighwayInfo())
        services.landmarks.find_nearby_landmarks.return_value = Resolution[list[Landmark]].empty([])
        text = await tools["format_location"](lat=0.0, lon=0.0)
        assert text == "No additional information found for this location."


class TestStatusTools:
    def test_get_status(self, tools, services):
        status = json.loads(tools["get_status"]())
        assert status["cache"]["max_entries"] == 100
        assert status["providers"]["overpass"] == ["https://overpass.test/api/interpreter"]
        assert status["last_enrichment"] is None

    def test_clear_cache(self, tools, services):
        c = Coordinate(lat=1.0, lon=1.0)
        services.cache.set("address", c, "x")
        services.cache.set("pois", c, "y")
        assert tools["clear_cache"](category="address") == "Cache cleared: address"
        assert services.cache.get("address", c) is None
        assert services.cache.get("pois", c) == "y"
        assert tools["clear_cache"]() == "Cache cleared: all categories"
        assert services.cache.get("pois", c) is None

    def test_clear_cache_unknown_category(self, tools, services):
        assert tools["clear_cache"](category="weather").startswith("Error: Unknown cache category")
