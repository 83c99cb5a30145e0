"""Tests for the curated highway points km reference."""
import json
import logging
import math

import pytest
from pydantic import ValidationError

from geotag_enrich.core.geometry import EARTH_RADIUS_M
from geotag_enrich.core.highway_points import (
    HighwayPointIndex,
    load_highway_points,
    point_icon,
    point_label,
)
from geotag_enrich.models import Coordinate, HighwayPoint

M_PER_DEG = math.radians(1) * EARTH_RADIUS_M


def P(lon, km, br="101", lat=0.0, tipo="referencia", descricao="", municipio="Palhoça"):
    return HighwayPoint(
        br=br, km=km, lat=lat, lng=lon, tipo=tipo, descricao=descricao, municipio=municipio, uf="SC",
    )


def C(lat, lon):
    return Coordinate(lat=lat, lon=lon)


BRIDGE = P(0.0, 10, tipo="ponte", descricao="Ponte sobre o Rio Cubatão")
ACCESS = P(0.018, 12, tipo="acesso", descricao="Acesso Enseada")
OTHER_BR = P(0.0, 40, br="282", lat=0.02, tipo="prf", descricao="Posto PRF", municipio="São José")


@pytest.fixture
def index():
    return HighwayPointIndex([BRIDGE, ACCESS, OTHER_BR])


class TestHighwayPoint:
    def test_dataset_field_names(self):
        p = HighwayPoint.model_validate({
            "br": 101, "km": 205.5, "tipo": "prf", "descricao": "Posto PRF Palhoça",
            "sentido": "Norte", "municipio": "Palhoça", "uf": "SC", "lat": -27.6, "lng": -48.65,
        })
        assert p.br == "101"
        assert p.type == "prf"
        assert p.direction == "Norte"
        assert p.lon == -48.65

    @pytest.mark.parametrize("br", ["BR-101", "br-101 ", "101", 101])
    def test_br_normalized_to_number(self, br):
        assert HighwayPoint(br=br, km=1, lat=0, lon=0).br == "101"

    def test_invalid_coordinate_rejected(self):
        with pytest.raises(ValidationError):
            HighwayPoint(br="101", km=1, lat=95, lon=0)


class TestFindNearest:
    def test_closest_point_with_distance(self, index):
        point, dist = index.find_nearest(C(0, 0.002))
        assert point == BRIDGE
        assert dist == pytest.approx(0.002 * M_PER_DEG)

    def test_respects_max_distance(self, index):
        assert index.find_nearest(C(0, 0.04), max_distance=2000) is None
        assert index.find_nearest(C(0, 0.04), max_distance=5000)[0] == ACCESS

    def test_empty_index(self):
        assert HighwayPointIndex().find_nearest(C(0, 0)) is None


class TestFindSurrounding:
    def test_two_closest(self, index):
        found = index.find_surrounding(C(0.0, 0.006))
        assert [p for p, _ in found] == [BRIDGE, ACCESS]

    def test_filtered_by_highway(self, index):
        assert index.find_surrounding(C(0.02, 0.0), br="101")[0][0] == BRIDGE
        assert index.find_surrounding(C(0.02, 0.0), br="282") is None


class TestEstimateKm:
    def test_interpolated_between_two_points(self, index):
        est = index.estimate_km(C(0.0, 0.006))
        assert est.br == "101"
        assert est.estimated
        assert est.km == 10.7
        assert est.distance == round(0.006 * M_PER_DEG)
        assert est.precision == "high"
        assert est.nearest == BRIDGE
        assert est.references == [BRIDGE, ACCESS]

    def test_medium_precision(self):
        index = HighwayPointIndex([P(0.0, 10), P(0.05, 15)])
        est = index.estimate_km(C(0.0, -0.0135))
        assert est.estimated
        assert est.precision == "medium"

    def test_low_precision_interpolation(self):
        index = HighwayPointIndex([P(0.0, 10), P(0.05, 15)])
        est = index.estimate_km(C(0.0, -0.022))
        assert est.estimated
        assert est.precision == "low"

    def test_single_point_on_highway_is_taken_as_is(self, index):
        est = index.estimate_km(C(0.02, 0.0))
        assert est.br == "282"
        assert est.km == 40
        assert not est.estimated
        assert est.precision == "high"
        assert est.references == []

    def test_beyond_reliable_distance_uses_nearest(self):
        index = HighwayPointIndex([P(0.03, 30), P(0.04, 31)])
        est = index.estimate_km(C(0.0, 0.0))
        assert est.km == 30
        assert not est.estimated
        assert est.precision == "low"

    def test_nothing_within_reach(self, index):
        assert index.estimate_km(C(0.0, 0.1)) is None

    def test_custom_thresholds(self):
        index = HighwayPointIndex([P(0.0, 10), P(0.018, 12)], nearest_max=500)
        assert index.estimate_km(C(0.0, 0.006)) is None


class TestFormatting:
    def test_suggestion(self, index):
        est = index.estimate_km(C(0.0, 0.006))
        assert est.text == "BR-101, km ~10.7"
        assert est.details == "Near: Ponte sobre o Rio Cubatão"
        assert est.suggestion == "BR-101, km ~10.7 - Near: Ponte sobre o Rio Cubatão"

    def test_exact_without_description(self):
        est = HighwayPointIndex([P(0.0, 7)]).estimate_km(C(0.0, 0.0))
        assert est.text == "BR-101, km 7.0"
        assert est.suggestion == "BR-101, km 7.0"

    def test_icons_and_labels(self):
        assert point_icon(BRIDGE) == "🌉"
        assert point_label(OTHER_BR) == "Posto PRF"
        assert point_icon(P(0, 1, tipo="desconhecido")) == "📍"
        assert point_label(P(0, 1, tipo="desconhecido")) == "Referência"


class TestStats:
    def test_counts(self, index):
        assert index.stats() == {
            "total": 3,
            "by_br": {"101": 2, "282": 1},
            "by_type": {"ponte": 1, "acesso": 1, "prf": 1},
            "by_municipality": {"Palhoça": 2, "São José": 1},
        }
        assert index.available_brs() == ["101", "282"]
        assert index.available_types() == ["acesso", "ponte", "prf"]
        assert len(index) == 3


class TestLoadHighwayPoints:
    def test_loads_and_skips_invalid_records(self, tmp_path):
        path = tmp_path / "highway-points.json"
        path.write_text(json.dumps({"points": [
            {"br": "101", "km": 205.5, "tipo": "prf", "descricao": "Posto PRF",
             "municipio": "Palhoça", "uf": "SC", "lat": -27.6, "lng": -48.65},
            {"br": "101", "km": "n/a", "lat": -27.7, "lng": -48.66},
            {"br": 282, "km": 3, "lat": -27.6, "lng": -48.7},
        ]}), encoding="utf-8")
        points = load_highway_points(path)
        assert [(p.br, p.km) for p in points] == [("101", 205.5), ("282", 3.0)]

    def test_missing_file_gives_no_points(self, tmp_path, caplog):
        with caplog.at_level(logging.ERROR, logger="geotag_enrich.core.highway_points"):
            assert load_highway_points(tmp_path / "missing.json") == []
        assert any("Could not load highway points" in r.message for r in caplog.records)

    @pytest.mark.parametrize("content", ["not json", "[1, 2]", '{"points": {}}'])
    def test_unusable_file_gives_no_points(self, tmp_path, content):
        path = tmp_path / "points.json"
        path.write_text(content, encoding="utf-8")
        assert load_highway_points(path) == []

    def test_index_from_settings(self, tmp_path, settings):
        path = tmp_path / "points.json"
        path.write_text(json.dumps({"points": [{"br": "101", "km": 1, "lat": 0, "lng": 0}]}))
        index = HighwayPointIndex.from_settings(
            settings.model_copy(update={"highway_points_path": path, "points_nearest_max_m": 800}),
        )
        assert len(index) == 1
        assert index.nearest_max == 800

    def test_index_without_dataset(self, settings):
        assert len(HighwayPointIndex.from_settings(settings)) == 0
