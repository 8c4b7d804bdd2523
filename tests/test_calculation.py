"""
Calculation Service Tests

Area figures in hectares for layer geometries, net area, overlaps and the
covered / uncovered split of a base geometry.

Author: Gleba Project
License: AGPL-3.0
"""

from unittest.mock import MagicMock

import pytest
from shapely.geometry import Point, box

from gleba.core.exceptions import GeometryEngineError
from gleba.geometry.engine import PlanarGeometryEngine
from gleba.models.catalog import LayerCategory, LayerId
from gleba.models.layer import Layer
from gleba.services.calculation import CalculationService


class FailingUnionEngine(PlanarGeometryEngine):
    def union(self, geometries, tolerance=None):
        raise GeometryEngineError("union", "simulated failure")


@pytest.fixture
def service(planar_engine, settings):
    return CalculationService(planar_engine, settings)


class TestArea:
    @pytest.mark.asyncio
    async def test_area_in_hectares(self, service, property_polygon):
        assert await service.calculate_area(property_polygon) == pytest.approx(100)

    @pytest.mark.asyncio
    async def test_missing_geometry_is_zero(self, service):
        assert await service.calculate_area(None) == 0.0

    @pytest.mark.asyncio
    async def test_engine_failure_is_zero(self, settings, property_polygon):
        engine = MagicMock()
        engine.area.side_effect = GeometryEngineError("area", "boom")
        service = CalculationService(engine, settings)
        assert await service.calculate_area(property_polygon) == 0.0


class TestNetArea:
    def test_subtracts_administrative_area(self, service):
        assert service.calculate_net_area(100, 8) == pytest.approx(92)

    def test_floors_at_zero(self, service):
        assert service.calculate_net_area(5, 8) == 0.0

    def test_no_property_area(self, service):
        assert service.calculate_net_area(0, 8) == 0.0
        assert service.calculate_net_area(None, 8) == 0.0

    def test_missing_administrative_area(self, service):
        assert service.calculate_net_area(100, None) == 100


class TestPercentage:
    def test_percentage(self, service):
        assert service.calculate_percentage(25, 200) == pytest.approx(12.5)

    def test_zero_total(self, service):
        assert service.calculate_percentage(25, 0) == 0.0

    def test_negative_value(self, service):
        assert service.calculate_percentage(-5, 100) == 0.0


class TestAdministrativeServiceArea:
    def test_sums_right_of_way_layers(self, service):
        layers = [
            Layer(LayerId.PROPERTY, "Property", LayerCategory.PROPERTY, area=100),
            Layer(LayerId.ROADWAY, "Road", LayerCategory.ADMINISTRATIVE, area=5),
            Layer(LayerId.RAILWAY, "Rail", LayerCategory.ADMINISTRATIVE, area=3),
            Layer(LayerId.POWERLINE, "Power", LayerCategory.ADMINISTRATIVE, area=1.5),
            Layer(LayerId.NATIVE, "Native", LayerCategory.SOIL_COVERAGE, area=40),
        ]
        assert service.administrative_service_area(layers) == pytest.approx(9.5)

    def test_no_layers(self, service):
        area = service.administrative_service_area([])
        assert area == 0
        assert isinstance(area, float)


class TestCoverageStatus:
    @pytest.mark.parametrize("percentage,status", [
        (0, "exception"),
        (94.99, "exception"),
        (95, "warning"),
        (99.9, "warning"),
        (100, "success"),
    ])
    def test_status(self, percentage, status):
        assert CalculationService.coverage_status(percentage) == status

    def test_complete_threshold(self, service):
        assert service.is_complete_coverage(99.9) is True
        assert service.is_complete_coverage(99.89) is False


class TestOverlap:
    @pytest.mark.asyncio
    async def test_overlap_area(self, service):
        result = await service.calculate_overlap(box(0, 0, 1000, 1000), box(500, 500, 1500, 1500))
        assert result.has_overlap is True
        assert result.area == pytest.approx(25)

    @pytest.mark.asyncio
    async def test_disjoint(self, service):
        result = await service.calculate_overlap(box(0, 0, 1, 1), box(5, 5, 6, 6))
        assert result.has_overlap is False
        assert result.geometry is None

    @pytest.mark.asyncio
    async def test_missing_geometry(self, service):
        result = await service.calculate_overlap(None, box(0, 0, 1, 1))
        assert result.has_overlap is False

    @pytest.mark.asyncio
    async def test_geometries_overlap_by_containment(self, service, property_polygon):
        assert await service.geometries_overlap(property_polygon, Point(10, 10)) is True
        assert await service.geometries_overlap(Point(10, 10), property_polygon) is True

    @pytest.mark.asyncio
    async def test_touching_geometries_do_not_overlap(self, service, property_polygon):
        assert await service.geometries_overlap(property_polygon, box(1000, 0, 1100, 1000)) is False


class TestCoverage:
    @pytest.mark.asyncio
    async def test_half_covered(self, service, property_polygon):
        result = await service.calculate_coverage(property_polygon, [box(0, 0, 500, 1000)])
        assert result.covered_area == pytest.approx(50)
        assert result.uncovered_area == pytest.approx(50)
        assert result.coverage_percentage == pytest.approx(50)

    @pytest.mark.asyncio
    async def test_covering_layer_larger_than_base(self, service, property_polygon):
        result = await service.calculate_coverage(property_polygon, [box(-100, -100, 1100, 1100)])
        assert result.covered_area == pytest.approx(100)
        assert result.uncovered_area == 0
        assert result.coverage_percentage == pytest.approx(100)

    @pytest.mark.asyncio
    async def test_overlapping_layers_are_not_double_counted(self, service, property_polygon):
        result = await service.calculate_coverage(
            property_polygon, [box(0, 0, 600, 1000), box(400, 0, 1000, 1000)]
        )
        assert result.covered_area == pytest.approx(100)

    @pytest.mark.asyncio
    async def test_no_coverage_geometries(self, service, property_polygon):
        result = await service.calculate_coverage(property_polygon, [])
        assert result.covered_area == 0
        assert result.uncovered_area == pytest.approx(100)
        assert result.coverage_geometry is None

    @pytest.mark.asyncio
    async def test_failed_union_counts_as_uncovered(self, settings, property_polygon):
        service = CalculationService(FailingUnionEngine(), settings)
        result = await service.calculate_coverage(
            property_polygon, [box(0, 0, 500, 1000), box(500, 0, 1000, 1000)]
        )
        assert result.covered_area == 0
        assert result.uncovered_area == pytest.approx(100)

    @pytest.mark.asyncio
    async def test_missing_base(self, service):
        result = await service.calculate_coverage(None, [box(0, 0, 1, 1)])
        assert result.covered_area == 0
        assert result.uncovered_area == 0
