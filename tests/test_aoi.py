"""Tests for the area-of-interest model and UTM zone selection."""

from __future__ import annotations

import math
import warnings

import pytest
from shapely.geometry import Point

from covertrend.aoi import (
    AreaOfInterest,
    _compute_utm_epsg,
    _compute_utm_zone,
    area_of_interest,
)
from covertrend.exceptions import ConfigurationError


@pytest.mark.unit
class TestUtmZone:
    @pytest.mark.parametrize(
        ("lat", "lon", "zone"),
        [
            (50.0, 10.0, 32),
            (51.05, -114.07, 11),
            (0.0, -180.0, 1),
            (0.0, 180.0, 60),
            (60.0, 5.0, 32),  # Norway
            (78.0, 15.0, 33),  # Svalbard
        ],
    )
    def test_zone(self, lat: float, lon: float, zone: int) -> None:
        assert _compute_utm_zone(lat, lon) == zone

    def test_southern_hemisphere_epsg(self) -> None:
        assert _compute_utm_epsg(-33.9, 18.4) == 32734

    def test_northern_hemisphere_epsg(self) -> None:
        assert _compute_utm_epsg(50.0, 10.0) == 32632


@pytest.mark.unit
class TestAreaOfInterestFactory:
    def test_valid_point(self) -> None:
        aoi = area_of_interest(10.0, 50.0, 2_000)
        assert isinstance(aoi, AreaOfInterest)
        assert aoi.crs == "EPSG:32632"
        assert aoi.radius_m == 2_000.0

    @pytest.mark.parametrize(("lon", "lat"), [(0.0, 91.0), (0.0, -90.5), (181.0, 0.0)])
    def test_invalid_coordinates(self, lon: float, lat: float) -> None:
        with pytest.raises(ConfigurationError, match="Invalid"):
            area_of_interest(lon, lat, 1_000)

    @pytest.mark.parametrize("radius", [0, -5.0])
    def test_invalid_radius(self, radius: float) -> None:
        with pytest.raises(ConfigurationError, match="buffer radius"):
            area_of_interest(10.0, 50.0, radius)


@pytest.mark.unit
class TestAreaOfInterestGeometry:
    def test_disc_area_close_to_circle(self) -> None:
        aoi = area_of_interest(10.0, 50.0, 2_000)
        expected = math.pi * 2_000**2
        assert aoi.geometry.area == pytest.approx(expected, rel=1e-3)

    def test_disc_contains_centre(self) -> None:
        aoi = area_of_interest(10.0, 50.0, 2_000)
        minx, miny, maxx, maxy = aoi.bounds_wgs84
        assert minx < 10.0 < maxx
        assert miny < 50.0 < maxy

    def test_wgs84_disc_built_without_warnings(self) -> None:
        with warnings.catch_warnings():
            warnings.simplefilter("error", DeprecationWarning)
            aoi = area_of_interest(10.0, 50.0, 2_000)
        disc = aoi.geometry_wgs84
        assert disc.is_valid
        assert len(disc.exterior.coords) == len(aoi.geometry.exterior.coords)
        assert disc.contains(Point(10.0, 50.0))

    def test_utm_bounds_span_diameter(self) -> None:
        minx, miny, maxx, maxy = area_of_interest(10.0, 50.0, 2_000).bounds
        assert maxx - minx == pytest.approx(4_000, rel=1e-6)
        assert maxy - miny == pytest.approx(4_000, rel=1e-6)

    def test_equality_and_hash(self) -> None:
        a = area_of_interest(10.0, 50.0, 2_000)
        b = area_of_interest(10.0, 50.0, 2_000)
        assert a == b
        assert hash(a) == hash(b)
        assert a != area_of_interest(10.0, 50.0, 3_000)

    def test_repr(self) -> None:
        assert "EPSG:32632" in repr(area_of_interest(10.0, 50.0, 2_000))
