"""Tests for the analysis grid and annual composite generation."""

from __future__ import annotations

import math
from collections.abc import Callable

import numpy as np
import pytest
import xarray as xr
from rasterio.transform import from_origin

from covertrend._types import GeoRaster
from covertrend.analysis.composite import (
    build_analysis_grid,
    build_annual_composite,
    regrid_nearest,
)
from covertrend.aoi import AreaOfInterest, area_of_interest
from covertrend.sources.cmip6 import ClimateMember, CMIP6Series
from covertrend.sources.worldcover import WorldCoverSource


class TestBuildAnalysisGrid:
    """Tests for build_analysis_grid()."""

    @pytest.mark.unit
    def test_grid_in_aoi_utm_zone(self, test_aoi: AreaOfInterest) -> None:
        grid = build_analysis_grid(test_aoi, 100.0)
        assert grid.crs == "EPSG:32632"
        assert grid.scale == 100.0

    @pytest.mark.unit
    def test_origin_snapped_to_scale(self, test_aoi: AreaOfInterest) -> None:
        grid = build_analysis_grid(test_aoi, 100.0)
        assert grid.transform.c % 100.0 == pytest.approx(0.0)
        assert grid.transform.f % 100.0 == pytest.approx(0.0)

    @pytest.mark.unit
    def test_grid_covers_aoi(self, test_aoi: AreaOfInterest) -> None:
        grid = build_analysis_grid(test_aoi, 100.0)
        left, bottom, right, top = grid.bounds
        minx, miny, maxx, maxy = test_aoi.bounds
        assert left <= minx and bottom <= miny
        assert right >= maxx and top >= maxy

    @pytest.mark.unit
    def test_mask_matches_disc_area(self, test_aoi: AreaOfInterest) -> None:
        grid = build_analysis_grid(test_aoi, 100.0)
        expected = math.pi * (test_aoi.radius_m / 100.0) ** 2
        assert grid.pixel_count == pytest.approx(expected, rel=0.03)
        assert grid.aoi_mask.shape == grid.shape

    @pytest.mark.unit
    def test_wgs84_bounds_contain_centre(self, test_aoi: AreaOfInterest) -> None:
        minx, miny, maxx, maxy = build_analysis_grid(test_aoi, 100.0).bounds_wgs84
        assert minx < test_aoi.lon < maxx
        assert miny < test_aoi.lat < maxy


class TestRegridNearest:
    @pytest.mark.unit
    def test_uniform_raster(self, test_aoi: AreaOfInterest) -> None:
        grid = build_analysis_grid(test_aoi, 100.0)
        raster = GeoRaster(
            data=np.full((8, 8), 290.0),
            transform=from_origin(9.0, 51.0, 0.25, 0.25),
            crs="EPSG:4326",
        )
        regridded = regrid_nearest(raster, grid)
        assert regridded.shape == grid.shape
        np.testing.assert_allclose(regridded, 290.0)

    @pytest.mark.unit
    def test_uncovered_pixels_are_nan(self, test_aoi: AreaOfInterest) -> None:
        grid = build_analysis_grid(test_aoi, 100.0)
        raster = GeoRaster(
            data=np.full((2, 2), 290.0),
            transform=from_origin(100.0, 10.0, 0.25, 0.25),
            crs="EPSG:4326",
        )
        assert np.isnan(regrid_nearest(raster, grid)).all()


class TestBuildAnnualComposite:
    """Tests for build_annual_composite()."""

    @pytest.mark.unit
    def test_year_mean_inside_aoi(
        self,
        test_aoi: AreaOfInterest,
        climate: CMIP6Series,
        landcover: WorldCoverSource,
    ) -> None:
        grid = build_analysis_grid(test_aoi, 100.0)
        categorical = landcover.sample(grid)
        composite = build_annual_composite(
            2001, grid, climate, categorical, variable="tas", model="CanESM5"
        )

        assert composite.year == 2001
        assert composite.source_count == 365
        assert composite.has_data
        np.testing.assert_allclose(composite.values[grid.aoi_mask], 281.0)
        assert np.isnan(composite.values[~grid.aoi_mask]).all()

    @pytest.mark.unit
    def test_categorical_band_clipped(
        self,
        test_aoi: AreaOfInterest,
        climate: CMIP6Series,
        landcover: WorldCoverSource,
    ) -> None:
        grid = build_analysis_grid(test_aoi, 100.0)
        composite = build_annual_composite(
            2000, grid, climate, landcover.sample(grid), variable="tas", model="CanESM5"
        )
        assert set(np.unique(composite.categories[grid.aoi_mask])) == {30, 40}
        assert (composite.categories[~grid.aoi_mask] == 0).all()

    @pytest.mark.unit
    def test_model_filter(
        self,
        test_aoi: AreaOfInterest,
        climate: CMIP6Series,
        landcover: WorldCoverSource,
    ) -> None:
        grid = build_analysis_grid(test_aoi, 100.0)
        composite = build_annual_composite(
            2000, grid, climate, landcover.sample(grid), variable="tas", model="MIROC6"
        )
        np.testing.assert_allclose(composite.values[grid.aoi_mask], 300.0)

    @pytest.mark.unit
    def test_leap_year_source_count(
        self,
        test_aoi: AreaOfInterest,
        climate: CMIP6Series,
        landcover: WorldCoverSource,
    ) -> None:
        grid = build_analysis_grid(test_aoi, 100.0)
        composite = build_annual_composite(
            2000, grid, climate, landcover.sample(grid), variable="tas", model="CanESM5"
        )
        assert composite.source_count == 366

    @pytest.mark.unit
    def test_year_without_rasters_is_empty(
        self,
        test_aoi: AreaOfInterest,
        climate: CMIP6Series,
        landcover: WorldCoverSource,
    ) -> None:
        grid = build_analysis_grid(test_aoi, 100.0)
        composite = build_annual_composite(
            2010, grid, climate, landcover.sample(grid), variable="tas", model="CanESM5"
        )
        assert composite.source_count == 0
        assert not composite.has_data

    @pytest.mark.unit
    def test_unknown_scenario_is_empty(
        self,
        test_aoi: AreaOfInterest,
        climate: CMIP6Series,
        landcover: WorldCoverSource,
    ) -> None:
        grid = build_analysis_grid(test_aoi, 100.0)
        composite = build_annual_composite(
            2000,
            grid,
            climate,
            landcover.sample(grid),
            variable="tas",
            model="CanESM5",
            scenario="ssp585",
        )
        assert composite.source_count == 0
        assert not composite.has_data

    @pytest.mark.unit
    def test_series_missing_aoi(
        self,
        test_aoi: AreaOfInterest,
        landcover: WorldCoverSource,
        make_climate_dataset: Callable[..., xr.Dataset],
    ) -> None:
        far_away = CMIP6Series(
            [
                ClimateMember(
                    "CanESM5",
                    "historical",
                    make_climate_dataset(lons=np.arange(100.0, 102.01, 0.25)),
                )
            ]
        )
        grid = build_analysis_grid(test_aoi, 100.0)
        composite = build_annual_composite(
            2000, grid, far_away, landcover.sample(grid), variable="tas", model="CanESM5"
        )
        assert composite.source_count == 366
        assert not composite.has_data

    @pytest.mark.unit
    def test_aoi_across_antimeridian(
        self, make_climate_dataset: Callable[..., xr.Dataset]
    ) -> None:
        series = CMIP6Series(
            [
                ClimateMember(
                    "CanESM5",
                    "historical",
                    make_climate_dataset(
                        end="2000-12-31",
                        lats=np.arange(-1.0, 1.01, 0.25),
                        lons=np.arange(178.0, 182.01, 0.25),
                    ),
                )
            ]
        )
        grid = build_analysis_grid(area_of_interest(179.99, 0.0, 5_000), 100.0)
        west, _, east, _ = grid.bounds_wgs84
        assert west > east

        categorical = np.full(grid.shape, 30, dtype=np.uint8)
        composite = build_annual_composite(
            2000, grid, series, categorical, variable="tas", model="CanESM5"
        )
        assert composite.has_data
        np.testing.assert_allclose(composite.values[grid.aoi_mask], 280.0)
