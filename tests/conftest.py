"""Shared test fixtures for the covertrend test suite.

The synthetic data is centred on (10.0E, 50.0N), inside UTM zone 32N:
a WorldCover raster with grassland (30) west of 10.0E and cropland (40)
east of it, and daily CMIP6 ``tas`` for 2000-2002 whose value is
``280 + (year - 2000)`` kelvin everywhere.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import numpy as np
import pandas as pd
import pytest
import rasterio
import xarray as xr
from rasterio.transform import from_origin

from covertrend.aoi import AreaOfInterest, area_of_interest
from covertrend.config import Config
from covertrend.sources.cmip6 import ClimateMember, CMIP6Series
from covertrend.sources.worldcover import WorldCoverSource

TEST_LON = 10.0
TEST_LAT = 50.0
TEST_RADIUS_M = 2_000.0


@pytest.fixture(autouse=True)
def _reset_config(monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset module-level config before each test."""
    import covertrend.config as _cfg

    monkeypatch.setattr(_cfg, "_default_config", Config())


@pytest.fixture
def test_config() -> Config:
    """Small, fast configuration matching the synthetic data."""
    return Config(
        model="CanESM5",
        variable="tas",
        categories=(30, 40, 50),
        start_date="2000-01-01",
        end_date="2002-12-31",
        buffer_radius_m=TEST_RADIUS_M,
        scale_m=100.0,
        percentile=95.0,
        max_workers=2,
    )


@pytest.fixture
def test_aoi() -> AreaOfInterest:
    return area_of_interest(TEST_LON, TEST_LAT, TEST_RADIUS_M)


@pytest.fixture
def worldcover_path(tmp_path: Path) -> Path:
    """GeoTIFF in EPSG:4326: code 30 west of 10.0E, code 40 east of it."""
    res = 0.001
    width = height = 200
    data = np.full((height, width), 30, dtype=np.uint8)
    data[:, width // 2 :] = 40

    path = tmp_path / "worldcover.tif"
    with rasterio.open(
        path,
        "w",
        driver="GTiff",
        height=height,
        width=width,
        count=1,
        dtype="uint8",
        crs="EPSG:4326",
        transform=from_origin(TEST_LON - 0.1, TEST_LAT + 0.1, res, res),
        nodata=0,
    ) as dst:
        dst.write(data, 1)
    return path


@pytest.fixture
def landcover(worldcover_path: Path) -> WorldCoverSource:
    return WorldCoverSource(worldcover_path)


@pytest.fixture
def make_climate_dataset() -> Callable[..., xr.Dataset]:
    """Factory for daily ``tas`` datasets on a 0.25 degree grid.

    Non-standard calendars (``noleap``, ``360_day``) use cftime dates.
    """

    def _make(
        start: str = "2000-01-01",
        end: str = "2002-12-31",
        base: float = 280.0,
        lons: np.ndarray | None = None,
        variable: str = "tas",
        lats: np.ndarray | None = None,
        calendar: str = "standard",
    ) -> xr.Dataset:
        if calendar == "standard":
            times = pd.date_range(start, end, freq="D")
        else:
            times = xr.date_range(start, end, freq="D", calendar=calendar, use_cftime=True)
        if lats is None:
            lats = np.arange(49.0, 51.01, 0.25)
        if lons is None:
            lons = np.arange(9.0, 11.01, 0.25)
        offsets = np.asarray(times.year, dtype=np.float64) - 2000.0
        values = base + offsets[:, None, None] + np.zeros((1, lats.size, lons.size))
        return xr.Dataset(
            {variable: (("time", "lat", "lon"), values)},
            coords={"time": times, "lat": lats, "lon": lons},
        )

    return _make


@pytest.fixture
def climate(make_climate_dataset: Callable[..., xr.Dataset]) -> CMIP6Series:
    """CanESM5 historical at 280 K (+1 K/yr) and MIROC6 at 300 K."""
    return CMIP6Series(
        [
            ClimateMember("CanESM5", "historical", make_climate_dataset()),
            ClimateMember("MIROC6", "historical", make_climate_dataset(base=300.0)),
        ]
    )
