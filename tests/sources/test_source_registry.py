"""Tests for the source registry."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest
import xarray as xr

from covertrend.config import Config
from covertrend.exceptions import ConfigurationError
from covertrend.sources import (
    get_climate_source,
    get_landcover_source,
    get_registered_names,
)
from covertrend.sources.cmip6 import CMIP6Series
from covertrend.sources.worldcover import WorldCoverSource


@pytest.fixture(autouse=True)
def _reset_registry(monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset source registries before each test."""
    import covertrend.sources as _src

    monkeypatch.setattr(_src, "_REGISTRY_INITIALIZED", False)
    monkeypatch.setattr(_src, "_LANDCOVER_REGISTRY", {})
    monkeypatch.setattr(_src, "_CLIMATE_REGISTRY", {})


@pytest.mark.unit
class TestRegisteredNames:
    def test_names(self) -> None:
        assert get_registered_names() == {
            "landcover": ["worldcover"],
            "climate": ["cmip6"],
        }


@pytest.mark.unit
class TestLandCoverRegistry:
    def test_worldcover(self, worldcover_path: Path) -> None:
        source = get_landcover_source(
            "worldcover", Config(landcover_path=str(worldcover_path))
        )
        assert isinstance(source, WorldCoverSource)
        assert source.path == str(worldcover_path)

    def test_case_insensitive(self, worldcover_path: Path) -> None:
        source = get_landcover_source(
            "WorldCover", Config(landcover_path=str(worldcover_path))
        )
        assert isinstance(source, WorldCoverSource)

    def test_path_required(self) -> None:
        with pytest.raises(ConfigurationError, match="No land cover raster"):
            get_landcover_source("worldcover", Config())

    def test_unknown_name(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown land cover source") as info:
            get_landcover_source("corine", Config())
        assert "worldcover" in info.value.fix


@pytest.mark.unit
class TestClimateRegistry:
    def test_cmip6(
        self,
        tmp_path: Path,
        make_climate_dataset: Callable[..., xr.Dataset],
    ) -> None:
        path = tmp_path / "tas_day_CanESM5_historical_r1i1p1f1_gn_2000.nc"
        make_climate_dataset(end="2000-01-05").to_netcdf(path)

        source = get_climate_source("cmip6", Config(climate_paths=[path]))
        try:
            assert isinstance(source, CMIP6Series)
            assert source.models == ["CanESM5"]
        finally:
            source.close()

    def test_paths_required(self) -> None:
        with pytest.raises(ConfigurationError, match="No climate files"):
            get_climate_source("cmip6", Config())

    def test_unknown_name(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown climate source"):
            get_climate_source("era5", Config())
