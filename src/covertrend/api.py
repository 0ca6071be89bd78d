"""Top-level semantic API for covertrend.

``zonal_climate_series`` runs one analysis synchronously, for scripts
and notebooks. Interactive front-ends use ``AnalysisTrigger`` instead.

Example:
    >>> import covertrend as ct
    >>> ct.configure(landcover_path="worldcover.tif", climate_paths=["tas.nc"])
    >>> result = ct.zonal_climate_series(-114.07, 51.05)
    >>> result.chart_table().head()
"""

from __future__ import annotations

from typing import TYPE_CHECKING, overload

from covertrend._pipeline import run_analysis
from covertrend.aoi import AreaOfInterest, area_of_interest
from covertrend.config import get_default_config
from covertrend.sources import get_climate_source, get_landcover_source

if TYPE_CHECKING:
    from covertrend.config import Config
    from covertrend.results import AnalysisCompleted
    from covertrend.sources.base import ClimateSeriesSource, LandCoverSource


def _resolve_aoi(
    aoi_or_lon: AreaOfInterest | float,
    lat: float | None,
    config: Config,
) -> AreaOfInterest:
    """Resolve input to an AreaOfInterest.

    Raises:
        TypeError: If *aoi_or_lon* is a longitude but *lat* is missing.
    """
    if isinstance(aoi_or_lon, AreaOfInterest):
        return aoi_or_lon
    if lat is None:
        raise TypeError(
            "latitude is required when first argument is longitude. "
            "Use: zonal_climate_series(lon, lat) or zonal_climate_series(aoi)"
        )
    return area_of_interest(aoi_or_lon, lat, config.buffer_radius_m)


@overload
def zonal_climate_series(
    aoi_or_lon: AreaOfInterest,
    lat: None = None,
    *,
    config: Config | None = None,
    landcover: LandCoverSource | None = None,
    climate: ClimateSeriesSource | None = None,
) -> AnalysisCompleted: ...


@overload
def zonal_climate_series(
    aoi_or_lon: float,
    lat: float,
    *,
    config: Config | None = None,
    landcover: LandCoverSource | None = None,
    climate: ClimateSeriesSource | None = None,
) -> AnalysisCompleted: ...


def zonal_climate_series(
    aoi_or_lon: AreaOfInterest | float,
    lat: float | None = None,
    *,
    config: Config | None = None,
    landcover: LandCoverSource | None = None,
    climate: ClimateSeriesSource | None = None,
) -> AnalysisCompleted:
    """Compute yearly climate statistics per land cover class around a point.

    Sources not passed explicitly are built from the configuration via
    the source registry (``Config.landcover_source`` and
    ``Config.climate_source``) and closed before returning. Sources
    passed in stay open.

    Args:
        aoi_or_lon: An AreaOfInterest, or longitude in WGS84 degrees.
        lat: Latitude in WGS84 degrees (required if first arg is longitude).
        config: Optional configuration override.
        landcover: Optional land cover source override.
        climate: Optional climate series source override.

    Returns:
        AnalysisCompleted with the statistics table and preview raster.

    Raises:
        ConfigurationError: On invalid coordinates, categories or sources.
        SourceUnavailableError: If a source cannot be read.
    """
    cfg = config if config is not None else get_default_config()
    aoi = _resolve_aoi(aoi_or_lon, lat, cfg)
    owned: list[LandCoverSource | ClimateSeriesSource] = []
    try:
        if landcover is None:
            landcover = get_landcover_source(cfg.landcover_source, cfg)
            owned.append(landcover)
        if climate is None:
            climate = get_climate_source(cfg.climate_source, cfg)
            owned.append(climate)
        return run_analysis(aoi, cfg, landcover, climate)
    finally:
        for source in owned:
            source.close()
