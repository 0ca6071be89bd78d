"""covertrend: climate time series per land cover class around a point.

Example:
    >>> import covertrend as ct
    >>>
    >>> # One-off analysis with configured sources
    >>> ct.configure(landcover_path="worldcover.tif", climate_paths=["tas.nc"])
    >>> result = ct.zonal_climate_series(-114.07, 51.05)
    >>> result.to_dataframe()
    >>>
    >>> # Interactive: last selected point wins
    >>> trigger = ct.AnalysisTrigger(landcover, climate, on_completed=render)
    >>> trigger.select_point(-114.07, 51.05)
"""

from covertrend.__about__ import __version__
from covertrend.aoi import AreaOfInterest, area_of_interest
from covertrend.api import zonal_climate_series
from covertrend.config import Config, configure, load_config
from covertrend.exceptions import (
    AnalysisCancelledError,
    ConfigurationError,
    CovertrendError,
    SourceUnavailableError,
)
from covertrend.results import (
    AnalysisCompleted,
    AnalysisFailed,
    PreviewRaster,
    ZonalStatRecord,
)
from covertrend.trigger import AnalysisTrigger

__all__ = [
    # Version
    "__version__",
    # Semantic API
    "zonal_climate_series",
    "AnalysisTrigger",
    # Area of interest
    "AreaOfInterest",
    "area_of_interest",
    # Configuration
    "Config",
    "configure",
    "load_config",
    # Results
    "AnalysisCompleted",
    "AnalysisFailed",
    "PreviewRaster",
    "ZonalStatRecord",
    # Exceptions
    "AnalysisCancelledError",
    "ConfigurationError",
    "CovertrendError",
    "SourceUnavailableError",
]
