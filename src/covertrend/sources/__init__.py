"""Source registry for land cover and climate data.

Provides ``get_landcover_source()`` and ``get_climate_source()`` to
instantiate configured sources by name. Supports ESA WorldCover
(``"worldcover"``) and NASA GDDP-CMIP6 (``"cmip6"``).
"""

from __future__ import annotations

from collections.abc import Callable

from covertrend.config import Config
from covertrend.exceptions import ConfigurationError
from covertrend.sources.base import (
    ClimateSeriesSource,
    LandCoverSource,
    LegendEntry,
)

_LANDCOVER_REGISTRY: dict[str, Callable[[Config], LandCoverSource]] = {}
_CLIMATE_REGISTRY: dict[str, Callable[[Config], ClimateSeriesSource]] = {}
_REGISTRY_INITIALIZED = False


def _worldcover_from_config(config: Config) -> LandCoverSource:
    from covertrend.sources.worldcover import WorldCoverSource

    if not config.landcover_path:
        raise ConfigurationError(
            what="No land cover raster configured",
            cause="Config.landcover_path is not set",
            fix="Set landcover_path to a WorldCover GeoTIFF, COG URL or VRT",
        )
    return WorldCoverSource(config.landcover_path)


def _cmip6_from_config(config: Config) -> ClimateSeriesSource:
    from covertrend.sources.cmip6 import open_cmip6

    return open_cmip6(config.climate_paths)


def _init_registry() -> None:
    """Populate the source registries on first use."""
    global _REGISTRY_INITIALIZED  # noqa: PLW0603
    if _REGISTRY_INITIALIZED:
        return

    _LANDCOVER_REGISTRY.update({"worldcover": _worldcover_from_config})
    _CLIMATE_REGISTRY.update({"cmip6": _cmip6_from_config})
    _REGISTRY_INITIALIZED = True


def get_registered_names() -> dict[str, list[str]]:
    """Return the sorted registered source names per kind.

    Example:
        >>> get_registered_names()
        {'landcover': ['worldcover'], 'climate': ['cmip6']}
    """
    _init_registry()
    return {
        "landcover": sorted(_LANDCOVER_REGISTRY),
        "climate": sorted(_CLIMATE_REGISTRY),
    }


def _unknown(kind: str, name: str, registry: dict[str, object]) -> ConfigurationError:
    valid = ", ".join(sorted(registry))
    return ConfigurationError(
        what=f"Unknown {kind} source: {name!r}",
        cause=f"Valid {kind} sources are: {valid}",
        fix=f"Use one of: {valid}",
    )


def get_landcover_source(name: str, config: Config) -> LandCoverSource:
    """Return a configured land cover source by name (case-insensitive).

    Raises:
        ConfigurationError: If *name* is not registered or the
            configuration lacks the raster location.
    """
    _init_registry()
    key = name.lower()
    if key not in _LANDCOVER_REGISTRY:
        raise _unknown("land cover", name, dict(_LANDCOVER_REGISTRY))
    return _LANDCOVER_REGISTRY[key](config)


def get_climate_source(name: str, config: Config) -> ClimateSeriesSource:
    """Return a configured climate series source by name (case-insensitive).

    Raises:
        ConfigurationError: If *name* is not registered or no files
            are configured.
        SourceUnavailableError: If a configured file cannot be opened.
    """
    _init_registry()
    key = name.lower()
    if key not in _CLIMATE_REGISTRY:
        raise _unknown("climate", name, dict(_CLIMATE_REGISTRY))
    return _CLIMATE_REGISTRY[key](config)


__all__ = [
    "ClimateSeriesSource",
    "LandCoverSource",
    "LegendEntry",
    "get_climate_source",
    "get_landcover_source",
    "get_registered_names",
]
