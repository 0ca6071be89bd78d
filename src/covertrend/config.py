"""Configuration management for covertrend.

A single frozen ``Config`` captures everything one analysis run needs:
the climate model and variable, the land cover categories, the date
range, the buffer and reduction parameters and where the two data
sources live.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import date
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from covertrend.exceptions import ConfigurationError

logger = logging.getLogger("covertrend")

_CONFIG_ENV_VAR = "COVERTREND_CONFIG"
_DEFAULT_CONFIG_PATH = Path("~/.covertrend/config.json")

# Visualisation defaults of the GDDP-CMIP6 near-surface air temperature layer (K).
_DEFAULT_PREVIEW_PALETTE: tuple[str, ...] = (
    "blue",
    "purple",
    "cyan",
    "green",
    "yellow",
    "red",
)


class Config(BaseModel):
    """Analysis configuration model.

    Immutable pydantic model. Each ``AnalysisTrigger`` and each
    ``run_analysis()`` call works from one snapshot, so later
    ``configure()`` calls never affect an analysis already in flight.

    Args:
        model: Climate model identifier used to filter the series.
        variable: Climate variable (band) name, e.g. ``"tas"``.
        scenario: Optional experiment filter (``"historical"``,
            ``"ssp245"``...). ``None`` keeps every scenario.
        categories: Land cover codes to report, in output order.
        start_date: First day of the analysed period.
        end_date: Last day of the analysed period.
        buffer_radius_m: Radius of the area of interest in metres.
        scale_m: Pixel size in metres used for the regional reductions.
        max_pixels: Pixel budget of a single regional reduction.
        percentile: Percentile to compute (0--100), or ``None`` to skip.
        max_workers: Size of the per-year worker pool.
        preview_min: Lower bound of the preview colour ramp.
        preview_max: Upper bound of the preview colour ramp.
        preview_palette: Colours of the preview colour ramp.
        landcover_source: Registered land cover source name.
        landcover_path: Path or GDAL URL of the land cover raster.
        climate_source: Registered climate series source name.
        climate_paths: NetCDF files making up the climate series.

    Example:
        >>> cfg = Config(model="MIROC6", categories=(10, 40))
        >>> cfg.variable
        'tas'
    """

    model_config = ConfigDict(frozen=True, validate_default=True, extra="forbid")

    model: str = "CanESM5"
    variable: str = "tas"
    scenario: str | None = None
    categories: tuple[int, ...] = (30, 40, 50)
    start_date: date = date(1990, 1, 1)
    end_date: date = date(2023, 12, 31)
    buffer_radius_m: float = 10_000.0
    scale_m: float = 100.0
    max_pixels: int = 1_000_000_000
    percentile: float | None = 95.0
    max_workers: int = 4
    preview_min: float = 240.0
    preview_max: float = 310.0
    preview_palette: tuple[str, ...] = _DEFAULT_PREVIEW_PALETTE
    landcover_source: str = "worldcover"
    landcover_path: str | None = None
    climate_source: str = "cmip6"
    climate_paths: tuple[Path, ...] = ()

    @field_validator("categories")
    @classmethod
    def _validate_categories(cls, v: tuple[int, ...]) -> tuple[int, ...]:
        """Ensure at least one category and no duplicates."""
        if not v:
            msg = "categories must contain at least one land cover code"
            raise ValueError(msg)
        if len(set(v)) != len(v):
            msg = "categories must not contain duplicates"
            raise ValueError(msg)
        return v

    @field_validator("buffer_radius_m", "scale_m")
    @classmethod
    def _validate_positive_length(cls, v: float) -> float:
        if v <= 0:
            msg = "lengths must be greater than 0"
            raise ValueError(msg)
        return v

    @field_validator("max_pixels", "max_workers")
    @classmethod
    def _validate_positive_count(cls, v: int) -> int:
        if v <= 0:
            msg = "max_pixels and max_workers must be greater than 0"
            raise ValueError(msg)
        return v

    @field_validator("percentile")
    @classmethod
    def _validate_percentile(cls, v: float | None) -> float | None:
        """Ensure the percentile lies in [0, 100]."""
        if v is not None and not 0.0 <= v <= 100.0:
            msg = "percentile must be between 0 and 100"
            raise ValueError(msg)
        return v

    @field_validator("climate_paths", mode="before")
    @classmethod
    def _expand_climate_paths(cls, v: Any) -> tuple[Path, ...]:
        """Expand ``~`` in climate file paths."""
        if isinstance(v, (str, Path)):
            v = [v]
        return tuple(Path(p).expanduser() for p in v)

    @property
    def vis_params(self) -> dict[str, Any]:
        """Visualisation parameters handed to the map-layer renderer."""
        return {
            "min": self.preview_min,
            "max": self.preview_max,
            "palette": list(self.preview_palette),
        }


_default_config = Config()


def configure(**kwargs: Any) -> None:
    """Set module-level default configuration.

    Creates a new ``Config`` from the current defaults merged with
    the provided keyword arguments.

    Args:
        **kwargs: Any ``Config`` field (e.g. ``model``, ``categories``).

    Raises:
        ValidationError: If a provided value fails pydantic validation.

    Example:
        >>> configure(model="MIROC6", percentile=None)
    """
    global _default_config  # noqa: PLW0603
    current = _default_config.model_dump()
    current.update(kwargs)
    _default_config = Config(**current)


def get_default_config() -> Config:
    """Return the current module-level default configuration."""
    return _default_config


def resolve_config_path(explicit: Path | None = None) -> Path | None:
    """Resolve the configuration file path.

    Resolution order:
        1. *explicit* argument (highest priority)
        2. ``COVERTREND_CONFIG`` environment variable
        3. Default ``~/.covertrend/config.json``

    Args:
        explicit: An explicit path given by the caller.

    Returns:
        Resolved ``Path``, or ``None`` if no file exists at the
        selected location.
    """
    if explicit is not None:
        path = Path(explicit).expanduser()
    elif os.environ.get(_CONFIG_ENV_VAR):
        path = Path(os.environ[_CONFIG_ENV_VAR]).expanduser()
    else:
        path = _DEFAULT_CONFIG_PATH.expanduser()

    if not path.exists():
        return None
    return path


def load_config(path: Path) -> Config:
    """Load a JSON configuration file on top of the current defaults.

    Args:
        path: Absolute or ``~``-expanded path to the JSON file.

    Returns:
        A validated ``Config``.

    Raises:
        ConfigurationError: If the file is missing, is not a JSON
            object, or contains invalid values.
    """
    resolved = Path(path).expanduser()
    try:
        text = resolved.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ConfigurationError(
            what="Cannot read configuration file",
            cause=f"File not found: {resolved}",
            fix=(
                f"Create {resolved} or set the {_CONFIG_ENV_VAR} "
                "environment variable"
            ),
        ) from None
    except PermissionError:
        raise ConfigurationError(
            what="Cannot read configuration file",
            cause=f"Permission denied: {resolved}",
            fix=f"Check file permissions on {resolved}",
        ) from None

    try:
        parsed: Any = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(
            what="Invalid configuration file format",
            cause=f"JSON parse error in {resolved}: {exc}",
            fix='Ensure the file contains a JSON object such as {"model": "CanESM5"}',
        ) from None

    if not isinstance(parsed, dict):
        raise ConfigurationError(
            what="Invalid configuration file format",
            cause=f"Expected a JSON object in {resolved}, got {type(parsed).__name__}",
            fix='Ensure the file contains a JSON object such as {"model": "CanESM5"}',
        )

    current = _default_config.model_dump()
    current.update(parsed)
    try:
        config = Config(**current)
    except ValidationError as exc:
        raise ConfigurationError(
            what="Invalid configuration values",
            cause=f"{resolved}: {exc.error_count()} validation error(s)",
            fix=str(exc),
        ) from None

    logger.debug("Loaded configuration from %s", resolved)
    return config
