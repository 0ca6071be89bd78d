"""NASA GDDP-CMIP6 climate series access via xarray.

The series is a set of members, one per opened dataset, each tagged
with the climate model and experiment it belongs to. Filtering is lazy:
only the time steps and the spatial window needed by ``mean()`` are
ever read from disk.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

import numpy as np
import numpy.typing as npt
import xarray as xr
from rasterio.transform import from_origin

from covertrend._types import BBox, GeoRaster
from covertrend.exceptions import ConfigurationError, SourceUnavailableError
from covertrend.sources.base import ClimateSeriesSource

logger = logging.getLogger(__name__)

# {variable}_{frequency}_{model}_{scenario}_{member}_{grid}_{year}[_v1.1].nc
_GDDP_FILENAME = re.compile(
    r"^(?P<variable>[^_]+)_(?P<frequency>[^_]+)_(?P<model>.+?)_"
    r"(?P<scenario>historical|ssp\d{3})_(?P<member>r\d+i\d+p\d+f\d+)_"
    r"(?P<grid>[^_]+)_(?P<year>\d{4})(?:_v[\d.]+)?\.nc$"
)

_LAT_NAMES = ("lat", "latitude", "y")
_LON_NAMES = ("lon", "longitude", "x")

_WGS84 = "EPSG:4326"
# Longitudes in 0..360, for windows crossing the antimeridian
_WGS84_0_360 = "+proj=longlat +datum=WGS84 +lon_wrap=180 +no_defs"

_READ_ERRORS = (OSError, RuntimeError, KeyError, ValueError, TypeError, AttributeError)


@dataclass
class ClimateMember:
    """One dataset of the series and the run it belongs to.

    Args:
        model: Climate model identifier (e.g. ``"CanESM5"``).
        scenario: Experiment identifier (e.g. ``"historical"``).
        dataset: Dataset with a ``time`` dimension and a regular
            latitude/longitude grid.
    """

    model: str
    scenario: str
    dataset: xr.Dataset


def _spatial_names(ds: xr.Dataset) -> tuple[str, str]:
    """Return the ``(lat, lon)`` coordinate names of *ds*."""
    lat = next((n for n in _LAT_NAMES if n in ds.coords), None)
    lon = next((n for n in _LON_NAMES if n in ds.coords), None)
    if lat is None or lon is None:
        raise ConfigurationError(
            what="Climate dataset has no recognisable spatial coordinates",
            cause=f"Coordinates present: {', '.join(map(str, ds.coords))}",
            fix="Provide datasets with lat/lon coordinates",
        )
    return lat, lon


def _normalize_longitudes(ds: xr.Dataset) -> xr.Dataset:
    """Convert 0..360 longitudes to -180..180, sorted ascending."""
    _, lon = _spatial_names(ds)
    if ds[lon].size and float(ds[lon].max()) > 180.0:
        ds = ds.assign_coords({lon: ((ds[lon] + 180.0) % 360.0) - 180.0})
        ds = ds.sortby(lon)
    return ds


def _resolution(values: npt.NDArray[np.floating[Any]]) -> float:
    if values.size < 2:
        raise ConfigurationError(
            what="Cannot infer the climate grid resolution",
            cause="A spatial coordinate has fewer than two values",
            fix="Provide datasets covering at least 2x2 grid cells",
        )
    return float(abs(values[1] - values[0]))


def _window(
    values: npt.NDArray[np.floating[Any]], low: float, high: float, pad: float
) -> slice | None:
    """Index slice of *values* inside ``[low - pad, high + pad]``."""
    inside = np.nonzero((values >= low - pad) & (values <= high + pad))[0]
    if inside.size == 0:
        return None
    return slice(int(inside.min()), int(inside.max()) + 1)


def _lon_window(
    lons: npt.NDArray[np.floating[Any]], west: float, east: float, pad: float
) -> tuple[slice | npt.NDArray[np.intp], npt.NDArray[np.float64], str] | None:
    """Longitude indexer, selected longitudes and CRS of a WGS84 window.

    A window with ``west > east`` crosses the antimeridian. It is read
    in a 0..360 frame so the selected columns stay contiguous.
    """
    if west <= east:
        window = _window(lons, west, east, pad)
        if window is None:
            return None
        return window, np.asarray(lons[window], dtype=np.float64), _WGS84

    wrapped = np.mod(lons, 360.0)
    order = np.argsort(wrapped, kind="stable")
    shifted = wrapped[order]
    inside = (shifted >= west % 360.0 - pad) & (shifted <= east % 360.0 + pad)
    if not inside.any():
        return None
    return order[inside], np.asarray(shifted[inside], dtype=np.float64), _WGS84_0_360


def _day_key(value: str) -> int:
    """``YYYYMMDD`` integer of an ISO date string.

    Not checked against the Gregorian calendar: ``2000-02-30`` is a
    valid day of a ``360_day`` series.
    """
    try:
        year, month, day = (int(part) for part in value[:10].split("-"))
    except ValueError as exc:
        raise ConfigurationError(
            what=f"Invalid date: {value!r}",
            cause=str(exc),
            fix="Use ISO dates (YYYY-MM-DD)",
        ) from exc
    return year * 10_000 + month * 100 + day


def _select_days(ds: xr.Dataset, first: int, last: int) -> xr.Dataset:
    """Keep time steps whose ``YYYYMMDD`` day lies within ``[first, last]``.

    Days are compared as year/month/day numbers rather than datetimes,
    so ISO bounds such as ``2000-12-31`` work on calendars where that
    day does not exist (``360_day``) or is skipped (``noleap``).
    """
    time = ds["time"].dt
    keys = (time.year * 10_000 + time.month * 100 + time.day).values
    inside = np.nonzero((keys >= first) & (keys <= last))[0]
    return ds.isel(time=inside)


class CMIP6Series(ClimateSeriesSource):
    """Daily climate rasters of one or more CMIP6 model runs.

    Args:
        members: Datasets making up the series.
        variable: Selected variable, or ``None`` before ``select()``.

    Example:
        >>> series = open_cmip6(sorted(Path("gddp").glob("tas_day_*.nc")))
        >>> year = series.filter_date("2000-01-01", "2000-12-31")
        >>> mean = year.filter_model("CanESM5").select("tas").mean()
    """

    _name: str = "cmip6"

    def __init__(
        self,
        members: Iterable[ClimateMember],
        variable: str | None = None,
    ) -> None:
        self._members = [
            replace(m, dataset=_normalize_longitudes(m.dataset)) for m in members
        ]
        self._variable = variable

    @property
    def members(self) -> list[ClimateMember]:
        """Members of the series."""
        return list(self._members)

    @property
    def variable(self) -> str | None:
        """Selected variable name."""
        return self._variable

    @property
    def models(self) -> list[str]:
        return sorted({m.model for m in self._members})

    def __len__(self) -> int:
        return sum(int(m.dataset.sizes.get("time", 0)) for m in self._members)

    def _derive(self, members: Iterable[ClimateMember], variable: str | None) -> CMIP6Series:
        derived = CMIP6Series.__new__(CMIP6Series)
        derived._members = list(members)
        derived._variable = variable
        return derived

    def filter_date(self, start: str, end: str) -> CMIP6Series:
        """Keep time steps dated within ``[start, end]``, both inclusive.

        Bounds are ISO dates compared by calendar day, so standard and
        cftime (``noleap``, ``360_day``) calendars behave alike.

        Raises:
            SourceUnavailableError: If a member's time axis cannot be read.
        """
        first, last = _day_key(start), _day_key(end)
        members: list[ClimateMember] = []
        for m in self._members:
            try:
                members.append(replace(m, dataset=_select_days(m.dataset, first, last)))
            except _READ_ERRORS as exc:
                raise SourceUnavailableError(
                    what=f"Cannot select dates of {m.model} ({m.scenario})",
                    cause=f"{type(exc).__name__}: {exc}",
                    fix="Check the climate files have a decodable time axis",
                ) from exc
        return self._derive(
            (m for m in members if m.dataset.sizes.get("time", 0) > 0),
            self._variable,
        )

    def filter_model(self, model: str) -> CMIP6Series:
        return self._derive(
            (m for m in self._members if m.model == model), self._variable
        )

    def filter_scenario(self, scenario: str) -> CMIP6Series:
        return self._derive(
            (m for m in self._members if m.scenario == scenario), self._variable
        )

    def select(self, variable: str) -> CMIP6Series:
        """Restrict the series to *variable*.

        Raises:
            ConfigurationError: If a member does not carry *variable*.
        """
        for m in self._members:
            if variable not in m.dataset.data_vars:
                available = ", ".join(map(str, m.dataset.data_vars))
                raise ConfigurationError(
                    what=f"Variable {variable!r} not found in {m.model} ({m.scenario})",
                    cause=f"Available variables: {available}",
                    fix="Set Config.variable to one of the available variables",
                )
        return self._derive(self._members, variable)

    def _resolve_variable(self) -> str:
        if self._variable is not None:
            return self._variable
        names = {str(v) for m in self._members for v in m.dataset.data_vars}
        if len(names) == 1:
            return names.pop()
        raise ConfigurationError(
            what="No climate variable selected",
            cause=f"The series carries several variables: {', '.join(sorted(names))}",
            fix="Call select(variable) before mean()",
        )

    def mean(self, bounds: BBox | None = None) -> GeoRaster | None:
        """Per-pixel arithmetic mean over every time step of every member.

        NaN (missing) values are skipped; a pixel with no valid value
        over the whole subset stays NaN.

        Args:
            bounds: Optional WGS84 window to read, padded by one grid
                cell so nearest-neighbour regridding has full coverage.
                A window with west > east crosses the antimeridian.

        Returns:
            The mean as a north-up WGS84 ``GeoRaster`` (longitudes in
            0..360 for antimeridian windows), or ``None`` if the series
            is empty or misses *bounds*.

        Raises:
            ConfigurationError: If members are on different grids.
            SourceUnavailableError: If reading from disk fails.
        """
        if len(self) == 0:
            return None
        variable = self._resolve_variable()

        total: npt.NDArray[np.float64] | None = None
        valid: npt.NDArray[np.int64] | None = None
        grid: tuple[npt.NDArray[Any], npt.NDArray[Any], float, float] | None = None
        crs = _WGS84

        for m in self._members:
            lat_name, lon_name = _spatial_names(m.dataset)
            da = m.dataset[variable].transpose("time", lat_name, lon_name)
            lats = np.asarray(da[lat_name].values, dtype=np.float64)
            lons = np.asarray(da[lon_name].values, dtype=np.float64)
            res_y = _resolution(lats)
            res_x = _resolution(lons)

            if bounds is not None:
                minx, miny, maxx, maxy = bounds
                lat_slice = _window(lats, miny, maxy, res_y)
                lon_window = _lon_window(lons, minx, maxx, res_x)
                if lat_slice is None or lon_window is None:
                    logger.debug(
                        "%s (%s) does not cover %s", m.model, m.scenario, bounds
                    )
                    return None
                lon_index, lons, crs = lon_window
                da = da.isel({lat_name: lat_slice, lon_name: lon_index})
                lats = lats[lat_slice]

            try:
                values = np.asarray(da.values, dtype=np.float64)
            except _READ_ERRORS as exc:
                raise SourceUnavailableError(
                    what=f"Cannot read {variable} for {m.model} ({m.scenario})",
                    cause=str(exc),
                    fix="Check the climate files are readable, then select the point again",
                ) from exc

            if grid is None:
                grid = (lats, lons, res_x, res_y)
                total = np.zeros(values.shape[1:], dtype=np.float64)
                valid = np.zeros(values.shape[1:], dtype=np.int64)
            elif not (
                np.array_equal(grid[0], lats) and np.array_equal(grid[1], lons)
            ):
                raise ConfigurationError(
                    what="Climate members are on different grids",
                    cause=f"{m.model} ({m.scenario}) does not match the first member",
                    fix="Regrid the climate files to a common grid",
                )

            finite = np.isfinite(values)
            total += np.where(finite, values, 0.0).sum(axis=0)
            valid += finite.sum(axis=0)

        if grid is None or total is None or valid is None:
            return None
        lats, lons, res_x, res_y = grid

        with np.errstate(divide="ignore", invalid="ignore"):
            data = np.where(valid > 0, total / valid, np.nan)

        # North-up: first row is the northernmost latitude
        if lats.size > 1 and lats[0] < lats[-1]:
            data = data[::-1, :]
        transform = from_origin(
            float(lons.min()) - res_x / 2.0,
            float(lats.max()) + res_y / 2.0,
            res_x,
            res_y,
        )
        return GeoRaster(data=data, transform=transform, crs=crs)

    def close(self) -> None:
        """Close every underlying dataset."""
        for m in self._members:
            m.dataset.close()

    def __repr__(self) -> str:
        return (
            f"CMIP6Series(members={len(self._members)}, rasters={len(self)}, "
            f"models={self.models}, variable={self._variable!r})"
        )


def parse_gddp_filename(path: str | Path) -> dict[str, str] | None:
    """Split a GDDP-CMIP6 file name into its parts.

    Example:
        >>> parse_gddp_filename("tas_day_CanESM5_ssp245_r1i1p1f1_gn_2030.nc")["model"]
        'CanESM5'
    """
    match = _GDDP_FILENAME.match(Path(path).name)
    return match.groupdict() if match else None


def open_cmip6(paths: Sequence[str | Path]) -> CMIP6Series:
    """Open GDDP-CMIP6 NetCDF files lazily as one series.

    The model and experiment of each file come from its GDDP file name,
    falling back to the CMIP ``source_id`` / ``experiment_id`` global
    attributes.

    Args:
        paths: NetCDF files to open.

    Returns:
        A ``CMIP6Series`` with one member per file.

    Raises:
        ConfigurationError: If no paths are given or a file cannot be
            attributed to a model.
        SourceUnavailableError: If a file cannot be opened.
    """
    if not paths:
        raise ConfigurationError(
            what="No climate files configured",
            cause="Config.climate_paths is empty",
            fix="Set climate_paths to the GDDP-CMIP6 NetCDF files to analyse",
        )

    members: list[ClimateMember] = []
    for path in paths:
        try:
            ds = xr.open_dataset(path)
        except (OSError, ValueError) as exc:
            raise SourceUnavailableError(
                what="Cannot open climate file",
                cause=f"{path}: {exc}",
                fix="Check the file exists and is a valid NetCDF file",
            ) from exc

        parts = parse_gddp_filename(path) or {}
        model = parts.get("model") or ds.attrs.get("source_id")
        scenario = parts.get("scenario") or ds.attrs.get("experiment_id", "")
        if not model:
            ds.close()
            raise ConfigurationError(
                what=f"Cannot determine the climate model of {path}",
                cause="File name does not follow the GDDP pattern and no source_id attribute",
                fix="Rename the file to {variable}_day_{model}_{scenario}_{member}_gn_{year}.nc",
            )
        members.append(ClimateMember(model=str(model), scenario=str(scenario), dataset=ds))

    series = CMIP6Series(members)
    logger.info(
        "Opened %d climate files (%d rasters, models: %s)",
        len(members),
        len(series),
        ", ".join(series.models),
    )
    return series
