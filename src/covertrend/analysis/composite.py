"""Analysis grid and annual composite generation.

Every statistic is computed on one regular grid per analysis: the AOI
bounds in its UTM zone, snapped to multiples of the reduction scale.
The yearly climate mean is regridded onto it with nearest-neighbour
resampling and the land cover codes, already sampled onto the same
grid, are overlaid as the categorical band.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import numpy as np
import numpy.typing as npt
from affine import Affine
from rasterio.enums import Resampling
from rasterio.features import geometry_mask
from rasterio.transform import from_origin
from rasterio.warp import reproject, transform_bounds

from covertrend._types import BBox, GeoRaster
from covertrend.analysis.temporal import year_time_range

if TYPE_CHECKING:
    from covertrend.aoi import AreaOfInterest
    from covertrend.sources.base import ClimateSeriesSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class AnalysisGrid:
    """Regular pixel grid every reduction of one analysis runs on.

    Args:
        crs: CRS of the grid (the AOI's UTM zone).
        transform: Affine transform of the upper-left corner.
        width: Number of columns.
        height: Number of rows.
        aoi_mask: ``True`` for pixels whose centre lies inside the AOI.
    """

    crs: str
    transform: Affine
    width: int
    height: int
    aoi_mask: npt.NDArray[np.bool_]

    @property
    def shape(self) -> tuple[int, int]:
        return (self.height, self.width)

    @property
    def scale(self) -> float:
        """Pixel size in CRS units."""
        return float(self.transform.a)

    @property
    def pixel_count(self) -> int:
        """Number of grid pixels inside the AOI."""
        return int(np.count_nonzero(self.aoi_mask))

    @property
    def bounds(self) -> BBox:
        left, top = self.transform * (0, 0)
        right, bottom = self.transform * (self.width, self.height)
        return (left, bottom, right, top)

    @property
    def bounds_wgs84(self) -> BBox:
        """Grid bounds in WGS84, used to crop source reads."""
        minx, miny, maxx, maxy = transform_bounds(self.crs, "EPSG:4326", *self.bounds)
        return (minx, miny, maxx, maxy)


@dataclass
class AnnualComposite:
    """Yearly climate mean with the land cover overlay, clipped to the AOI.

    Args:
        year: Calendar year of the composite.
        values: Mean of the climate variable; NaN outside the AOI and
            where no raster contributed.
        categories: Land cover codes; ``0`` outside the AOI or where
            the land cover source has no data.
        grid: Grid both bands are on.
        source_count: Number of dated rasters averaged into ``values``.
    """

    year: int
    values: npt.NDArray[np.float64]
    categories: npt.NDArray[np.integer[Any]]
    grid: AnalysisGrid
    source_count: int = 0

    @property
    def has_data(self) -> bool:
        """Whether any AOI pixel carries a climate value."""
        return bool(np.isfinite(self.values).any())


def build_analysis_grid(aoi: AreaOfInterest, scale_m: float) -> AnalysisGrid:
    """Build the grid covering *aoi* at *scale_m* metres per pixel.

    The grid origin is snapped to a multiple of the scale so that two
    analyses of nested discs share the same pixel lattice.

    Args:
        aoi: Area of interest (geometry in UTM metres).
        scale_m: Pixel size in metres.

    Returns:
        The ``AnalysisGrid`` with its AOI mask (pixel centres inside
        the disc).

    Example:
        >>> grid = build_analysis_grid(area_of_interest(10.0, 50.0, 1000), 100)
        >>> grid.scale
        100.0
    """
    minx, miny, maxx, maxy = aoi.bounds
    left = math.floor(minx / scale_m) * scale_m
    bottom = math.floor(miny / scale_m) * scale_m
    right = math.ceil(maxx / scale_m) * scale_m
    top = math.ceil(maxy / scale_m) * scale_m
    width = max(int(round((right - left) / scale_m)), 1)
    height = max(int(round((top - bottom) / scale_m)), 1)

    transform = from_origin(left, top, scale_m, scale_m)
    aoi_mask = geometry_mask(
        [aoi.geometry],
        out_shape=(height, width),
        transform=transform,
        invert=True,
    )
    grid = AnalysisGrid(
        crs=aoi.crs,
        transform=transform,
        width=width,
        height=height,
        aoi_mask=aoi_mask,
    )
    logger.debug(
        "Analysis grid %dx%d at %s m (%d AOI pixels, %s)",
        width,
        height,
        scale_m,
        grid.pixel_count,
        aoi.crs,
    )
    return grid


def regrid_nearest(raster: GeoRaster, grid: AnalysisGrid) -> npt.NDArray[np.float64]:
    """Nearest-neighbour regrid of a continuous raster onto *grid*.

    Pixels not covered by *raster* are NaN.
    """
    destination = np.full(grid.shape, np.nan, dtype=np.float64)
    reproject(
        source=np.asarray(raster.data, dtype=np.float64),
        destination=destination,
        src_transform=raster.transform,
        src_crs=raster.crs,
        src_nodata=np.nan,
        dst_transform=grid.transform,
        dst_crs=grid.crs,
        dst_nodata=np.nan,
        resampling=Resampling.nearest,
    )
    return destination


def build_annual_composite(
    year: int,
    grid: AnalysisGrid,
    climate: ClimateSeriesSource,
    categorical: npt.NDArray[np.integer[Any]],
    *,
    variable: str,
    model: str,
    scenario: str | None = None,
) -> AnnualComposite:
    """Composite one year of the climate series over the analysis grid.

    Filters the series to ``[year-01-01, year-12-31]`` and *model*
    (and *scenario* when given), averages *variable* per pixel and
    overlays the land cover band. A year without matching rasters still
    yields a composite, with an all-NaN climate band.

    Args:
        year: Calendar year to composite.
        grid: Analysis grid of the run.
        climate: Climate series source (read-only).
        categorical: Land cover codes already sampled onto *grid*.
        variable: Climate variable to average.
        model: Climate model identifier to keep.
        scenario: Optional experiment identifier to keep.

    Returns:
        The ``AnnualComposite`` for *year*.

    Raises:
        SourceUnavailableError: If the climate data cannot be read.
    """
    start, end = year_time_range(year)
    subset = climate.filter_date(start, end).filter_model(model)
    if scenario is not None:
        subset = subset.filter_scenario(scenario)
    subset = subset.select(variable)
    source_count = len(subset)

    values = np.full(grid.shape, np.nan, dtype=np.float64)
    if source_count == 0:
        logger.info("No %s %s rasters for %d; year reported as gaps", model, variable, year)
    else:
        mean = subset.mean(bounds=grid.bounds_wgs84)
        if mean is None:
            logger.info("%s %s rasters for %d do not cover the AOI", model, variable, year)
        else:
            values = regrid_nearest(mean, grid)

    values[~grid.aoi_mask] = np.nan
    codes = np.where(grid.aoi_mask, categorical, 0).astype(categorical.dtype)

    logger.debug("Composite %d built from %d rasters", year, source_count)
    return AnnualComposite(
        year=year,
        values=values,
        categories=codes,
        grid=grid,
        source_count=source_count,
    )
