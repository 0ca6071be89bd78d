"""ESA WorldCover land cover access via rasterio.

Reads any GDAL-readable raster holding WorldCover codes: a local
GeoTIFF, a Cloud Optimized GeoTIFF over HTTP (``/vsicurl/``), or a VRT
mosaic of the 3x3 degree WorldCover tiles. Only the window needed for
the analysis grid is read.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

import numpy as np
import numpy.typing as npt
import rasterio
from rasterio.enums import Resampling
from rasterio.errors import RasterioError
from rasterio.warp import reproject

from covertrend.exceptions import SourceUnavailableError
from covertrend.sources.base import LandCoverSource, LegendEntry

if TYPE_CHECKING:
    from covertrend.analysis.composite import AnalysisGrid

logger = logging.getLogger(__name__)

# ESA WorldCover v200 classes ("Map" band) and official palette.
WORLDCOVER_LEGEND: tuple[LegendEntry, ...] = (
    LegendEntry(10, "Tree cover", "#006400"),
    LegendEntry(20, "Shrubland", "#ffbb22"),
    LegendEntry(30, "Grassland", "#ffff4c"),
    LegendEntry(40, "Cropland", "#f096ff"),
    LegendEntry(50, "Built-up", "#fa0000"),
    LegendEntry(60, "Bare / sparse vegetation", "#b4b4b4"),
    LegendEntry(70, "Snow and ice", "#f0f0f0"),
    LegendEntry(80, "Permanent water bodies", "#0064c8"),
    LegendEntry(90, "Herbaceous wetland", "#0096a0"),
    LegendEntry(95, "Mangroves", "#00cf75"),
    LegendEntry(100, "Moss and lichen", "#fae6a0"),
)

_NODATA = 0


class WorldCoverSource(LandCoverSource):
    """Categorical land cover raster with the WorldCover legend.

    Args:
        path: File path or GDAL URL of the raster.
        legend: Class legend; defaults to WorldCover v200.
        band: 1-based band index holding the class codes.

    Example:
        >>> source = WorldCoverSource("ESA_WorldCover_10m_2021_v200_Map.vrt")
        >>> source.label(50)
        'Built-up'
    """

    _name: str = "worldcover"

    def __init__(
        self,
        path: str | Path,
        legend: Sequence[LegendEntry] = WORLDCOVER_LEGEND,
        band: int = 1,
    ) -> None:
        self._path = str(path)
        self._legend = tuple(sorted(legend, key=lambda entry: entry.code))
        self._band = band

    @property
    def path(self) -> str:
        """Location of the underlying raster."""
        return self._path

    def legend(self) -> list[LegendEntry]:
        """Return the WorldCover legend in code order."""
        return list(self._legend)

    def sample(self, grid: AnalysisGrid) -> npt.NDArray[np.integer[Any]]:
        """Nearest-neighbour resample of the class band onto *grid*.

        Args:
            grid: Target analysis grid.

        Returns:
            Array of class codes, ``0`` where the source has no data.

        Raises:
            SourceUnavailableError: If the raster cannot be opened or read.
        """
        try:
            with rasterio.open(self._path) as src:
                dtype = np.dtype(src.dtypes[self._band - 1])
                destination = np.full((grid.height, grid.width), _NODATA, dtype=dtype)
                src_nodata = src.nodata if src.nodata is not None else _NODATA
                reproject(
                    source=rasterio.band(src, self._band),
                    destination=destination,
                    src_nodata=src_nodata,
                    dst_transform=grid.transform,
                    dst_crs=grid.crs,
                    dst_nodata=_NODATA,
                    resampling=Resampling.nearest,
                )
        except RasterioError as exc:
            raise SourceUnavailableError(
                what="Cannot read land cover raster",
                cause=f"{self._path}: {exc}",
                fix="Check that the raster exists and is reachable, then select the point again",
            ) from exc

        logger.debug(
            "Sampled %s onto %dx%d grid (%s)",
            self._path,
            grid.width,
            grid.height,
            grid.crs,
        )
        return destination

    def __repr__(self) -> str:
        return f"WorldCoverSource(path={self._path!r})"
