"""Internal shared types for cross-boundary data contracts.

These types define the data shapes passed between sources, the
composite generator and the reducer. They are internal (prefixed
``_``) and NOT re-exported from ``covertrend.__init__``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np
import numpy.typing as npt
from affine import Affine

TimeRange = tuple[str, str]
"""ISO-8601 date pair ``(start, end)``, both ends inclusive."""

BBox = tuple[float, float, float, float]
"""Bounding box ``(minx, miny, maxx, maxy)`` in the owning CRS."""


@dataclass
class GeoRaster:
    """A single-band, north-up raster with its georeferencing.

    Args:
        data: 2-D array ``(height, width)``; NaN marks missing pixels
            for floating point data.
        transform: Affine transform of the upper-left pixel corner.
        crs: CRS identifier understood by rasterio (e.g. ``"EPSG:4326"``).

    Example:
        >>> from affine import Affine
        >>> raster = GeoRaster(
        ...     data=np.zeros((2, 3)),
        ...     transform=Affine(0.25, 0.0, 20.0, 0.0, -0.25, 52.0),
        ...     crs="EPSG:4326",
        ... )
        >>> raster.shape
        (2, 3)
    """

    data: npt.NDArray[Any]
    transform: Affine
    crs: str

    @property
    def shape(self) -> tuple[int, int]:
        """``(height, width)`` of the raster."""
        height, width = self.data.shape
        return (height, width)

    @property
    def bounds(self) -> BBox:
        """Outer bounds ``(minx, miny, maxx, maxy)`` of the raster."""
        height, width = self.data.shape
        left, top = self.transform * (0, 0)
        right, bottom = self.transform * (width, height)
        return (min(left, right), min(top, bottom), max(left, right), max(top, bottom))
