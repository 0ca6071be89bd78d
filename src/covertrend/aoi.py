"""Area-of-interest model for point selections.

Turns a selected point and a buffer radius into the circular area over
which every statistic is computed. The disc is built in the point's
UTM zone so the radius is expressed in metres, matching the metric
analysis grid used by the reducer.
"""

from __future__ import annotations

import logging

import shapely
from pyproj import Transformer
from shapely.geometry import Point, Polygon

from covertrend._types import BBox
from covertrend.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_MIN_LAT = -90.0
_MAX_LAT = 90.0
_MIN_LON = -180.0
_MAX_LON = 180.0
_DISC_QUAD_SEGMENTS = 64


def _compute_utm_zone(lat: float, lon: float) -> int:
    """Compute the UTM zone number from WGS84 coordinates.

    Handles the standard 6-degree zone calculation plus the Norway
    and Svalbard special-case overrides.

    Args:
        lat: Latitude in WGS84 degrees.
        lon: Longitude in WGS84 degrees.

    Returns:
        UTM zone number (1--60).
    """
    zone = min(int((lon + 180.0) // 6.0) + 1, 60)

    # Norway exception: zone 32V is widened to 9 degrees
    if 56.0 <= lat < 64.0 and 3.0 <= lon < 12.0:
        zone = 32

    # Svalbard exceptions: zones 32X, 34X, 36X eliminated
    elif 72.0 <= lat <= 84.0:
        if 0.0 <= lon < 9.0:
            zone = 31
        elif 9.0 <= lon < 21.0:
            zone = 33
        elif 21.0 <= lon < 33.0:
            zone = 35
        elif 33.0 <= lon < 42.0:
            zone = 37

    return zone


def _compute_utm_epsg(lat: float, lon: float) -> int:
    """Return the EPSG code (326XX north, 327XX south) of the UTM zone."""
    zone = _compute_utm_zone(lat, lon)
    hemisphere_offset = 32600 if lat >= 0 else 32700
    return hemisphere_offset + zone


def area_of_interest(lon: float, lat: float, radius_m: float) -> AreaOfInterest:
    """Build the buffered area of interest around a selected point.

    Args:
        lon: Longitude in WGS84 (valid range: -180 to 180).
        lat: Latitude in WGS84 (valid range: -90 to 90).
        radius_m: Buffer radius in metres, strictly positive.

    Returns:
        An ``AreaOfInterest`` whose geometry is the disc of *radius_m*
        centred on the point.

    Raises:
        ConfigurationError: If coordinates are outside WGS84 bounds or
            the radius is not positive.

    Example:
        >>> aoi = area_of_interest(lon=-114.07, lat=51.05, radius_m=10_000)
        >>> aoi.utm_epsg
        32611
    """
    if not (_MIN_LAT <= lat <= _MAX_LAT):
        raise ConfigurationError(
            what=f"Invalid latitude: {lat}",
            cause=f"Latitude must be between {_MIN_LAT} and {_MAX_LAT}",
            fix="Provide a valid WGS84 latitude value",
        )
    if not (_MIN_LON <= lon <= _MAX_LON):
        raise ConfigurationError(
            what=f"Invalid longitude: {lon}",
            cause=f"Longitude must be between {_MIN_LON} and {_MAX_LON}",
            fix="Provide a valid WGS84 longitude value",
        )
    if not radius_m > 0:
        raise ConfigurationError(
            what=f"Invalid buffer radius: {radius_m}",
            cause="The buffer radius must be greater than 0",
            fix="Provide a positive radius in metres",
        )
    aoi = AreaOfInterest(lon=lon, lat=lat, radius_m=float(radius_m))
    logger.debug("Built %r", aoi)
    return aoi


class AreaOfInterest:
    """Circular area of interest around a selected point.

    Use the ``area_of_interest()`` factory for validation.

    Args:
        lon: Longitude of the centre in WGS84 degrees.
        lat: Latitude of the centre in WGS84 degrees.
        radius_m: Buffer radius in metres.
    """

    __slots__ = (
        "_lon",
        "_lat",
        "_radius_m",
        "_utm_epsg",
        "_geometry",
        "_geometry_wgs84",
    )

    def __init__(self, lon: float, lat: float, radius_m: float) -> None:
        self._lon = lon
        self._lat = lat
        self._radius_m = radius_m
        self._utm_epsg = _compute_utm_epsg(lat, lon)

        to_utm = Transformer.from_crs("EPSG:4326", self.crs, always_xy=True)
        x, y = to_utm.transform(lon, lat)
        self._geometry: Polygon = Point(x, y).buffer(
            radius_m, quad_segs=_DISC_QUAD_SEGMENTS
        )
        to_wgs84 = Transformer.from_crs(self.crs, "EPSG:4326", always_xy=True)
        self._geometry_wgs84: Polygon = shapely.transform(
            self._geometry, to_wgs84.transform, interleaved=False
        )

    # ── Read-only properties ─────────────────────────────────────

    @property
    def lon(self) -> float:
        """Longitude of the centre in WGS84 degrees."""
        return self._lon

    @property
    def lat(self) -> float:
        """Latitude of the centre in WGS84 degrees."""
        return self._lat

    @property
    def radius_m(self) -> float:
        """Buffer radius in metres."""
        return self._radius_m

    @property
    def utm_epsg(self) -> int:
        """EPSG code of the UTM zone the disc is built in."""
        return self._utm_epsg

    @property
    def crs(self) -> str:
        """CRS of ``geometry`` as an ``EPSG:`` string."""
        return f"EPSG:{self._utm_epsg}"

    @property
    def geometry(self) -> Polygon:
        """Disc polygon in UTM metres."""
        return self._geometry

    @property
    def geometry_wgs84(self) -> Polygon:
        """Disc polygon in WGS84 longitude/latitude."""
        return self._geometry_wgs84

    @property
    def bounds(self) -> BBox:
        """Bounds of the disc in UTM metres."""
        minx, miny, maxx, maxy = self._geometry.bounds
        return (minx, miny, maxx, maxy)

    @property
    def bounds_wgs84(self) -> BBox:
        """Bounds of the disc in WGS84 degrees, used to crop sources."""
        minx, miny, maxx, maxy = self._geometry_wgs84.bounds
        return (minx, miny, maxx, maxy)

    # ── Dunder methods ───────────────────────────────────────────

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AreaOfInterest):
            return NotImplemented
        return (self._lon, self._lat, self._radius_m) == (
            other._lon,
            other._lat,
            other._radius_m,
        )

    def __hash__(self) -> int:
        return hash((self._lon, self._lat, self._radius_m))

    def __repr__(self) -> str:
        return (
            f"AreaOfInterest(lon={self._lon}, lat={self._lat}, "
            f"radius_m={self._radius_m}, crs={self.crs!r})"
        )
