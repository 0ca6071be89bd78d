"""Data source contracts and shared types.

Defines the two read-only collaborators the pipeline consumes: a
categorical land cover raster (``LandCoverSource``) and a dated,
model-tagged climate raster series (``ClimateSeriesSource``).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import numpy as np
import numpy.typing as npt

from covertrend.exceptions import ConfigurationError

if TYPE_CHECKING:
    from typing import Self

    from covertrend._types import BBox, GeoRaster
    from covertrend.analysis.composite import AnalysisGrid


@dataclass(frozen=True)
class LegendEntry:
    """One class of a categorical raster.

    Args:
        code: Pixel value of the class.
        label: Human-readable class name.
        color: Display colour as ``#rrggbb``.

    Example:
        >>> LegendEntry(code=40, label="Cropland", color="#f096ff").label
        'Cropland'
    """

    code: int
    label: str
    color: str


class LandCoverSource(ABC):
    """Abstract base class for categorical land cover rasters.

    Subclasses implement ``legend()`` and ``sample()`` and set the
    ``_name`` class attribute to the registry identifier.
    """

    _name: str = ""

    @property
    def name(self) -> str:
        """Source identifier used in the registry and in logs."""
        return self._name

    @abstractmethod
    def legend(self) -> list[LegendEntry]:
        """Return the legend of the raster in code order."""
        ...

    @abstractmethod
    def sample(self, grid: AnalysisGrid) -> npt.NDArray[np.integer[Any]]:
        """Resample the raster onto *grid* with nearest-neighbour resampling.

        Category codes are never blended. Pixels not covered by the
        source are returned as ``0``.

        Args:
            grid: Target analysis grid.

        Returns:
            Integer array of shape ``(grid.height, grid.width)``.

        Raises:
            SourceUnavailableError: If the raster cannot be read.
        """
        ...

    @property
    def domain(self) -> tuple[int, ...]:
        """Finite set of codes the raster may contain."""
        return tuple(entry.code for entry in self.legend())

    def label(self, code: int) -> str:
        """Return the label of *code*."""
        return self._entry(code).label

    def color(self, code: int) -> str:
        """Return the display colour of *code*."""
        return self._entry(code).color

    def close(self) -> None:
        """Release any open file handles. No-op by default."""

    def _entry(self, code: int) -> LegendEntry:
        for entry in self.legend():
            if entry.code == code:
                return entry
        valid = ", ".join(str(c) for c in self.domain)
        raise ConfigurationError(
            what=f"Unknown land cover code: {code}",
            cause=f"{self.name or type(self).__name__} defines codes {valid}",
            fix=f"Use one of: {valid}",
        )


class ClimateSeriesSource(ABC):
    """Abstract base class for dated, model-tagged climate raster series.

    Filtering methods return a new series and never mutate the
    receiver, so one source can be shared read-only by concurrent
    per-year tasks.
    """

    _name: str = ""

    @property
    def name(self) -> str:
        """Source identifier used in the registry and in logs."""
        return self._name

    @property
    @abstractmethod
    def models(self) -> list[str]:
        """Sorted model identifiers present in the series."""
        ...

    @abstractmethod
    def __len__(self) -> int:
        """Number of dated rasters in the series."""
        ...

    @abstractmethod
    def filter_date(self, start: str, end: str) -> Self:
        """Keep rasters dated within ``[start, end]`` (ISO dates, inclusive)."""
        ...

    @abstractmethod
    def filter_model(self, model: str) -> Self:
        """Keep rasters produced by *model*."""
        ...

    @abstractmethod
    def filter_scenario(self, scenario: str) -> Self:
        """Keep rasters of the experiment *scenario*."""
        ...

    @abstractmethod
    def select(self, variable: str) -> Self:
        """Restrict the series to a single variable."""
        ...

    @abstractmethod
    def mean(self, bounds: BBox | None = None) -> GeoRaster | None:
        """Per-pixel arithmetic mean of the selected variable.

        Args:
            bounds: Optional WGS84 ``(minx, miny, maxx, maxy)`` window
                to read; the whole grid when ``None``.

        Returns:
            The mean raster, or ``None`` when the series is empty or
            does not cover *bounds*.

        Raises:
            SourceUnavailableError: If the underlying data cannot be read.
        """
        ...

    def close(self) -> None:
        """Release any open file handles. No-op by default."""
