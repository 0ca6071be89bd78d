"""Result object model for analysis outputs.

``ZonalStatRecord`` rows and the ``AnalysisCompleted`` event are what a
presentation layer consumes: a line-chart renderer reads the table
(category as series, year as x-axis) and a map-layer renderer reads the
preview raster with its ``vis_params``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import numpy as np
import numpy.typing as npt
from affine import Affine
from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    import pandas as pd

    from covertrend.sources.base import LegendEntry

_TABLE_COLUMNS = ["year", "landCoverClass", "mean", "percentile", "count"]


class ZonalStatRecord(BaseModel):
    """Statistics of one land cover class in one year.

    Uses Pydantic (not dataclass) because records cross the
    serialization boundary to the chart renderer. ``None`` is the
    no-value marker for ``mean`` and ``percentile``; it is never
    conflated with ``0.0``.

    Attributes:
        year: Calendar year, always an integer.
        land_cover_class: Land cover code (serialized as ``landCoverClass``).
        mean: Mean of the climate variable over the class pixels.
        percentile: Requested percentile of the same pixels.
        count: Number of valid pixels.

    Example:
        >>> rec = ZonalStatRecord(year=2000, landCoverClass=30, mean=281.4, count=12)
        >>> rec.to_row()["landCoverClass"]
        30
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    year: int
    land_cover_class: int = Field(alias="landCoverClass")
    mean: float | None = None
    percentile: float | None = None
    count: int = Field(default=0, ge=0)

    @property
    def has_data(self) -> bool:
        """Whether at least one pixel contributed."""
        return self.count > 0

    def to_row(self, include_percentile: bool = True) -> dict[str, Any]:
        """Serialize with the external column names."""
        exclude = None if include_percentile else {"percentile"}
        return self.model_dump(by_alias=True, exclude=exclude)


@dataclass
class PreviewRaster:
    """Clipped climate composite of the final year, for map display.

    Attributes:
        data: 2-D climate values, NaN outside the AOI or without data.
        transform: Affine transform of the upper-left corner.
        crs: CRS of the raster.
        year: Year of the composite.
        vis_params: ``{"min", "max", "palette"}`` for the layer renderer.
        name: Layer name.
    """

    data: npt.NDArray[np.float64]
    transform: Affine
    crs: str
    year: int
    vis_params: dict[str, Any] = field(default_factory=dict)
    name: str = ""

    def __repr__(self) -> str:
        height, width = self.data.shape
        return f"PreviewRaster(year={self.year}, shape=({height}, {width}), crs={self.crs!r})"

    def to_geotiff(self, path: str | Path) -> Path:
        """Export the preview raster to a single-band GeoTIFF.

        Missing pixels are written as NaN and flagged as nodata.

        Args:
            path: Output file path (will be created/overwritten).

        Returns:
            Path object pointing to the written file.

        Raises:
            ValueError: If the raster is empty.
        """
        import rasterio

        path = Path(path)
        if self.data.size == 0:
            msg = "Cannot export empty preview raster to GeoTIFF"
            raise ValueError(msg)

        height, width = self.data.shape
        with rasterio.open(
            path,
            "w",
            driver="GTiff",
            height=height,
            width=width,
            count=1,
            dtype=self.data.dtype,
            crs=self.crs,
            transform=self.transform,
            nodata=np.nan,
        ) as dst:
            dst.write(self.data, 1)
            dst.update_tags(year=str(self.year))

        return path

    def to_png(self, path: str | Path) -> Path:
        """Export a quicklook PNG using ``vis_params``.

        Args:
            path: Output file path (will be created/overwritten).

        Returns:
            Path object pointing to the written file.
        """
        import matplotlib

        matplotlib.use("Agg")  # Non-interactive backend for file output
        import matplotlib.pyplot as plt
        from matplotlib.colors import LinearSegmentedColormap

        path = Path(path)
        palette = self.vis_params.get("palette") or ["black", "white"]
        cmap = LinearSegmentedColormap.from_list("preview", palette)
        cmap.set_bad(alpha=0.0)

        fig, ax = plt.subplots(figsize=(8, 8))
        im = ax.imshow(
            np.ma.masked_invalid(self.data),
            cmap=cmap,
            vmin=self.vis_params.get("min"),
            vmax=self.vis_params.get("max"),
        )
        plt.colorbar(im, ax=ax)
        ax.set_title(self.name or f"Preview {self.year}")
        ax.set_axis_off()

        plt.tight_layout()
        plt.savefig(path, dpi=150, bbox_inches="tight")
        plt.close(fig)
        return path


@dataclass
class AnalysisCompleted:
    """Outcome of one point-selection analysis.

    Emitted exactly once per accepted selection. Immutable by contract:
    the presentation layer owns its own state and only reads this.

    Attributes:
        records: Year-major, category-minor statistics table.
        preview: Final-year composite, ``None`` for an empty year range.
        approximate: ``True`` if any reduction exceeded the pixel budget.
        warnings: Data gaps and approximation notices for the user.
        legend: Land cover legend for the chart series and map legend.
        lon: Longitude of the selected point.
        lat: Latitude of the selected point.
        radius_m: Buffer radius.
        years: Expanded years, in order.
        categories: Reported land cover codes, in order.
        percentile_level: Requested percentile, ``None`` when disabled.
        model: Climate model identifier.
        variable: Climate variable name.
    """

    records: list[ZonalStatRecord]
    preview: PreviewRaster | None = None
    approximate: bool = False
    warnings: list[str] = field(default_factory=list)
    legend: list[LegendEntry] = field(default_factory=list)
    lon: float = 0.0
    lat: float = 0.0
    radius_m: float = 0.0
    years: list[int] = field(default_factory=list)
    categories: tuple[int, ...] = ()
    percentile_level: float | None = None
    model: str = ""
    variable: str = ""

    @property
    def title(self) -> str:
        """Chart title naming the variable and the selected point."""
        return (
            f"Mean yearly {self.variable} per land cover class at "
            f"{self.lat:.4f}, {self.lon:.4f}"
        )

    def __repr__(self) -> str:
        """Narrative summary; never prints the table or the raster."""
        lines: list[str] = [f"{type(self).__name__}("]
        ns = "N" if self.lat >= 0 else "S"
        ew = "E" if self.lon >= 0 else "W"
        lines.append(
            f"  location: {abs(self.lat):.4f}°{ns}, {abs(self.lon):.4f}°{ew}"
            f" (radius {self.radius_m:g} m)"
        )
        if self.years:
            lines.append(f"  years: {self.years[0]}-{self.years[len(self.years) - 1]}")
        else:
            lines.append("  years: none")
        lines.append(f"  model: {self.model} ({self.variable})")
        lines.append(f"  records: {len(self.records)}")
        gaps = sum(1 for r in self.records if not r.has_data)
        if gaps:
            lines.append(f"  gaps: {gaps}")
        if self.approximate:
            lines.append("  approximate: pixel budget exceeded")
        for w in self.warnings:
            lines.append(f"  ⚠ {w}")
        lines.append(")")
        return "\n".join(lines)

    def to_records(self) -> list[dict[str, Any]]:
        """Rows as dicts with the external column names; gaps are ``None``."""
        include = self.percentile_level is not None
        return [r.to_row(include_percentile=include) for r in self.records]

    def to_dataframe(self) -> pd.DataFrame:
        """Export the statistics table to a pandas DataFrame.

        Gaps become ``NaN`` in the ``mean`` and ``percentile`` columns;
        the ``percentile`` column is omitted when no percentile was
        requested.

        Returns:
            DataFrame with columns ``year, landCoverClass, mean,
            [percentile], count``.
        """
        import pandas as pd

        columns = list(_TABLE_COLUMNS)
        if self.percentile_level is None:
            columns.remove("percentile")

        df = pd.DataFrame(self.to_records(), columns=columns)
        df = df.astype({"year": "int64", "landCoverClass": "int64", "count": "int64"})
        df["mean"] = df["mean"].astype("float64")
        if "percentile" in df.columns:
            df["percentile"] = df["percentile"].astype("float64")
        return df

    def to_csv(self, path: str | Path) -> Path:
        """Write the statistics table to CSV; gaps are empty cells."""
        path = Path(path)
        self.to_dataframe().to_csv(path, index=False)
        return path

    def chart_table(self, statistic: str = "mean") -> pd.DataFrame:
        """Year x category table of *statistic*, as a line chart consumes it.

        Args:
            statistic: ``"mean"``, ``"percentile"`` or ``"count"``.

        Returns:
            DataFrame indexed by year with one column per category, in
            category order; gaps are ``NaN``.

        Raises:
            ValueError: If *statistic* is not available.
        """
        df = self.to_dataframe()
        if statistic not in df.columns or statistic in ("year", "landCoverClass"):
            msg = f"Statistic {statistic!r} is not available in this result"
            raise ValueError(msg)
        table = df.pivot(index="year", columns="landCoverClass", values=statistic)
        return table.reindex(index=self.years, columns=list(self.categories))


@dataclass
class AnalysisFailed:
    """A selection whose analysis could not complete.

    Attributes:
        lon: Longitude of the selected point.
        lat: Latitude of the selected point.
        error: The exception that stopped the analysis.
    """

    lon: float
    lat: float
    error: BaseException

    @property
    def message(self) -> str:
        """Text for the warning banner."""
        return str(self.error)
