#!/usr/bin/env python3
"""Run one land cover / climate analysis and write its outputs.

Writes the statistics table (CSV), the final-year preview raster
(GeoTIFF + PNG quicklook) and a line chart of the yearly means per land
cover class into an output directory.

Usage:
    python run_analysis.py --lon -114.07 --lat 51.05 \\
        --landcover worldcover.tif --climate tas_*.nc --output-dir out

Example:
    python run_analysis.py --lon 21.01 --lat 52.23 --landcover wc.vrt \\
        --climate tas_day_MIROC6_historical_*.nc --model MIROC6 --start 1995-01-01
"""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import date
from pathlib import Path

import numpy as np
import pandas as pd

import covertrend as ct
from covertrend.config import resolve_config_path
from covertrend.exceptions import CovertrendError
from covertrend.results import AnalysisCompleted


def trend_line(series: pd.Series) -> pd.Series | None:
    """Least-squares linear trend of *series* over its index.

    Gaps are ignored. Returns ``None`` when fewer than two years have data.
    """
    finite = series.dropna()
    if len(finite) < 2:
        return None
    x = finite.index.to_numpy(dtype=np.float64)
    slope, intercept = np.polyfit(x, finite.to_numpy(dtype=np.float64), 1)
    index = series.index.to_numpy(dtype=np.float64)
    return pd.Series(slope * index + intercept, index=series.index)


def write_chart(result: AnalysisCompleted, path: Path) -> Path:
    """Plot the yearly mean per land cover class with a linear trend each."""
    import matplotlib

    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    table = result.chart_table("mean")
    colors = {entry.code: entry.color for entry in result.legend}
    labels = {entry.code: entry.label for entry in result.legend}

    fig, ax = plt.subplots(figsize=(10, 5))
    for code in table.columns:
        ax.plot(
            table.index,
            table[code],
            marker="o",
            color=colors.get(code),
            label=labels.get(code, str(code)),
        )
        trend = trend_line(table[code])
        if trend is not None:
            ax.plot(trend.index, trend, linestyle="--", linewidth=1, color=colors.get(code))
    ax.set_title(result.title)
    ax.set_xlabel("Year")
    ax.set_ylabel(result.variable)
    ax.legend()
    ax.grid(True, alpha=0.3)

    plt.tight_layout()
    plt.savefig(path, dpi=150, bbox_inches="tight")
    plt.close(fig)
    return path


# Config field set by each command-line option
_OPTION_FIELDS = {
    "landcover": "landcover_path",
    "climate": "climate_paths",
    "model": "model",
    "variable": "variable",
    "scenario": "scenario",
    "start": "start_date",
    "end": "end_date",
    "radius": "buffer_radius_m",
    "scale": "scale_m",
}


def build_config(args: argparse.Namespace) -> ct.Config:
    """Layer the options given on the command line over the config file.

    Options left unset keep the value from the configuration file
    (``--config`` or ``COVERTREND_CONFIG``), or the built-in default.
    """
    config_path = resolve_config_path(args.config)
    base = ct.load_config(config_path) if config_path else ct.Config()
    current = base.model_dump()
    for option, field_name in _OPTION_FIELDS.items():
        value = getattr(args, option)
        if value is not None:
            current[field_name] = value
    if args.no_percentile:
        current["percentile"] = None
    return ct.Config(**current)


def run(args: argparse.Namespace) -> AnalysisCompleted:
    """Configure covertrend from *args*, run, and write the outputs."""
    config = build_config(args)

    print(f"Analysing ({args.lon}, {args.lat})...")
    print(f"  Model: {config.model} ({config.variable})")
    print(f"  Period: {config.start_date} to {config.end_date}")
    print(f"  Categories: {', '.join(str(c) for c in config.categories)}")

    result = ct.zonal_climate_series(args.lon, args.lat, config=config)
    print(result)

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    csv_path = result.to_csv(output_dir / "statistics.csv")
    print(f"  [OK] Table: {csv_path}")
    if result.records:
        chart_path = write_chart(result, output_dir / "chart.png")
        print(f"  [OK] Chart: {chart_path}")
    if result.preview is not None:
        tif_path = result.preview.to_geotiff(output_dir / f"preview_{result.preview.year}.tif")
        png_path = result.preview.to_png(output_dir / f"preview_{result.preview.year}.png")
        print(f"  [OK] Preview: {tif_path}, {png_path}")
    return result


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Yearly climate statistics per land cover class around a point.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--lon", type=float, required=True, help="Longitude in WGS84 degrees")
    parser.add_argument("--lat", type=float, required=True, help="Latitude in WGS84 degrees")
    parser.add_argument("--landcover", help="WorldCover GeoTIFF, VRT or COG URL")
    parser.add_argument("--climate", nargs="+", help="GDDP-CMIP6 NetCDF files")
    parser.add_argument("--model", help="Climate model (default: CanESM5)")
    parser.add_argument("--variable", help="Climate variable (default: tas)")
    parser.add_argument("--scenario", default=None, help="Experiment filter (optional)")
    parser.add_argument("--start", type=date.fromisoformat, default=None, help="YYYY-MM-DD")
    parser.add_argument("--end", type=date.fromisoformat, default=None, help="YYYY-MM-DD")
    parser.add_argument("--radius", type=float, help="Buffer radius in metres (default: 10000)")
    parser.add_argument("--scale", type=float, help="Reduction scale in metres (default: 100)")
    parser.add_argument(
        "--no-percentile", action="store_true", help="Skip the percentile statistic"
    )
    parser.add_argument("--config", type=Path, default=None, help="JSON configuration file")
    parser.add_argument(
        "-o", "--output-dir", default="covertrend_output", help="Output directory"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv: list[str] | None = None) -> None:
    """Parse arguments and run analysis."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        run(args)
    except CovertrendError as e:
        print(f"\nError: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
