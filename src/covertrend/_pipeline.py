"""Pipeline orchestration for one point-selection analysis.

The work graph is: sample the land cover raster once, then for every
year build the composite and reduce it, independently of other years.
Years run on a thread pool; results are materialised only when the
record table is assembled, which restores year-major order regardless
of completion order.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import TYPE_CHECKING, Any

import numpy as np
import numpy.typing as npt

from covertrend.analysis.composite import (
    AnalysisGrid,
    AnnualComposite,
    build_analysis_grid,
    build_annual_composite,
)
from covertrend.analysis.records import assemble_records
from covertrend.analysis.temporal import expand_years
from covertrend.analysis.zonal import CompositeReduction, reduce_composite
from covertrend.exceptions import AnalysisCancelledError, ConfigurationError
from covertrend.results import AnalysisCompleted, PreviewRaster

if TYPE_CHECKING:
    from covertrend.aoi import AreaOfInterest
    from covertrend.config import Config
    from covertrend.sources.base import ClimateSeriesSource, LandCoverSource

logger = logging.getLogger(__name__)


def _raise_if_cancelled(*events: threading.Event | None) -> None:
    if any(e is not None and e.is_set() for e in events):
        raise AnalysisCancelledError(
            what="Analysis cancelled",
            cause="A newer point selection superseded this analysis",
        )


def _check_categories(categories: tuple[int, ...], landcover: LandCoverSource) -> None:
    """Reject categories outside the land cover domain."""
    domain = set(landcover.domain)
    unknown = [c for c in categories if c not in domain]
    if unknown:
        valid = ", ".join(str(c) for c in sorted(domain))
        raise ConfigurationError(
            what=f"Unknown land cover categories: {unknown}",
            cause=f"{landcover.name or type(landcover).__name__} defines codes {valid}",
            fix="Set Config.categories to codes of the land cover legend",
        )


def _process_year(
    year: int,
    grid: AnalysisGrid,
    categorical: npt.NDArray[np.integer[Any]],
    climate: ClimateSeriesSource,
    config: Config,
    cancel_event: threading.Event | None,
    abort: threading.Event,
) -> tuple[AnnualComposite, CompositeReduction]:
    """Composite and reduce one year; the unit of parallel work."""
    _raise_if_cancelled(cancel_event, abort)
    composite = build_annual_composite(
        year,
        grid,
        climate,
        categorical,
        variable=config.variable,
        model=config.model,
        scenario=config.scenario,
    )
    _raise_if_cancelled(cancel_event, abort)
    reduction = reduce_composite(
        composite,
        config.categories,
        percentile=config.percentile,
        max_pixels=config.max_pixels,
    )
    return composite, reduction


def _build_warnings(
    reductions: list[CompositeReduction],
    config: Config,
) -> list[str]:
    warnings: list[str] = []
    gap_years = [r.year for r in reductions if r.source_count == 0]
    if gap_years:
        warnings.append(
            f"No {config.model} {config.variable} rasters for "
            f"{', '.join(str(y) for y in gap_years)}; these years are shown as gaps"
        )
    uncovered = [r.year for r in reductions if r.source_count > 0 and not r.has_data]
    if uncovered:
        warnings.append(
            f"{config.model} {config.variable} rasters for "
            f"{', '.join(str(y) for y in uncovered)} do not cover the area of interest; "
            "these years are shown as gaps"
        )
    approximate = [r for r in reductions if r.approximate]
    if approximate:
        first = approximate[0]
        warnings.append(
            f"Area of interest has {first.region_pixel_count} pixels at "
            f"{config.scale_m:g} m, above the budget of {config.max_pixels}; "
            f"statistics use a {first.sampled_pixel_count}-pixel sample and are approximate"
        )
    return warnings


def run_analysis(
    aoi: AreaOfInterest,
    config: Config,
    landcover: LandCoverSource,
    climate: ClimateSeriesSource,
    cancel_event: threading.Event | None = None,
) -> AnalysisCompleted:
    """Compute the per-category climate time series over *aoi*.

    Per-(year, category) problems (no rasters for a year, a category
    absent from the AOI) become gaps in the table; exceeding the pixel
    budget marks the result approximate. Source failures and
    configuration errors propagate immediately and are never retried.

    Args:
        aoi: Area of interest of the selection.
        config: Configuration snapshot of the run.
        landcover: Categorical land cover source (read-only).
        climate: Climate series source (read-only).
        cancel_event: Set by the caller to abandon the run.

    Returns:
        The ``AnalysisCompleted`` event payload.

    Raises:
        ConfigurationError: If categories are not in the land cover domain.
        SourceUnavailableError: If a source read fails.
        AnalysisCancelledError: If *cancel_event* is set during the run.
    """
    _check_categories(config.categories, landcover)
    legend = landcover.legend()
    years = expand_years(config.start_date, config.end_date)

    result_fields: dict[str, Any] = {
        "legend": legend,
        "lon": aoi.lon,
        "lat": aoi.lat,
        "radius_m": aoi.radius_m,
        "years": years,
        "categories": config.categories,
        "percentile_level": config.percentile,
        "model": config.model,
        "variable": config.variable,
    }

    if not years:
        logger.info(
            "End date %s precedes start date %s; no years to analyse",
            config.end_date,
            config.start_date,
        )
        return AnalysisCompleted(records=[], preview=None, **result_fields)

    logger.info(
        "Analysing %s: %d years x %d categories (%s %s)",
        aoi,
        len(years),
        len(config.categories),
        config.model,
        config.variable,
    )

    grid = build_analysis_grid(aoi, config.scale_m)
    _raise_if_cancelled(cancel_event)
    categorical = landcover.sample(grid)

    last_year = years[len(years) - 1]
    last_composite: AnnualComposite | None = None
    reductions: list[CompositeReduction] = []
    abort = threading.Event()

    workers = min(config.max_workers, len(years))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="covertrend") as pool:
        futures: list[Future[tuple[AnnualComposite, CompositeReduction]]] = [
            pool.submit(
                _process_year,
                year,
                grid,
                categorical,
                climate,
                config,
                cancel_event,
                abort,
            )
            for year in years
        ]
        try:
            for future in as_completed(futures):
                composite, reduction = future.result()
                reductions.append(reduction)
                if composite.year == last_year:
                    last_composite = composite
                logger.debug("Year %d reduced", reduction.year)
        except BaseException:
            abort.set()
            pool.shutdown(wait=False, cancel_futures=True)
            raise

    records = assemble_records(reductions, config.categories)
    reductions.sort(key=lambda r: r.year)

    preview = None
    if last_composite is not None:
        preview = PreviewRaster(
            data=last_composite.values,
            transform=grid.transform,
            crs=grid.crs,
            year=last_composite.year,
            vis_params=config.vis_params,
            name=f"CMIP6 of {aoi.lat:.4f}, {aoi.lon:.4f}",
        )

    approximate = any(r.approximate for r in reductions)
    completed = AnalysisCompleted(
        records=records,
        preview=preview,
        approximate=approximate,
        warnings=_build_warnings(reductions, config),
        **result_fields,
    )
    logger.info(
        "Analysis complete: %d records%s",
        len(records),
        " (approximate)" if approximate else "",
    )
    return completed
