"""Zonal temporal statistics: year expansion, compositing, reduction."""

from covertrend.analysis.composite import (
    AnalysisGrid,
    AnnualComposite,
    build_analysis_grid,
    build_annual_composite,
)
from covertrend.analysis.records import assemble_records
from covertrend.analysis.temporal import expand_years, year_time_range
from covertrend.analysis.zonal import (
    CategoryStats,
    CompositeReduction,
    apply_pixel_budget,
    reduce_composite,
)

__all__ = [
    "AnalysisGrid",
    "AnnualComposite",
    "CategoryStats",
    "CompositeReduction",
    "apply_pixel_budget",
    "assemble_records",
    "build_analysis_grid",
    "build_annual_composite",
    "expand_years",
    "reduce_composite",
    "year_time_range",
]
