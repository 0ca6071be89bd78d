"""Categorical masking and regional reduction.

Pure computation module: takes an annual composite in, returns the
per-category statistics of its climate band. No I/O, no providers.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import numpy as np
import numpy.typing as npt

if TYPE_CHECKING:
    from covertrend.analysis.composite import AnnualComposite

logger = logging.getLogger(__name__)

DEFAULT_MAX_PIXELS: int = 1_000_000_000


@dataclass(frozen=True)
class CategoryStats:
    """Statistics of one land cover category in one composite.

    ``mean`` and ``percentile`` are ``None`` (never ``0.0``) when no
    valid pixel of the category lies in the region.

    Example:
        >>> CategoryStats(category=50, mean=None, percentile=None, count=0).count
        0
    """

    category: int
    mean: float | None
    percentile: float | None
    count: int


@dataclass
class CompositeReduction:
    """Per-category statistics of one annual composite.

    Args:
        year: Year of the reduced composite.
        stats: One entry per requested category, in request order.
        approximate: ``True`` when the region exceeded the pixel budget
            and was thinned before reducing.
        region_pixel_count: AOI pixels at the analysis scale.
        sampled_pixel_count: AOI pixels actually reduced.
        source_count: Rasters averaged into the composite.
        has_data: Whether any AOI pixel of the composite carries a
            climate value.
    """

    year: int
    stats: list[CategoryStats] = field(default_factory=list)
    approximate: bool = False
    region_pixel_count: int = 0
    sampled_pixel_count: int = 0
    source_count: int = 0
    has_data: bool = False


def apply_pixel_budget(
    mask: npt.NDArray[np.bool_],
    max_pixels: int,
) -> tuple[npt.NDArray[np.bool_], bool]:
    """Thin *mask* deterministically so it selects at most *max_pixels*.

    When the mask selects ``n > max_pixels`` pixels, every k-th selected
    pixel in row-major order is kept, starting with the first, where
    ``k = ceil(n / max_pixels)``. The same mask and budget always give
    the same sample.

    Args:
        mask: Region mask.
        max_pixels: Pixel budget, strictly positive.

    Returns:
        ``(mask, truncated)``: the possibly thinned mask and whether
        thinning happened.

    Example:
        >>> thinned, truncated = apply_pixel_budget(np.ones((4, 4), bool), 8)
        >>> int(thinned.sum()), truncated
        (8, True)
    """
    if max_pixels <= 0:
        msg = "max_pixels must be greater than 0"
        raise ValueError(msg)

    selected = np.flatnonzero(mask)
    if selected.size <= max_pixels:
        return mask, False

    step = math.ceil(selected.size / max_pixels)
    thinned = np.zeros(mask.size, dtype=bool)
    thinned[selected[::step]] = True
    return thinned.reshape(mask.shape), True


def reduce_values(
    values: npt.NDArray[np.floating[Any]],
    percentile: float | None = None,
) -> tuple[float | None, float | None, int]:
    """Mean, optional percentile and count of a 1-D array of valid values.

    The percentile uses linear interpolation between the closest ranks.
    An empty array gives ``(None, None, 0)``.
    """
    count = int(values.size)
    if count == 0:
        return None, None, 0
    mean = float(np.mean(values))
    pct = float(np.percentile(values, percentile)) if percentile is not None else None
    return mean, pct, count


def reduce_composite(
    composite: AnnualComposite,
    categories: Sequence[int],
    percentile: float | None = None,
    max_pixels: int = DEFAULT_MAX_PIXELS,
) -> CompositeReduction:
    """Reduce the climate band of *composite* per land cover category.

    For each category the climate band is masked to pixels whose code
    equals the category, and mean, optional percentile and count are
    computed over the valid (finite) pixels left in the AOI.

    Args:
        composite: Annual composite to reduce.
        categories: Land cover codes, reported in this order.
        percentile: Percentile to compute (0--100), or ``None``.
        max_pixels: Pixel budget of the region.

    Returns:
        A ``CompositeReduction`` with one ``CategoryStats`` per category.
    """
    grid = composite.grid
    region, approximate = apply_pixel_budget(grid.aoi_mask, max_pixels)
    if approximate:
        logger.warning(
            "AOI has %d pixels at %s m, above the budget of %d; "
            "reducing %d for %d",
            grid.pixel_count,
            grid.scale,
            max_pixels,
            int(np.count_nonzero(region)),
            composite.year,
        )

    valid = region & np.isfinite(composite.values)
    stats: list[CategoryStats] = []
    for category in categories:
        selected = composite.values[valid & (composite.categories == category)]
        mean, pct, count = reduce_values(selected, percentile)
        stats.append(
            CategoryStats(
                category=int(category),
                mean=mean,
                percentile=pct,
                count=count,
            )
        )

    return CompositeReduction(
        year=int(composite.year),
        stats=stats,
        approximate=approximate,
        region_pixel_count=grid.pixel_count,
        sampled_pixel_count=int(np.count_nonzero(region)),
        source_count=composite.source_count,
        has_data=composite.has_data,
    )
