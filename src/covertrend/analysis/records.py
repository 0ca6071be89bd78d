"""Statistics record assembly.

Flattens the (year x category) reductions into the ordered table. Pure
reshape: no statistic is recomputed and gaps pass through untouched.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from covertrend.analysis.zonal import CompositeReduction
from covertrend.results import ZonalStatRecord


def assemble_records(
    reductions: Iterable[CompositeReduction],
    categories: Sequence[int],
) -> list[ZonalStatRecord]:
    """Flatten reductions into year-major, category-minor records.

    Reductions may arrive in any order (e.g. completion order of a
    worker pool); the output order depends only on the years and on
    the position of each category in *categories*.

    Args:
        reductions: One reduction per year.
        categories: Category order of the output.

    Returns:
        One ``ZonalStatRecord`` per (year, category) pair.

    Raises:
        ValueError: If a reduction carries a category missing from
            *categories*.

    Example:
        >>> rows = assemble_records(reductions, categories=[30, 40, 50])
        >>> [(r.year, r.land_cover_class) for r in rows][:2]
        [(2000, 30), (2000, 40)]
    """
    rank = {int(c): i for i, c in enumerate(categories)}
    keyed: list[tuple[int, int, ZonalStatRecord]] = []
    for reduction in reductions:
        for stats in reduction.stats:
            if stats.category not in rank:
                msg = f"Category {stats.category} is not in the requested categories"
                raise ValueError(msg)
            record = ZonalStatRecord(
                year=int(reduction.year),
                land_cover_class=stats.category,
                mean=stats.mean,
                percentile=stats.percentile,
                count=stats.count,
            )
            keyed.append((record.year, rank[stats.category], record))

    keyed.sort(key=lambda item: (item[0], item[1]))
    return [record for _, _, record in keyed]
