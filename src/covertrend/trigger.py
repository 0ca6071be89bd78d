"""Interactive trigger: one analysis per point selection.

The map's click dispatcher calls ``AnalysisTrigger.select_point()``.
At most one analysis is authoritative per trigger: a new selection
cancels the previous one and a superseded analysis never reaches the
presentation callbacks, whatever order the runs finish in.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor

from covertrend._pipeline import run_analysis
from covertrend.aoi import area_of_interest
from covertrend.config import Config, get_default_config
from covertrend.exceptions import (
    AnalysisCancelledError,
    CovertrendError,
    SourceUnavailableError,
)
from covertrend.results import AnalysisCompleted, AnalysisFailed
from covertrend.sources.base import ClimateSeriesSource, LandCoverSource

logger = logging.getLogger(__name__)

CompletedCallback = Callable[[AnalysisCompleted], None]
FailedCallback = Callable[[AnalysisFailed], None]


class AnalysisTrigger:
    """Runs the pipeline for each selected point, last selection wins.

    Callbacks are invoked from a worker thread while the trigger's lock
    is held, so a delivered result is always the newest one; they
    should hand the event to the UI thread and return quickly.

    Args:
        landcover: Categorical land cover source.
        climate: Climate series source.
        config: Configuration snapshot; module defaults when ``None``.
        on_completed: Receives each authoritative ``AnalysisCompleted``.
        on_failed: Receives ``AnalysisFailed`` when the current
            selection fails. Errors outside the covertrend hierarchy
            arrive wrapped in ``SourceUnavailableError``.

    Example:
        >>> trigger = AnalysisTrigger(landcover, climate, on_completed=show)
        >>> trigger.select_point(lon=-114.07, lat=51.05)  # doctest: +SKIP
    """

    def __init__(
        self,
        landcover: LandCoverSource,
        climate: ClimateSeriesSource,
        config: Config | None = None,
        on_completed: CompletedCallback | None = None,
        on_failed: FailedCallback | None = None,
    ) -> None:
        self._landcover = landcover
        self._climate = climate
        self._config = config if config is not None else get_default_config()
        self._on_completed = on_completed
        self._on_failed = on_failed

        self._lock = threading.RLock()
        self._generation = 0
        self._cancel_event: threading.Event | None = None
        self._pending: Future[AnalysisCompleted | None] | None = None
        self._latest: AnalysisCompleted | None = None
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="covertrend-trigger"
        )

    @property
    def config(self) -> Config:
        """Configuration snapshot used for every selection."""
        return self._config

    @property
    def latest(self) -> AnalysisCompleted | None:
        """Result of the newest selection that completed, if any."""
        with self._lock:
            return self._latest

    def select_point(self, lon: float, lat: float) -> Future[AnalysisCompleted | None]:
        """Start the analysis of a newly selected point.

        Cancels the in-flight analysis of any earlier selection.

        Args:
            lon: Longitude of the selection in WGS84 degrees.
            lat: Latitude of the selection in WGS84 degrees.

        Returns:
            Future resolving to the ``AnalysisCompleted`` of this
            selection, or ``None`` if it was superseded or failed.
        """
        with self._lock:
            self._generation += 1
            generation = self._generation
            if self._cancel_event is not None:
                self._cancel_event.set()
            if self._pending is not None:
                self._pending.cancel()
            cancel_event = threading.Event()
            self._cancel_event = cancel_event
            future = self._executor.submit(
                self._execute, generation, cancel_event, lon, lat
            )
            self._pending = future
        logger.debug("Selection %d at (%s, %s) submitted", generation, lon, lat)
        return future

    def run(self, lon: float, lat: float) -> AnalysisCompleted | None:
        """Select a point and wait for its analysis."""
        return self.select_point(lon, lat).result()

    def close(self) -> None:
        """Cancel any in-flight analysis and stop the worker."""
        with self._lock:
            self._generation += 1
            if self._cancel_event is not None:
                self._cancel_event.set()
        self._executor.shutdown(wait=True, cancel_futures=True)

    def __enter__(self) -> AnalysisTrigger:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    def _deliver_failure(self, generation: int, failure: AnalysisFailed) -> None:
        with self._lock:
            if not self._is_current(generation):
                logger.debug("Discarding failure of stale selection %d", generation)
                return
            if self._on_failed is not None:
                self._on_failed(failure)

    def _execute(
        self,
        generation: int,
        cancel_event: threading.Event,
        lon: float,
        lat: float,
    ) -> AnalysisCompleted | None:
        try:
            aoi = area_of_interest(lon, lat, self._config.buffer_radius_m)
            result = run_analysis(
                aoi,
                self._config,
                self._landcover,
                self._climate,
                cancel_event=cancel_event,
            )
        except AnalysisCancelledError:
            logger.debug("Selection %d cancelled", generation)
            return None
        except CovertrendError as exc:
            logger.warning("Analysis at (%s, %s) failed: %s", lon, lat, exc)
            self._deliver_failure(generation, AnalysisFailed(lon=lon, lat=lat, error=exc))
            return None
        except Exception as exc:
            logger.exception("Unexpected error analysing (%s, %s)", lon, lat)
            error = SourceUnavailableError(
                what=f"Analysis at ({lon}, {lat}) failed",
                cause=f"{type(exc).__name__}: {exc}",
                fix="Check the land cover and climate sources, then select the point again",
            )
            error.__cause__ = exc
            self._deliver_failure(generation, AnalysisFailed(lon=lon, lat=lat, error=error))
            return None

        with self._lock:
            if not self._is_current(generation):
                logger.debug("Discarding result of stale selection %d", generation)
                return None
            self._latest = result
            if self._on_completed is not None:
                self._on_completed(result)
        return result
