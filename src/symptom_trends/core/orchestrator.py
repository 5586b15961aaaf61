# ============================================================================
# src/symptom_trends/core/orchestrator.py
# ============================================================================
"""
Trend Analysis Orchestrator

This is the entry point the UI layer calls.

Flow per analyze() call:
1. Cache check - a hit is returned as-is
2. Fetch daily records for the resolved time range
3. Extract the metric's points
4. Validate that the series is worth a trend line
5. Compute the regression through the dispatcher
6. Write the result through to the cache

Interpretation is left to the caller (interpret()), it is never cached.
"Not enough data" is a normal outcome and returns None; only a failing
record store surfaces as an exception. There is no automatic retry, callers
retry manually.
"""

import inspect
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, List, Optional, Protocol, Sequence, Tuple, Union

from .analysis_cache import AnalysisCache, BaseAnalysisCache
from .dispatcher import ComputeDispatcher
from ..config.base_config import BaseSettingsConfig, base_settings
from ..config.thresholds_config import ThresholdSettings, threshold_settings
from ..temporal.interpreter import TrendInterpreter
from ..temporal.models import (
    AnalysisCacheEntry,
    MetricSeries,
    Point,
    RegressionResult,
    TrendInterpretation,
)
from ..temporal.point_extractor import build_series
from ..temporal.regression import remove_outliers, validate_regression_input
from ..temporal.time_range import DateWindow, parse_time_range
from ..utils.exceptions import DataAccessError, DegenerateInputError, InsufficientDataError
from ..utils.logging import LogAdapter


class DataAccess(Protocol):
    """Record store collaborator. May be implemented sync or async."""

    def get_records_by_date_range(
        self,
        user_id: str,
        start_date: str,
        end_date: str,
    ) -> Union[List[Any], Awaitable[List[Any]]]:
        ...


class TrendAnalysisService:
    """
    Composes cache, extraction, regression and dispatch.

    The worker pool is owned by the injected ComputeDispatcher; the service
    never creates a global one. Tests can pass a dispatcher with
    pool_size=0 to force the synchronous path.

    Example:
        service = TrendAnalysisService(data_access=repo)
        result = await service.analyze("user-1", "symptom:joint-pain", "90d")
        if result is not None:
            label = service.interpret(result, sample_size)
    """

    def __init__(
        self,
        data_access: DataAccess,
        cache: Optional[BaseAnalysisCache] = None,
        dispatcher: Optional[ComputeDispatcher] = None,
        interpreter: Optional[TrendInterpreter] = None,
        settings: Optional[BaseSettingsConfig] = None,
        thresholds: Optional[ThresholdSettings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.data_access = data_access
        self.cache = cache if cache is not None else AnalysisCache()
        self.dispatcher = dispatcher if dispatcher is not None else ComputeDispatcher()
        self.thresholds = thresholds or threshold_settings
        self.interpreter = interpreter or TrendInterpreter(self.thresholds)
        self.settings = settings or base_settings
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.logger = logging.getLogger(__name__)

    # ========================================================================
    # MAIN ANALYSIS PIPELINE
    # ========================================================================

    async def analyze(
        self,
        user_id: str,
        metric: str,
        time_range: str,
    ) -> Optional[RegressionResult]:
        """
        Trend for a metric over a time range, from cache when available.

        Args:
            user_id: Owner of the records
            metric: Metric identifier (see point_extractor)
            time_range: "<N>d", "<N>y" or "all"

        Returns:
            RegressionResult, or None when there is no meaningful trend

        Raises:
            DataAccessError: The record store failed; nothing is cached
            TimeRangeError: Malformed time range
        """
        log = LogAdapter(self.logger, {"user_id": user_id, "metric": metric, "time_range": time_range})

        cached = self.cache.get_result(user_id, metric, time_range)
        if cached is not None:
            if cached.x_unit_ms == self.settings.X_AXIS_UNIT_MS:
                log.debug(f"Cache hit for {metric} over {time_range}")
                return cached.result
            log.info(
                f"Cached trend for {metric} over {time_range} uses x unit {cached.x_unit_ms} ms, "
                f"recomputing for {self.settings.X_AXIS_UNIT_MS} ms"
            )

        window, records = await self._fetch_records(user_id, time_range)
        if len(records) < self.thresholds.MIN_RAW_RECORDS:
            log.info(
                f"Only {len(records)} records for {metric} over {time_range} "
                f"(need {self.thresholds.MIN_RAW_RECORDS}); no trend"
            )
            return None

        points = build_series(records, metric, window).points

        validation = validate_regression_input(points, self.thresholds.MIN_TREND_POINTS)
        if not validation.is_valid:
            log.info(f"No trend for {metric} over {time_range}: {validation.error}")
            return None

        if self.settings.REMOVE_OUTLIERS:
            points = remove_outliers(points)

        try:
            result = await self.dispatcher.dispatch(self._scale_x(points))
        except (InsufficientDataError, DegenerateInputError) as e:
            log.info(f"No trend for {metric} over {time_range}: {e}")
            return None

        self.cache.save_result(AnalysisCacheEntry(
            user_id=user_id,
            metric=metric,
            time_range=time_range,
            result=result,
            created_at=self._clock(),
            x_unit_ms=self.settings.X_AXIS_UNIT_MS,
        ))
        log.debug(
            f"Computed trend for {metric} over {time_range}: "
            f"slope={result.slope:.4f} r2={result.r_squared:.3f} n={len(points)}"
        )
        return result

    async def fetch_metric_series(self, user_id: str, metric: str, time_range: str) -> MetricSeries:
        """
        Records for the range, mapped to a metric series.

        Charts use this for the raw points and the sample size that
        interpret() needs.
        """
        window, records = await self._fetch_records(user_id, time_range)
        return build_series(records, metric, window)

    def interpret(self, result: RegressionResult, sample_size: int) -> TrendInterpretation:
        """Label a result; called by the UI on whatever analyze() returned"""
        return self.interpreter.interpret(result, sample_size)

    def invalidate(self, user_id: str, metric: Optional[str] = None, time_range: Optional[str] = None) -> int:
        """Drop cached trends, e.g. after the user logs new data"""
        return self.cache.invalidate_cache(user_id, metric, time_range)

    # ========================================================================
    # HELPERS
    # ========================================================================

    async def _fetch_records(self, user_id: str, time_range: str) -> Tuple[DateWindow, List[Any]]:
        window = parse_time_range(
            time_range,
            now=self._clock(),
            all_time_years=self.settings.ALL_TIME_YEARS,
        )

        try:
            records = self.data_access.get_records_by_date_range(
                user_id, window.start_date, window.end_date
            )
            if inspect.isawaitable(records):
                records = await records
        except Exception as e:
            self.logger.error(f"Record fetch failed for user {user_id} over {time_range}: {e}")
            raise DataAccessError(
                f"Failed to load records for user {user_id} over {time_range}: {e}",
                user_id=user_id,
                time_range=time_range,
            ) from e

        return window, list(records or [])

    def _scale_x(self, points: Sequence[Point]) -> List[Point]:
        """Express x in X_AXIS_UNIT_MS units so slopes read per day by default"""
        unit = self.settings.X_AXIS_UNIT_MS
        if unit == 1:
            return list(points)
        return [Point(x=p.x / unit, y=p.y) for p in points]
