# ============================================================================
# src/symptom_trends/temporal/models.py
# ============================================================================
"""
Data objects shared by the trend engine.

Points and results are frozen dataclasses so they can be handed to worker
threads or pickled to worker processes without copying concerns.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..config.base_config import MS_PER_DAY


@dataclass(frozen=True)
class Point:
    """Single sample: x is epoch milliseconds, y the metric value"""
    x: float
    y: float


@dataclass(frozen=True)
class RegressionResult:
    """
    Least-squares fit over a point sequence.

    r_squared is reported as computed. It can drop below zero when the
    residual sum of squares exceeds the total sum of squares, which happens
    only under floating point edge conditions; presentation code decides
    whether to clamp it.
    """
    slope: float
    intercept: float
    r_squared: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "slope": self.slope,
            "intercept": self.intercept,
            "rSquared": self.r_squared,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RegressionResult":
        return cls(
            slope=float(data["slope"]),
            intercept=float(data["intercept"]),
            r_squared=float(data["rSquared"]),
        )


@dataclass(frozen=True)
class TrendInterpretation:
    """Human-facing label pair derived from a regression"""
    direction: str  # "improving", "worsening", "stable", "Insufficient data"
    confidence: str  # "very-high", "high", "moderate", "low", "N/A"


@dataclass
class MetricMetadata:
    """Display information attached to a series"""
    label: str
    unit: Optional[str] = None
    granularity: Optional[str] = None
    summary: Dict[str, Any] = field(default_factory=dict)


@dataclass
class MetricSeries:
    """Points extracted for one metric, with the records they came from"""
    points: List[Point]
    raw: List[Any] = field(default_factory=list)
    metadata: Optional[MetricMetadata] = None

    @property
    def sample_size(self) -> int:
        return len(self.points)


@dataclass(frozen=True)
class AnalysisCacheEntry:
    """
    Cached regression for one (user, metric, time range) key.

    Attributes:
        user_id: Owner of the records
        metric: Metric identifier the series was extracted for
        time_range: Relative window specifier ("30d", "1y", "all")
        result: Regression computed from the series
        created_at: When the result was computed (timezone-aware UTC)
        x_unit_ms: Milliseconds per x unit the slope was computed in
    """
    user_id: str
    metric: str
    time_range: str
    result: RegressionResult
    created_at: datetime
    x_unit_ms: float = float(MS_PER_DAY)

    @property
    def key(self):
        return (self.user_id, self.metric, self.time_range)
