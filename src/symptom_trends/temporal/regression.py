# ============================================================================
# src/symptom_trends/temporal/regression.py
# ============================================================================
"""
Regression Engine - least-squares trend line and goodness of fit

Formula:
- slope     = (n*Σxy - Σx*Σy) / (n*Σx² - (Σx)²)
- intercept = (Σy - slope*Σx) / n
- R²        = 1 - SS_residual / SS_total

Every function here is pure: inputs are never mutated and the same points
always produce bit-identical results.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .models import Point, RegressionResult
from ..utils.exceptions import DegenerateInputError, InsufficientDataError

logger = logging.getLogger(__name__)

EPSILON = float(np.finfo(np.float64).eps)

DEFAULT_MIN_POINTS = 14


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validate_regression_input"""
    is_valid: bool
    error: Optional[str] = None


def _to_arrays(points: Sequence[Point]) -> Tuple[np.ndarray, np.ndarray]:
    n = len(points)
    xs = np.fromiter((p.x for p in points), dtype=np.float64, count=n)
    ys = np.fromiter((p.y for p in points), dtype=np.float64, count=n)
    return xs, ys


def compute_linear_regression(points: Sequence[Point]) -> RegressionResult:
    """
    Compute a least-squares regression line.

    Args:
        points: Sequence of Points in any order

    Returns:
        RegressionResult with slope, intercept and R²

    Raises:
        InsufficientDataError: Fewer than 2 points
        DegenerateInputError: All x values identical
    """
    count = len(points) if points is not None else 0
    if count < 2:
        raise InsufficientDataError(
            f"Linear regression requires at least 2 data points, got {count}",
            point_count=count,
        )

    xs, ys = _to_arrays(points)
    n = float(count)

    sum_x = float(np.sum(xs))
    sum_y = float(np.sum(ys))
    sum_xy = float(np.sum(xs * ys))
    sum_x2 = float(np.sum(xs * xs))

    denominator = n * sum_x2 - sum_x * sum_x

    # Identical x values can still leave a few ULPs of rounding in the
    # denominator when timestamps are large, so the x spread is checked too.
    x_min, x_max = float(np.min(xs)), float(np.max(xs))
    x_scale = max(abs(x_min), abs(x_max), 1.0)
    if abs(denominator) < EPSILON or (x_max - x_min) <= EPSILON * x_scale:
        raise DegenerateInputError(
            "Cannot compute regression: all x values are identical",
            point_count=count,
        )

    slope = (n * sum_xy - sum_x * sum_y) / denominator
    intercept = (sum_y - slope * sum_x) / n

    r_squared = _calculate_r_squared(xs, ys, slope, intercept)

    return RegressionResult(slope=slope, intercept=intercept, r_squared=r_squared)


def _calculate_r_squared(
    xs: np.ndarray,
    ys: np.ndarray,
    slope: float,
    intercept: float
) -> float:
    """
    Calculate R² (coefficient of determination).

    1 is a perfect fit, 0 means the line explains nothing. Values below 0
    are possible and returned unchanged.
    """
    y_mean = float(np.sum(ys)) / len(ys)
    ss_total = float(np.sum((ys - y_mean) ** 2))

    if abs(ss_total) < EPSILON:
        # Flat series: a flat line fits it perfectly, any other line does not
        return 1.0 if abs(slope) < EPSILON else 0.0

    predicted = slope * xs + intercept
    ss_residual = float(np.sum((ys - predicted) ** 2))

    return 1.0 - ss_residual / ss_total


def predict(x: float, regression: RegressionResult) -> float:
    """Predict y for x on the regression line"""
    return regression.slope * x + regression.intercept


def validate_regression_input(
    points: Sequence[Point],
    min_points: int = DEFAULT_MIN_POINTS
) -> ValidationResult:
    """
    Check whether a series is worth a trend line.

    Checks:
    - At least min_points points
    - Every coordinate finite (no NaN or infinity)
    - Some spread in x values

    This is advisory; compute_linear_regression only enforces 2 points.
    """
    if not points or len(points) < min_points:
        return ValidationResult(
            is_valid=False,
            error=f"Minimum {min_points} data points required for trend analysis",
        )

    xs, ys = _to_arrays(points)

    if not (np.all(np.isfinite(xs)) and np.all(np.isfinite(ys))):
        return ValidationResult(
            is_valid=False,
            error="Data contains invalid numeric values (NaN or Infinity)",
        )

    if float(np.max(xs)) - float(np.min(xs)) < EPSILON:
        return ValidationResult(
            is_valid=False,
            error="Insufficient variance in x values (all points have same x coordinate)",
        )

    return ValidationResult(is_valid=True)


def remove_outliers(points: Sequence[Point]) -> List[Point]:
    """
    Drop points whose y lies outside [Q1 - 1.5*IQR, Q3 + 1.5*IQR].

    Quartiles are read straight from the sorted y values at n//4 and 3n//4.
    Fewer than 4 points are returned unchanged.
    """
    if len(points) < 4:
        return list(points)

    sorted_y = sorted(p.y for p in points)
    n = len(sorted_y)

    q1 = sorted_y[n // 4]
    q3 = sorted_y[(3 * n) // 4]
    iqr = q3 - q1

    lower_bound = q1 - 1.5 * iqr
    upper_bound = q3 + 1.5 * iqr

    kept = [p for p in points if lower_bound <= p.y <= upper_bound]
    if len(kept) != len(points):
        logger.debug(f"Removed {len(points) - len(kept)} outliers outside [{lower_bound}, {upper_bound}]")
    return kept
