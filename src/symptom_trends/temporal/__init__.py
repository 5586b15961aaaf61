# ============================================================================
# src/symptom_trends/temporal/__init__.py
# ============================================================================
"""
Series extraction, regression and interpretation.
"""

from .models import (
    Point,
    RegressionResult,
    TrendInterpretation,
    MetricMetadata,
    MetricSeries,
    AnalysisCacheEntry,
)
from .time_range import DateWindow, parse_time_range
from .point_extractor import build_series, extract_points, DIRECT_METRICS, DERIVED_KINDS
from .regression import (
    EPSILON,
    ValidationResult,
    compute_linear_regression,
    predict,
    validate_regression_input,
    remove_outliers,
)
from .interpreter import TrendInterpreter, interpret
