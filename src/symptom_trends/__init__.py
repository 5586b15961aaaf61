# ============================================================================
# src/symptom_trends/__init__.py
# ============================================================================
"""
Symptom Trend Engine

Linear trend analysis over daily health records with result caching and
background computation for long histories.
"""

__version__ = "0.1.0"

from .temporal import (
    Point,
    RegressionResult,
    TrendInterpretation,
    MetricSeries,
    AnalysisCacheEntry,
    compute_linear_regression,
    predict,
    validate_regression_input,
    remove_outliers,
    extract_points,
    build_series,
    interpret,
    TrendInterpreter,
)
from .core import (
    AnalysisCache,
    SQLiteAnalysisCache,
    ComputeDispatcher,
    TrendAnalysisService,
)
from .utils.exceptions import (
    TrendAnalysisError,
    InsufficientDataError,
    DegenerateInputError,
    DataAccessError,
    TimeRangeError,
)
