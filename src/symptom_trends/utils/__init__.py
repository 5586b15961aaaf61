# ============================================================================
# src/symptom_trends/utils/__init__.py
# ============================================================================
"""
Utility modules for the symptom trend engine.
"""

from .exceptions import (
    TrendAnalysisError,
    RegressionError,
    InsufficientDataError,
    DegenerateInputError,
    DispatchError,
    WorkerError,
    CacheError,
    CacheKeyError,
    DataAccessError,
    TimeRangeError,
    ConfigurationError,
)

from .logging import (
    setup_logging,
    setup_logging_from_settings,
    log_performance,
    JsonFormatter,
    LogAdapter,
)

from .metrics import (
    MetricsCollector,
    Timer,
    get_metrics,
)

__all__ = [
    # Exceptions
    'TrendAnalysisError',
    'RegressionError',
    'InsufficientDataError',
    'DegenerateInputError',
    'DispatchError',
    'WorkerError',
    'CacheError',
    'CacheKeyError',
    'DataAccessError',
    'TimeRangeError',
    'ConfigurationError',
    # Logging
    'setup_logging',
    'setup_logging_from_settings',
    'log_performance',
    'JsonFormatter',
    'LogAdapter',
    # Metrics
    'MetricsCollector',
    'Timer',
    'get_metrics',
]
