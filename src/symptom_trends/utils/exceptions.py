# ============================================================================
# src/symptom_trends/utils/exceptions.py
# ============================================================================
"""
Custom exceptions for the symptom trend engine.
"""

from typing import Optional


class TrendAnalysisError(Exception):
    """Base exception for all trend analysis errors."""
    pass


class RegressionError(TrendAnalysisError):
    """Error computing a regression."""
    pass


class InsufficientDataError(RegressionError):
    """Fewer points than the regression can be computed from."""
    def __init__(self, message: str, point_count: int):
        super().__init__(message)
        self.point_count = point_count


class DegenerateInputError(RegressionError):
    """All x values identical, slope undefined."""
    def __init__(self, message: str, point_count: int):
        super().__init__(message)
        self.point_count = point_count


class DispatchError(TrendAnalysisError):
    """Error dispatching a computation."""
    pass


class WorkerError(DispatchError):
    """Background worker failed or returned an unusable payload."""
    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.reason = reason


class CacheError(TrendAnalysisError):
    """Error with the analysis cache."""
    pass


class CacheKeyError(CacheError):
    """Key field cannot be encoded into a cache key."""
    def __init__(self, message: str, field_name: str):
        super().__init__(message)
        self.field_name = field_name


class DataAccessError(TrendAnalysisError):
    """Record store failed to return records."""
    def __init__(self, message: str, user_id: str, time_range: str):
        super().__init__(message)
        self.user_id = user_id
        self.time_range = time_range


class TimeRangeError(TrendAnalysisError, ValueError):
    """Malformed time range specifier."""
    def __init__(self, message: str, time_range: str):
        super().__init__(message)
        self.time_range = time_range


class ConfigurationError(TrendAnalysisError):
    """Invalid configuration."""
    pass
