# ============================================================================
# src/symptom_trends/core/__init__.py
# ============================================================================
"""
Caching, dispatch and orchestration.
"""

from .analysis_cache import (
    AnalysisCache,
    BaseAnalysisCache,
    CacheStatistics,
    SQLiteAnalysisCache,
    make_cache_key,
    run_periodic_cleanup,
)
from .dispatcher import ComputeDispatcher, DispatchOutcome, run_regression_task
from .orchestrator import DataAccess, TrendAnalysisService
