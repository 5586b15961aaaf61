# ============================================================================
# src/symptom_trends/config/base_config.py
# ============================================================================
"""
Base Configuration
- Cache storage location and freshness
- Time range resolution
- Regression input shaping
"""

from pathlib import Path
from pydantic import Field
from pydantic_settings import BaseSettings

MS_PER_DAY = 24 * 60 * 60 * 1000


class BaseSettingsConfig(BaseSettings):
    # Persistent cache database (SQLiteAnalysisCache)
    CACHE_DB_PATH: Path = Field(
        default=Path("data/analysis_cache.db"),
        description="SQLite database for persisted regression results"
    )

    CACHE_MAX_AGE_MS: int = Field(
        default=MS_PER_DAY,
        gt=0,
        description="Age after which the maintenance sweep removes a cached result"
    )

    CACHE_CLEANUP_INTERVAL_SECONDS: float = Field(
        default=3600.0,
        gt=0,
        description="Delay between maintenance sweeps of the analysis cache"
    )

    ALL_TIME_YEARS: int = Field(
        default=5,
        ge=1,
        description="How many years back the 'all' time range reaches"
    )

    X_AXIS_UNIT_MS: float = Field(
        default=float(MS_PER_DAY),
        gt=0,
        description="Timestamps are divided by this before regression; one day gives slopes in units per day"
    )

    REMOVE_OUTLIERS: bool = Field(
        default=False,
        description="Drop IQR outliers from the series before computing a trend"
    )


# Global instance
base_settings = BaseSettingsConfig()
