# ============================================================================
# src/symptom_trends/config/thresholds_config.py
# ============================================================================
"""
Trend Thresholds
- Minimum history before a trend is shown
- Stable band for slope
- Confidence buckets over R²
"""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class ThresholdSettings(BaseSettings):
    MIN_RAW_RECORDS: int = Field(
        default=14,
        ge=2,
        description="Fewer daily records than this short-circuits to 'no trend' before extraction"
    )
    MIN_TREND_POINTS: int = Field(
        default=14,
        ge=2,
        description="Extracted points required by input validation before a regression is run"
    )
    MIN_INTERPRETATION_SAMPLES: int = Field(
        default=14,
        ge=1,
        description="Below this sample size the interpreter reports 'Insufficient data'"
    )
    STABLE_SLOPE_THRESHOLD: float = Field(
        default=0.1,
        ge=0.0,
        description="Slopes with absolute value at or below this are 'stable'"
    )
    VERY_HIGH_CONFIDENCE: float = Field(
        default=90.0,
        description="R² percentage at or above which confidence is 'very-high'"
    )
    HIGH_CONFIDENCE: float = Field(
        default=70.0,
        description="R² percentage at or above which confidence is 'high'"
    )
    MODERATE_CONFIDENCE: float = Field(
        default=50.0,
        description="R² percentage at or above which confidence is 'moderate'"
    )

    @model_validator(mode="after")
    def _check_confidence_order(self):
        if not (self.VERY_HIGH_CONFIDENCE >= self.HIGH_CONFIDENCE >= self.MODERATE_CONFIDENCE):
            raise ValueError(
                "Confidence thresholds must satisfy VERY_HIGH >= HIGH >= MODERATE"
            )
        return self


threshold_settings = ThresholdSettings()
