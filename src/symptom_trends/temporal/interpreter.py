# ============================================================================
# src/symptom_trends/temporal/interpreter.py
# ============================================================================
"""
Trend Interpreter

Translates a regression into the label pair shown next to a chart:
- direction: improving, worsening, stable, or "Insufficient data"
- confidence: very-high, high, moderate, low, or "N/A"

Direction assumes higher values are worse, which holds for severity and
symptom-count style metrics. For metrics where higher is better (energy,
sleep quality, adherence) construct the interpreter with
higher_is_worse=False.
"""

import logging
from typing import Optional

from .models import RegressionResult, TrendInterpretation
from ..config.thresholds_config import ThresholdSettings, threshold_settings

INSUFFICIENT_DATA = TrendInterpretation(direction="Insufficient data", confidence="N/A")


class TrendInterpreter:
    """
    Maps a regression result and sample size to a TrendInterpretation.

    The sample-size floor is separate from the regression's own 2-point
    minimum: a line can be computed from 2 points but is not worth showing.
    """

    def __init__(
        self,
        settings: Optional[ThresholdSettings] = None,
        higher_is_worse: bool = True,
    ):
        self.settings = settings or threshold_settings
        self.higher_is_worse = higher_is_worse
        self.logger = logging.getLogger(__name__)

    def interpret(self, result: RegressionResult, sample_size: int) -> TrendInterpretation:
        if sample_size < self.settings.MIN_INTERPRETATION_SAMPLES:
            return INSUFFICIENT_DATA

        return TrendInterpretation(
            direction=self._direction(result.slope),
            confidence=self._confidence(result.r_squared),
        )

    def _direction(self, slope: float) -> str:
        if abs(slope) <= self.settings.STABLE_SLOPE_THRESHOLD:
            return "stable"
        rising = slope > 0
        if self.higher_is_worse:
            return "worsening" if rising else "improving"
        return "improving" if rising else "worsening"

    def _confidence(self, r_squared: float) -> str:
        """Bucket R² as a percentage; each bucket includes its lower bound"""
        value = r_squared * 100
        if value >= self.settings.VERY_HIGH_CONFIDENCE:
            return "very-high"
        if value >= self.settings.HIGH_CONFIDENCE:
            return "high"
        if value >= self.settings.MODERATE_CONFIDENCE:
            return "moderate"
        return "low"


_default_interpreter = TrendInterpreter()


def interpret(result: RegressionResult, sample_size: int) -> TrendInterpretation:
    """Interpret a regression with the default thresholds"""
    return _default_interpreter.interpret(result, sample_size)
