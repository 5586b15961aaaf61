# ============================================================================
# src/symptom_trends/config/__init__.py
# ============================================================================
"""
Convenient imports for all settings
"""

from .base_config import base_settings, BaseSettingsConfig, MS_PER_DAY
from .thresholds_config import threshold_settings, ThresholdSettings
from .worker_config import worker_settings, WorkerSettings
from .logging_config import logging_settings, LoggingSettings
