# ============================================================================
# src/symptom_trends/config/worker_config.py
# ============================================================================
"""
Worker Pool Settings
- Pool size
- Offload threshold
- Backend (threads or processes)
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class WorkerSettings(BaseSettings):
    WORKER_POOL_SIZE: int = Field(
        default=2,
        ge=0,
        description="Maximum concurrent background regressions; 0 disables the pool"
    )
    WORKER_THRESHOLD: int = Field(
        default=100,
        ge=0,
        description="Series longer than this are handed to the worker pool"
    )
    WORKER_BACKEND: Literal["thread", "process"] = Field(
        default="thread",
        description="Executor used for background regressions"
    )


worker_settings = WorkerSettings()
