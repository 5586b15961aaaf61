# ============================================================================
# src/symptom_trends/core/dispatcher.py
# ============================================================================
"""
Compute Dispatcher - decides where a regression runs

Small series are computed in-process. Series longer than WORKER_THRESHOLD
go to a bounded pool of background workers so a large history does not
block the event loop. Work beyond the pool size waits in the executor's
FIFO queue.

A failing worker never fails the caller: the failure is logged and the
regression is recomputed synchronously. Regression errors themselves
(too few points, identical x values) are not worker failures and surface
exactly as they would from a synchronous call.
"""

import asyncio
import logging
import threading
from concurrent.futures import BrokenExecutor, Executor, ProcessPoolExecutor, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from ..config.worker_config import worker_settings
from ..temporal.models import Point, RegressionResult
from ..temporal.regression import compute_linear_regression
from ..utils.exceptions import (
    ConfigurationError,
    DegenerateInputError,
    InsufficientDataError,
    RegressionError,
    WorkerError,
)
from ..utils.metrics import MetricsCollector, Timer, get_metrics

logger = logging.getLogger(__name__)

ExecutorFactory = Callable[[int], Executor]

BACKENDS = ("thread", "process")

_REGRESSION_ERRORS = {
    "InsufficientDataError": InsufficientDataError,
    "DegenerateInputError": DegenerateInputError,
}


# ----------------------------------------------------------------------------
# Worker task
# ----------------------------------------------------------------------------

def run_regression_task(coordinates: Sequence[Tuple[float, float]]) -> Dict[str, Any]:
    """
    Entry point executed on a worker.

    Takes plain (x, y) tuples so the payload pickles cheaply for process
    workers, and answers with a plain dict rather than raising.
    """
    points = [Point(x=x, y=y) for x, y in coordinates]
    try:
        result = compute_linear_regression(points)
    except RegressionError as e:
        return {
            "ok": False,
            "error_type": type(e).__name__,
            "message": str(e),
            "point_count": len(points),
        }
    return {"ok": True, "result": result.to_dict()}


@dataclass(frozen=True)
class WorkerOk:
    result: RegressionResult


@dataclass(frozen=True)
class WorkerErr:
    reason: str
    regression_error: Optional[RegressionError] = None


WorkerReply = Union[WorkerOk, WorkerErr]


@dataclass(frozen=True)
class DispatchOutcome:
    """
    Result of a dispatch plus the path that produced it.

    path is "sync" (computed in-process), "worker" (computed on the pool)
    or "fallback" (pool failed, recomputed in-process; see fallback_reason).
    """
    result: RegressionResult
    path: str
    fallback_reason: Optional[str] = None


def default_executor_factory(backend: str) -> ExecutorFactory:
    """Executor factory for the configured backend"""
    def factory(pool_size: int) -> Executor:
        if backend == "process":
            return ProcessPoolExecutor(max_workers=pool_size)
        return ThreadPoolExecutor(max_workers=pool_size, thread_name_prefix="trend-worker")
    return factory


# ----------------------------------------------------------------------------
# Dispatcher
# ----------------------------------------------------------------------------

class ComputeDispatcher:
    """
    Owns the worker pool used for background regressions.

    The pool is created lazily on the first large dispatch (or by start()).
    If it cannot be created the dispatcher keeps working with an empty pool
    and computes everything synchronously.

    Example:
        async with ComputeDispatcher(pool_size=2) as dispatcher:
            result = await dispatcher.dispatch(points)
    """

    def __init__(
        self,
        pool_size: Optional[int] = None,
        threshold: Optional[int] = None,
        backend: Optional[str] = None,
        executor_factory: Optional[ExecutorFactory] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.pool_size = pool_size if pool_size is not None else worker_settings.WORKER_POOL_SIZE
        self.threshold = threshold if threshold is not None else worker_settings.WORKER_THRESHOLD
        self.backend = backend or worker_settings.WORKER_BACKEND
        if self.backend not in BACKENDS:
            raise ConfigurationError(
                f"Unknown worker backend '{self.backend}' (expected one of {', '.join(BACKENDS)})"
            )
        self._executor_factory = executor_factory or default_executor_factory(self.backend)
        self.metrics = metrics or get_metrics()

        self._executor: Optional[Executor] = None
        self._pool_failed = False
        self._closed = False
        self._lock = threading.Lock()

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    def start(self) -> bool:
        """Create the pool now instead of on first use. Returns availability."""
        return self._ensure_pool()

    def shutdown(self, wait: bool = True) -> None:
        """Release all workers. Later dispatches run synchronously."""
        with self._lock:
            executor, self._executor = self._executor, None
            self._closed = True
        self.metrics.set_gauge("dispatch.pool_size", 0)
        if executor is not None:
            executor.shutdown(wait=wait)
            logger.info("Compute dispatcher worker pool shut down")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await asyncio.to_thread(self.shutdown)

    @property
    def workers_available(self) -> bool:
        return self._executor is not None

    def _ensure_pool(self) -> bool:
        with self._lock:
            if self._executor is not None:
                return True
            if self._closed or self._pool_failed or self.pool_size <= 0:
                return False
            try:
                self._executor = self._executor_factory(self.pool_size)
            except Exception as e:
                self._pool_failed = True
                self.metrics.increment("dispatch.pool_unavailable")
                self.metrics.set_gauge("dispatch.pool_size", 0)
                logger.warning(f"Worker pool unavailable, computing synchronously: {e}")
                return False
            self.metrics.set_gauge("dispatch.pool_size", self.pool_size)
            logger.info(f"Started {self.backend} worker pool with {self.pool_size} workers")
            return True

    def _discard_broken_pool(self) -> None:
        """Drop a broken executor so the next large dispatch builds a fresh one"""
        with self._lock:
            executor, self._executor = self._executor, None
        self.metrics.set_gauge("dispatch.pool_size", 0)
        if executor is not None:
            executor.shutdown(wait=False)

    # ========================================================================
    # DISPATCH
    # ========================================================================

    async def dispatch(self, points: Sequence[Point]) -> RegressionResult:
        """
        Compute a regression, on a worker when the series is large.

        Raises:
            InsufficientDataError, DegenerateInputError: as compute_linear_regression
        """
        outcome = await self.dispatch_with_outcome(points)
        return outcome.result

    async def dispatch_with_outcome(self, points: Sequence[Point]) -> DispatchOutcome:
        """Like dispatch(), but reports which path produced the result"""
        points = list(points)

        with Timer(self.metrics, "dispatch.duration"):
            if len(points) > self.threshold and self._ensure_pool():
                reply = await self._run_on_worker(points)

                if isinstance(reply, WorkerOk):
                    self.metrics.increment("dispatch.worker")
                    return DispatchOutcome(result=reply.result, path="worker")

                if reply.regression_error is not None:
                    raise reply.regression_error

                self.metrics.increment("dispatch.fallback")
                logger.warning(
                    f"Worker regression over {len(points)} points failed ({reply.reason}); "
                    f"falling back to synchronous computation"
                )
                result = compute_linear_regression(points)
                return DispatchOutcome(result=result, path="fallback", fallback_reason=reply.reason)

            self.metrics.increment("dispatch.sync")
            return DispatchOutcome(result=compute_linear_regression(points), path="sync")

    async def _run_on_worker(self, points: List[Point]) -> WorkerReply:
        executor = self._executor
        if executor is None:
            return WorkerErr(reason="worker pool released")

        coordinates = [(p.x, p.y) for p in points]
        loop = asyncio.get_running_loop()

        try:
            payload = await loop.run_in_executor(executor, run_regression_task, coordinates)
        except BrokenExecutor as e:
            self._discard_broken_pool()
            return WorkerErr(reason=f"broken worker pool: {e}")
        except Exception as e:
            return WorkerErr(reason=f"{type(e).__name__}: {e}")

        try:
            return self._parse_payload(payload)
        except WorkerError as e:
            return WorkerErr(reason=e.reason or str(e))

    @staticmethod
    def _parse_payload(payload: Any) -> WorkerReply:
        """
        Turn a worker's dict reply into a WorkerReply.

        Raises:
            WorkerError: If the payload is not a reply run_regression_task produces
        """
        if not isinstance(payload, dict) or "ok" not in payload:
            raise WorkerError("Malformed worker payload", reason=f"malformed worker payload: {payload!r}")

        if payload["ok"]:
            try:
                return WorkerOk(result=RegressionResult.from_dict(payload["result"]))
            except (KeyError, TypeError, ValueError) as e:
                raise WorkerError("Malformed worker result", reason=f"malformed worker result: {e}") from e

        error_cls = _REGRESSION_ERRORS.get(payload.get("error_type"))
        if error_cls is None:
            raise WorkerError("Worker error", reason=f"worker error: {payload.get('message')}")
        return WorkerErr(
            reason=payload.get("message", ""),
            regression_error=error_cls(payload.get("message", ""), point_count=payload.get("point_count", 0)),
        )
