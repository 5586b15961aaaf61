# ============================================================================
# tests/unit/test_dispatcher.py
# ============================================================================
"""
Tests for the compute dispatcher
"""

import asyncio
from concurrent.futures import BrokenExecutor, Executor, Future, ProcessPoolExecutor, ThreadPoolExecutor

import pytest

from symptom_trends.core.dispatcher import (
    ComputeDispatcher,
    default_executor_factory,
    run_regression_task,
)
from symptom_trends.temporal.models import Point
from symptom_trends.temporal.regression import compute_linear_regression
from symptom_trends.utils.exceptions import (
    ConfigurationError,
    DegenerateInputError,
    InsufficientDataError,
)
from symptom_trends.utils.metrics import MetricsCollector


class SpyFactory:
    """Executor factory that records calls and builds a real thread pool"""

    def __init__(self):
        self.calls = []

    def __call__(self, pool_size):
        self.calls.append(pool_size)
        return ThreadPoolExecutor(max_workers=pool_size)


class ScriptedExecutor(Executor):
    """Executor whose futures resolve to a fixed payload or exception"""

    def __init__(self, payload=None, error=None):
        self.payload = payload
        self.error = error
        self.submitted = 0
        self.was_shutdown = False

    def submit(self, fn, *args, **kwargs):
        self.submitted += 1
        future = Future()
        if self.error is not None:
            future.set_exception(self.error)
        else:
            future.set_result(self.payload)
        return future

    def shutdown(self, wait=True, **kwargs):
        self.was_shutdown = True


@pytest.fixture
def metrics():
    return MetricsCollector()


def _dispatcher(metrics, **kwargs):
    kwargs.setdefault("pool_size", 2)
    kwargs.setdefault("threshold", 100)
    return ComputeDispatcher(metrics=metrics, **kwargs)


class TestSyncPath:
    """Test series at or below the threshold"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("count", [2, 20, 100])
    async def test_small_series_never_touch_pool(self, metrics, count):
        """Test series at or below the threshold run in-process"""
        spy = SpyFactory()
        points = [Point(x=float(i), y=3.0 * i) for i in range(count)]

        with _dispatcher(metrics, executor_factory=spy) as dispatcher:
            outcome = await dispatcher.dispatch_with_outcome(points)

        assert spy.calls == []
        assert outcome.path == "sync"
        assert outcome.result.slope == pytest.approx(3.0)
        assert metrics.get_counter("dispatch.sync") == 1

    @pytest.mark.asyncio
    async def test_sync_errors_propagate(self, sync_dispatcher):
        """Test regression errors on the sync path"""
        with pytest.raises(InsufficientDataError):
            await sync_dispatcher.dispatch([Point(x=1.0, y=1.0)])

    @pytest.mark.asyncio
    async def test_zero_pool_size_is_sync(self, metrics, large_linear_points):
        """Test a disabled pool"""
        spy = SpyFactory()
        dispatcher = _dispatcher(metrics, pool_size=0, executor_factory=spy)

        outcome = await dispatcher.dispatch_with_outcome(large_linear_points)

        assert outcome.path == "sync"
        assert spy.calls == []
        assert dispatcher.workers_available is False


class TestWorkerPath:
    """Test series above the threshold"""

    @pytest.mark.asyncio
    async def test_matches_sync_result(self, metrics, large_linear_points):
        """Test the worker result equals the in-process result"""
        async with _dispatcher(metrics) as dispatcher:
            outcome = await dispatcher.dispatch_with_outcome(large_linear_points)

        assert outcome.path == "worker"
        assert outcome.result == compute_linear_regression(large_linear_points)
        assert metrics.get_counter("dispatch.worker") == 1
        assert metrics.get_timer_stats("dispatch.duration")["count"] == 1

    @pytest.mark.asyncio
    async def test_pool_created_once_lazily(self, metrics, large_linear_points):
        """Test the pool is built on first large dispatch only"""
        spy = SpyFactory()

        async with _dispatcher(metrics, executor_factory=spy) as dispatcher:
            assert spy.calls == []
            await dispatcher.dispatch(large_linear_points)
            await dispatcher.dispatch(large_linear_points)

        assert spy.calls == [2]

    @pytest.mark.asyncio
    async def test_concurrent_requests_queue(self, metrics, large_linear_points):
        """Test more concurrent requests than workers all complete"""
        expected = compute_linear_regression(large_linear_points)

        async with _dispatcher(metrics, pool_size=2) as dispatcher:
            results = await asyncio.gather(
                *(dispatcher.dispatch(large_linear_points) for _ in range(6))
            )

        assert results == [expected] * 6
        assert metrics.get_counter("dispatch.worker") == 6

    @pytest.mark.asyncio
    async def test_degenerate_input_on_worker_raises(self, metrics):
        """Test regression errors surface without a fallback"""
        points = [Point(x=42.0, y=float(i)) for i in range(150)]

        async with _dispatcher(metrics) as dispatcher:
            with pytest.raises(DegenerateInputError) as exc_info:
                await dispatcher.dispatch(points)

        assert exc_info.value.point_count == 150
        assert metrics.get_counter("dispatch.fallback") == 0

    @pytest.mark.asyncio
    async def test_start_creates_pool(self, metrics):
        """Test explicit start and shutdown"""
        dispatcher = _dispatcher(metrics)

        assert dispatcher.start() is True
        assert dispatcher.workers_available is True
        assert metrics.get_gauge("dispatch.pool_size") == 2

        dispatcher.shutdown()
        assert dispatcher.workers_available is False
        assert metrics.get_gauge("dispatch.pool_size") == 0


class TestFallback:
    """Test recovery from worker failures"""

    @pytest.mark.asyncio
    async def test_pool_creation_failure(self, metrics, large_linear_points):
        """Test a factory that cannot build a pool"""
        def failing_factory(pool_size):
            raise OSError("cannot spawn workers")

        dispatcher = _dispatcher(metrics, executor_factory=failing_factory)

        outcome = await dispatcher.dispatch_with_outcome(large_linear_points)
        second = await dispatcher.dispatch_with_outcome(large_linear_points)

        assert outcome.path == "sync"
        assert second.path == "sync"
        assert outcome.result == compute_linear_regression(large_linear_points)
        assert metrics.get_counter("dispatch.pool_unavailable") == 1
        assert dispatcher.start() is False

    @pytest.mark.asyncio
    async def test_worker_crash(self, metrics, large_linear_points):
        """Test a task that raises on the worker"""
        executor = ScriptedExecutor(error=RuntimeError("worker died"))
        dispatcher = _dispatcher(metrics, executor_factory=lambda size: executor)

        outcome = await dispatcher.dispatch_with_outcome(large_linear_points)

        assert outcome.path == "fallback"
        assert "worker died" in outcome.fallback_reason
        assert outcome.result == compute_linear_regression(large_linear_points)
        assert metrics.get_counter("dispatch.fallback") == 1

    @pytest.mark.asyncio
    async def test_broken_pool_is_replaced(self, metrics, large_linear_points):
        """Test a broken pool is rebuilt on the next dispatch"""
        executors = [ScriptedExecutor(error=BrokenExecutor("pool broke"))]
        healthy = ScriptedExecutor(payload=run_regression_task([(p.x, p.y) for p in large_linear_points]))
        executors.append(healthy)
        dispatcher = _dispatcher(metrics, executor_factory=lambda size: executors.pop(0))

        first = await dispatcher.dispatch_with_outcome(large_linear_points)
        second = await dispatcher.dispatch_with_outcome(large_linear_points)

        assert first.path == "fallback"
        assert second.path == "worker"
        assert healthy.submitted == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        None,
        "not a dict",
        {"result": {}},
        {"ok": True, "result": {"slope": 1.0}},
        {"ok": False, "error_type": "MemoryError", "message": "boom"},
    ])
    async def test_malformed_payload(self, metrics, large_linear_points, payload):
        """Test replies the worker task never produces"""
        executor = ScriptedExecutor(payload=payload)
        dispatcher = _dispatcher(metrics, executor_factory=lambda size: executor)

        outcome = await dispatcher.dispatch_with_outcome(large_linear_points)

        assert outcome.path == "fallback"
        assert outcome.result == compute_linear_regression(large_linear_points)

    @pytest.mark.asyncio
    async def test_after_shutdown_runs_sync(self, metrics, large_linear_points):
        """Test dispatch after shutdown"""
        spy = SpyFactory()
        dispatcher = _dispatcher(metrics, executor_factory=spy)
        dispatcher.shutdown()

        outcome = await dispatcher.dispatch_with_outcome(large_linear_points)

        assert outcome.path == "sync"
        assert spy.calls == []


class TestWorkerTask:
    """Test run_regression_task payloads"""

    def test_ok_payload(self):
        """Test a successful task reply"""
        payload = run_regression_task([(0.0, 1.0), (1.0, 3.0), (2.0, 5.0)])

        assert payload["ok"] is True
        assert payload["result"]["slope"] == pytest.approx(2.0)
        assert set(payload["result"]) == {"slope", "intercept", "rSquared"}

    def test_error_payload(self):
        """Test a regression error reply"""
        payload = run_regression_task([(1.0, 1.0)])

        assert payload == {
            "ok": False,
            "error_type": "InsufficientDataError",
            "message": payload["message"],
            "point_count": 1,
        }


class TestConstruction:
    """Test executor factories and configuration"""

    def test_default_factory_backends(self):
        """Test executor types per backend"""
        thread_pool = default_executor_factory("thread")(1)
        process_pool = default_executor_factory("process")(1)
        try:
            assert isinstance(thread_pool, ThreadPoolExecutor)
            assert isinstance(process_pool, ProcessPoolExecutor)
        finally:
            thread_pool.shutdown()
            process_pool.shutdown()

    def test_unknown_backend(self):
        """Test an unknown backend name"""
        with pytest.raises(ConfigurationError):
            ComputeDispatcher(backend="gpu")
