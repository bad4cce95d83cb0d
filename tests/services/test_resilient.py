"""
Tests for the resilient query executor.

Covers:
- Live results are returned with LIVE provenance
- Timeouts and errors answer from the fallback with a reason
- Disabled resilience surfaces PersistenceUnavailableError
- Several queries share one deadline
- LogContext fields follow the query into the worker thread
- Hung queries never delay later ones; a shut-down executor falls back
"""

import threading
import time

import pytest

from billing_kernel.exceptions import PersistenceUnavailableError
from billing_kernel.logging_config import LogContext
from billing_services.resilient import (
    DataSource,
    FallbackReason,
    ResilientQueryExecutor,
    execute_with_fallback,
)


@pytest.fixture
def executor():
    ex = ResilientQueryExecutor(timeout_ms=200)
    yield ex
    ex.shutdown()


@pytest.fixture
def release():
    """Event that blocked live queries wait on; set on teardown."""
    event = threading.Event()
    yield event
    event.set()


class TestExecute:

    def test_live_result(self, executor):
        result = executor.execute(lambda: [1, 2, 3], lambda: [], label="bills")

        assert result.value == [1, 2, 3]
        assert result.source is DataSource.LIVE
        assert result.reason is None
        assert not result.is_fallback
        assert result.label == "bills"

    def test_timeout_returns_fallback(self, executor, release, captured_logs):
        def slow():
            release.wait(5)
            return "live"

        t0 = time.monotonic()
        result = executor.execute(slow, lambda: "fallback", timeout_ms=50, label="slow")
        elapsed = time.monotonic() - t0

        assert result.value == "fallback"
        assert result.source is DataSource.FALLBACK
        assert result.reason is FallbackReason.TIMEOUT
        assert elapsed < 2
        assert any(r["message"] == "live_query_timed_out" for r in captured_logs())

    def test_error_returns_fallback(self, executor, captured_logs):
        def broken():
            raise ConnectionError("database is down")

        result = executor.execute(broken, lambda: "fallback", label="broken")

        assert result.value == "fallback"
        assert result.reason is FallbackReason.ERROR
        assert "ConnectionError" in result.error

        failed = [r for r in captured_logs() if r["message"] == "live_query_failed"]
        assert failed
        assert failed[0]["exc_type"] == "ConnectionError"
        assert "traceback" in failed[0]

    def test_fallback_factory_not_called_on_success(self, executor):
        calls = []
        executor.execute(lambda: 1, lambda: calls.append("called"))
        assert calls == []

    def test_fallback_factory_error_propagates(self, executor):
        def broken():
            raise RuntimeError("live")

        def bad_fallback():
            raise KeyError("fallback")

        with pytest.raises(KeyError):
            executor.execute(broken, bad_fallback)

    def test_log_context_reaches_worker(self, executor):
        seen = {}

        def live():
            seen.update(LogContext.get_all())
            return None

        with LogContext.bind(report="dashboard", correlation_id="req-1"):
            executor.execute(live, lambda: None)

        assert seen["report"] == "dashboard"
        assert seen["correlation_id"] == "req-1"

    def test_non_positive_timeout_rejected(self):
        with pytest.raises(ValueError):
            ResilientQueryExecutor(timeout_ms=0)


class TestExecuteAll:

    def test_mixed_outcomes(self, executor, release):
        def slow():
            release.wait(5)
            return "late"

        def broken():
            raise ValueError("bad row")

        results = executor.execute_all(
            {
                "fast": (lambda: "ok", lambda: "fb-fast"),
                "slow": (slow, lambda: "fb-slow"),
                "broken": (broken, lambda: "fb-broken"),
            },
            timeout_ms=100,
        )

        assert list(results) == ["fast", "slow", "broken"]
        assert results["fast"].source is DataSource.LIVE
        assert results["slow"].reason is FallbackReason.TIMEOUT
        assert results["slow"].value == "fb-slow"
        assert results["broken"].reason is FallbackReason.ERROR

    def test_queries_run_concurrently(self, executor):
        def nap():
            time.sleep(0.05)
            return True

        t0 = time.monotonic()
        results = executor.execute_all(
            {f"q{i}": (nap, lambda: False) for i in range(3)}, timeout_ms=1000
        )
        assert all(r.value for r in results.values())
        assert time.monotonic() - t0 < 0.5


class TestSlowQueriesDoNotStarve:

    def test_fast_query_live_after_hung_ones(self, executor, release):
        for i in range(6):
            result = executor.execute(
                lambda: release.wait(10), lambda: "fb", timeout_ms=50, label=f"hung{i}"
            )
            assert result.reason is FallbackReason.TIMEOUT

        result = executor.execute(lambda: "live", lambda: "fb", timeout_ms=1000)

        assert result.source is DataSource.LIVE
        assert result.value == "live"

    def test_each_query_on_its_own_thread(self, executor):
        barrier = threading.Barrier(3, timeout=2)

        def meet():
            barrier.wait()
            return threading.current_thread().name

        results = executor.execute_all(
            {f"q{i}": (meet, lambda: None) for i in range(3)}, timeout_ms=1000
        )
        assert all(r.source is DataSource.LIVE for r in results.values())
        assert results["q0"].value == "billing-live-query-q0"


class TestShutdown:

    def test_execute_after_shutdown_falls_back(self, captured_logs):
        executor = ResilientQueryExecutor(timeout_ms=200)
        executor.shutdown()
        calls = []

        result = executor.execute(lambda: calls.append("ran"), lambda: "fb", label="late")

        assert result.value == "fb"
        assert result.source is DataSource.FALLBACK
        assert result.reason is FallbackReason.ERROR
        assert "shut down" in result.error
        assert calls == []
        assert any(r["message"] == "live_query_failed" for r in captured_logs())

    def test_context_manager_exit_closes(self):
        with ResilientQueryExecutor(timeout_ms=200) as executor:
            assert executor.execute(lambda: 1, lambda: 0).source is DataSource.LIVE
        assert executor.execute(lambda: 1, lambda: 0).value == 0



class TestDisabled:

    def test_live_result_passes_through(self):
        with ResilientQueryExecutor(enabled=False) as executor:
            result = executor.execute(lambda: 42, lambda: 0)
        assert result.value == 42
        assert result.source is DataSource.LIVE

    def test_error_raises_persistence_unavailable(self):
        def broken():
            raise ConnectionError("refused")

        with ResilientQueryExecutor(enabled=False) as executor:
            with pytest.raises(PersistenceUnavailableError) as exc_info:
                executor.execute(broken, lambda: 0, label="customer")

        assert exc_info.value.operation == "customer"
        assert exc_info.value.http_status == 503
        assert isinstance(exc_info.value.__cause__, ConnectionError)


class TestExecuteWithFallback:

    def test_returns_live_value(self):
        assert execute_with_fallback(lambda: "live", "fallback", timeout_ms=500) == "live"

    def test_returns_fallback_on_error(self):
        def broken():
            raise OSError("gone")

        assert execute_with_fallback(broken, "fallback", timeout_ms=500) == "fallback"
