"""
Resilient query executor.

Responsibility:
    Run a live data-source query against a deadline.  Whichever settles
    first wins: the live result, or a fallback value when the deadline
    passes or the query fails.  Every result records its provenance.

Architecture position:
    Services -- the only place in the system that starts threads.  Each
    live query gets its own daemon thread, settled through a
    ``concurrent.futures.Future``, with the caller's ``contextvars`` context
    copied in so LogContext fields follow the query.  Abandoned queries
    keep only their own thread, so a slow database never queues healthy
    queries behind them.

Invariants enforced:
    - Worst-case latency is the timeout plus scheduling overhead.
    - The live query's exception never propagates while resilience is
      enabled; it is logged with its stack trace and the fallback returned.
    - After the deadline, the future is cancelled if it has not started;
      otherwise it is abandoned and its late result or error is discarded
      (logged at debug).
    - After ``shutdown()`` new queries are not started; they settle as
      ERROR fallbacks.

Failure modes:
    - PersistenceUnavailableError when resilience is disabled and the live
      query raises.
    - Errors raised by the fallback factory itself propagate.
"""

from __future__ import annotations

import contextvars
import threading
import time
from collections.abc import Callable, Mapping
from concurrent.futures import Future, wait
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

from billing_kernel.exceptions import PersistenceUnavailableError
from billing_kernel.logging_config import get_logger

logger = get_logger("services.resilient")

T = TypeVar("T")

DEFAULT_TIMEOUT_MS = 3000


class DataSource(str, Enum):
    LIVE = "live"
    FALLBACK = "fallback"


class FallbackReason(str, Enum):
    TIMEOUT = "timeout"
    ERROR = "error"


@dataclass(frozen=True)
class ResilientResult(Generic[T]):
    """
    Value returned by the executor plus where it came from.

    Guarantees:
        - reason is None exactly when source is LIVE.
    """

    value: T
    source: DataSource
    reason: FallbackReason | None = None
    elapsed_ms: float = 0.0
    error: str | None = None
    label: str = ""

    @property
    def is_fallback(self) -> bool:
        return self.source is DataSource.FALLBACK


class ResilientQueryExecutor:
    """
    Race live queries against a timeout.

    Contract:
        ``execute`` returns within roughly ``timeout_ms`` whatever the live
        query does.
    Non-goals:
        - No retries.  A failed or slow query is answered from the fallback.
        - No interruption of a query already running; Python threads cannot
          be killed, so the query finishes in the background.
        - No worker pool.  A pool slot held by an abandoned query would
          leave healthy queries waiting in its queue until their deadline.
    """

    def __init__(
        self,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        enabled: bool = True,
    ):
        if timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")
        self.timeout_ms = timeout_ms
        self.enabled = enabled
        self._closed = False

    def execute(
        self,
        live_query: Callable[[], T],
        fallback: Callable[[], T],
        *,
        timeout_ms: int | None = None,
        label: str = "query",
    ) -> ResilientResult[T]:
        """
        Run ``live_query`` with a deadline; answer from ``fallback()`` on
        timeout or error.

        Args:
            live_query: Zero-argument callable hitting the data source.
            fallback: Zero-argument factory for the substitute value.
            timeout_ms: Deadline override for this call.
            label: Name used in log records and the result.
        """
        return self.execute_all({label: (live_query, fallback)}, timeout_ms=timeout_ms)[label]

    def execute_all(
        self,
        calls: Mapping[str, tuple[Callable[[], Any], Callable[[], Any]]],
        *,
        timeout_ms: int | None = None,
    ) -> dict[str, ResilientResult[Any]]:
        """
        Run several independent live queries concurrently under one deadline.

        Args:
            calls: label -> (live_query, fallback factory).

        Returns:
            label -> ResilientResult, in the order of ``calls``.
        """
        timeout_ms = timeout_ms or self.timeout_ms
        if not self.enabled:
            return {label: self._run_inline(label, live) for label, (live, _) in calls.items()}

        t0 = time.monotonic()
        futures: dict[str, Future] = {
            label: self._start(label, live) for label, (live, _) in calls.items()
        }
        wait(futures.values(), timeout=timeout_ms / 1000)
        elapsed_ms = round((time.monotonic() - t0) * 1000, 2)

        return {
            label: self._settle(label, futures[label], fallback, elapsed_ms, timeout_ms)
            for label, (_, fallback) in calls.items()
        }

    def _start(self, label: str, live_query: Callable[[], Any]) -> Future:
        """Run ``live_query`` on a fresh daemon thread; the future settles with its outcome."""
        future: Future = Future()
        if self._closed:
            future.set_exception(RuntimeError("resilient query executor is shut down"))
            return future

        context = contextvars.copy_context()

        def _run() -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                value = context.run(live_query)
            except BaseException as exc:
                future.set_exception(exc)
            else:
                future.set_result(value)

        thread = threading.Thread(
            target=_run,
            name=f"billing-live-query-{label}",
            daemon=True,
        )
        try:
            thread.start()
        except RuntimeError as exc:
            # Interpreter out of threads, or shutting down.
            future.set_exception(exc)
        return future

    def _settle(
        self,
        label: str,
        future: Future,
        fallback: Callable[[], Any],
        elapsed_ms: float,
        timeout_ms: int,
    ) -> ResilientResult[Any]:
        if future.done() and not future.cancelled():
            exc = future.exception()
            if exc is None:
                logger.debug(
                    "live_query_completed",
                    extra={"label": label, "elapsed_ms": elapsed_ms},
                )
                return ResilientResult(
                    value=future.result(),
                    source=DataSource.LIVE,
                    elapsed_ms=elapsed_ms,
                    label=label,
                )
            logger.error(
                "live_query_failed",
                exc_info=(type(exc), exc, exc.__traceback__),
                extra={"label": label, "elapsed_ms": elapsed_ms},
            )
            return ResilientResult(
                value=fallback(),
                source=DataSource.FALLBACK,
                reason=FallbackReason.ERROR,
                elapsed_ms=elapsed_ms,
                error=f"{type(exc).__name__}: {exc}",
                label=label,
            )

        cancelled = future.cancel()
        if not cancelled:
            future.add_done_callback(_discard_late_result(label))
        logger.warning(
            "live_query_timed_out",
            extra={
                "label": label,
                "timeout_ms": timeout_ms,
                "elapsed_ms": elapsed_ms,
                "cancelled_before_start": cancelled,
            },
        )
        return ResilientResult(
            value=fallback(),
            source=DataSource.FALLBACK,
            reason=FallbackReason.TIMEOUT,
            elapsed_ms=elapsed_ms,
            label=label,
        )

    @staticmethod
    def _run_inline(label: str, live_query: Callable[[], Any]) -> ResilientResult[Any]:
        t0 = time.monotonic()
        try:
            value = live_query()
        except Exception as exc:
            raise PersistenceUnavailableError(label, f"{type(exc).__name__}: {exc}") from exc
        return ResilientResult(
            value=value,
            source=DataSource.LIVE,
            elapsed_ms=round((time.monotonic() - t0) * 1000, 2),
            label=label,
        )

    def shutdown(self) -> None:
        """Stop starting live queries; running ones are abandoned, later calls fall back."""
        self._closed = True

    def __enter__(self) -> ResilientQueryExecutor:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.shutdown()


def _discard_late_result(label: str) -> Callable[[Future], None]:
    def _callback(future: Future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        logger.debug(
            "late_live_result_discarded",
            extra={"label": label, "late_error": None if exc is None else type(exc).__name__},
        )

    return _callback


_default_executor: ResilientQueryExecutor | None = None
_default_lock = threading.Lock()


def _get_default_executor() -> ResilientQueryExecutor:
    global _default_executor
    with _default_lock:
        if _default_executor is None:
            _default_executor = ResilientQueryExecutor()
        return _default_executor


def execute_with_fallback(
    live_query: Callable[[], T],
    fallback: T,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
) -> T:
    """Run ``live_query`` with a deadline and return its value or ``fallback``."""
    return _get_default_executor().execute(
        live_query, lambda: fallback, timeout_ms=timeout_ms, label="execute_with_fallback"
    ).value
