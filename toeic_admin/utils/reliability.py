"""
Reliability helpers for talking to the TOEIC backend.

A circuit breaker guards the HTTP transport, reads may be retried with
exponential backoff, batches of independent requests are fanned out over a
thread pool, and ``doctor`` runs timed health checks.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from functools import wraps
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Type, Union

import structlog
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from toeic_admin.core.exceptions import CircuitBreakerError, ToeicAdminError
from toeic_admin.core.models import BatchItemResult, BatchResult

logger = structlog.get_logger(__name__)

ExceptionTypes = Union[Type[BaseException], Tuple[Type[BaseException], ...]]


class CircuitBreakerState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Refuses calls to the backend once it has failed too often in a row.

    Only ``expected_exception`` is counted: a backend that answers with a
    404 or a rejected payload is reachable, so those errors pass through
    without touching the breaker. After ``recovery_timeout`` seconds one
    trial call is let through (half-open); its outcome closes or re-opens
    the circuit.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        expected_exception: ExceptionTypes = Exception,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exception = expected_exception

        self.failure_count = 0
        self.opened_at: Optional[float] = None
        self._trial_running = False
        self._lock = threading.Lock()

    @property
    def state(self) -> CircuitBreakerState:
        if self.opened_at is None:
            return CircuitBreakerState.CLOSED
        if self._trial_running or time.monotonic() - self.opened_at >= self.recovery_timeout:
            return CircuitBreakerState.HALF_OPEN
        return CircuitBreakerState.OPEN

    def call(self, func: Callable, *args, **kwargs) -> Any:
        """Run ``func`` through the breaker."""
        self._admit()
        try:
            result = func(*args, **kwargs)
        except self.expected_exception:
            self._record_failure()
            raise
        except BaseException:
            # The backend answered; release a half-open trial without counting
            with self._lock:
                self._trial_running = False
            raise
        self._record_success()
        return result

    def _admit(self) -> None:
        with self._lock:
            state = self.state
            if state == CircuitBreakerState.OPEN:
                retry_in = self.recovery_timeout - (time.monotonic() - self.opened_at)
                raise CircuitBreakerError(
                    f"Circuit breaker '{self.name}' is open; the backend looks unreachable",
                    details={"name": self.name, "retry_in_seconds": round(max(retry_in, 0), 1)},
                )
            if state == CircuitBreakerState.HALF_OPEN and not self._trial_running:
                self._trial_running = True
                logger.info("Circuit breaker half-open, trying the backend", name=self.name)

    def _record_success(self) -> None:
        with self._lock:
            was_open = self.opened_at is not None
            self.failure_count = 0
            self.opened_at = None
            self._trial_running = False
        if was_open:
            logger.info("Circuit breaker closed", name=self.name)

    def _record_failure(self) -> None:
        with self._lock:
            self.failure_count += 1
            trial_failed = self._trial_running
            self._trial_running = False
            if trial_failed or self.failure_count >= self.failure_threshold:
                self.opened_at = time.monotonic()
                logger.warning(
                    "Circuit breaker opened",
                    name=self.name,
                    failure_count=self.failure_count,
                    threshold=self.failure_threshold,
                )

    def reset(self) -> None:
        with self._lock:
            self.failure_count = 0
            self.opened_at = None
            self._trial_running = False

    @property
    def status(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self.failure_count,
            "failure_threshold": self.failure_threshold,
        }


_registry: Dict[str, CircuitBreaker] = {}
_registry_lock = threading.Lock()


def get_circuit_breaker(
    name: str,
    failure_threshold: int = 5,
    recovery_timeout: float = 60.0,
    expected_exception: ExceptionTypes = Exception,
) -> CircuitBreaker:
    """Return the breaker registered under ``name``, creating it on first use."""
    with _registry_lock:
        breaker = _registry.get(name)
        if breaker is None:
            breaker = CircuitBreaker(name, failure_threshold, recovery_timeout, expected_exception)
            _registry[name] = breaker
        return breaker


def get_circuit_breaker_status() -> Dict[str, Dict[str, Any]]:
    with _registry_lock:
        breakers = list(_registry.values())
    return {breaker.name: breaker.status for breaker in breakers}


def reset_circuit_breaker(name: str) -> bool:
    """Close the named breaker; False when no breaker has that name."""
    with _registry_lock:
        breaker = _registry.get(name)
    if breaker is None:
        return False
    breaker.reset()
    logger.info("Circuit breaker reset", name=name)
    return True


def with_circuit_breaker(
    name: str,
    failure_threshold: int = 5,
    recovery_timeout: float = 60.0,
    expected_exception: ExceptionTypes = Exception,
):
    """Route every call of the decorated function through a shared breaker."""
    breaker = get_circuit_breaker(name, failure_threshold, recovery_timeout, expected_exception)

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            return breaker.call(func, *args, **kwargs)

        wrapper.circuit_breaker = breaker
        return wrapper

    return decorator


def _log_retry(retry_state) -> None:
    error = retry_state.outcome.exception()
    logger.warning(
        "Retrying request",
        function=getattr(retry_state.fn, "__name__", "call"),
        attempt=retry_state.attempt_number,
        sleep_seconds=round(retry_state.next_action.sleep, 2),
        error=str(error),
        error_type=type(error).__name__,
    )


def with_retry(
    max_attempts: int = 3,
    backoff_max: float = 10.0,
    retry_exceptions: tuple = (Exception,),
):
    """
    Retry the decorated call with exponential backoff.

    Only reads go through this. Creating questions or changing a part must
    never be replayed, since the first attempt may have reached the backend.
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            retrying = Retrying(
                stop=stop_after_attempt(max_attempts),
                wait=wait_exponential(multiplier=1, min=0.5, max=backoff_max),
                retry=retry_if_exception_type(retry_exceptions),
                before_sleep=_log_retry,
                reraise=True,
            )
            return retrying(func, *args, **kwargs)

        return wrapper

    return decorator


def _settle(func: Callable[[Any], Any], item: Any) -> BatchItemResult:
    """Run one batch item, turning its failure into a result instead of an exception."""
    try:
        return BatchItemResult(item=item, value=func(item))
    except ToeicAdminError as e:
        error, error_type, level = e.message, type(e).__name__, "warning"
    except Exception as e:
        error, error_type, level = str(e), type(e).__name__, "error"
    getattr(logger, level)(
        "Batch item failed", item=str(item)[:100], error=error, error_type=error_type
    )
    return BatchItemResult(item=item, success=False, error=error, error_type=error_type)


class ParallelProcessor:
    """Sends independent requests from a thread pool and waits for all of them."""

    def __init__(self, max_workers: int = 6):
        self.max_workers = max(1, max_workers)

    def process_batch(
        self, items: Iterable[Any], processor_func: Callable[[Any], Any]
    ) -> BatchResult:
        """
        Apply ``processor_func`` to every item.

        A failing item does not cancel its siblings, and nothing that already
        succeeded is undone. Results keep the input order.
        """
        items = list(items)
        if not items:
            return BatchResult()

        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(items))) as executor:
            futures = [executor.submit(_settle, processor_func, item) for item in items]
            results: List[BatchItemResult] = [future.result() for future in futures]

        batch = BatchResult(results=results)
        logger.debug("Batch settled", total=batch.total, failed=batch.failed)
        return batch


def fan_out(
    items: Iterable[Any], func: Callable[[Any], Any], max_workers: Optional[int] = None
) -> BatchResult:
    """Run ``func`` over ``items`` concurrently; workers default to ``MAX_WORKERS``."""
    if max_workers is None:
        from toeic_admin.core.config import get_settings

        max_workers = get_settings().batch.max_workers
    return ParallelProcessor(max_workers=max_workers).process_batch(items, func)


class HealthChecker:
    """Named, timed health checks (used by ``doctor``)."""

    def __init__(self):
        self.checks: Dict[str, Callable[[], Any]] = {}
        self.last_results: Dict[str, Dict[str, Any]] = {}

    def register_check(self, name: str, check_func: Callable[[], Any]) -> None:
        self.checks[name] = check_func

    @staticmethod
    def _run(check_func: Callable[[], Any]) -> Dict[str, Any]:
        started = time.perf_counter()
        try:
            outcome = check_func()
        except Exception as e:
            report = {"status": "unhealthy", "error": str(e), "error_type": type(e).__name__}
        else:
            report = {
                "status": "healthy",
                "details": outcome if isinstance(outcome, dict) else {},
            }
        report["response_time_ms"] = (time.perf_counter() - started) * 1000
        return report

    def check_all(self) -> Dict[str, Dict[str, Any]]:
        self.last_results = {name: self._run(func) for name, func in self.checks.items()}
        return self.last_results

    def is_healthy(self, service_name: Optional[str] = None) -> bool:
        results = self.last_results or self.check_all()
        if service_name:
            return results.get(service_name, {}).get("status") == "healthy"
        return all(report["status"] == "healthy" for report in results.values())
