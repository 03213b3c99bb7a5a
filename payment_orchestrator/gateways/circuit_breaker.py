"""
Circuit breaker for payment provider calls.

Prevents cascading failures by temporarily rejecting calls when a
provider keeps failing.
"""
import threading
import time
from typing import Any, Callable, Optional, Tuple, Type

import structlog

from payment_orchestrator.exceptions import ProviderError
from payment_orchestrator.monitoring.metrics import metrics

logger = structlog.get_logger(__name__)


class CircuitBreaker:
    """
    Three-state breaker: closed, open, half_open.

    Calls run in worker threads, so state changes are guarded by a lock.
    """

    def __init__(
        self,
        provider: str,
        failure_threshold: int = 5,
        timeout: int = 60,
        success_threshold: int = 2,
        excluded_exceptions: Tuple[Type[BaseException], ...] = (),
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize circuit breaker.

        Args:
            provider: Provider name, used in errors and metrics
            failure_threshold: Number of failures before opening circuit
            timeout: Seconds before attempting to close circuit
            success_threshold: Successful calls needed to close circuit
            excluded_exceptions: Errors caused by the request itself, not counted as failures
            clock: Time source
        """
        self.provider = provider
        self.failure_threshold = failure_threshold
        self.timeout = timeout
        self.success_threshold = success_threshold
        self.excluded_exceptions = excluded_exceptions
        self.clock = clock
        self.failure_count = 0
        self.success_count = 0
        self.last_failure_time: Optional[float] = None
        self.state = "closed"
        self._lock = threading.Lock()

    def _set_state(self, state: str) -> None:
        self.state = state
        metrics.set_circuit_breaker_state(self.provider, state)
        logger.info("circuit_breaker_state_changed", provider=self.provider, state=state)

    def call(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """
        Execute function with circuit breaker protection.

        Raises:
            ProviderError: If circuit is open
        """
        with self._lock:
            if self.state == "open":
                if (
                    self.last_failure_time is not None
                    and self.clock() - self.last_failure_time > self.timeout
                ):
                    self.success_count = 0
                    self._set_state("half_open")
                else:
                    raise ProviderError(
                        f"{self.provider} is temporarily unavailable",
                        provider=self.provider,
                    )

        try:
            result = func(*args, **kwargs)
        except self.excluded_exceptions:
            raise
        except Exception:
            self.on_failure()
            raise
        self.on_success()
        return result

    def on_success(self) -> None:
        """Record successful call."""
        with self._lock:
            self.failure_count = 0
            if self.state == "half_open":
                self.success_count += 1
                if self.success_count >= self.success_threshold:
                    self._set_state("closed")

    def on_failure(self) -> None:
        """Record failed call."""
        with self._lock:
            self.failure_count += 1
            self.last_failure_time = self.clock()
            if self.state == "half_open" or self.failure_count >= self.failure_threshold:
                if self.state != "open":
                    logger.warning(
                        "circuit_breaker_opened",
                        provider=self.provider,
                        failure_count=self.failure_count,
                    )
                    self._set_state("open")
