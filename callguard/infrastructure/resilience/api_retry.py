"""Service for executing API calls with automatic retries.

Implements exponential backoff for transient errors (network failures,
429/5xx statuses) and fences off persistently failing endpoints with a
per-endpoint circuit breaker.
"""

import asyncio
import logging
import threading
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from callguard.domain.events.api_events import (
    ApiCallFailed,
    ApiCallInitiated,
    ApiCallSucceeded,
    CircuitRejected,
    DomainEvent,
    RetryScheduled,
)
from callguard.domain.models.common import Milliseconds
from callguard.domain.models.resilience import (
    DEFAULT_ENDPOINT_KEY,
    CircuitStatus,
    RetryConfig,
)
from callguard.infrastructure.resilience.backoff import compute_delay
from callguard.infrastructure.resilience.circuit_breaker import CircuitBreakerRegistry
from callguard.infrastructure.resilience.error_classifier import classify_failure
from callguard.infrastructure.resilience.exceptions import CircuitOpenError, ExecutorShutdownError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Operation = Callable[[], Awaitable[T]]
SleepFunc = Callable[[Milliseconds], Awaitable[None]]


def log_event(event: DomainEvent) -> None:
    """Default event listener: events only go to the debug log."""
    logger.debug(f"EVENT: {event}")


def _wake(wakeup: asyncio.Future) -> None:
    if not wakeup.done():
        wakeup.set_result(None)


class ApiRetryService:
    """Runs async operations with retries, backoff and circuit breaking."""

    def __init__(
        self,
        registry: Optional[CircuitBreakerRegistry] = None,
        default_config: Optional[RetryConfig] = None,
        sleep: Optional[SleepFunc] = None,
        event_listener: Callable[[DomainEvent], None] = log_event,
    ):
        """Initializes the ApiRetryService.

        Args:
            registry: Circuit breaker registry; a private one is created if None.
            default_config: Retry options used when a call passes no config.
            sleep: Coroutine function waiting the given milliseconds. Defaults
                to a wait that returns early on shutdown.
            event_listener: Receives call and circuit events.
        """
        self._dispatch = event_listener
        self.registry = registry or CircuitBreakerRegistry(event_listener=event_listener)
        self.default_config = default_config or RetryConfig()
        self._sleep = sleep or self._interruptible_sleep
        self._shutdown = threading.Event()
        # Pending backoff waits, each bound to the loop it runs on
        self._waiters: Dict[asyncio.Future, asyncio.AbstractEventLoop] = {}
        self._waiters_lock = threading.Lock()

        logger.info(
            f"ApiRetryService initialized: max_retries={self.default_config.max_retries}, "
            f"base_delay={self.default_config.base_delay_ms}ms, "
            f"max_delay={self.default_config.max_delay_ms}ms, "
            f"factor={self.default_config.backoff_factor}"
        )

    @property
    def is_shut_down(self) -> bool:
        return self._shutdown.is_set()

    def shutdown(self) -> None:
        """Wakes every pending backoff wait; those calls and any new ones fail."""
        logger.info("ApiRetryService shutting down; aborting pending retries.")
        self._shutdown.set()
        with self._waiters_lock:
            waiters = list(self._waiters.items())
        for wakeup, loop in waiters:
            if not loop.is_closed():
                loop.call_soon_threadsafe(_wake, wakeup)

    async def _interruptible_sleep(self, delay_ms: Milliseconds) -> None:
        """Waits on the running loop; safe to call from any thread's loop."""
        loop = asyncio.get_running_loop()
        wakeup = loop.create_future()
        with self._waiters_lock:
            if self._shutdown.is_set():
                return
            self._waiters[wakeup] = loop
        try:
            await asyncio.wait_for(wakeup, timeout=delay_ms / 1000)
        except asyncio.TimeoutError:
            pass
        finally:
            with self._waiters_lock:
                self._waiters.pop(wakeup, None)

    async def execute_with_retry(
        self,
        operation: Operation,
        config: Optional[RetryConfig] = None,
        endpoint_key: str = DEFAULT_ENDPOINT_KEY,
    ) -> Any:
        """Executes a zero-argument async operation with retries and circuit breaking.

        Args:
            operation: The async callable (API call) to execute.
            config: Retry options for this call; the service default if None.
            endpoint_key: Identifies the remote resource for circuit tracking.

        Returns:
            Whatever the operation returns.

        Raises:
            CircuitOpenError: If the endpoint's circuit rejects the call; the
                operation is not invoked.
            ExecutorShutdownError: If the service is shut down before or
                while waiting to retry.
            Exception: The operation's own error, unchanged, when it is not
                retryable or the retries are exhausted.
        """
        effective_config = config or self.default_config

        if self.is_shut_down:
            raise ExecutorShutdownError(endpoint_key)

        decision = self.registry.can_attempt(endpoint_key)
        if not decision.allowed:
            logger.warning(f"{endpoint_key} - Circuit breaker is {decision.state.value}, call rejected")
            self._dispatch(CircuitRejected(endpoint=endpoint_key, state=decision.state.value))
            raise CircuitOpenError(endpoint_key, state=decision.state.value)
        if decision.is_probe:
            logger.info(f"{endpoint_key} - Sending probe call after cooldown")

        outcome_recorded = False
        attempt = 0
        try:
            while True:
                self._dispatch(ApiCallInitiated(endpoint=endpoint_key, attempt_number=attempt + 1))
                start_time = time.perf_counter()
                try:
                    result = await operation()
                except Exception as e:
                    last_error = e
                else:
                    latency_ms = (time.perf_counter() - start_time) * 1000
                    self.registry.record_success(endpoint_key)
                    outcome_recorded = True
                    if attempt > 0:
                        logger.info(f"{endpoint_key} succeeded on attempt {attempt + 1}")
                    self._dispatch(
                        ApiCallSucceeded(endpoint=endpoint_key, attempt_number=attempt + 1, latency_ms=latency_ms)
                    )
                    return result

                kind = classify_failure(last_error)
                if not kind.retryable:
                    logger.debug(f"{endpoint_key} - Non-retryable error: {last_error}")
                    self._fail(endpoint_key, last_error, attempt + 1, retryable=False)
                    outcome_recorded = True
                    raise last_error

                if attempt >= effective_config.max_retries:
                    logger.error(
                        f"{endpoint_key} - Max retries ({effective_config.max_retries}) exceeded. "
                        f"Last error: {last_error}"
                    )
                    self._fail(endpoint_key, last_error, attempt + 1, retryable=True)
                    outcome_recorded = True
                    raise last_error

                delay_ms = compute_delay(
                    attempt,
                    effective_config.base_delay_ms,
                    effective_config.max_delay_ms,
                    effective_config.backoff_factor,
                )
                logger.warning(
                    f"{endpoint_key} - Attempt {attempt + 1} failed ({kind.value}): {last_error}. "
                    f"Retrying in {delay_ms:.0f}ms..."
                )
                self._dispatch(
                    RetryScheduled(
                        endpoint=endpoint_key,
                        attempt_number=attempt + 1,
                        delay_ms=delay_ms,
                        error_message=str(last_error),
                    )
                )
                await self._sleep(delay_ms)
                if self.is_shut_down:
                    raise ExecutorShutdownError(endpoint_key, last_error=last_error) from last_error
                attempt += 1
        finally:
            if decision.is_probe and not outcome_recorded:
                self.registry.release_probe(endpoint_key)

    def _fail(self, endpoint_key: str, error: Exception, attempts: int, retryable: bool) -> None:
        self.registry.record_failure(endpoint_key)
        self._dispatch(
            ApiCallFailed(
                endpoint=endpoint_key,
                error_type=type(error).__name__,
                error_message=str(error),
                attempts=attempts,
                retryable=retryable,
            )
        )

    # --- Operator surface ---

    def get_circuit_status(self, endpoint_key: str) -> CircuitStatus:
        return self.registry.get_status(endpoint_key)

    def get_all_circuit_statuses(self) -> Dict[str, CircuitStatus]:
        return self.registry.get_all_statuses()

    def reset_circuit_breaker(self, endpoint_key: str) -> None:
        self.registry.reset(endpoint_key)

    def reset_all_circuit_breakers(self) -> List[str]:
        return self.registry.reset_all()
