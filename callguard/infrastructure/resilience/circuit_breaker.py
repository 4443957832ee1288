"""Per-endpoint circuit breaker registry.

Keeps one circuit per endpoint key and applies the CLOSED -> OPEN ->
HALF_OPEN -> CLOSED state machine. Every read and write goes through a single
lock and never awaits, so the registry can be shared by interleaved asyncio
tasks or by threads. Only one HALF_OPEN probe per endpoint is admitted at a
time.
"""

import logging
import threading
import time
from typing import Callable, Dict, List, Optional

from callguard.domain.events.api_events import (
    CircuitClosed,
    CircuitHalfOpened,
    CircuitOpened,
    CircuitReset,
    DomainEvent,
)
from callguard.domain.models.common import EndpointKey, Milliseconds
from callguard.domain.models.resilience import (
    AttemptDecision,
    BreakerConfig,
    CircuitRecord,
    CircuitState,
    CircuitStatus,
)

logger = logging.getLogger(__name__)

EventListener = Callable[[DomainEvent], None]


def _epoch_ms() -> Milliseconds:
    return time.time() * 1000


class CircuitBreakerRegistry:
    """Owns the endpoint -> circuit mapping for one executor."""

    def __init__(
        self,
        config: Optional[BreakerConfig] = None,
        clock: Callable[[], Milliseconds] = _epoch_ms,
        event_listener: Optional[EventListener] = None,
    ):
        """Initializes an empty registry.

        Args:
            config: Failure threshold and cooldown shared by every endpoint.
            clock: Returns the current time in epoch milliseconds.
            event_listener: Optional callable receiving transition events.
        """
        self.config = config or BreakerConfig()
        self._clock = clock
        self._event_listener = event_listener
        self._circuits: Dict[str, CircuitRecord] = {}
        self._lock = threading.Lock()
        logger.info(
            f"CircuitBreakerRegistry initialized: threshold={self.config.failure_threshold}, "
            f"cooldown={self.config.cooldown_ms}ms"
        )

    def _emit(self, event: DomainEvent) -> None:
        if self._event_listener is not None:
            self._event_listener(event)

    def _get_or_create(self, endpoint_key: str) -> CircuitRecord:
        record = self._circuits.get(endpoint_key)
        if record is None:
            record = CircuitRecord(endpoint_key=EndpointKey(endpoint_key))
            self._circuits[endpoint_key] = record
        return record

    def can_attempt(self, endpoint_key: str) -> AttemptDecision:
        """Decides whether a call to the endpoint may proceed.

        An OPEN circuit whose cooldown has elapsed moves to HALF_OPEN and the
        caller becomes the probe. While a probe is outstanding every other
        caller is rejected.
        """
        events: List[DomainEvent] = []
        with self._lock:
            record = self._circuits.get(endpoint_key)
            if record is None or record.state is CircuitState.CLOSED:
                decision = AttemptDecision(allowed=True, state=CircuitState.CLOSED)
            elif record.state is CircuitState.OPEN:
                elapsed = self._clock() - (record.last_failure_time or 0)
                if elapsed >= self.config.cooldown_ms:
                    record.state = CircuitState.HALF_OPEN
                    record.probe_in_flight = True
                    logger.info(f"Circuit breaker for {endpoint_key} moved to HALF_OPEN state")
                    events.append(CircuitHalfOpened(endpoint=endpoint_key))
                    decision = AttemptDecision(allowed=True, state=CircuitState.HALF_OPEN, is_probe=True)
                else:
                    decision = AttemptDecision(allowed=False, state=CircuitState.OPEN)
            elif record.probe_in_flight:
                decision = AttemptDecision(allowed=False, state=CircuitState.HALF_OPEN)
            else:
                record.probe_in_flight = True
                decision = AttemptDecision(allowed=True, state=CircuitState.HALF_OPEN, is_probe=True)
        for event in events:
            self._emit(event)
        return decision

    def record_success(self, endpoint_key: str) -> None:
        """Closes the circuit and clears its failure count."""
        events: List[DomainEvent] = []
        with self._lock:
            record = self._get_or_create(endpoint_key)
            previous = record.state
            record.failure_count = 0
            record.state = CircuitState.CLOSED
            record.probe_in_flight = False
            if previous is not CircuitState.CLOSED:
                logger.info(f"Circuit breaker for {endpoint_key} moved to CLOSED state")
                events.append(CircuitClosed(endpoint=endpoint_key, previous_state=previous.value))
        for event in events:
            self._emit(event)

    def record_failure(self, endpoint_key: str) -> None:
        """Counts a terminal failure and trips the circuit when the threshold is reached."""
        events: List[DomainEvent] = []
        threshold = self.config.failure_threshold
        with self._lock:
            record = self._get_or_create(endpoint_key)
            record.last_failure_time = self._clock()
            if record.state is CircuitState.HALF_OPEN:
                record.failure_count = max(record.failure_count + 1, threshold)
                record.state = CircuitState.OPEN
                record.probe_in_flight = False
                logger.error(f"Circuit breaker probe failed; {endpoint_key} is OPEN again")
                events.append(CircuitOpened(endpoint=endpoint_key, failure_count=record.failure_count))
            else:
                record.failure_count += 1
                if record.state is CircuitState.CLOSED and record.failure_count >= threshold:
                    record.state = CircuitState.OPEN
                    logger.error(
                        f"Circuit breaker OPENED for {endpoint_key} after {record.failure_count} failures"
                    )
                    events.append(CircuitOpened(endpoint=endpoint_key, failure_count=record.failure_count))
        for event in events:
            self._emit(event)

    def release_probe(self, endpoint_key: str) -> None:
        """Gives back an admitted probe that ended without an outcome.

        The circuit returns to OPEN with its previous failure time, so the
        next caller after the cooldown may probe again.
        """
        with self._lock:
            record = self._circuits.get(endpoint_key)
            if record is None or not record.probe_in_flight:
                return
            record.probe_in_flight = False
            if record.state is CircuitState.HALF_OPEN:
                record.state = CircuitState.OPEN
                logger.info(f"Probe for {endpoint_key} abandoned; circuit back to OPEN")

    def get_status(self, endpoint_key: str) -> CircuitStatus:
        """Returns a snapshot; unseen endpoints report CLOSED with no failures."""
        with self._lock:
            record = self._circuits.get(endpoint_key)
            return record.snapshot() if record else CircuitStatus()

    def get_all_statuses(self) -> Dict[str, CircuitStatus]:
        with self._lock:
            return {key: record.snapshot() for key, record in self._circuits.items()}

    def reset(self, endpoint_key: str) -> None:
        """Forces the circuit to CLOSED with no failures (operator override)."""
        with self._lock:
            record = self._get_or_create(endpoint_key)
            previous = record.state
            record.state = CircuitState.CLOSED
            record.failure_count = 0
            record.last_failure_time = None
            record.probe_in_flight = False
        logger.info(f"Circuit breaker for {endpoint_key} manually reset to CLOSED state")
        self._emit(CircuitReset(endpoint=endpoint_key, previous_state=previous.value))

    def reset_all(self) -> List[str]:
        """Resets every tracked circuit and returns their keys."""
        with self._lock:
            keys = list(self._circuits)
        for key in keys:
            self.reset(key)
        return keys
