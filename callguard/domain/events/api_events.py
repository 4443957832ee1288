"""Domain Events related to API calls and resilience.

Examples include events for when calls are retried, fail, succeed, or are
rejected by an open circuit, plus circuit breaker state transitions.
"""

from dataclasses import dataclass, field
import time
from typing import Optional

# Base Event Class
@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass

# --- Call Events ---

@dataclass
class ApiCallInitiated(DomainEvent):
    """Event triggered when an attempt is about to be made."""
    endpoint: str
    attempt_number: int
    timestamp: float = field(default_factory=time.time)

@dataclass
class ApiCallSucceeded(DomainEvent):
    """Event triggered when a call succeeds."""
    endpoint: str
    attempt_number: int
    latency_ms: float
    timestamp: float = field(default_factory=time.time)

@dataclass
class ApiCallFailed(DomainEvent):
    """Event triggered when a call fails definitively (after retries)."""
    endpoint: str
    error_type: str
    error_message: str
    attempts: int
    retryable: bool
    timestamp: float = field(default_factory=time.time)

@dataclass
class RetryScheduled(DomainEvent):
    """Event triggered when a retry is scheduled for a failed call."""
    endpoint: str
    attempt_number: int
    delay_ms: float
    error_message: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

@dataclass
class CircuitRejected(DomainEvent):
    """Event triggered when a call is refused without invoking the operation."""
    endpoint: str
    state: str
    timestamp: float = field(default_factory=time.time)

# --- Circuit Transition Events ---

@dataclass
class CircuitOpened(DomainEvent):
    """Event triggered when a circuit trips to OPEN."""
    endpoint: str
    failure_count: int
    timestamp: float = field(default_factory=time.time)

@dataclass
class CircuitHalfOpened(DomainEvent):
    """Event triggered when the cooldown has elapsed and a probe is admitted."""
    endpoint: str
    timestamp: float = field(default_factory=time.time)

@dataclass
class CircuitClosed(DomainEvent):
    """Event triggered when a circuit returns to CLOSED after a success."""
    endpoint: str
    previous_state: str
    timestamp: float = field(default_factory=time.time)

@dataclass
class CircuitReset(DomainEvent):
    """Event triggered when an operator manually resets a circuit."""
    endpoint: str
    previous_state: str
    timestamp: float = field(default_factory=time.time)
