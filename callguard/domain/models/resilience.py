"""Domain models for the API Resilience bounded context.

Value objects describing circuit breaker state, retry/breaker configuration
and the normalized shape of a failed remote call.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional

from callguard.domain.models.common import EndpointKey, Milliseconds

# --- Defaults ---
DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY_MS = 1000.0
DEFAULT_MAX_DELAY_MS = 8000.0
DEFAULT_BACKOFF_FACTOR = 2.0
DEFAULT_FAILURE_THRESHOLD = 5
DEFAULT_COOLDOWN_MS = 60000.0
DEFAULT_ENDPOINT_KEY = EndpointKey("default")


class CircuitState(str, Enum):
    """States of a per-endpoint circuit breaker."""
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class FailureKind(str, Enum):
    """Classification of a failed call."""
    TRANSIENT_NETWORK = "TRANSIENT_NETWORK"
    RETRYABLE_HTTP_STATUS = "RETRYABLE_HTTP_STATUS"
    NON_RETRYABLE = "NON_RETRYABLE"

    @property
    def retryable(self) -> bool:
        return self is not FailureKind.NON_RETRYABLE


@dataclass(frozen=True)
class CircuitStatus:
    """Read-only snapshot of one endpoint's circuit."""
    state: CircuitState = CircuitState.CLOSED
    failure_count: int = 0
    last_failure_time: Optional[Milliseconds] = None # Epoch ms

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "failure_count": self.failure_count,
            "last_failure_time": self.last_failure_time,
        }


@dataclass(frozen=True)
class AttemptDecision:
    """Result of asking the registry whether a call may proceed."""
    allowed: bool
    state: CircuitState
    is_probe: bool = False


@dataclass(frozen=True)
class FailureSignal:
    """Normalized description of a failure, independent of the error type.

    Produced by the adapter in ``error_classifier`` at the boundary where the
    real exception is caught.
    """
    code: Optional[str] = None
    message: Optional[str] = None
    status: Optional[int] = None


@dataclass(frozen=True)
class RetryConfig:
    """Per-call retry options.

    Attributes:
        max_retries: Retries after the first attempt (0 means a single attempt).
        base_delay_ms: Delay before the first retry.
        max_delay_ms: Cap applied to every computed delay; None leaves delays uncapped.
        backoff_factor: Multiplier between successive delays.
    """
    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay_ms: Milliseconds = DEFAULT_BASE_DELAY_MS
    max_delay_ms: Optional[Milliseconds] = None
    backoff_factor: float = DEFAULT_BACKOFF_FACTOR

    def __post_init__(self) -> None:
        if isinstance(self.max_retries, bool) or not isinstance(self.max_retries, int) or self.max_retries < 0:
            raise ValueError(f"max_retries must be a non-negative integer, got {self.max_retries!r}")
        if self.base_delay_ms <= 0:
            raise ValueError(f"base_delay_ms must be positive, got {self.base_delay_ms!r}")
        if self.max_delay_ms is not None and self.max_delay_ms < self.base_delay_ms:
            raise ValueError(
                f"max_delay_ms ({self.max_delay_ms}) must be >= base_delay_ms ({self.base_delay_ms})"
            )
        if self.backoff_factor < 1:
            raise ValueError(f"backoff_factor must be >= 1, got {self.backoff_factor!r}")

    def merged(self, **overrides) -> "RetryConfig":
        """Returns a copy with the given (non-None) fields replaced."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes)


@dataclass(frozen=True)
class BreakerConfig:
    """Circuit breaker thresholds shared by every endpoint of a registry."""
    failure_threshold: int = DEFAULT_FAILURE_THRESHOLD
    cooldown_ms: Milliseconds = DEFAULT_COOLDOWN_MS

    def __post_init__(self) -> None:
        if self.failure_threshold < 1:
            raise ValueError(f"failure_threshold must be >= 1, got {self.failure_threshold!r}")
        if self.cooldown_ms < 0:
            raise ValueError(f"cooldown_ms must be >= 0, got {self.cooldown_ms!r}")


@dataclass
class CircuitRecord:
    """Mutable per-endpoint state owned by the registry."""
    endpoint_key: EndpointKey
    state: CircuitState = CircuitState.CLOSED
    failure_count: int = 0
    last_failure_time: Optional[Milliseconds] = None
    probe_in_flight: bool = field(default=False, repr=False)

    def snapshot(self) -> CircuitStatus:
        return CircuitStatus(
            state=self.state,
            failure_count=self.failure_count,
            last_failure_time=self.last_failure_time,
        )
