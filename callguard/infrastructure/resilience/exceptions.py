"""Exceptions raised by the resilience layer itself.

Errors coming from wrapped operations are never wrapped or replaced; only
failures synthesized locally live here.
"""

from typing import Optional

CIRCUIT_BREAKER_OPEN = "CIRCUIT_BREAKER_OPEN"
EXECUTOR_SHUTDOWN = "EXECUTOR_SHUTDOWN"


class ResilienceError(Exception):
    """Base class for errors synthesized by the resilience layer."""
    code: Optional[str] = None


class CircuitOpenError(ResilienceError):
    """Raised when a call is rejected because the endpoint's circuit is open."""
    code = CIRCUIT_BREAKER_OPEN

    def __init__(self, endpoint_key: str, state: str = "OPEN"):
        self.endpoint_key = endpoint_key
        self.state = state
        super().__init__(f"Circuit breaker is OPEN for endpoint: {endpoint_key}")


class ExecutorShutdownError(ResilienceError):
    """Raised when the executor is shut down while a call is pending or waiting."""
    code = EXECUTOR_SHUTDOWN

    def __init__(self, endpoint_key: str, last_error: Optional[BaseException] = None):
        self.endpoint_key = endpoint_key
        self.last_error = last_error
        super().__init__(f"Retry executor shut down; call to {endpoint_key} aborted")
