"""Interface for interacting with the user (input/output).

Defines the contract for displaying information, errors, warnings,
circuit breaker status and getting input from the user, allowing different
UI implementations.
"""

import abc
from typing import Any, Dict

from callguard.domain.models.common import PromptText, ProcessedOutput
from callguard.domain.models.resilience import CircuitStatus


class UserInterface(abc.ABC):
    """Abstract Base Class for user interaction."""

    @abc.abstractmethod
    def display_output(self, output: ProcessedOutput, **kwargs: Any) -> None:
        """Displays standard output to the user.

        Args:
            output: The processed output string to display.
            **kwargs: Additional arguments for formatting (e.g., title).
        """
        pass

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message to the user."""
        pass

    @abc.abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message to the user."""
        pass

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        """Displays an informational message to the user."""
        pass

    @abc.abstractmethod
    def display_circuit_statuses(self, statuses: Dict[str, CircuitStatus], now_ms: float) -> None:
        """Renders the circuit breaker state of every tracked endpoint.

        Args:
            statuses: Snapshot keyed by endpoint.
            now_ms: Current epoch time in ms, used for "last failure" ages.
        """
        pass

    @abc.abstractmethod
    def get_prompt(self, prompt_message: str = "Input: ") -> PromptText:
        """Gets input from the user synchronously.

        Note: For async contexts, the caller should wrap this in asyncio.to_thread.
        """
        pass
