"""Operator-facing connectivity service.

Shows the circuit breaker state of every tracked endpoint and lets an
operator force circuits closed again, one endpoint or all of them.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, List

from callguard.domain.interfaces.user_interface import UserInterface
from callguard.infrastructure.resilience.api_retry import ApiRetryService

logger = logging.getLogger(__name__)

COMMAND_NAME = "connectivity"
RESET_ALL = "all"


@dataclass
class CommandResult:
    """Outcome of an operator command."""
    success: bool
    message: str


class ConnectivityService:
    """Status and manual reset of circuit breakers."""

    def __init__(
        self,
        retry_service: ApiRetryService,
        ui: UserInterface,
        clock: Callable[[], float] = lambda: time.time() * 1000,
    ):
        self.retry_service = retry_service
        self.ui = ui
        self._clock = clock

    def handle_command(self, args: List[str]) -> CommandResult:
        """Routes `/connectivity [reset <endpoint|all>]`."""
        if args and args[0].lower() == "reset":
            result = self.reset(" ".join(args[1:]))
            if result.success:
                self.ui.display_info(result.message)
            else:
                self.ui.display_error(result.message)
            return result
        return self.show_status()

    def show_status(self) -> CommandResult:
        statuses = self.retry_service.get_all_circuit_statuses()
        self.ui.display_circuit_statuses(statuses, now_ms=self._clock())
        return CommandResult(success=True, message=f"{len(statuses)} endpoint(s) tracked")

    def reset(self, target: str) -> CommandResult:
        """Resets one circuit (first endpoint whose key contains `target`) or all of them."""
        target = target.strip().lower()
        if not target:
            return CommandResult(False, f"Usage: /{COMMAND_NAME} reset <endpoint|{RESET_ALL}>")

        if target == RESET_ALL:
            endpoints = self.retry_service.reset_all_circuit_breakers()
            logger.info(f"Operator reset {len(endpoints)} circuit breakers")
            return CommandResult(True, f"Reset {len(endpoints)} circuit breakers: {', '.join(endpoints)}")

        endpoints = list(self.retry_service.get_all_circuit_statuses())
        matching = next((ep for ep in endpoints if target in ep.lower()), None)
        if matching is None:
            available = ", ".join(endpoints) or "none"
            return CommandResult(False, f"Endpoint '{target}' not found. Available: {available}")

        self.retry_service.reset_circuit_breaker(matching)
        return CommandResult(True, f"Reset circuit breaker for: {matching}")
