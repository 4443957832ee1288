"""Command Handler: Orchestrates CLI command execution.

Receives commands from the main entry point (main.py) and delegates
the work to the appropriate application services.
"""

import logging
from typing import Dict, Optional

from callguard.core.services.chat_service import ChatService, endpoint_key_for
from callguard.core.services.connectivity_service import ConnectivityService
from callguard.domain.interfaces.ai_model import AIModel
from callguard.domain.interfaces.user_interface import UserInterface
from callguard.domain.models.common import ProcessedOutput
from callguard.domain.models.resilience import RetryConfig
from callguard.infrastructure.resilience.api_retry import ApiRetryService
from callguard.infrastructure.resilience.backoff import delay_schedule
from callguard.infrastructure.resilience.exceptions import CircuitOpenError

logger = logging.getLogger(__name__)


class CommandHandler:
    """Handles incoming commands and delegates to appropriate services."""

    def __init__(
        self,
        chat_service: ChatService,
        connectivity_service: ConnectivityService,
        api_retry_service: ApiRetryService,
        ai_models: Dict[str, AIModel],
        ui: UserInterface,
        retry_config: Optional[RetryConfig] = None,
    ):
        self.chat_service = chat_service
        self.connectivity_service = connectivity_service
        self.api_retry_service = api_retry_service
        self.ai_models = ai_models
        self.ui = ui
        self.retry_config = retry_config or api_retry_service.default_config

    def start_chat(self) -> None:
        """Handles the initiation of the interactive chat mode."""
        logger.info("Starting interactive chat session.")
        try:
            self.chat_service.start_session()
        except Exception as e:
            logger.error(f"Failed to start chat mode: {e}", exc_info=True)
            self.ui.display_error(f"Failed to run chat mode: {e}")

    async def handle_list_models(self, provider: Optional[str] = None) -> None:
        """Lists a provider's models through the retry service, then shows circuit status."""
        if provider:
            model = self.ai_models.get(provider)
        else:
            model = self.chat_service.ai_model if self.chat_service else None
        if model is None:
            available = ", ".join(self.ai_models) or "none"
            self.ui.display_error(f"Provider '{provider}' is not configured. Available: {available}")
            return

        endpoint_key = endpoint_key_for(model.provider_name, "list_models")
        logger.info(f"Handling 'list-models' for provider: {model.provider_name}")
        try:
            models = await self.api_retry_service.execute_with_retry(
                model.list_available_models, self.retry_config, endpoint_key
            )
        except CircuitOpenError:
            self.ui.display_warning(
                f"The {model.provider_name} service is currently unavailable. Please try again later."
            )
        except Exception as e:
            logger.error(f"List models failed: {e}", exc_info=True)
            self.ui.display_error(f"Failed to list models: {e}")
        else:
            lines = "\n".join(f"- {m.model_id}" for m in sorted(models, key=lambda m: m.model_id))
            self.ui.display_output(ProcessedOutput(lines or "No models returned."), title=model.provider_name)
        self.connectivity_service.show_status()

    def handle_retry_schedule(self) -> None:
        """Shows the backoff waits implied by the configured retry options."""
        config = self.retry_config
        waits = delay_schedule(config)
        schedule = ", ".join(f"{w:.0f}ms" for w in waits) or "no retries"
        cap = f"{config.max_delay_ms:.0f}ms" if config.max_delay_ms is not None else "uncapped"
        self.ui.display_info(
            f"max_retries={config.max_retries}, base_delay={config.base_delay_ms:.0f}ms, "
            f"max_delay={cap}, factor={config.backoff_factor}\n"
            f"Backoff schedule: {schedule}"
        )
