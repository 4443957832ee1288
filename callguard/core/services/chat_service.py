"""Core service for managing interactive chat sessions.

Runs the chat loop: reads user input, routes slash-commands to the
connectivity service and sends everything else to the AI model through the
resilient ApiRetryService.
"""

import asyncio
import logging
from typing import List, Optional

from callguard.core.services.connectivity_service import COMMAND_NAME, ConnectivityService
from callguard.domain.interfaces.ai_model import AIModel
from callguard.domain.interfaces.user_interface import UserInterface
from callguard.domain.models.ai import StructuredAIResponse
from callguard.domain.models.chat import ChatSession
from callguard.domain.models.common import MessageRole, ProcessedOutput, PromptText
from callguard.domain.models.resilience import RetryConfig
from callguard.infrastructure.resilience.api_retry import ApiRetryService
from callguard.infrastructure.resilience.exceptions import CircuitOpenError

logger = logging.getLogger(__name__)

EXIT_COMMANDS = {"exit", "quit"}
HELP_TEXT = (
    "Commands:\n"
    f"  /{COMMAND_NAME}                   show circuit breaker status\n"
    f"  /{COMMAND_NAME} reset <endpoint>  reset one circuit (substring match)\n"
    f"  /{COMMAND_NAME} reset all         reset every circuit\n"
    "  /help                           show this help\n"
    "  /exit                           end the session"
)


def endpoint_key_for(provider_name: str, operation_name: str) -> str:
    """Circuit key for one provider route, e.g. 'groq-send_messages'."""
    return f"{provider_name}-{operation_name}"


class ChatService:
    """Orchestrates the interactive chat functionality."""

    def __init__(
        self,
        ai_model: AIModel,
        ui: UserInterface,
        api_retry_service: ApiRetryService,
        connectivity_service: ConnectivityService,
        retry_config: Optional[RetryConfig] = None,
    ):
        self.ai_model = ai_model
        self.ui = ui
        self.api_retry_service = api_retry_service
        self.connectivity_service = connectivity_service
        self.retry_config = retry_config
        self.current_session: Optional[ChatSession] = None
        logger.info(f"ChatService initialized with AI provider: {ai_model.provider_name}")

    @property
    def endpoint_key(self) -> str:
        return endpoint_key_for(self.ai_model.provider_name, "send_messages")

    def start_session(self) -> None:
        """Runs a chat session to completion on a fresh event loop."""
        asyncio.run(self.run_session())

    async def run_session(self) -> None:
        self.current_session = ChatSession()
        self.ui.display_info("Starting interactive chat session. Type '/help' for commands, '/exit' to end.")
        try:
            while True:
                user_input = await asyncio.to_thread(self.ui.get_prompt, "You: ")
                text = str(user_input).strip()
                if not text:
                    continue
                if text.lower() in EXIT_COMMANDS:
                    break
                if text.startswith("/"):
                    if not self.handle_slash_command(text):
                        break
                    continue
                await self.send_prompt(PromptText(text))
        except (KeyboardInterrupt, EOFError):
            logger.info("Chat session interrupted by user.")
        finally:
            self.api_retry_service.shutdown()
            self.current_session = None
            self.ui.display_info("Ending chat session.")

    def handle_slash_command(self, text: str) -> bool:
        """Executes an operator command. Returns False when the session should end."""
        parts: List[str] = text[1:].split()
        command = parts[0].lower() if parts else ""
        args = parts[1:]

        if command in EXIT_COMMANDS:
            return False
        if command == "help":
            self.ui.display_info(HELP_TEXT)
        elif command == COMMAND_NAME:
            self.connectivity_service.handle_command(args)
        else:
            self.ui.display_error(f"Unknown command: /{command}. Type '/help' for commands.")
        return True

    async def send_prompt(self, prompt: PromptText) -> Optional[StructuredAIResponse]:
        """Sends the prompt with the session history; failures are shown, not raised."""
        if self.current_session is None:
            self.current_session = ChatSession()
        session = self.current_session
        session.add_message(MessageRole("user"), prompt)
        messages = session.get_history_for_api()
        provider = self.ai_model.provider_name

        try:
            response = await self.api_retry_service.execute_with_retry(
                lambda: self.ai_model.send_messages(messages),
                self.retry_config,
                self.endpoint_key,
            )
        except CircuitOpenError as e:
            logger.warning(f"Chat call rejected: {e}")
            session.discard_last_message()
            self.ui.display_warning(f"The {provider} service is currently unavailable. Please try again later.")
            return None
        except Exception as e:
            logger.error(f"Chat API call failed: {e}", exc_info=True)
            session.discard_last_message()
            self.ui.display_error(f"An error occurred: {e}")
            return None

        session.add_message(MessageRole("assistant"), response.content)
        self.ui.display_output(ProcessedOutput(response.content), title=provider)
        return response
