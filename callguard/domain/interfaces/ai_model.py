"""Interface for AI Language Models (LLMs).

Defines the contract for sending messages to different AI providers
(e.g., OpenAI GPT, Groq Llama). Implementations make a single attempt per
call; retries and circuit breaking are applied by the caller.
"""

import abc
from typing import List

from ..models.ai import ChatMessage, ModelInfo, StructuredAIResponse


class AIModel(abc.ABC):
    """Abstract Base Class for AI language model interactions."""

    provider_name: str = "ai"

    @abc.abstractmethod
    async def send_messages(self, messages: List[ChatMessage]) -> StructuredAIResponse:
        """Sends a list of messages (conversation history) to the AI model asynchronously.

        Args:
            messages: A list of ChatMessage objects representing the conversation.

        Returns:
            A StructuredAIResponse containing the AI's reply and metadata.

        Raises:
            Exception: The provider SDK's error, unchanged, if the call fails.
        """
        pass

    @abc.abstractmethod
    async def list_available_models(self) -> List[ModelInfo]:
        """Lists the models available from this provider asynchronously."""
        pass
