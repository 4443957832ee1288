"""Concrete implementation of the AIModel interface using the Groq API.

Hides the specifics of the Groq client library and translates requests/
responses between the domain model and the Groq API format.
"""

import logging
import os
from typing import Any, List, Optional

from groq import AsyncGroq

from callguard.domain.interfaces.ai_model import AIModel
from callguard.domain.models.ai import ChatMessage, ModelInfo, StructuredAIResponse

logger = logging.getLogger(__name__)


class GroqClient(AIModel):
    """Groq implementation of the AIModel interface."""

    DEFAULT_MODEL = "llama-3.3-70b-versatile"
    DEFAULT_TIMEOUT_S = 30.0
    provider_name = "groq"

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None, timeout_s: float = DEFAULT_TIMEOUT_S):
        """Initializes the Groq client.

        Args:
            api_key: Groq API key. Reads from GROQ_API_KEY env var if None.
            model: The default Groq model to use.
            timeout_s: Per-request timeout enforced by the SDK.
        """
        effective_api_key = api_key or os.getenv("GROQ_API_KEY")
        if not effective_api_key:
            raise ValueError("Groq API key not provided and not found in environment variables.")

        # SDK retries off: the caller's ApiRetryService decides
        self.client = AsyncGroq(api_key=effective_api_key, max_retries=0, timeout=timeout_s)
        self.model = model or self.DEFAULT_MODEL
        logger.info(f"GroqClient initialized for model: {self.model}")

    def _parse_groq_response(self, response: Any) -> StructuredAIResponse:
        """Parses the response object from Groq API call."""
        choice = response.choices[0]
        usage = getattr(response, "usage", None)
        return StructuredAIResponse(
            content=choice.message.content or "",
            model_name=response.model,
            total_tokens=usage.total_tokens if usage else None,
        )

    async def send_messages(self, messages: List[ChatMessage]) -> StructuredAIResponse:
        """Sends messages to the configured Groq model asynchronously."""
        logger.debug(f"Sending {len(messages)} messages to Groq model: {self.model}")
        chat_completion = await self.client.chat.completions.create(messages=messages, model=self.model)
        return self._parse_groq_response(chat_completion)

    async def list_available_models(self) -> List[ModelInfo]:
        """Lists available models from Groq asynchronously."""
        models_response = await self.client.models.list()
        model_list_data = models_response.data if models_response and models_response.data else []
        return [
            ModelInfo(model_id=m.id, provider=self.provider_name, owned_by=getattr(m, "owned_by", None))
            for m in model_list_data
        ]
