"""Concrete implementation of the AIModel interface using the OpenAI API.

Hides the specifics of the OpenAI client library and translates requests/
responses between the domain model and the OpenAI API format. The SDK's own
retries are disabled; ApiRetryService owns retry and circuit breaking.
"""

import logging
import os
from typing import Any, List, Optional

from openai import AsyncOpenAI

from callguard.domain.interfaces.ai_model import AIModel
from callguard.domain.models.ai import ChatMessage, ModelInfo, StructuredAIResponse

logger = logging.getLogger(__name__)


class GptClient(AIModel):
    """OpenAI implementation of the AIModel interface."""

    DEFAULT_MODEL = "gpt-4o-mini"
    DEFAULT_TIMEOUT_S = 30.0
    provider_name = "openai"

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None, timeout_s: float = DEFAULT_TIMEOUT_S):
        """Initializes the OpenAI client.

        Args:
            api_key: OpenAI API key. Reads from OPENAI_API_KEY env var if None.
            model: The default OpenAI model to use.
            timeout_s: Per-request timeout enforced by the SDK.
        """
        effective_api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not effective_api_key:
            raise ValueError("OpenAI API key not provided and not found in environment variables.")

        self.client = AsyncOpenAI(api_key=effective_api_key, max_retries=0, timeout=timeout_s)
        self.model = model or self.DEFAULT_MODEL
        logger.info(f"GptClient initialized for model: {self.model}")

    def _parse_response(self, response: Any) -> StructuredAIResponse:
        choice = response.choices[0]
        usage = getattr(response, "usage", None)
        return StructuredAIResponse(
            content=choice.message.content or "",
            model_name=response.model,
            total_tokens=usage.total_tokens if usage else None,
        )

    async def send_messages(self, messages: List[ChatMessage]) -> StructuredAIResponse:
        """Sends messages to the configured OpenAI model asynchronously."""
        logger.debug(f"Sending {len(messages)} messages to OpenAI model: {self.model}")
        completion = await self.client.chat.completions.create(model=self.model, messages=messages)
        return self._parse_response(completion)

    async def list_available_models(self) -> List[ModelInfo]:
        """Lists available models from OpenAI asynchronously."""
        page = await self.client.models.list()
        models = [
            ModelInfo(model_id=m.id, provider=self.provider_name, owned_by=getattr(m, "owned_by", None))
            for m in page.data
        ]
        logger.debug(f"Found {len(models)} OpenAI models.")
        return models
