"""Domain models related to AI interactions.

Includes structures for chat messages, AI responses and model listings.
"""

from dataclasses import dataclass
from typing import Optional, TypedDict

from .common import MessageRole

# --- AI Interaction Structures ---

class ChatMessage(TypedDict):
    """Represents a message structure expected by AI model APIs (like OpenAI)."""
    role: MessageRole
    content: str

@dataclass
class StructuredAIResponse:
    """Structured response from an AI model, including metadata."""
    content: str
    model_name: Optional[str] = None # Which model generated the response
    total_tokens: Optional[int] = None

# --- Model Listing ---

@dataclass
class ModelInfo:
    """A model available from a provider."""
    model_id: str
    provider: str
    owned_by: Optional[str] = None
