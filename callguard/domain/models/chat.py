"""Domain models specific to chat interactions.

Includes the `Message` entity and the `ChatSession` aggregate root.
"""

import time
import uuid
from dataclasses import dataclass, field
from typing import List

from callguard.domain.models.ai import ChatMessage
from callguard.domain.models.common import MessageRole


@dataclass
class Message:
    """Entity representing a single message within a chat session."""
    role: MessageRole
    content: str
    timestamp: float = field(default_factory=time.time)

    def to_chat_message(self) -> ChatMessage:
        return {"role": self.role, "content": self.content}


@dataclass
class ChatSession:
    """Aggregate root representing an ongoing chat conversation."""
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    history: List[Message] = field(default_factory=list)
    created_at: float = field(default_factory=time.time)

    def add_message(self, role: MessageRole, content: str) -> None:
        self.history.append(Message(role=role, content=content))

    def discard_last_message(self) -> None:
        """Drops the newest message, e.g. a prompt whose call failed."""
        if self.history:
            self.history.pop()

    def get_history_for_api(self) -> List[ChatMessage]:
        """Returns the message history formatted for API calls."""
        return [msg.to_chat_message() for msg in self.history]
