"""Defines common Value Objects used across different domain contexts.

These objects represent simple values like endpoint keys, prompts and
durations, keeping signatures self-describing.
"""

from typing import NewType

# === Core Value Objects ===

# Using NewType for semantic clarity, although they are plain values at runtime.
PromptText = NewType("PromptText", str)        # User's text prompt
ProcessedOutput = NewType("ProcessedOutput", str) # Text shown back to the user
MessageRole = NewType("MessageRole", str)      # 'user', 'assistant', 'system'

# === API Resilience Context ===
EndpointKey = NewType("EndpointKey", str)      # Logical remote resource, e.g. 'groq-send_messages'
Milliseconds = float                           # Durations and epoch timestamps are kept in ms
ProviderName = NewType("ProviderName", str)    # 'openai', 'groq'
