"""Conversation management for toolhost.

This package provides the conversation message types and the in-memory
store of conversations served by the API.
"""

from toolhost.sessions.store import Conversation, ConversationStore
from toolhost.sessions.types import (
    AssistantMessage,
    Message,
    SystemMessage,
    ToolMessage,
    UserMessage,
)

__all__ = [
    # Core classes
    "Conversation",
    "ConversationStore",
    # Message types
    "Message",
    "UserMessage",
    "SystemMessage",
    "AssistantMessage",
    "ToolMessage",
]
