"""Data types for conversations.

This module defines the conversation message types exchanged between the
agent loop, the model adapter and the API layer.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone

from toolhost.tools.types import ToolCallRequest


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class UserMessage:
    """A message from the user."""

    role: str = "user"
    content: str = ""
    timestamp: str = field(default_factory=utc_timestamp)

    def __post_init__(self) -> None:
        """Validate role is always 'user'."""
        self.role = "user"


@dataclass
class SystemMessage:
    """A system prompt message."""

    role: str = "system"
    content: str = ""
    timestamp: str = field(default_factory=utc_timestamp)

    def __post_init__(self) -> None:
        """Validate role is always 'system'."""
        self.role = "system"


@dataclass
class AssistantMessage:
    """A response from the LLM assistant, possibly requesting tool calls."""

    role: str = "assistant"
    content: str = ""
    model: str = ""
    timestamp: str = field(default_factory=utc_timestamp)
    tool_calls: list[ToolCallRequest] | None = None

    def __post_init__(self) -> None:
        """Validate role is always 'assistant'."""
        self.role = "assistant"


@dataclass
class ToolMessage:
    """A tool execution result, answering one tool call."""

    role: str = "tool"
    content: str = ""
    tool_call_id: str = ""
    tool_name: str = ""
    is_error: bool = False
    timestamp: str = field(default_factory=utc_timestamp)

    def __post_init__(self) -> None:
        """Validate role is always 'tool'."""
        self.role = "tool"


# Union type for all message types
Message = UserMessage | SystemMessage | AssistantMessage | ToolMessage
