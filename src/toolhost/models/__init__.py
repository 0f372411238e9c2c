"""Pydantic models for API request and response schemas.

This package contains all Pydantic models used for validating and
serializing API requests and responses across all endpoints.
"""

from toolhost.models.chat import ChatRequest, ChatResponse, ToolCallExecuted
from toolhost.models.conversations import (
    ConversationDetailResponse,
    ConversationListResponse,
    ConversationSummary,
    CreateConversationRequest,
    MessageResponse,
)
from toolhost.models.health import HealthResponse
from toolhost.models.tools import (
    InvokeToolRequest,
    InvokeToolResponse,
    ToolListResponse,
    ToolResponse,
)

__all__ = [
    "ChatRequest",
    "ChatResponse",
    "ToolCallExecuted",
    "ConversationDetailResponse",
    "ConversationListResponse",
    "ConversationSummary",
    "CreateConversationRequest",
    "MessageResponse",
    "HealthResponse",
    "InvokeToolRequest",
    "InvokeToolResponse",
    "ToolListResponse",
    "ToolResponse",
]
