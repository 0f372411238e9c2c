"""Pydantic models for conversation API requests and responses."""

from pydantic import BaseModel, Field


class CreateConversationRequest(BaseModel):
    """Request body for POST /api/v1/conversations."""

    system_prompt: str | None = Field(
        default=None,
        description="System prompt for this conversation. Defaults to the server's prompt.",
    )


class ToolCallInfo(BaseModel):
    """A tool call requested by the assistant."""

    id: str
    name: str
    arguments: str = Field(description="Arguments as JSON text")


class MessageResponse(BaseModel):
    """A single conversation message."""

    role: str = Field(description="system, user, assistant or tool")
    content: str = Field(description="Message content")
    timestamp: str = Field(description="ISO 8601 timestamp")
    model: str | None = Field(default=None, description="Model of assistant messages")
    tool_calls: list[ToolCallInfo] | None = Field(
        default=None, description="Tool calls requested by an assistant message"
    )
    tool_call_id: str | None = Field(
        default=None, description="Call answered by a tool message"
    )
    tool_name: str | None = Field(default=None, description="Tool of a tool message")
    is_error: bool | None = Field(
        default=None, description="Whether a tool message reports a failure"
    )


class ConversationSummary(BaseModel):
    """Conversation listing entry."""

    conversation_id: str
    model: str
    message_count: int
    created_at: str
    updated_at: str
    busy: bool = Field(default=False, description="Whether the agent loop is running")


class ConversationListResponse(BaseModel):
    """Response body for GET /api/v1/conversations."""

    conversations: list[ConversationSummary] = Field(default_factory=list)


class ConversationDetailResponse(ConversationSummary):
    """A conversation with its full history."""

    messages: list[MessageResponse] = Field(default_factory=list)


class DeleteConversationResponse(BaseModel):
    """Response body for DELETE /api/v1/conversations/{id}."""

    conversation_id: str
    deleted: bool = True
