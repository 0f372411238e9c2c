"""Pydantic models for chat API requests, responses and SSE events.

This module defines the request and response schemas for the chat endpoints,
including both streaming and non-streaming agent runs.
"""

from pydantic import BaseModel, ConfigDict, Field

from toolhost.models.conversations import MessageResponse


class ChatRequest(BaseModel):
    """Request body for chat endpoints.

    Used by both POST /api/v1/chat/{conversation_id} (non-streaming)
    and POST /api/v1/chat/{conversation_id}/stream (streaming).
    """

    message: str | None = Field(
        default=None,
        description="The user message to send. If null, the loop runs on the existing history.",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {"message": "What files are in /tmp?"},
                {"message": None},
            ]
        }
    )


class ToolCallExecuted(BaseModel):
    """A tool call the agent loop executed while answering."""

    id: str = Field(description="Tool call id")
    name: str = Field(description="Tool name as requested by the model")
    arguments: str = Field(description="Arguments as JSON text")
    output: str = Field(description="Tool output or failure description")
    is_error: bool = Field(default=False, description="Whether the call failed")


class ChatResponse(BaseModel):
    """Response body for the non-streaming chat endpoint."""

    conversation_id: str = Field(description="Conversation identifier")
    message: MessageResponse = Field(description="The assistant's final message")
    tool_calls_executed: list[ToolCallExecuted] = Field(
        default_factory=list,
        description="Tools executed while producing the answer, in order",
    )


# --- SSE event payloads ---


class ContentEvent(BaseModel):
    """Text produced by the model. final is True for the answer itself."""

    content: str
    final: bool = False


class ToolCallEvent(BaseModel):
    """A tool call is about to run."""

    id: str
    name: str
    arguments: str


class ToolResultEvent(BaseModel):
    """A tool call finished."""

    id: str
    name: str
    output: str
    is_error: bool = False


class MessageCompleteEvent(BaseModel):
    """The loop produced its final message."""

    message: MessageResponse


class ErrorEvent(BaseModel):
    """An error ended the run."""

    code: str
    message: str
    details: dict = Field(default_factory=dict)


class DoneEvent(BaseModel):
    """The stream is complete."""

    conversation_id: str
