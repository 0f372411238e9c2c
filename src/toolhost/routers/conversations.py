"""Conversation API endpoints.

Conversations are kept in memory only; they are lost when the server stops.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from toolhost.dependencies import get_conversation_store
from toolhost.models.conversations import (
    ConversationDetailResponse,
    ConversationListResponse,
    ConversationSummary,
    CreateConversationRequest,
    DeleteConversationResponse,
    MessageResponse,
    ToolCallInfo,
)
from toolhost.sessions import AssistantMessage, Conversation, ConversationStore, Message, ToolMessage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/conversations", tags=["conversations"])


def message_to_response(message: Message) -> MessageResponse:
    """Convert a conversation message to its API representation."""
    response = MessageResponse(
        role=message.role,
        content=message.content,
        timestamp=message.timestamp,
    )
    if isinstance(message, AssistantMessage):
        response.model = message.model or None
        if message.tool_calls:
            response.tool_calls = [
                ToolCallInfo(id=call.id, name=call.name, arguments=call.arguments)
                for call in message.tool_calls
            ]
    elif isinstance(message, ToolMessage):
        response.tool_call_id = message.tool_call_id
        response.tool_name = message.tool_name
        response.is_error = message.is_error
    return response


def _summary(conversation: Conversation) -> ConversationSummary:
    return ConversationSummary(
        conversation_id=conversation.conversation_id,
        model=conversation.model,
        message_count=len(conversation.messages),
        created_at=conversation.created_at,
        updated_at=conversation.updated_at,
        busy=conversation.is_busy,
    )


def get_conversation_or_404(store: ConversationStore, conversation_id: str) -> Conversation:
    """Look up a conversation.

    Raises:
        HTTPException: 404 if it does not exist
    """
    conversation = store.get(conversation_id)
    if conversation is None:
        raise HTTPException(
            status_code=404,
            detail={
                "error": {
                    "code": "conversation_not_found",
                    "message": f"Conversation {conversation_id} not found",
                    "details": {"conversation_id": conversation_id},
                }
            },
        )
    return conversation


@router.post("", response_model=ConversationDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_conversation(
    request_body: CreateConversationRequest,
    request: Request,
    store: ConversationStore = Depends(get_conversation_store),
) -> ConversationDetailResponse:
    """Create a new conversation.

    Without a system prompt, the server's configured prompt is added when
    the agent loop first runs.
    """
    settings = request.app.state.settings
    conversation = store.create(
        model=settings.model,
        system_prompt=request_body.system_prompt,
    )
    return ConversationDetailResponse(
        **_summary(conversation).model_dump(),
        messages=[message_to_response(m) for m in conversation.messages],
    )


@router.get("", response_model=ConversationListResponse)
async def list_conversations(
    store: ConversationStore = Depends(get_conversation_store),
) -> ConversationListResponse:
    """List conversations, most recently updated first."""
    return ConversationListResponse(
        conversations=[_summary(c) for c in store.list_conversations()]
    )


@router.get("/{conversation_id}", response_model=ConversationDetailResponse)
async def get_conversation(
    conversation_id: str,
    store: ConversationStore = Depends(get_conversation_store),
) -> ConversationDetailResponse:
    """Get a conversation with its full message history."""
    conversation = get_conversation_or_404(store, conversation_id)
    return ConversationDetailResponse(
        **_summary(conversation).model_dump(),
        messages=[message_to_response(m) for m in conversation.messages],
    )


@router.delete("/{conversation_id}", response_model=DeleteConversationResponse)
async def delete_conversation(
    conversation_id: str,
    store: ConversationStore = Depends(get_conversation_store),
) -> DeleteConversationResponse:
    """Delete a conversation.

    Raises:
        HTTPException: 404 if it does not exist, 409 while the agent loop is running on it
    """
    conversation = get_conversation_or_404(store, conversation_id)
    if conversation.is_busy:
        raise HTTPException(
            status_code=409,
            detail={
                "error": {
                    "code": "conversation_busy",
                    "message": f"Conversation {conversation_id} is being processed",
                    "details": {"conversation_id": conversation_id},
                }
            },
        )
    store.delete(conversation_id)
    return DeleteConversationResponse(conversation_id=conversation_id)
