"""Chat API endpoints.

This module provides endpoints that run the agent loop on a conversation,
either returning the final answer at once or streaming loop progress via
SSE.

Each run executes in its own task that holds the conversation's lock until
the loop finishes, so a client that disconnects mid-run never leaves the
history half-written or open to a second writer.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sse_starlette.sse import EventSourceResponse

from toolhost.agents import (
    AgentLoop,
    QueueEventSink,
    RecordingEventSink,
    TextProduced,
    ToolCallFinished,
    ToolCallStarted,
)
from toolhost.agents.events import EventSink, LoopEvent
from toolhost.dependencies import get_agent_loop, get_conversation_store
from toolhost.errors import ModelAdapterError
from toolhost.models.chat import (
    ChatRequest,
    ChatResponse,
    ContentEvent,
    DoneEvent,
    ErrorEvent,
    MessageCompleteEvent,
    ToolCallEvent,
    ToolCallExecuted,
    ToolResultEvent,
)
from toolhost.routers.conversations import get_conversation_or_404, message_to_response
from toolhost.sessions import AssistantMessage, Conversation, ConversationStore, UserMessage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/chat", tags=["chat"])


def _busy_error(conversation_id: str) -> HTTPException:
    return HTTPException(
        status_code=409,
        detail={
            "error": {
                "code": "conversation_busy",
                "message": f"Conversation {conversation_id} is already being processed",
                "details": {"conversation_id": conversation_id},
            }
        },
    )


def _check_runnable(conversation: Conversation, request_body: ChatRequest) -> None:
    """Reject runs on busy conversations and runs with nothing to answer.

    Raises:
        HTTPException: 409 if the loop is already running, 400 if the history is empty
    """
    if conversation.is_busy:
        raise _busy_error(conversation.conversation_id)
    if request_body.message is None and not conversation.messages:
        raise HTTPException(
            status_code=400,
            detail={
                "error": {
                    "code": "empty_history",
                    "message": "Conversation has no messages to process",
                    "details": {},
                }
            },
        )


def _log_run_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.error(f"Agent run failed: {error}")


def _start_run(
    agent_loop: AgentLoop,
    conversation: Conversation,
    message: str | None,
    sink: EventSink,
    cancel_event: asyncio.Event,
) -> asyncio.Task:
    """Start an agent run in its own task.

    The caller must hold conversation.lock; the task releases it when the
    run ends.
    """

    async def run() -> AssistantMessage:
        try:
            if message is not None:
                conversation.add_message(UserMessage(content=message))
                logger.info(f"Added user message to conversation {conversation.conversation_id}")
            return await agent_loop.run(conversation.messages, sink, cancel_event)
        finally:
            conversation.touch()
            conversation.lock.release()

    task = asyncio.create_task(run())
    task.add_done_callback(_log_run_failure)
    return task


def _model_error(conversation_id: str, error: ModelAdapterError) -> dict:
    return {
        "error": {
            "code": "model_error",
            "message": str(error),
            "details": {"conversation_id": conversation_id},
        }
    }


@router.post("/{conversation_id}", response_model=ChatResponse)
async def chat_non_streaming(
    conversation_id: str,
    request_body: ChatRequest,
    store: ConversationStore = Depends(get_conversation_store),
    agent_loop: AgentLoop = Depends(get_agent_loop),
) -> ChatResponse:
    """Send a message and run the agent loop until it produces an answer.

    Args:
        conversation_id: The conversation to continue
        request_body: Chat request containing the user message

    Returns:
        ChatResponse with the final assistant message and the executed tool calls

    Raises:
        HTTPException: 404 if the conversation is not found, 409 if it is busy,
            400 if there is nothing to answer, 502 if the model fails
    """
    conversation = get_conversation_or_404(store, conversation_id)
    _check_runnable(conversation, request_body)

    await conversation.lock.acquire()
    sink = RecordingEventSink()
    task = _start_run(
        agent_loop, conversation, request_body.message, sink, asyncio.Event()
    )

    try:
        final = await asyncio.shield(task)
    except ModelAdapterError as e:
        logger.error(f"Model error in conversation {conversation_id}: {e}")
        raise HTTPException(status_code=502, detail=_model_error(conversation_id, e))

    logger.info(
        f"Conversation {conversation_id} answered after "
        f"{len(sink.finished_calls)} tool calls"
    )

    return ChatResponse(
        conversation_id=conversation_id,
        message=message_to_response(final),
        tool_calls_executed=[
            ToolCallExecuted(
                id=event.call.id,
                name=event.call.name,
                arguments=event.call.arguments,
                output=event.result.output,
                is_error=event.result.is_error,
            )
            for event in sink.finished_calls
        ],
    )


def _event_to_sse(event: LoopEvent) -> dict[str, str]:
    if isinstance(event, TextProduced):
        payload = ContentEvent(content=event.content, final=event.final)
        return {"event": "content", "data": payload.model_dump_json()}
    if isinstance(event, ToolCallStarted):
        payload = ToolCallEvent(
            id=event.call.id, name=event.call.name, arguments=event.call.arguments
        )
        return {"event": "tool_call", "data": payload.model_dump_json()}
    if isinstance(event, ToolCallFinished):
        payload = ToolResultEvent(
            id=event.call.id,
            name=event.call.name,
            output=event.result.output,
            is_error=event.result.is_error,
        )
        return {"event": "tool_result", "data": payload.model_dump_json()}
    raise TypeError(f"Unknown loop event: {event!r}")


@router.post("/{conversation_id}/stream")
async def chat_streaming(
    conversation_id: str,
    request_body: ChatRequest,
    request: Request,
    store: ConversationStore = Depends(get_conversation_store),
    agent_loop: AgentLoop = Depends(get_agent_loop),
) -> EventSourceResponse:
    """Run the agent loop and stream its progress via Server-Sent Events (SSE).

    SSE Events:
        - content: Text from the model (final=true for the answer)
        - tool_call: A tool call is about to run
        - tool_result: A tool call finished
        - message_complete: The final assistant message
        - error: The model failed or the conversation became busy
        - done: Stream is complete

    If the client disconnects, running tool calls are cancelled and the loop
    finishes in the background.

    Raises:
        HTTPException: 404 if the conversation is not found, 409 if it is busy,
            400 if there is nothing to answer
    """
    conversation = get_conversation_or_404(store, conversation_id)
    _check_runnable(conversation, request_body)

    logger.info(f"Starting streaming run for conversation {conversation_id}")

    async def event_generator():
        """Generate SSE events from the loop's event queue."""
        if conversation.is_busy:
            error_event = ErrorEvent(
                code="conversation_busy",
                message=f"Conversation {conversation_id} is already being processed",
                details={"conversation_id": conversation_id},
            )
            yield {"event": "error", "data": error_event.model_dump_json()}
            return

        await conversation.lock.acquire()
        sink = QueueEventSink()
        cancel_event = asyncio.Event()
        task = _start_run(agent_loop, conversation, request_body.message, sink, cancel_event)
        task.add_done_callback(lambda _: sink.queue.put_nowait(None))

        try:
            while True:
                event = await sink.queue.get()
                if event is None:
                    break
                if await request.is_disconnected():
                    logger.warning(
                        f"Client disconnected during streaming for conversation {conversation_id}"
                    )
                    cancel_event.set()
                    return
                yield _event_to_sse(event)

            try:
                final = task.result()
            except ModelAdapterError as e:
                error_event = ErrorEvent(**_model_error(conversation_id, e)["error"])
                yield {"event": "error", "data": error_event.model_dump_json()}
                return
            except Exception as e:
                error_event = ErrorEvent(
                    code="agent_error",
                    message=f"Agent run failed: {e}",
                    details={"conversation_id": conversation_id},
                )
                yield {"event": "error", "data": error_event.model_dump_json()}
                return

            complete_event = MessageCompleteEvent(message=message_to_response(final))
            yield {"event": "message_complete", "data": complete_event.model_dump_json()}

            done_event = DoneEvent(conversation_id=conversation_id)
            yield {"event": "done", "data": done_event.model_dump_json()}
        finally:
            if not task.done():
                cancel_event.set()

    return EventSourceResponse(event_generator())
