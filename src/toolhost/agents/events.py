"""Agent loop events and sinks.

The loop reports its progress through an EventSink. emit() is called
synchronously on the loop's own path, so events arrive in execution order
and the loop waits for each handler to return. Sinks observe the loop; they
never steer it.
"""

import asyncio
from dataclasses import dataclass
from typing import Protocol, Union

from toolhost.tools.types import ToolCallRequest, ToolCallResult


@dataclass(frozen=True)
class ToolCallStarted:
    """A tool call is about to be dispatched."""

    call: ToolCallRequest


@dataclass(frozen=True)
class ToolCallFinished:
    """A tool call finished, successfully or not."""

    call: ToolCallRequest
    result: ToolCallResult


@dataclass(frozen=True)
class TextProduced:
    """The model produced text.

    Attributes:
        content: The text
        final: True for the final answer, False for text that accompanies
            tool calls
    """

    content: str
    final: bool


LoopEvent = Union[ToolCallStarted, ToolCallFinished, TextProduced]


class EventSink(Protocol):
    """Receives loop events synchronously."""

    def emit(self, event: LoopEvent) -> None: ...


class QueueEventSink:
    """Forwards events into an asyncio.Queue for an independent consumer.

    put_nowait on an unbounded queue never blocks, so a slow consumer (an
    SSE client, for instance) cannot stall the loop.
    """

    def __init__(self, queue: asyncio.Queue | None = None) -> None:
        self.queue: asyncio.Queue = queue if queue is not None else asyncio.Queue()

    def emit(self, event: LoopEvent) -> None:
        self.queue.put_nowait(event)


class RecordingEventSink:
    """Keeps every event, and the finished tool calls, for later inspection."""

    def __init__(self) -> None:
        self.events: list[LoopEvent] = []

    def emit(self, event: LoopEvent) -> None:
        self.events.append(event)

    @property
    def finished_calls(self) -> list[ToolCallFinished]:
        return [e for e in self.events if isinstance(e, ToolCallFinished)]
