"""Agent loop orchestration.

This package runs the bounded generate/dispatch loop that turns model
replies into tool calls and tool results into further model input, and
defines the events the loop reports while it runs.
"""

from toolhost.agents.events import (
    EventSink,
    QueueEventSink,
    RecordingEventSink,
    TextProduced,
    ToolCallFinished,
    ToolCallStarted,
)
from toolhost.agents.loop import (
    CANCELLED_MESSAGE,
    MAX_STEPS_MESSAGE,
    AgentLoop,
    ModelAdapter,
    window_messages,
)

__all__ = [
    "AgentLoop",
    "ModelAdapter",
    "MAX_STEPS_MESSAGE",
    "CANCELLED_MESSAGE",
    "window_messages",
    "EventSink",
    "QueueEventSink",
    "RecordingEventSink",
    "TextProduced",
    "ToolCallFinished",
    "ToolCallStarted",
]
