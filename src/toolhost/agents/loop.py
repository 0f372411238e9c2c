"""Agent loop: alternate model generation and tool dispatch.

Each step calls the model once. If the reply requests tools, every request
is dispatched through the broker in the order the model issued it, each
result is appended to the history immediately, and the next step starts.
A reply without tool calls ends the loop. So does reaching max_steps, which
yields a fixed terminal message rather than an error, and so does a cancel
event that fires during a step.

With a message window configured, each generate call sees only the most
recent messages of the history (plus a leading system message). The stored
history itself is never trimmed.
"""

import asyncio
import logging
from typing import Protocol

from toolhost.agents.events import (
    EventSink,
    LoopEvent,
    TextProduced,
    ToolCallFinished,
    ToolCallStarted,
)
from toolhost.errors import ModelAdapterError
from toolhost.sessions.types import AssistantMessage, Message, SystemMessage, ToolMessage
from toolhost.tools.broker import ToolBroker
from toolhost.tools.types import ToolCallRequest, ToolCallResult, ToolDescriptor

logger = logging.getLogger(__name__)

MAX_STEPS_MESSAGE = "Maximum number of steps reached."
CANCELLED_MESSAGE = "Run cancelled."


def window_messages(history: list[Message], size: int | None) -> list[Message]:
    """Select the messages the model sees for one step.

    A leading system message is always kept and does not count against
    size. The window never starts on a tool result: it is widened back to
    the assistant message that issued the call, so a tool-call message and
    its results always travel together.

    Args:
        history: The full conversation
        size: Maximum number of non-system messages, or None for no limit

    Returns:
        list[Message]: A new list; history is not modified
    """
    head = history[:1] if history and history[0].role == "system" else []
    body = history[len(head) :]
    if size is None or len(body) <= size:
        return head + body

    start = len(body) - size
    while start > 0 and body[start].role == "tool":
        start -= 1
    return head + body[start:]


class ModelAdapter(Protocol):
    """Turns a conversation plus a tool catalogue into one model reply."""

    async def generate(
        self, history: list[Message], catalogue: list[ToolDescriptor]
    ) -> AssistantMessage: ...


class AgentLoop:
    """Runs the generate/dispatch cycle for one conversation at a time.

    Attributes:
        broker: Resolves and executes tool calls
        adapter: Produces model replies
        max_steps: Maximum number of generate calls per run
        system_prompt: Prepended to histories that do not start with one
        message_window: Number of recent messages sent to the model per step
    """

    def __init__(
        self,
        broker: ToolBroker,
        adapter: ModelAdapter,
        *,
        max_steps: int = 20,
        system_prompt: str | None = None,
        message_window: int | None = None,
    ) -> None:
        if max_steps < 1:
            raise ValueError(f"max_steps must be at least 1, got {max_steps}")
        if message_window is not None and message_window < 1:
            raise ValueError(f"message_window must be at least 1, got {message_window}")
        self.broker = broker
        self.adapter = adapter
        self.max_steps = max_steps
        self.system_prompt = system_prompt
        self.message_window = message_window

    async def run(
        self,
        history: list[Message],
        sink: EventSink | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> AssistantMessage:
        """Run the loop until the model answers or the step budget runs out.

        The history is extended in place; nothing already in it is moved or
        modified, except that a configured system prompt is inserted at the
        front when the history does not already start with a system message.

        Args:
            history: The conversation so far, ending with the user's turn
            sink: Optional observer for live progress
            cancel_event: Passed to every tool call; setting it abandons the
                call in flight as a tool error and ends the run once the
                current step's calls have been recorded

        Returns:
            AssistantMessage: The final answer, or the max-steps or
                cancelled message

        Raises:
            ModelAdapterError: If the model call fails
        """
        if self.system_prompt and not (history and history[0].role == "system"):
            history.insert(0, SystemMessage(content=self.system_prompt))

        catalogue = self.broker.catalogue

        for step in range(self.max_steps):
            logger.debug(f"Step {step + 1}/{self.max_steps}: generating")
            try:
                response = await self.adapter.generate(
                    window_messages(history, self.message_window), catalogue
                )
            except ModelAdapterError:
                logger.error(f"Model call failed at step {step + 1}")
                raise
            except Exception as e:
                logger.error(f"Model call failed at step {step + 1}: {e}")
                raise ModelAdapterError(f"Failed to generate response: {e}") from e

            history.append(response)

            if not response.tool_calls:
                if response.content:
                    self._notify(sink, TextProduced(content=response.content, final=True))
                logger.info(f"Loop finished after {step + 1} steps")
                return response

            if response.content:
                self._notify(sink, TextProduced(content=response.content, final=False))

            for call in response.tool_calls:
                self._notify(sink, ToolCallStarted(call=call))
                result = await self._dispatch(call, cancel_event)
                history.append(
                    ToolMessage(
                        content=result.output,
                        tool_call_id=call.id,
                        tool_name=call.name,
                        is_error=result.is_error,
                    )
                )
                self._notify(sink, ToolCallFinished(call=call, result=result))

            if cancel_event is not None and cancel_event.is_set():
                logger.warning(f"Run cancelled after step {step + 1}")
                final = AssistantMessage(content=CANCELLED_MESSAGE)
                history.append(final)
                return final

        logger.warning(f"Loop stopped after reaching max steps ({self.max_steps})")
        final = AssistantMessage(content=MAX_STEPS_MESSAGE)
        history.append(final)
        return final

    async def _dispatch(
        self, call: ToolCallRequest, cancel_event: asyncio.Event | None
    ) -> ToolCallResult:
        tool = self.broker.get(call.name)
        if tool is None:
            logger.warning(f"Model requested unknown tool '{call.name}'")
            return ToolCallResult(
                call_id=call.id, output=f"Tool not found: {call.name}", is_error=True
            )
        return await self.broker.invoke(
            tool.qualified_name,
            call.arguments,
            call_id=call.id,
            cancel_event=cancel_event,
        )

    @staticmethod
    def _notify(sink: EventSink | None, event: LoopEvent) -> None:
        if sink is None:
            return
        try:
            sink.emit(event)
        except Exception:
            logger.exception(f"Event sink failed on {type(event).__name__}")
