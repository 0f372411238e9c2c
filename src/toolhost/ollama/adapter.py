"""Model adapter that talks to Ollama.

Converts conversation messages and the tool catalogue into Ollama's chat
format, collects the streamed reply, and converts it back into an
AssistantMessage with ToolCallRequests.
"""

import json
import logging
import uuid
from typing import Any

from toolhost.errors import ModelAdapterError
from toolhost.ollama.client import OllamaClient
from toolhost.sessions.types import AssistantMessage, Message, ToolMessage
from toolhost.tools.types import ToolCallRequest, ToolDescriptor

logger = logging.getLogger(__name__)


def _arguments_to_dict(arguments: str) -> dict[str, Any]:
    try:
        parsed = json.loads(arguments) if arguments else {}
    except json.JSONDecodeError:
        return {}
    return parsed if isinstance(parsed, dict) else {}


def convert_messages_to_ollama_format(messages: list[Message]) -> list[dict[str, Any]]:
    """Convert conversation messages to Ollama API format.

    Args:
        messages: Conversation messages in history order

    Returns:
        List of message dicts: [{"role": "...", "content": "..."}, ...]
    """
    ollama_messages = []

    for msg in messages:
        ollama_msg: dict[str, Any] = {
            "role": msg.role,
            "content": msg.content,
        }

        if isinstance(msg, ToolMessage):
            ollama_msg["tool_name"] = msg.tool_name
        elif isinstance(msg, AssistantMessage) and msg.tool_calls:
            ollama_msg["tool_calls"] = [
                {
                    "function": {
                        "name": call.name,
                        "arguments": _arguments_to_dict(call.arguments),
                    }
                }
                for call in msg.tool_calls
            ]

        ollama_messages.append(ollama_msg)

    return ollama_messages


def _new_call_id() -> str:
    return f"call_{uuid.uuid4().hex[:10]}"


def _parse_tool_calls(raw_calls: list[dict[str, Any]]) -> list[ToolCallRequest]:
    calls = []
    for raw in raw_calls:
        function = raw.get("function") or {}
        arguments = function.get("arguments")
        if isinstance(arguments, str):
            arguments_json = arguments
        else:
            arguments_json = json.dumps(arguments or {})
        calls.append(
            ToolCallRequest(
                id=raw.get("id") or _new_call_id(),
                name=function.get("name", ""),
                arguments=arguments_json,
            )
        )
    return calls


class OllamaModelAdapter:
    """Generates assistant replies with an Ollama model.

    Ollama does not assign ids to tool calls, so the adapter gives each call
    a fresh id; tool results refer back to it.
    """

    def __init__(
        self,
        client: OllamaClient,
        model: str,
        options: dict[str, Any] | None = None,
    ) -> None:
        self.client = client
        self.model = model
        self.options = options

    async def generate(
        self, history: list[Message], catalogue: list[ToolDescriptor]
    ) -> AssistantMessage:
        """Send the history to the model and collect one complete reply.

        Raises:
            ModelAdapterError: If the request fails or the stream is incomplete
        """
        messages = convert_messages_to_ollama_format(history)
        tools = [tool.to_tool_schema() for tool in catalogue]

        content_parts: list[str] = []
        raw_calls: list[dict[str, Any]] = []
        final_chunk = None

        try:
            async for chunk in self.client.chat_stream(
                model=self.model,
                messages=messages,
                tools=tools,
                options=self.options,
            ):
                message = chunk.get("message") or {}
                content = message.get("content") or ""
                if content:
                    content_parts.append(content)
                if message.get("tool_calls"):
                    raw_calls.extend(message["tool_calls"])
                if chunk.get("done"):
                    final_chunk = chunk
        except Exception as e:
            raise ModelAdapterError(f"Failed to get response from Ollama: {e}") from e

        if final_chunk is None:
            raise ModelAdapterError("Stream ended without completion marker")

        tool_calls = _parse_tool_calls(raw_calls)
        logger.debug(
            f"Model {self.model} replied with {len(content_parts)} content chunks "
            f"and {len(tool_calls)} tool calls"
        )

        return AssistantMessage(
            content="".join(content_parts),
            model=self.model,
            tool_calls=tool_calls or None,
        )
