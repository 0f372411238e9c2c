"""MCP client connection to a single tool provider.

A ToolProviderConnection wraps one mcp.ClientSession together with the
transport it runs on (a spawned stdio subprocess, an SSE stream, or a
streamable HTTP connection). All transport resources are held in an
AsyncExitStack so the connection can be torn down in one call, including
after a failure halfway through opening.
"""

import json
import logging
from contextlib import AsyncExitStack
from datetime import timedelta
from typing import Any

from mcp import ClientSession, StdioServerParameters
from mcp import types as mcp_types
from mcp.client.sse import sse_client
from mcp.client.stdio import stdio_client
from mcp.client.streamable_http import streamablehttp_client

from toolhost.tools.types import ToolProviderSpec, parse_headers

logger = logging.getLogger(__name__)


class ToolProviderConnection:
    """Live connection to one MCP server.

    The connection is created by the broker, opened once, and closed once.
    All tool calls against the provider share this connection.

    Attributes:
        spec: The provider spec this connection is bound to
        server_info: Server identity reported during initialize (once initialized)
    """

    def __init__(
        self,
        spec: ToolProviderSpec,
        *,
        client_name: str,
        client_version: str,
        connect_timeout: float,
    ) -> None:
        self.spec = spec
        self.server_info: mcp_types.Implementation | None = None
        self._client_info = mcp_types.Implementation(
            name=client_name, version=client_version
        )
        self._connect_timeout = connect_timeout
        self._stack = AsyncExitStack()
        self._session: ClientSession | None = None
        self._closed = False

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def is_open(self) -> bool:
        return self._session is not None and not self._closed

    def _require_session(self) -> ClientSession:
        if self._session is None or self._closed:
            raise ConnectionError(f"Connection to tool provider '{self.name}' is not open")
        return self._session

    async def open(self) -> None:
        """Start the transport and the client session.

        Raises:
            RuntimeError: If the connection was already opened or closed
            Exception: Whatever the transport raises when it cannot connect
        """
        if self._session is not None or self._closed:
            raise RuntimeError(f"Connection to tool provider '{self.name}' cannot be reopened")

        if self.spec.is_stdio:
            logger.debug(f"Spawning tool provider '{self.name}': {self.spec.command}")
            params = StdioServerParameters(
                command=self.spec.command,
                args=list(self.spec.args),
                env=self.spec.env,
            )
            read, write = await self._stack.enter_async_context(stdio_client(params))
        elif self.spec.transport == "streamable_http":
            logger.debug(f"Connecting to tool provider '{self.name}' at {self.spec.url}")
            read, write, _ = await self._stack.enter_async_context(
                streamablehttp_client(
                    self.spec.url, headers=parse_headers(list(self.spec.headers))
                )
            )
        else:
            logger.debug(f"Connecting to tool provider '{self.name}' at {self.spec.url} (SSE)")
            read, write = await self._stack.enter_async_context(
                sse_client(self.spec.url, headers=parse_headers(list(self.spec.headers)))
            )

        self._session = await self._stack.enter_async_context(
            ClientSession(
                read,
                write,
                read_timeout_seconds=timedelta(seconds=self._connect_timeout),
                client_info=self._client_info,
            )
        )

    async def initialize(self) -> mcp_types.InitializeResult:
        """Perform the MCP initialize handshake."""
        result = await self._require_session().initialize()
        self.server_info = result.serverInfo
        logger.info(
            f"Initialized tool provider '{self.name}' "
            f"({result.serverInfo.name} {result.serverInfo.version}, "
            f"protocol {result.protocolVersion})"
        )
        return result

    async def list_tools(self) -> list[mcp_types.Tool]:
        """List every tool the provider exposes, following pagination cursors."""
        session = self._require_session()
        result = await session.list_tools()
        tools = list(result.tools)
        while result.nextCursor:
            result = await session.list_tools(cursor=result.nextCursor)
            tools.extend(result.tools)
        logger.debug(f"Tool provider '{self.name}' lists {len(tools)} tools")
        return tools

    async def call_tool(
        self, raw_name: str, arguments: dict[str, Any], timeout: float
    ) -> mcp_types.CallToolResult:
        """Call a tool by its provider-local name.

        Raises:
            Exception: On transport failures or when no response arrives in time
        """
        return await self._require_session().call_tool(
            raw_name,
            arguments,
            read_timeout_seconds=timedelta(seconds=timeout),
        )

    async def close(self) -> None:
        """Close the session and its transport. Later calls do nothing."""
        if self._closed:
            return
        self._closed = True
        logger.debug(f"Closing connection to tool provider '{self.name}'")
        await self._stack.aclose()


def render_tool_output(result: mcp_types.CallToolResult) -> str:
    """Flatten an MCP tool result into the text fed back to the model.

    Text items are joined with newlines. Other content kinds are reduced to
    short placeholders. Structured content is used only when the result has
    no content items at all.
    """
    parts: list[str] = []
    for item in result.content or []:
        kind = getattr(item, "type", "unknown")
        if kind == "text":
            parts.append(item.text)
        elif kind == "resource":
            text = getattr(item.resource, "text", None)
            parts.append(text if text is not None else f"[resource: {item.resource.uri}]")
        elif kind == "resource_link":
            parts.append(f"[resource link: {item.uri}]")
        else:
            mime_type = getattr(item, "mimeType", None)
            parts.append(f"[{kind}: {mime_type}]" if mime_type else f"[{kind}]")

    if not parts and getattr(result, "structuredContent", None) is not None:
        parts.append(json.dumps(result.structuredContent))

    return "\n".join(parts)
