"""Tool broker: one namespace of tools across many MCP servers.

The broker owns exactly one connection per configured provider, builds a
collision-free catalogue of qualified tool names, and routes each call to
the provider that owns the tool.
"""

import asyncio
import json
import logging
from collections.abc import Iterable
from typing import Any, Callable

from toolhost.errors import BrokerLoadError, ProviderConfigError
from toolhost.tools.connection import ToolProviderConnection, render_tool_output
from toolhost.tools.types import ToolCallResult, ToolDescriptor, ToolProviderSpec

logger = logging.getLogger(__name__)

ConnectionFactory = Callable[..., ToolProviderConnection]


class ToolCallCancelled(Exception):
    """Raised internally when the caller's cancel event fires mid-call."""


def _parse_arguments(arguments: str | dict[str, Any] | None) -> dict[str, Any]:
    if arguments is None:
        return {}
    if isinstance(arguments, dict):
        return arguments
    if not arguments.strip():
        return {}
    parsed = json.loads(arguments)
    if not isinstance(parsed, dict):
        raise ValueError("arguments must be a JSON object")
    return parsed


class ToolBroker:
    """Routes tool calls to the MCP servers that provide them.

    Typical lifecycle:
        broker = ToolBroker(client_name="toolhost", client_version="0.1.0")
        await broker.load(specs)
        result = await broker.invoke("fs__read_file", '{"path": "/tmp/x"}')
        errors = await broker.close()

    load() and close() must run in the same task: the stdio and HTTP
    transports are anyio task groups that have to be exited where they were
    entered.
    """

    def __init__(
        self,
        *,
        client_name: str = "toolhost",
        client_version: str = "0.1.0",
        connect_timeout: float = 30.0,
        tool_timeout: float = 60.0,
        connection_factory: ConnectionFactory = ToolProviderConnection,
    ) -> None:
        self.client_name = client_name
        self.client_version = client_version
        self.connect_timeout = connect_timeout
        self.tool_timeout = tool_timeout
        self._connection_factory = connection_factory
        self._connections: dict[str, ToolProviderConnection] = {}
        self._tools: dict[str, ToolDescriptor] = {}

    @property
    def providers(self) -> list[str]:
        """Names of the providers with a tracked connection, in load order."""
        return list(self._connections)

    @property
    def catalogue(self) -> list[ToolDescriptor]:
        """All registered tools, in registration order."""
        return list(self._tools.values())

    def tool_schemas(self) -> list[dict[str, Any]]:
        return [tool.to_tool_schema() for tool in self._tools.values()]

    def get(self, name: str) -> ToolDescriptor | None:
        """Resolve a tool name against the catalogue.

        Qualified names match exactly. A raw name matches only when exactly
        one provider exposes a tool with that raw name.
        """
        tool = self._tools.get(name)
        if tool is not None:
            return tool
        matches = [t for t in self._tools.values() if t.raw_name == name]
        if len(matches) == 1:
            return matches[0]
        return None

    async def load(self, specs: Iterable[ToolProviderSpec]) -> None:
        """Connect to every provider and build the catalogue.

        All specs are validated before the first connection attempt. Loading
        is all-or-nothing: on any failure every connection opened so far is
        closed and the broker is left empty.

        Args:
            specs: Provider specs, loaded in order

        Raises:
            ProviderConfigError: If a spec is invalid (nothing was connected)
            BrokerLoadError: If a provider could not be connected,
                initialized, or listed
            RuntimeError: If the broker is already loaded
        """
        if self._connections:
            raise RuntimeError("Tool broker is already loaded")

        specs = list(specs)
        seen: set[str] = set()
        for spec in specs:
            spec.validate()
            if spec.name in seen:
                raise ProviderConfigError(f"Duplicate provider name '{spec.name}'")
            seen.add(spec.name)

        for spec in specs:
            try:
                await self._load_provider(spec)
            except Exception as e:
                logger.error(f"Failed to load tool provider '{spec.name}': {e}")
                close_errors = await self.close()
                raise BrokerLoadError(spec.name, e, close_errors) from e

        logger.info(
            f"Loaded {len(self._tools)} tools from {len(self._connections)} providers"
        )

    async def _load_provider(self, spec: ToolProviderSpec) -> None:
        connection = self._connection_factory(
            spec,
            client_name=self.client_name,
            client_version=self.client_version,
            connect_timeout=self.connect_timeout,
        )
        # Tracked before opening so a half-open connection is still closed.
        self._connections[spec.name] = connection

        await connection.open()
        await connection.initialize()
        tools = await connection.list_tools()

        kept = 0
        for tool in tools:
            if not spec.includes_tool(tool.name):
                logger.debug(f"Skipping filtered tool '{tool.name}' from '{spec.name}'")
                continue

            descriptor = ToolDescriptor(
                provider=spec.name,
                raw_name=tool.name,
                description=tool.description or "",
                parameters=tool.inputSchema or {"type": "object", "properties": {}},
            )
            qualified_name = descriptor.qualified_name
            if qualified_name in self._tools:
                raise ValueError(f"Duplicate tool name '{qualified_name}'")
            self._tools[qualified_name] = descriptor
            kept += 1

        logger.info(f"Registered {kept} of {len(tools)} tools from '{spec.name}'")

    async def invoke(
        self,
        name: str,
        arguments: str | dict[str, Any] | None = None,
        *,
        call_id: str = "",
        cancel_event: asyncio.Event | None = None,
    ) -> ToolCallResult:
        """Call a tool and return its result.

        Failures are returned as error-flagged results, never raised: unknown
        tools, malformed arguments, provider errors, timeouts and
        cancellation all end up in ToolCallResult.output.

        Args:
            name: Qualified tool name (or an unambiguous raw name)
            arguments: JSON object text or an already-parsed dict
            call_id: Correlation id copied into the result
            cancel_event: When set during the call, the call is abandoned

        Returns:
            ToolCallResult: The provider's output or a failure description
        """
        tool = self.get(name)
        if tool is None:
            return ToolCallResult(call_id=call_id, output=f"Tool not found: {name}", is_error=True)

        try:
            args = _parse_arguments(arguments)
        except ValueError as e:
            return ToolCallResult(
                call_id=call_id, output=f"Failed to parse arguments: {e}", is_error=True
            )

        connection = self._connections[tool.provider]
        logger.debug(f"Calling tool '{tool.qualified_name}' with args: {args}")

        try:
            result = await self._call(connection, tool.raw_name, args, cancel_event)
        except ToolCallCancelled:
            logger.warning(f"Tool call '{tool.qualified_name}' was cancelled")
            return ToolCallResult(
                call_id=call_id, output=f"Tool call cancelled: {name}", is_error=True
            )
        except Exception as e:
            logger.warning(f"Tool call '{tool.qualified_name}' failed: {e}")
            return ToolCallResult(
                call_id=call_id, output=f"Failed to call tool: {e}", is_error=True
            )

        return ToolCallResult(
            call_id=call_id,
            output=render_tool_output(result),
            is_error=bool(result.isError),
        )

    async def _call(
        self,
        connection: ToolProviderConnection,
        raw_name: str,
        args: dict[str, Any],
        cancel_event: asyncio.Event | None,
    ) -> Any:
        if cancel_event is None:
            return await connection.call_tool(raw_name, args, self.tool_timeout)
        if cancel_event.is_set():
            raise ToolCallCancelled()

        call_task = asyncio.create_task(
            connection.call_tool(raw_name, args, self.tool_timeout)
        )
        cancel_task = asyncio.create_task(cancel_event.wait())
        try:
            done, _ = await asyncio.wait(
                {call_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for task in (call_task, cancel_task):
                if not task.done():
                    task.cancel()

        if call_task in done:
            return call_task.result()
        raise ToolCallCancelled()

    async def close(self) -> list[Exception]:
        """Close every tracked connection exactly once.

        Closing continues past individual failures. Connections are closed in
        reverse opening order. The catalogue is cleared.

        Returns:
            list[Exception]: Errors raised while closing (empty on success)
        """
        connections = list(self._connections.values())
        self._connections.clear()
        self._tools.clear()

        errors: list[Exception] = []
        for connection in reversed(connections):
            try:
                await connection.close()
            except Exception as e:
                logger.warning(f"Failed to close tool provider '{connection.name}': {e}")
                errors.append(e)

        if connections:
            logger.info(f"Closed {len(connections) - len(errors)} tool provider connections")
        return errors
