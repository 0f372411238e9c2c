"""Pytest configuration and shared fixtures for toolhost tests.

This module provides common fixtures used across all test modules,
including test app creation, async client setup, and fake tool providers
that stand in for MCP servers.
"""

import inspect
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from mcp import types as mcp_types

from toolhost import create_app
from toolhost.config import ToolhostSettings


def text_result(text: str, is_error: bool = False) -> mcp_types.CallToolResult:
    """Build an MCP tool result with a single text item."""
    return mcp_types.CallToolResult(
        content=[mcp_types.TextContent(type="text", text=text)],
        isError=is_error,
    )


class FakeConnection:
    """In-process replacement for ToolProviderConnection.

    Behaviour is driven by the FakeProviders registry that created it.
    """

    def __init__(self, registry: "FakeProviders", spec, **kwargs: Any) -> None:
        self.registry = registry
        self.spec = spec
        self.kwargs = kwargs
        self.opened = False
        self.close_count = 0
        self.calls: list[tuple[str, dict[str, Any]]] = []

    @property
    def name(self) -> str:
        return self.spec.name

    async def _stage(self, stage: str) -> None:
        self.registry.log.append((stage, self.name))
        if self.registry.failures.get(self.name) == stage:
            raise ConnectionError(f"{self.name} failed during {stage}")

    async def open(self) -> None:
        await self._stage("open")
        self.opened = True

    async def initialize(self) -> None:
        await self._stage("initialize")

    async def list_tools(self) -> list[mcp_types.Tool]:
        await self._stage("list_tools")
        return [
            mcp_types.Tool(
                name=tool_name,
                description=f"{tool_name} from {self.name}",
                inputSchema={"type": "object", "properties": {}},
            )
            for tool_name in self.registry.tools.get(self.name, [])
        ]

    async def call_tool(self, raw_name: str, arguments: dict[str, Any], timeout: float):
        self.calls.append((raw_name, arguments))
        self.registry.log.append(("call_tool", f"{self.name}.{raw_name}"))
        handler = self.registry.handlers.get((self.name, raw_name))
        if handler is None:
            return text_result(f"{self.name}.{raw_name} ok")
        result = handler(arguments)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def close(self) -> None:
        self.close_count += 1
        self.registry.log.append(("close", self.name))
        error = self.registry.close_errors.get(self.name)
        if error is not None:
            raise error


class FakeProviders:
    """Registry of fake providers, usable as a broker connection_factory."""

    def __init__(self) -> None:
        self.tools: dict[str, list[str]] = {}
        self.handlers: dict[tuple[str, str], Any] = {}
        self.failures: dict[str, str] = {}
        self.close_errors: dict[str, Exception] = {}
        self.connections: list[FakeConnection] = []
        self.log: list[tuple[str, str]] = []

    def add(self, provider: str, *tool_names: str) -> None:
        self.tools[provider] = list(tool_names)

    def on_call(self, provider: str, raw_name: str, handler) -> None:
        self.handlers[(provider, raw_name)] = handler

    def connection(self, provider: str) -> FakeConnection:
        return next(c for c in self.connections if c.name == provider)

    def __call__(self, spec, **kwargs: Any) -> FakeConnection:
        connection = FakeConnection(self, spec, **kwargs)
        self.connections.append(connection)
        return connection


@pytest.fixture
def fake_providers():
    """Create an empty fake provider registry."""
    return FakeProviders()


@pytest.fixture
def test_settings(tmp_path):
    """Create test settings with an isolated provider config path.

    Args:
        tmp_path: Pytest fixture providing a temporary directory.

    Returns:
        ToolhostSettings: Settings instance configured for testing.
    """
    return ToolhostSettings(
        host="127.0.0.1",
        port=8000,
        ollama_host="http://localhost:11434",
        model="qwen3:8b",
        providers_config=str(tmp_path / "mcp.json"),
        max_steps=5,
        log_level="DEBUG",
        cors_origins=["*"],
    )


@pytest.fixture
def test_app(test_settings):
    """Create a FastAPI test application instance.

    Args:
        test_settings: Test settings fixture.

    Returns:
        FastAPI: Configured test application.
    """
    return create_app(settings=test_settings)


@pytest_asyncio.fixture
async def async_client(test_app):
    """Create an async HTTP client for testing FastAPI endpoints.

    Args:
        test_app: Test application fixture.

    Yields:
        AsyncClient: Async HTTP client for making test requests.
    """
    # Trigger the lifespan startup manually for tests
    async with test_app.router.lifespan_context(test_app):
        transport = ASGITransport(app=test_app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
