"""Pytest configuration for integration tests.

This module provides integration-test-specific fixtures that replace
Ollama and the MCP servers, so the full app can start and run the agent
loop without any external process.
"""

import json
from unittest.mock import AsyncMock, patch

import pytest


@pytest.fixture(autouse=True)
def mock_ollama_client():
    """Mock OllamaClient for all integration tests.

    This fixture patches the OllamaClient class before the app is created,
    ensuring the lifespan uses our mock instead of creating a real client.
    """
    with patch("toolhost.app.OllamaClient") as mock_client_class:
        mock_instance = AsyncMock()
        mock_instance.check_connection.return_value = True
        mock_instance.host = "http://localhost:11434"

        mock_client_class.return_value = mock_instance

        yield mock_instance


@pytest.fixture(autouse=True)
def mock_providers(test_settings, fake_providers):
    """Configure two fake tool providers and route the app's connections to them.

    fs exposes read_file and write_file (delete_file is excluded by config),
    git exposes status.
    """
    test_settings.resolved_providers_config.write_text(
        json.dumps(
            {
                "mcpServers": {
                    "fs": {
                        "command": "fs-server",
                        "args": ["/tmp"],
                        "excludedTools": ["delete_file"],
                    },
                    "git": {"url": "http://localhost:9000/sse"},
                }
            }
        )
    )
    fake_providers.add("fs", "read_file", "write_file", "delete_file")
    fake_providers.add("git", "status")

    with patch("toolhost.app.ToolProviderConnection", fake_providers):
        yield fake_providers


@pytest.fixture
def model_replies(mock_ollama_client):
    """Script the model's replies, one message dict per generate call.

    Returns a function taking the replies; each reply is the "message" of a
    single done chunk. The list of messages sent on every call is recorded
    in the returned list.
    """
    requests = []

    def script(*replies):
        remaining = list(replies)

        async def chat_stream(**kwargs):
            requests.append(kwargs)
            message = remaining.pop(0)
            yield {"model": "qwen3:8b", "message": message, "done": True}

        mock_ollama_client.chat_stream = chat_stream
        return requests

    return script
