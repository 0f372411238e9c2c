"""toolhost: Headless FastAPI server for LLM conversations via Ollama with MCP tools.

This package provides a REST API and SSE streaming interface for running
an agent loop that lets a model call tools served by MCP servers.
"""

__version__ = "0.1.0"

from toolhost.app import create_app  # noqa: E402

__all__ = ["create_app", "__version__"]
