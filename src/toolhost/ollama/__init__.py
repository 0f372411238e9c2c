"""Ollama client wrapper and model adapter.

This package provides the async client for the Ollama API and the model
adapter the agent loop uses to get replies from an Ollama model.
"""

from toolhost.ollama.adapter import OllamaModelAdapter
from toolhost.ollama.client import OllamaClient

__all__ = ["OllamaClient", "OllamaModelAdapter"]
