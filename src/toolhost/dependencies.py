"""Dependency injection providers for FastAPI endpoints.

This module provides FastAPI dependency functions that are used across
multiple routers to inject the objects created during application startup.
"""

from functools import lru_cache

from fastapi import HTTPException, Request

from toolhost.agents import AgentLoop
from toolhost.config import ToolhostSettings
from toolhost.sessions import ConversationStore
from toolhost.tools import ToolBroker


@lru_cache
def get_settings() -> ToolhostSettings:
    """Get the application settings instance.

    This function is cached so that the same settings instance is reused.
    Settings are loaded from environment variables with the TOOLHOST_ prefix.

    Returns:
        ToolhostSettings: The application configuration settings.
    """
    return ToolhostSettings()


def _from_state(request: Request, attribute: str, label: str):
    if not hasattr(request.app.state, attribute):
        raise HTTPException(
            status_code=503,
            detail=f"{label} not initialized",
        )
    return getattr(request.app.state, attribute)


def get_tool_broker(request: Request) -> ToolBroker:
    """Get the tool broker loaded during startup.

    Raises:
        HTTPException: If the broker is not initialized (503 Service Unavailable).
    """
    return _from_state(request, "tool_broker", "Tool broker")


def get_agent_loop(request: Request) -> AgentLoop:
    """Get the agent loop built during startup.

    Raises:
        HTTPException: If the loop is not initialized (503 Service Unavailable).
    """
    return _from_state(request, "agent_loop", "Agent loop")


def get_conversation_store(request: Request) -> ConversationStore:
    """Get the in-memory conversation store.

    Raises:
        HTTPException: If the store is not initialized (503 Service Unavailable).
    """
    return _from_state(request, "conversation_store", "Conversation store")
