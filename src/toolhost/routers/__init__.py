"""FastAPI routers for API endpoints.

This package contains all route handlers organized by resource type.
Each router module defines endpoints for a specific domain (health, tools,
conversations, chat).
"""

from toolhost.routers import chat, conversations, health, tools

__all__ = [
    "chat",
    "conversations",
    "health",
    "tools",
]
