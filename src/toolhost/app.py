"""FastAPI application factory and lifespan management.

This module contains the create_app() factory function that creates and configures
the FastAPI application instance, including lifespan management for startup/shutdown
and router registration.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from toolhost import __version__
from toolhost.agents import AgentLoop
from toolhost.config import ToolhostSettings, load_provider_specs
from toolhost.errors import BrokerLoadError, ConfigError
from toolhost.ollama import OllamaClient, OllamaModelAdapter
from toolhost.routers import chat, conversations, health, tools
from toolhost.sessions import ConversationStore
from toolhost.tools import ToolBroker, ToolProviderConnection

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan context manager for FastAPI application.

    Connects to Ollama and to every configured tool provider at startup,
    and closes the provider connections at shutdown. The broker is loaded
    and closed in this same task, as the MCP transports require.

    A provider that fails to load aborts startup.

    Args:
        app: The FastAPI application instance.

    Yields:
        None: Control is yielded while the app is running.
    """
    settings: ToolhostSettings = app.state.settings

    app.state.ollama_client = OllamaClient(host=settings.ollama_host)
    logger.info(f"Initialized Ollama client with host: {settings.ollama_host}")

    connected = await app.state.ollama_client.check_connection()
    if connected:
        logger.info("Successfully connected to Ollama")
    else:
        logger.warning("Could not connect to Ollama - check if server is running")

    broker = ToolBroker(
        client_name=settings.client_name,
        client_version=__version__,
        connect_timeout=settings.connect_timeout,
        tool_timeout=settings.tool_timeout,
        connection_factory=ToolProviderConnection,
    )
    try:
        system_prompt = settings.resolve_system_prompt()
        await broker.load(load_provider_specs(settings.resolved_providers_config))
    except (ConfigError, BrokerLoadError) as e:
        logger.error(f"Startup aborted: {e}")
        await app.state.ollama_client.close()
        raise

    app.state.tool_broker = broker
    app.state.agent_loop = AgentLoop(
        broker,
        OllamaModelAdapter(app.state.ollama_client, settings.model),
        max_steps=settings.max_steps,
        system_prompt=system_prompt,
        message_window=settings.message_window or None,
    )
    app.state.conversation_store = ConversationStore()

    try:
        yield
    finally:
        for error in await broker.close():
            logger.error(f"Error while closing tool providers: {error}")
        await app.state.ollama_client.close()
        logger.info("Ollama client closed")


def create_app(settings: ToolhostSettings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional ToolhostSettings instance. If not provided,
                  settings will be loaded from environment variables.

    Returns:
        FastAPI: Configured FastAPI application instance.
    """
    if settings is None:
        from toolhost.dependencies import get_settings

        settings = get_settings()

    app = FastAPI(
        title="toolhost",
        description="Headless FastAPI server for LLM conversations via Ollama with MCP tools",
        version=__version__,
        lifespan=lifespan,
    )

    # Store settings in app.state for lifespan access
    app.state.settings = settings

    # Note: FastAPI's type hints for add_middleware are overly strict
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(tools.router)
    app.include_router(conversations.router)
    app.include_router(chat.router)

    return app
