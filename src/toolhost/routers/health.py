"""Health check endpoint router."""

import logging

from fastapi import APIRouter, Request

from toolhost.models.health import HealthResponse
from toolhost.ollama import OllamaClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Health check endpoint.

    Returns the current health status and version of toolhost, the loaded
    tool providers, and connectivity to the Ollama server if the client is
    initialized.

    Args:
        request: The FastAPI request object.

    Returns:
        HealthResponse: Health status and version information.
    """
    ollama_connected = None
    ollama_host = None

    if hasattr(request.app.state, "ollama_client"):
        ollama_client: OllamaClient = request.app.state.ollama_client
        ollama_host = ollama_client.host

        try:
            ollama_connected = await ollama_client.check_connection()
            logger.debug(f"Ollama connectivity check: {ollama_connected}")
        except Exception as e:
            logger.warning(f"Ollama connectivity check failed: {e}")
            ollama_connected = False

    providers: list[str] = []
    tool_count = 0
    if hasattr(request.app.state, "tool_broker"):
        broker = request.app.state.tool_broker
        providers = broker.providers
        tool_count = len(broker.catalogue)

    return HealthResponse(
        status="ok",
        version=request.app.version,
        ollama_connected=ollama_connected,
        ollama_host=ollama_host,
        providers=providers,
        tool_count=tool_count,
    )
