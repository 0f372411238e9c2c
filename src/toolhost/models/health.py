"""Health check response model."""

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response model for the health check endpoint.

    Attributes:
        status: Health status indicator ("ok" or "error").
        version: The version of toolhost.
        ollama_connected: Whether the Ollama server answered, if a client exists.
        ollama_host: The Ollama host URL, if a client exists.
        providers: Names of the loaded tool providers.
        tool_count: Number of tools in the catalogue.
    """

    status: str = Field(..., description="Health status of the service")
    version: str = Field(..., description="Version of toolhost")
    ollama_connected: bool | None = Field(
        default=None,
        description="Whether Ollama is connected",
    )
    ollama_host: str | None = Field(
        default=None,
        description="Ollama host URL",
    )
    providers: list[str] = Field(
        default_factory=list, description="Loaded tool providers"
    )
    tool_count: int = Field(default=0, description="Number of available tools")
