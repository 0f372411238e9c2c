"""Pydantic models for the tool catalogue endpoints."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ToolResponse(BaseModel):
    """One tool in the catalogue."""

    name: str = Field(description="Qualified tool name (provider__tool)")
    provider: str = Field(description="Name of the tool provider")
    raw_name: str = Field(description="Tool name as reported by the provider")
    description: str = Field(default="", description="Tool description")
    parameters: dict[str, Any] = Field(description="JSON schema of the arguments")


class ToolListResponse(BaseModel):
    """Response body for GET /api/v1/tools."""

    tools: list[ToolResponse] = Field(default_factory=list)


class InvokeToolRequest(BaseModel):
    """Request body for POST /api/v1/tools/{name}/invoke."""

    arguments: dict[str, Any] = Field(
        default_factory=dict, description="Arguments matching the tool's schema"
    )

    model_config = ConfigDict(
        json_schema_extra={"examples": [{"arguments": {"path": "/tmp/notes.txt"}}]}
    )


class InvokeToolResponse(BaseModel):
    """Result of a direct tool invocation."""

    name: str = Field(description="Qualified tool name")
    output: str = Field(description="Tool output, or the failure description")
    is_error: bool = Field(default=False, description="Whether the call failed")
