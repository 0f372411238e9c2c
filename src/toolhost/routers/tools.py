"""Tool catalogue API endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from toolhost.dependencies import get_tool_broker
from toolhost.models.tools import (
    InvokeToolRequest,
    InvokeToolResponse,
    ToolListResponse,
    ToolResponse,
)
from toolhost.tools import ToolBroker

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/tools", tags=["tools"])


@router.get("", response_model=ToolListResponse)
async def list_tools(broker: ToolBroker = Depends(get_tool_broker)) -> ToolListResponse:
    """List every tool exposed by the loaded providers."""
    return ToolListResponse(
        tools=[
            ToolResponse(
                name=tool.qualified_name,
                provider=tool.provider,
                raw_name=tool.raw_name,
                description=tool.description,
                parameters=tool.parameters,
            )
            for tool in broker.catalogue
        ]
    )


@router.post("/{name}/invoke", response_model=InvokeToolResponse)
async def invoke_tool(
    name: str,
    request_body: InvokeToolRequest,
    broker: ToolBroker = Depends(get_tool_broker),
) -> InvokeToolResponse:
    """Invoke a tool directly, outside any conversation.

    Tool failures are reported in the body with is_error set; only an
    unknown tool name is an HTTP error.

    Raises:
        HTTPException: 404 if no tool has this name
    """
    tool = broker.get(name)
    if tool is None:
        raise HTTPException(
            status_code=404,
            detail={
                "error": {
                    "code": "tool_not_found",
                    "message": f"Tool {name} not found",
                    "details": {"name": name},
                }
            },
        )

    logger.info(f"Direct invocation of tool {tool.qualified_name}")
    result = await broker.invoke(tool.qualified_name, request_body.arguments)
    return InvokeToolResponse(
        name=tool.qualified_name,
        output=result.output,
        is_error=result.is_error,
    )
