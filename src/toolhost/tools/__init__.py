"""Tool provider connections and the tool broker.

This package connects to MCP servers, builds a single catalogue of their
tools under provider-qualified names, and executes tool calls against them.
"""

from toolhost.tools.broker import ToolBroker
from toolhost.tools.connection import ToolProviderConnection
from toolhost.tools.types import (
    ToolCallRequest,
    ToolCallResult,
    ToolDescriptor,
    ToolProviderSpec,
    qualify,
)

__all__ = [
    "ToolBroker",
    "ToolProviderConnection",
    "ToolCallRequest",
    "ToolCallResult",
    "ToolDescriptor",
    "ToolProviderSpec",
    "qualify",
]
