"""Data types for tool providers and tool calls.

This module defines the provider spec read from configuration, the
descriptor of a registered tool, and the request/result pair exchanged
between the agent loop and the broker.
"""

from dataclasses import dataclass, field
from typing import Any

from toolhost.errors import ProviderConfigError

QUALIFIER_SEPARATOR = "__"
REMOTE_TRANSPORTS = ("sse", "streamable_http")


def qualify(provider: str, raw_name: str) -> str:
    """Build the qualified name of a provider's tool.

    Raw names that already carry the provider's own prefix are returned
    unchanged, so qualifying is idempotent.
    """
    prefix = f"{provider}{QUALIFIER_SEPARATOR}"
    if raw_name.startswith(prefix):
        return raw_name
    return prefix + raw_name


def parse_headers(headers: list[str]) -> dict[str, str]:
    """Parse "Key: Value" header strings into a dict.

    Raises:
        ProviderConfigError: If a header has no colon or an empty key
    """
    parsed: dict[str, str] = {}
    for header in headers:
        key, sep, value = header.partition(":")
        if not sep or not key.strip():
            raise ProviderConfigError(f"Invalid header {header!r}, expected 'Key: Value'")
        parsed[key.strip()] = value.strip()
    return parsed


def _str_list(name: str, key: str, value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ProviderConfigError(f"Provider '{name}': '{key}' must be a list of strings")
    return tuple(value)


@dataclass(frozen=True)
class ToolProviderSpec:
    """Configuration for one tool provider (an MCP server).

    A provider is reached either by spawning `command` with `args` and
    speaking over its stdin/stdout, or by connecting to `url` with the
    given headers. At most one of `allowed_tools` and `excluded_tools`
    may be non-empty.
    """

    name: str
    command: str | None = None
    args: tuple[str, ...] = ()
    env: dict[str, str] | None = None
    url: str | None = None
    headers: tuple[str, ...] = ()
    transport: str = "sse"
    allowed_tools: tuple[str, ...] = ()
    excluded_tools: tuple[str, ...] = ()

    @property
    def is_stdio(self) -> bool:
        return bool(self.command)

    def validate(self) -> None:
        """Check the spec for conflicts.

        Raises:
            ProviderConfigError: If the spec cannot be used
        """
        if not self.name:
            raise ProviderConfigError("Provider name must not be empty")
        if self.allowed_tools and self.excluded_tools:
            raise ProviderConfigError(
                f"Provider '{self.name}': allowedTools and excludedTools "
                "cannot both be set"
            )
        if bool(self.command) == bool(self.url):
            raise ProviderConfigError(
                f"Invalid server configuration for {self.name}: "
                "must specify either command or url"
            )
        if self.url and self.transport not in REMOTE_TRANSPORTS:
            raise ProviderConfigError(
                f"Provider '{self.name}': unknown transport {self.transport!r}"
            )
        parse_headers(list(self.headers))

    def includes_tool(self, raw_name: str) -> bool:
        """Apply the allow-list, or failing that the deny-list, to a raw tool name."""
        if self.allowed_tools:
            return raw_name in self.allowed_tools
        return raw_name not in self.excluded_tools

    @classmethod
    def from_config(cls, name: str, data: Any) -> "ToolProviderSpec":
        """Create a spec from one entry of an mcpServers config object.

        Raises:
            ProviderConfigError: If the entry has the wrong shape
        """
        if not isinstance(data, dict):
            raise ProviderConfigError(f"Provider '{name}': entry must be an object")

        env = data.get("env")
        if env is not None and not isinstance(env, dict):
            raise ProviderConfigError(f"Provider '{name}': 'env' must be an object")

        return cls(
            name=name,
            command=data.get("command") or None,
            args=_str_list(name, "args", data.get("args")),
            env={str(k): str(v) for k, v in env.items()} if env else None,
            url=data.get("url") or None,
            headers=_str_list(name, "headers", data.get("headers")),
            transport=data.get("transport", "sse"),
            allowed_tools=_str_list(name, "allowedTools", data.get("allowedTools")),
            excluded_tools=_str_list(name, "excludedTools", data.get("excludedTools")),
        )


@dataclass(frozen=True)
class ToolDescriptor:
    """A tool registered in the broker's catalogue."""

    provider: str
    raw_name: str
    description: str = ""
    parameters: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )

    @property
    def qualified_name(self) -> str:
        return qualify(self.provider, self.raw_name)

    def to_tool_schema(self) -> dict[str, Any]:
        """Standard function-calling schema for any LLM provider."""
        return {
            "type": "function",
            "function": {
                "name": self.qualified_name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


@dataclass
class ToolCallRequest:
    """A tool call requested by the model.

    Attributes:
        id: Correlation id assigned by the model adapter
        name: Qualified (or raw) tool name
        arguments: JSON object text
    """

    id: str
    name: str
    arguments: str = "{}"


@dataclass
class ToolCallResult:
    """Outcome of one tool call, as fed back to the model."""

    call_id: str
    output: str
    is_error: bool = False
