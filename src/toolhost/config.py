"""Configuration module for toolhost using pydantic-settings."""

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from toolhost.errors import ConfigError
from toolhost.tools.types import ToolProviderSpec

logger = logging.getLogger(__name__)


class ToolhostSettings(BaseSettings):
    """Main configuration settings for toolhost.

    All settings can be overridden via environment variables with the TOOLHOST_ prefix.
    For example, TOOLHOST_OLLAMA_HOST will override the ollama_host setting.

    The settings object is frozen: it is assembled once (environment plus CLI
    overrides) and passed explicitly to the app, the broker and the loop.
    """

    # Server
    host: str = "127.0.0.1"
    port: int = 8000

    # Ollama
    ollama_host: str = "http://localhost:11434"
    model: str = "qwen3:8b"

    # Tool providers
    providers_config: str = "~/.mcp.json"
    client_name: str = "toolhost"
    connect_timeout: float = Field(default=30.0, gt=0)
    tool_timeout: float = Field(default=60.0, gt=0)

    # Agent loop
    system_prompt: str | None = None
    system_prompt_file: str | None = None
    max_steps: int = Field(default=20, ge=1)
    # Recent messages sent to the model per step, 0 sends the whole history
    message_window: int = Field(default=40, ge=0)

    # CORS
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="TOOLHOST_", frozen=True)

    @property
    def resolved_providers_config(self) -> Path:
        """Get the full path to the provider config file."""
        return Path(self.providers_config).expanduser()

    def resolve_system_prompt(self) -> str | None:
        """Get the system prompt, preferring the inline setting over the file."""
        if self.system_prompt:
            return self.system_prompt
        if self.system_prompt_file:
            return load_system_prompt(Path(self.system_prompt_file).expanduser())
        return None


def _read_json(path: Path, what: str) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"Error reading {what} {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Error parsing {what} {path}: {e}") from e


def load_provider_specs(path: Path) -> list[ToolProviderSpec]:
    """Load tool provider specs from an mcpServers JSON file.

    A missing file is not an error: it means no providers are configured.
    Specs are parsed but not validated here; the broker validates all of
    them before connecting to any.

    Args:
        path: Path to the JSON config file

    Returns:
        list[ToolProviderSpec]: Specs in file order

    Raises:
        ConfigError: If the file cannot be read or has the wrong shape
    """
    if not path.exists():
        logger.info(f"No provider config at {path}, starting without tools")
        return []

    data = _read_json(path, "provider config")
    if not isinstance(data, dict):
        raise ConfigError(f"Provider config {path} must be a JSON object")

    servers = data.get("mcpServers", {})
    if not isinstance(servers, dict):
        raise ConfigError(f"'mcpServers' in {path} must be an object")

    specs = [ToolProviderSpec.from_config(name, entry) for name, entry in servers.items()]
    logger.info(f"Loaded {len(specs)} provider specs from {path}")
    return specs


def load_system_prompt(path: Path) -> str:
    """Load a system prompt from a {"systemPrompt": "..."} JSON file.

    Raises:
        ConfigError: If the file cannot be read or parsed
    """
    data = _read_json(path, "system prompt file")
    if not isinstance(data, dict) or not isinstance(data.get("systemPrompt", ""), str):
        raise ConfigError(f"System prompt file {path} must contain a 'systemPrompt' string")
    return data.get("systemPrompt", "")
