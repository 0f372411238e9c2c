"""CLI entry point for toolhost.

This module provides the command-line interface for starting the toolhost
server, or for running a single prompt through the agent loop without a
server. It can be invoked as `toolhost` (via the script entry point) or
`python -m toolhost`.
"""

import argparse
import asyncio
import logging
import sys

import uvicorn

from toolhost import __version__, create_app
from toolhost.agents import AgentLoop, TextProduced, ToolCallFinished, ToolCallStarted
from toolhost.agents.events import LoopEvent
from toolhost.config import ToolhostSettings, load_provider_specs
from toolhost.errors import BrokerLoadError, ConfigError, ModelAdapterError
from toolhost.ollama import OllamaClient, OllamaModelAdapter
from toolhost.sessions import UserMessage
from toolhost.tools import ToolBroker

logger = logging.getLogger(__name__)

# --max-steps 0 means "no limit"; the loop still needs a bound.
UNLIMITED_STEPS = 1000


class ConsoleEventSink:
    """Prints tool activity and intermediate text to stderr."""

    def __init__(self, stream=None) -> None:
        self.stream = stream or sys.stderr

    def emit(self, event: LoopEvent) -> None:
        if isinstance(event, ToolCallStarted):
            print(f"-> {event.call.name} {event.call.arguments}", file=self.stream)
        elif isinstance(event, ToolCallFinished):
            status = "error" if event.result.is_error else "ok"
            print(f"<- {event.call.name} [{status}] {event.result.output}", file=self.stream)
        elif isinstance(event, TextProduced) and not event.final:
            print(event.content, file=self.stream)


async def run_prompt(settings: ToolhostSettings, prompt: str, quiet: bool = False) -> str:
    """Run one prompt through the agent loop and return the answer.

    Raises:
        ConfigError: If the provider or system prompt config is invalid
        BrokerLoadError: If a tool provider cannot be loaded
        ModelAdapterError: If the model call fails
    """
    specs = load_provider_specs(settings.resolved_providers_config)
    system_prompt = settings.resolve_system_prompt()

    client = OllamaClient(host=settings.ollama_host)
    broker = ToolBroker(
        client_name=settings.client_name,
        client_version=__version__,
        connect_timeout=settings.connect_timeout,
        tool_timeout=settings.tool_timeout,
    )
    try:
        await broker.load(specs)
        if not quiet:
            print(
                f"Loaded {len(broker.catalogue)} tools from MCP servers",
                file=sys.stderr,
            )

        agent_loop = AgentLoop(
            broker,
            OllamaModelAdapter(client, settings.model),
            max_steps=settings.max_steps,
            system_prompt=system_prompt,
            message_window=settings.message_window or None,
        )
        history = [UserMessage(content=prompt)]
        final = await agent_loop.run(history, None if quiet else ConsoleEventSink())
    finally:
        for error in await broker.close():
            logger.error(f"Error while closing tool providers: {error}")
        await client.close()

    return final.content


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the toolhost CLI.

    Parses command-line arguments and either starts the uvicorn server with
    the FastAPI application, or runs a single prompt when --prompt is given.

    Returns:
        int: Process exit code
    """
    parser = argparse.ArgumentParser(
        prog="toolhost",
        description="Headless FastAPI server for LLM conversations via Ollama with MCP tools",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"toolhost {__version__}",
    )
    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host to bind the server to (default: 127.0.0.1, can be set via TOOLHOST_HOST)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to bind the server to (default: 8000, can be set via TOOLHOST_PORT)",
    )
    parser.add_argument(
        "--ollama-host",
        type=str,
        default=None,
        help="Ollama server URL (default: http://localhost:11434, can be set via TOOLHOST_OLLAMA_HOST)",
    )
    parser.add_argument(
        "-m",
        "--model",
        type=str,
        default=None,
        help="Ollama model to use (can be set via TOOLHOST_MODEL)",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="MCP servers config file (default: ~/.mcp.json, can be set via TOOLHOST_PROVIDERS_CONFIG)",
    )
    parser.add_argument(
        "--system-prompt",
        type=str,
        default=None,
        help='System prompt JSON file ({"systemPrompt": "..."})',
    )
    parser.add_argument(
        "--max-steps",
        type=int,
        default=None,
        help="Maximum number of agent steps per run (0 for unlimited, default: 20)",
    )
    parser.add_argument(
        "--message-window",
        type=int,
        default=None,
        help="Number of recent messages sent to the model per step (0 for all, default: 40)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO, can be set via TOOLHOST_LOG_LEVEL)",
    )
    parser.add_argument(
        "-p",
        "--prompt",
        type=str,
        default=None,
        help="Run in non-interactive mode with the given prompt instead of serving",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress tool activity output (only works with --prompt)",
    )

    args = parser.parse_args(argv)

    if args.quiet and args.prompt is None:
        parser.error("--quiet flag can only be used with --prompt/-p")
    if args.max_steps is not None and args.max_steps < 0:
        parser.error("--max-steps must not be negative")
    if args.message_window is not None and args.message_window < 0:
        parser.error("--message-window must not be negative")

    # Build settings, CLI args override environment variables
    settings_kwargs = {}
    if args.host is not None:
        settings_kwargs["host"] = args.host
    if args.port is not None:
        settings_kwargs["port"] = args.port
    if args.ollama_host is not None:
        settings_kwargs["ollama_host"] = args.ollama_host
    if args.model is not None:
        settings_kwargs["model"] = args.model
    if args.config is not None:
        settings_kwargs["providers_config"] = args.config
    if args.system_prompt is not None:
        settings_kwargs["system_prompt_file"] = args.system_prompt
    if args.max_steps is not None:
        settings_kwargs["max_steps"] = args.max_steps or UNLIMITED_STEPS
    if args.message_window is not None:
        settings_kwargs["message_window"] = args.message_window
    if args.log_level is not None:
        settings_kwargs["log_level"] = args.log_level

    settings = ToolhostSettings(**settings_kwargs)

    if args.prompt is not None:
        logging.basicConfig(
            level=settings.log_level,
            stream=sys.stderr,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        try:
            answer = asyncio.run(run_prompt(settings, args.prompt, quiet=args.quiet))
        except (ConfigError, BrokerLoadError, ModelAdapterError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        print(answer)
        return 0

    app = create_app(settings=settings)

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
