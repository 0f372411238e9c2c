"""Unit tests for the ToolBroker."""

import asyncio

import pytest
from mcp import types as mcp_types

from toolhost.errors import BrokerLoadError, ProviderConfigError
from toolhost.tools import ToolBroker, ToolProviderSpec


def text_result(text: str, is_error: bool = False) -> mcp_types.CallToolResult:
    return mcp_types.CallToolResult(
        content=[mcp_types.TextContent(type="text", text=text)], isError=is_error
    )


def make_broker(fake_providers, **kwargs) -> ToolBroker:
    return ToolBroker(connection_factory=fake_providers, **kwargs)


def stdio(name: str, **kwargs) -> ToolProviderSpec:
    return ToolProviderSpec(name=name, command=f"{name}-server", **kwargs)


@pytest.mark.asyncio
async def test_load_builds_qualified_catalogue(fake_providers):
    """Test that tools from every provider are registered under qualified names."""
    fake_providers.add("fs", "read_file", "write_file")
    fake_providers.add("git", "status")
    broker = make_broker(fake_providers)

    await broker.load([stdio("fs"), stdio("git")])

    assert broker.providers == ["fs", "git"]
    assert [t.qualified_name for t in broker.catalogue] == [
        "fs__read_file",
        "fs__write_file",
        "git__status",
    ]
    assert [s["function"]["name"] for s in broker.tool_schemas()] == [
        "fs__read_file",
        "fs__write_file",
        "git__status",
    ]


@pytest.mark.asyncio
async def test_load_passes_client_identity(fake_providers):
    """Test that the factory receives the broker's client settings."""
    fake_providers.add("fs", "read_file")
    broker = make_broker(
        fake_providers, client_name="toolhost-test", client_version="9.9.9", connect_timeout=5
    )

    await broker.load([stdio("fs")])

    assert fake_providers.connection("fs").kwargs == {
        "client_name": "toolhost-test",
        "client_version": "9.9.9",
        "connect_timeout": 5,
    }


@pytest.mark.asyncio
async def test_same_raw_name_from_two_providers(fake_providers):
    """Test that equal raw names from different providers do not collide."""
    fake_providers.add("a", "run")
    fake_providers.add("b", "run")
    broker = make_broker(fake_providers)

    await broker.load([stdio("a"), stdio("b")])

    names = [t.qualified_name for t in broker.catalogue]
    assert names == ["a__run", "b__run"]
    assert len(set(names)) == len(names)


@pytest.mark.asyncio
async def test_prefixed_raw_names_are_not_double_prefixed(fake_providers):
    """Test that a provider already prefixing its tools keeps one prefix."""
    fake_providers.add("fs", "fs__read_file")
    broker = make_broker(fake_providers)

    await broker.load([stdio("fs")])

    assert [t.qualified_name for t in broker.catalogue] == ["fs__read_file"]
    assert broker.catalogue[0].raw_name == "fs__read_file"


@pytest.mark.asyncio
async def test_duplicate_qualified_name_fails_load(fake_providers):
    """Test that a provider listing the same tool twice aborts loading."""
    fake_providers.add("fs", "read_file", "fs__read_file")
    broker = make_broker(fake_providers)

    with pytest.raises(BrokerLoadError, match="Duplicate tool name"):
        await broker.load([stdio("fs")])

    assert broker.catalogue == []


@pytest.mark.asyncio
async def test_cross_provider_name_collision_fails_load(fake_providers):
    """Test that two providers producing the same qualified name abort loading."""
    fake_providers.add("a", "b__x")
    fake_providers.add("a__b", "x")
    broker = make_broker(fake_providers)

    with pytest.raises(BrokerLoadError) as exc_info:
        await broker.load([stdio("a"), stdio("a__b")])

    assert exc_info.value.provider == "a__b"
    assert all(c.close_count == 1 for c in fake_providers.connections)


@pytest.mark.asyncio
async def test_excluded_tools_are_not_registered(fake_providers):
    """Test that a deny-listed tool never reaches the catalogue."""
    fake_providers.add("fs", "read_file", "delete_file")
    broker = make_broker(fake_providers)

    await broker.load([stdio("fs", excluded_tools=("delete_file",))])

    assert [t.qualified_name for t in broker.catalogue] == ["fs__read_file"]
    assert broker.get("fs__delete_file") is None


@pytest.mark.asyncio
async def test_allowed_tools_are_the_only_ones_registered(fake_providers):
    """Test that an allow-list keeps only the listed tools."""
    fake_providers.add("fs", "read_file", "write_file", "delete_file")
    broker = make_broker(fake_providers)

    await broker.load([stdio("fs", allowed_tools=("read_file",))])

    assert [t.qualified_name for t in broker.catalogue] == ["fs__read_file"]


@pytest.mark.asyncio
async def test_filter_conflict_rejected_before_any_connection(fake_providers):
    """Test that a conflicting spec fails before anything is connected."""
    fake_providers.add("fs", "read_file")
    broker = make_broker(fake_providers)
    specs = [
        stdio("fs"),
        stdio("git", allowed_tools=("status",), excluded_tools=("push",)),
    ]

    with pytest.raises(ProviderConfigError):
        await broker.load(specs)

    assert fake_providers.connections == []
    assert broker.providers == []


@pytest.mark.asyncio
async def test_duplicate_provider_names_rejected(fake_providers):
    """Test that provider names must be unique."""
    broker = make_broker(fake_providers)

    with pytest.raises(ProviderConfigError, match="Duplicate provider"):
        await broker.load([stdio("fs"), stdio("fs")])

    assert fake_providers.connections == []


@pytest.mark.asyncio
@pytest.mark.parametrize("stage", ["open", "initialize", "list_tools"])
async def test_partial_failure_closes_opened_connections(fake_providers, stage):
    """Test that a failing provider closes every connection opened before it."""
    fake_providers.add("a", "one")
    fake_providers.add("b", "two")
    fake_providers.add("c", "three")
    fake_providers.failures["c"] = stage
    broker = make_broker(fake_providers)

    with pytest.raises(BrokerLoadError) as exc_info:
        await broker.load([stdio("a"), stdio("b"), stdio("c")])

    assert exc_info.value.provider == "c"
    assert isinstance(exc_info.value.cause, ConnectionError)
    assert "Failed to load tool provider 'c'" in str(exc_info.value)
    for connection in fake_providers.connections:
        assert connection.close_count == 1
    closes = [name for event, name in fake_providers.log if event == "close"]
    assert closes == ["c", "b", "a"]
    assert broker.providers == []
    assert broker.catalogue == []


@pytest.mark.asyncio
async def test_partial_failure_reports_close_errors(fake_providers):
    """Test that errors while cleaning up are attached to the load error."""
    fake_providers.add("a", "one")
    fake_providers.failures["b"] = "open"
    fake_providers.close_errors["a"] = RuntimeError("a refused to close")
    broker = make_broker(fake_providers)

    with pytest.raises(BrokerLoadError) as exc_info:
        await broker.load([stdio("a"), stdio("b")])

    assert [str(e) for e in exc_info.value.close_errors] == ["a refused to close"]
    assert "additionally failed to close" in str(exc_info.value)


@pytest.mark.asyncio
async def test_load_twice_is_rejected(fake_providers):
    """Test that a loaded broker cannot be loaded again."""
    fake_providers.add("fs", "read_file")
    broker = make_broker(fake_providers)
    await broker.load([stdio("fs")])

    with pytest.raises(RuntimeError):
        await broker.load([stdio("git")])


@pytest.mark.asyncio
async def test_load_without_providers(fake_providers):
    """Test that an empty provider list gives an empty catalogue."""
    broker = make_broker(fake_providers)
    await broker.load([])
    assert broker.catalogue == []
    assert await broker.close() == []


@pytest.mark.asyncio
async def test_close_is_best_effort(fake_providers):
    """Test that close continues past failures and reports them."""
    fake_providers.add("a", "one")
    fake_providers.add("b", "two")
    fake_providers.add("c", "three")
    fake_providers.close_errors["b"] = RuntimeError("b broke")
    broker = make_broker(fake_providers)
    await broker.load([stdio("a"), stdio("b"), stdio("c")])

    errors = await broker.close()

    assert [str(e) for e in errors] == ["b broke"]
    assert all(c.close_count == 1 for c in fake_providers.connections)
    assert broker.catalogue == []


@pytest.mark.asyncio
async def test_close_twice_closes_once(fake_providers):
    """Test that every connection is closed exactly once."""
    fake_providers.add("fs", "read_file")
    broker = make_broker(fake_providers)
    await broker.load([stdio("fs")])

    await broker.close()
    await broker.close()

    assert fake_providers.connection("fs").close_count == 1


def test_get_resolution_rules():
    """Test exact, raw and ambiguous name resolution."""
    from toolhost.tools.types import ToolDescriptor

    broker = ToolBroker()
    for tool in [
        ToolDescriptor(provider="a", raw_name="run"),
        ToolDescriptor(provider="b", raw_name="run"),
        ToolDescriptor(provider="fs", raw_name="read_file"),
    ]:
        broker._tools[tool.qualified_name] = tool

    assert broker.get("a__run").provider == "a"
    assert broker.get("read_file").qualified_name == "fs__read_file"
    assert broker.get("run") is None
    assert broker.get("missing") is None


@pytest.mark.asyncio
async def test_invoke_routes_to_owning_provider(fake_providers):
    """Test that each call reaches only the provider that owns the tool."""
    fake_providers.add("a", "run")
    fake_providers.add("b", "run")
    broker = make_broker(fake_providers)
    await broker.load([stdio("a"), stdio("b")])

    result = await broker.invoke("b__run", '{"x": 1}', call_id="call_1")

    assert result.call_id == "call_1"
    assert result.output == "b.run ok"
    assert not result.is_error
    assert fake_providers.connection("b").calls == [("run", {"x": 1})]
    assert fake_providers.connection("a").calls == []


@pytest.mark.asyncio
async def test_invoke_accepts_dict_and_empty_arguments(fake_providers):
    """Test the accepted argument forms."""
    fake_providers.add("fs", "list")
    broker = make_broker(fake_providers)
    await broker.load([stdio("fs")])

    await broker.invoke("fs__list", {"path": "/"})
    await broker.invoke("fs__list", "")
    await broker.invoke("fs__list")

    assert fake_providers.connection("fs").calls == [
        ("list", {"path": "/"}),
        ("list", {}),
        ("list", {}),
    ]


@pytest.mark.asyncio
async def test_invoke_unknown_tool(fake_providers):
    """Test that an unknown tool is an error result, not an exception."""
    broker = make_broker(fake_providers)
    await broker.load([])

    result = await broker.invoke("fs__nope", call_id="c1")

    assert result.is_error
    assert result.output == "Tool not found: fs__nope"
    assert result.call_id == "c1"


@pytest.mark.asyncio
@pytest.mark.parametrize("arguments", ["{bad json", "[1, 2]"])
async def test_invoke_bad_arguments(fake_providers, arguments):
    """Test that malformed arguments never reach the provider."""
    fake_providers.add("fs", "read_file")
    broker = make_broker(fake_providers)
    await broker.load([stdio("fs")])

    result = await broker.invoke("fs__read_file", arguments)

    assert result.is_error
    assert result.output.startswith("Failed to parse arguments:")
    assert fake_providers.connection("fs").calls == []


@pytest.mark.asyncio
async def test_invoke_provider_failure_is_isolated(fake_providers):
    """Test that one failing call does not affect later calls."""
    fake_providers.add("fs", "read_file", "write_file")

    def fail(arguments):
        raise TimeoutError("timed out")

    fake_providers.on_call("fs", "write_file", fail)
    broker = make_broker(fake_providers)
    await broker.load([stdio("fs")])

    failed = await broker.invoke("fs__write_file", "{}")
    succeeded = await broker.invoke("fs__read_file", "{}")

    assert failed.is_error
    assert failed.output == "Failed to call tool: timed out"
    assert not succeeded.is_error
    assert succeeded.output == "fs.read_file ok"


@pytest.mark.asyncio
async def test_invoke_reports_tool_level_errors(fake_providers):
    """Test that an isError result from the provider is flagged."""
    fake_providers.add("fs", "read_file")
    fake_providers.on_call("fs", "read_file", lambda args: text_result("ENOENT", is_error=True))
    broker = make_broker(fake_providers)
    await broker.load([stdio("fs")])

    result = await broker.invoke("fs__read_file", '{"path": "/missing"}')

    assert result.is_error
    assert result.output == "ENOENT"


@pytest.mark.asyncio
async def test_invoke_cancelled_mid_call(fake_providers):
    """Test that setting the cancel event abandons the call in flight."""
    fake_providers.add("slow", "wait")
    started = asyncio.Event()

    async def hang(arguments):
        started.set()
        await asyncio.sleep(60)

    fake_providers.on_call("slow", "wait", hang)
    broker = make_broker(fake_providers)
    await broker.load([stdio("slow")])

    cancel_event = asyncio.Event()
    call = asyncio.create_task(
        broker.invoke("slow__wait", "{}", call_id="c1", cancel_event=cancel_event)
    )
    await started.wait()
    cancel_event.set()
    result = await asyncio.wait_for(call, timeout=5)

    assert result.is_error
    assert result.output == "Tool call cancelled: slow__wait"


@pytest.mark.asyncio
async def test_invoke_with_cancel_event_already_set(fake_providers):
    """Test that a call is not started once the run was cancelled."""
    fake_providers.add("fs", "read_file")
    broker = make_broker(fake_providers)
    await broker.load([stdio("fs")])
    cancel_event = asyncio.Event()
    cancel_event.set()

    result = await broker.invoke("fs__read_file", "{}", cancel_event=cancel_event)

    assert result.is_error
    assert fake_providers.connection("fs").calls == []


@pytest.mark.asyncio
async def test_invoke_with_unset_cancel_event_completes(fake_providers):
    """Test that a cancel event that never fires does not disturb the call."""
    fake_providers.add("fs", "read_file")
    broker = make_broker(fake_providers)
    await broker.load([stdio("fs")])

    result = await broker.invoke("fs__read_file", "{}", cancel_event=asyncio.Event())

    assert not result.is_error
    assert result.output == "fs.read_file ok"
