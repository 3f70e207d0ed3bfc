import asyncio

from core.elicitation import ElicitAction, ElicitationChannel, ElicitResult
from core.registry import Tool, ToolRegistry
from core.results import ToolResult
from core.schema import Schema
from handlers.toppings import IceCreamToppingRecommenderTool
from observability import metrics
import server as s


class ExplodingTool(Tool):
    name = "exploding"
    description = "Always fails"

    async def execute(self, arguments, elicitation=None):
        raise RuntimeError("boom")


class EchoChannel(ElicitationChannel):
    async def elicit(self, request):
        return ElicitResult(ElicitAction.ACCEPT, {"flavour": "chocolate"})


def _sample(name, **labels):
    return metrics._get_registry().get_sample_value(name, labels) or 0.0


def test_list_tools_is_idempotent():
    server = s.build_server({})
    first = [d.to_json() for d in server.list_tools()]
    second = [d.to_json() for d in server.list_tools()]
    assert first == second
    assert [t["name"] for t in first] == ["ice_cream_topping_recommender"]
    assert first[0]["inputSchema"]["required"] == ["flavour"]


def test_unknown_tool_returns_error_result():
    server = s.build_server({})
    res = asyncio.run(server.call_tool("nonexistent", {}))
    assert res.is_error is True
    assert "Unknown tool" in res.first_text
    assert "nonexistent" in res.first_text


def test_exception_becomes_error_result_naming_tool():
    server = s.ToolServer({}, tools=[ExplodingTool()])
    res = asyncio.run(server.call_tool("exploding", {}))
    assert res == ToolResult.error("❌ Error in exploding: boom")


def test_channel_is_passed_through():
    server = s.build_server({})
    res = asyncio.run(server.call_tool("ice_cream_topping_recommender", {}, EchoChannel()))
    assert not res.is_error
    assert "chocolate" in res.first_text


def test_metrics_recorded_per_call():
    metrics.init_metrics()
    server = s.build_server({})
    name = "ice_cream_topping_recommender"
    ok_before = _sample("mcp_tool_calls_total", tool=name, outcome="success")
    acc_before = _sample("mcp_elicitations_total", tool=name, action="accept")
    asyncio.run(server.call_tool(name, {}, EchoChannel()))
    assert _sample("mcp_tool_calls_total", tool=name, outcome="success") == ok_before + 1
    assert _sample("mcp_elicitations_total", tool=name, action="accept") == acc_before + 1
    assert b"mcp_tool_calls_total" in metrics.metrics_payload_bytes()


def test_registry_rejects_duplicates_and_blank_names():
    reg = ToolRegistry()
    reg.register(IceCreamToppingRecommenderTool())
    try:
        reg.register(IceCreamToppingRecommenderTool())
    except ValueError as e:
        assert "already registered" in str(e)
    else:
        raise AssertionError("duplicate registration accepted")

    class Blank(ExplodingTool):
        name = ""

    try:
        reg.register(Blank())
    except ValueError:
        pass
    else:
        raise AssertionError("blank name accepted")
    assert [d.name for d in reg.list_tools()] == ["ice_cream_topping_recommender"]


def test_descriptor_uses_schema_wire_shape():
    tool = ExplodingTool()
    assert tool.descriptor().to_json() == {
        "name": "exploding",
        "description": "Always fails",
        "inputSchema": Schema().to_json(),
    }
