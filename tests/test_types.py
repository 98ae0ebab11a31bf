import pytest

from providerkit.types import (
    AsyncSubmitResult,
    InvokeRequest,
    InvokeResponse,
    MessageRole,
    ProviderKind,
    SubmitError,
    ToolCall,
    ToolDefinition,
)


def test_add_message_records_fields():
    request = InvokeRequest()
    assert request.add_message(MessageRole.TOOL, "result", "call_1", "tools.find")
    message = request.messages[0]
    assert (message.role, message.content, message.tool_call_id, message.tool_name) == (
        MessageRole.TOOL,
        "result",
        "call_1",
        "tools.find",
    )


def test_add_message_stops_at_capacity():
    request = InvokeRequest(max_messages=3)
    results = [request.add_message(MessageRole.USER, str(i)) for i in range(5)]
    assert results == [True, True, True, False, False]
    assert len(request.messages) == request.max_messages


def test_add_tool_stops_at_capacity():
    request = InvokeRequest(max_tools=2)
    assert request.add_tool(ToolDefinition("a"))
    assert request.add_tool(ToolDefinition("b"))
    assert not request.add_tool(ToolDefinition("c"))
    assert [t.name for t in request.tools] == ["a", "b"]


def test_has_tool_ignores_case():
    request = InvokeRequest()
    request.add_tool(ToolDefinition("Tools.Find"))
    assert request.has_tool("tools.find")
    assert not request.has_tool("tools.map")


def test_reset_restores_defaults():
    request = InvokeRequest(model="m", prompt="p", temperature=0.1)
    request.add_message(MessageRole.USER, "hi")
    request.add_tool(ToolDefinition("x"))
    request.reset()
    assert request == InvokeRequest()


def test_reset_gives_fresh_lists():
    request = InvokeRequest()
    request.reset()
    other = InvokeRequest()
    request.add_message(MessageRole.USER, "hi")
    assert other.messages == []


def test_add_tool_call_capacity():
    response = InvokeResponse(max_tool_calls=1)
    assert response.add_tool_call(ToolCall(id="1", name="a"))
    assert not response.add_tool_call(ToolCall(id="2", name="b"))
    assert [c.id for c in response.tool_calls] == ["1"]


def test_submit_error_carries_message_and_result():
    error = SubmitError("Transport is busy", AsyncSubmitResult.BUSY)
    assert str(error) == "Transport is busy"
    assert error.result is AsyncSubmitResult.BUSY


def test_submit_error_defaults_to_failed():
    assert SubmitError("x").result is AsyncSubmitResult.FAILED


def test_provider_kind_values():
    assert ProviderKind("openrouter") is ProviderKind.OPENROUTER
    assert MessageRole("assistant") is MessageRole.ASSISTANT