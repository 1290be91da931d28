"""
Unit tests for model response parsing and the Hugging Face router client.

HTTP is served by httpx.MockTransport; no network or API key is used.
"""

import json

import httpx
import pytest

from app.agent.llm import HFRouterChatModel, parse_chat_message
from app.agent.messages import ASSISTANT, ToolCall, assistant_message, tool_message, user_message

from conftest import run

TOOLS = [{"type": "function", "function": {"name": "employee_lookup", "parameters": {"type": "object"}}}]


class TestParseChatMessage:
    """Tests for parse_chat_message()."""

    def test_plain_content(self) -> None:
        msg = parse_chat_message({"role": "assistant", "content": "  Hello  "})
        assert msg.role == ASSISTANT
        assert msg.content == "Hello"
        assert msg.tool_calls == ()

    def test_tool_calls_with_json_arguments(self) -> None:
        msg = parse_chat_message(
            {
                "role": "assistant",
                "content": None,
                "tool_calls": [
                    {"id": "call_1", "type": "function", "function": {"name": "employee_lookup", "arguments": '{"query": "Python skills"}'}}
                ],
            }
        )
        assert msg.content == ""
        assert msg.tool_calls == (ToolCall(id="call_1", name="employee_lookup", arguments={"query": "Python skills"}),)
        assert msg.has_tool_calls

    @pytest.mark.parametrize("raw", ["{not json", "", None, "[1, 2]"])
    def test_malformed_arguments_become_empty(self, raw) -> None:
        msg = parse_chat_message({"tool_calls": [{"id": "c", "function": {"name": "employee_lookup", "arguments": raw}}]})
        assert msg.tool_calls[0].arguments == {}

    def test_sdk_style_objects(self) -> None:
        class Obj:
            def __init__(self, **kw) -> None:
                self.__dict__.update(kw)

        sdk_msg = Obj(content="ok", tool_calls=[Obj(id="c1", function=Obj(name="employee_lookup", arguments='{"query": "Java"}'))])
        msg = parse_chat_message(sdk_msg)
        assert msg.content == "ok"
        assert msg.tool_calls[0].arguments == {"query": "Java"}

    def test_none_message(self) -> None:
        assert parse_chat_message(None) == assistant_message("")


class TestOpenAIFormat:
    """Tests for Message.to_openai()."""

    def test_assistant_tool_call_encodes_arguments(self) -> None:
        m = assistant_message("", [ToolCall(id="c1", name="employee_lookup", arguments={"query": "Python"})])
        out = m.to_openai()
        assert out["tool_calls"][0]["type"] == "function"
        assert json.loads(out["tool_calls"][0]["function"]["arguments"]) == {"query": "Python"}

    def test_tool_message_carries_call_id(self) -> None:
        assert tool_message("c1", "[]").to_openai() == {"role": "tool", "content": "[]", "tool_call_id": "c1"}


class TestHFRouterChatModel:
    """Tests for HFRouterChatModel.invoke() against a mock transport."""

    def test_posts_messages_and_tools(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": "Hi there"}}]})

        model = HFRouterChatModel(api_key="hf_test", model="test-model", transport=httpx.MockTransport(handler))
        reply = run(model.invoke([user_message("hello")], TOOLS))

        assert reply.content == "Hi there"
        assert seen["auth"] == "Bearer hf_test"
        assert seen["body"]["model"] == "test-model"
        assert seen["body"]["messages"] == [{"role": "user", "content": "hello"}]
        assert seen["body"]["tools"] == TOOLS

    def test_returns_tool_calls(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            message = {
                "role": "assistant",
                "content": "",
                "tool_calls": [{"id": "c1", "type": "function", "function": {"name": "employee_lookup", "arguments": '{"query": "Java"}'}}],
            }
            return httpx.Response(200, json={"choices": [{"message": message}]})

        model = HFRouterChatModel(api_key="hf_test", transport=httpx.MockTransport(handler))
        reply = run(model.invoke([user_message("Java?")], TOOLS))
        assert reply.tool_calls[0].name == "employee_lookup"

    def test_http_error_raises(self) -> None:
        model = HFRouterChatModel(api_key="hf_test", transport=httpx.MockTransport(lambda r: httpx.Response(500, text="boom")))
        with pytest.raises(httpx.HTTPStatusError):
            run(model.invoke([user_message("hi")], TOOLS))

    def test_missing_key_raises(self) -> None:
        with pytest.raises(ValueError, match="HF_API_KEY"):
            HFRouterChatModel(api_key="")
