import enum
import json
import logging
import pytest
from types import SimpleNamespace

from langchain_core.messages import (
    AIMessage,
    AIMessageChunk,
    ChatMessage,
    ChatMessageChunk,
    FunctionMessage,
    FunctionMessageChunk,
    HumanMessage,
    HumanMessageChunk,
    RemoveMessage,
    SystemMessage,
    ToolMessage,
)

from gigamux.exceptions import MessageConversionError
from gigamux.messages import (
    convert_messages_to_payload,
    delta_to_message_chunk,
    message_to_vendor,
    message_to_vendor_role,
    vendor_message_to_message,
)

from conftest import make_function_call


def vendor_message(role="assistant", content="", function_call=None, functions_state_id=None):
    return SimpleNamespace(
        role=role,
        content=content,
        function_call=function_call,
        functions_state_id=functions_state_id,
    )


class TestRoleMapping:
    @pytest.mark.parametrize(
        "message, expected",
        [
            (SystemMessage(content="s"), "system"),
            (AIMessage(content="a"), "assistant"),
            (HumanMessage(content="h"), "user"),
            (FunctionMessage(content="f", name="fn"), "function"),
            (ToolMessage(content="t", tool_call_id="call_1"), "function"),
        ],
    )
    def test_known_roles(self, message, expected):
        assert message_to_vendor_role(message) == expected

    def test_known_custom_role_passes_silently(self, caplog):
        with caplog.at_level(logging.WARNING, logger="gigamux.messages"):
            role = message_to_vendor_role(ChatMessage(content="x", role="function_in_progress"))
        assert role == "function_in_progress"
        assert caplog.records == []

    def test_unknown_custom_role_is_warned_not_rejected(self, caplog):
        with caplog.at_level(logging.WARNING, logger="gigamux.messages"):
            converted = message_to_vendor(ChatMessage(content="found it", role="web_page"))
        assert converted == {"role": "web_page", "content": "found it"}
        assert "Unknown message role: web_page" in caplog.text

    def test_search_result_role(self):
        converted = message_to_vendor(ChatMessage(content="doc", role="search_result"))
        assert converted["role"] == "search_result"

    def test_unsupported_message_class(self):
        with pytest.raises(MessageConversionError, match="Unknown message type"):
            message_to_vendor_role(RemoveMessage(id="msg-1"))


class TestMessageToVendor:
    def test_plain_text(self):
        assert message_to_vendor(HumanMessage(content="Hello")) == {"role": "user", "content": "Hello"}

    def test_multipart_content_keeps_only_text(self):
        message = HumanMessage(
            content=[
                {"type": "text", "text": "What is"},
                {"type": "image_url", "image_url": {"url": "https://example.com/cat.png"}},
                {"type": "text", "text": "on this picture?"},
            ]
        )
        assert message_to_vendor(message)["content"] == "What is on this picture?"

    def test_function_content_is_json_encoded(self):
        converted = message_to_vendor(FunctionMessage(content="Солнечно", name="weather"))
        assert converted["role"] == "function"
        assert converted["content"] == '"Солнечно"'
        assert json.loads(converted["content"]) == "Солнечно"

    def test_tool_message_is_function_role(self):
        converted = message_to_vendor(ToolMessage(content="42", tool_call_id="call_1"))
        assert converted == {"role": "function", "content": '"42"'}

    def test_first_tool_call_only(self):
        message = AIMessage(
            content="",
            tool_calls=[
                {"name": "first", "args": {"a": 1}, "id": "1"},
                {"name": "second", "args": {"b": 2}, "id": "2"},
            ],
        )
        converted = message_to_vendor(message)
        assert converted["function_call"] == {"name": "first", "arguments": {"a": 1}}

    def test_legacy_function_call_arguments_are_parsed(self):
        message = AIMessage(
            content="",
            additional_kwargs={"function_call": {"name": "search", "arguments": '{"query": "weather"}'}},
        )
        converted = message_to_vendor(message)
        assert converted["function_call"] == {"name": "search", "arguments": {"query": "weather"}}

    def test_attachments_and_state_id_are_forwarded(self):
        message = HumanMessage(
            content="see file",
            additional_kwargs={"attachments": ["file-1"], "functions_state_id": "state-9"},
        )
        converted = message_to_vendor(message)
        assert converted["attachments"] == ["file-1"]
        assert converted["functions_state_id"] == "state-9"

    def test_absent_optional_fields_are_omitted(self):
        converted = message_to_vendor(AIMessage(content="Hi"))
        assert set(converted) == {"role", "content"}

    def test_convert_list_preserves_order(self):
        payload = convert_messages_to_payload(
            [SystemMessage(content="be brief"), HumanMessage(content="hi"), AIMessage(content="hello")]
        )
        assert [m["role"] for m in payload] == ["system", "user", "assistant"]


class TestVendorToMessage:
    def test_assistant_with_usage(self):
        usage = SimpleNamespace(prompt_tokens=1, completion_tokens=2, total_tokens=3)
        message = vendor_message_to_message(vendor_message(content="Hi there"), usage)

        assert isinstance(message, AIMessage)
        assert message.content == "Hi there"
        assert message.tool_calls == []
        assert message.usage_metadata == {"input_tokens": 1, "output_tokens": 2, "total_tokens": 3}

    def test_assistant_function_call(self):
        message = vendor_message_to_message(
            vendor_message(
                function_call=make_function_call("get_weather", {"city": "Москва"}),
                functions_state_id="state-1",
            )
        )
        assert message.tool_calls[0]["name"] == "get_weather"
        assert message.tool_calls[0]["args"] == {"city": "Москва"}
        assert message.additional_kwargs["function_call"] == {
            "name": "get_weather",
            "arguments": '{"city": "Москва"}',
        }
        assert message.additional_kwargs["functions_state_id"] == "state-1"

    def test_malformed_arguments_become_invalid_tool_call(self):
        message = vendor_message_to_message(
            vendor_message(function_call=make_function_call("extract", '{"name": "Bob", '))
        )
        assert message.tool_calls == []
        assert message.invalid_tool_calls[0]["name"] == "extract"
        assert message.invalid_tool_calls[0]["args"] == '{"name": "Bob", '

    def test_other_roles_become_chat_messages(self):
        usage = SimpleNamespace(prompt_tokens=1, completion_tokens=2, total_tokens=3)
        message = vendor_message_to_message(vendor_message(role="function_in_progress", content="..."), usage)
        assert isinstance(message, ChatMessage)
        assert message.role == "function_in_progress"
        assert message.content == "..."

    def test_missing_role_is_unknown(self):
        message = vendor_message_to_message(vendor_message(role=None, content="?"))
        assert isinstance(message, ChatMessage)
        assert message.role == "unknown"

    def test_enum_role(self):
        class Role(str, enum.Enum):
            ASSISTANT = "assistant"

        message = vendor_message_to_message(vendor_message(role=Role.ASSISTANT, content="ok"))
        assert isinstance(message, AIMessage)

    def test_round_trip_preserves_tool_call(self):
        original = AIMessage(
            content="",
            tool_calls=[{"name": "book_table", "args": {"guests": 4, "time": "19:00"}, "id": "c1"}],
        )
        vendor = message_to_vendor(original)
        restored = vendor_message_to_message(
            vendor_message(
                role=vendor["role"],
                content=vendor["content"],
                function_call=make_function_call(**vendor["function_call"]),
            )
        )
        assert restored.tool_calls[0]["name"] == original.tool_calls[0]["name"]
        assert restored.tool_calls[0]["args"] == original.tool_calls[0]["args"]


class TestDeltaToChunk:
    def delta(self, content=None, function_call=None):
        return SimpleNamespace(role=None, content=content, function_call=function_call, functions_state_id=None)

    def test_assistant_function_call_keeps_raw_arguments(self):
        chunk = delta_to_message_chunk(
            self.delta(function_call=make_function_call("extract", {"a": 1})), "assistant"
        )
        assert isinstance(chunk, AIMessageChunk)
        assert chunk.tool_call_chunks[0]["name"] == "extract"
        assert chunk.tool_call_chunks[0]["args"] == '{"a": 1}'
        assert chunk.tool_call_chunks[0]["index"] == 0

    def test_function_name_can_be_suppressed(self):
        chunk = delta_to_message_chunk(
            self.delta(function_call=make_function_call("extract", '"}')),
            "assistant",
            include_function_name=False,
        )
        assert chunk.tool_call_chunks[0]["name"] is None

    def test_state_id_can_be_suppressed(self):
        delta = SimpleNamespace(role=None, content="x", function_call=None, functions_state_id="state-1")
        assert delta_to_message_chunk(delta, "assistant").additional_kwargs["functions_state_id"] == "state-1"
        chunk = delta_to_message_chunk(delta, "assistant", include_state_id=False)
        assert "functions_state_id" not in chunk.additional_kwargs

    @pytest.mark.parametrize(
        "role, cls",
        [
            ("user", HumanMessageChunk),
            ("function", FunctionMessageChunk),
            ("search_result", ChatMessageChunk),
        ],
    )
    def test_chunk_class_follows_role(self, role, cls):
        chunk = delta_to_message_chunk(self.delta(content="x"), role)
        assert isinstance(chunk, cls)
        assert chunk.content == "x"
