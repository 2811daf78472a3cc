"""Translation between LangChain messages and GigaChat chat messages.

Outgoing: `convert_messages_to_payload` flattens LangChain's role/content
union into GigaChat's flat ``{role, content, function_call}`` records.

Incoming: `vendor_message_to_message` turns a complete response message
back into a LangChain message, and `delta_to_message_chunk` does the same
for one streaming delta.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from langchain_core.messages import (
    AIMessage,
    AIMessageChunk,
    BaseMessage,
    BaseMessageChunk,
    ChatMessage,
    ChatMessageChunk,
    FunctionMessage,
    FunctionMessageChunk,
    HumanMessage,
    HumanMessageChunk,
    SystemMessage,
    SystemMessageChunk,
    ToolMessage,
)
from langchain_core.messages.tool import invalid_tool_call, tool_call, tool_call_chunk

from .exceptions import MessageConversionError
from .types import KNOWN_ROLES, FunctionCall, VendorMessage
from .utils import (
    extract_text_content,
    parse_json_arguments,
    role_value,
    usage_from_vendor,
    usage_to_metadata,
)

logger = logging.getLogger(__name__)

# =============================================================================
# LangChain -> GigaChat
# =============================================================================

def _custom_role(message: ChatMessage) -> str:
    if message.role not in KNOWN_ROLES:
        logger.warning("Unknown message role: %s", message.role)
    return message.role


def message_to_vendor_role(message: BaseMessage) -> str:
    """
    Map a LangChain message class to a GigaChat role.

    Function and tool results both become "function". A generic
    ``ChatMessage`` keeps its own role string, even one GigaChat is not
    known to support (a warning is logged).

    Raises:
        MessageConversionError: For message classes with no GigaChat role.
    """
    # ChatMessage first: it is the only class whose role is data, not type.
    if isinstance(message, ChatMessage):
        return _custom_role(message)
    if isinstance(message, SystemMessage):
        return "system"
    if isinstance(message, AIMessage):
        return "assistant"
    if isinstance(message, HumanMessage):
        return "user"
    if isinstance(message, (FunctionMessage, ToolMessage)):
        return "function"
    raise MessageConversionError(f"Unknown message type: {message.type}")


def _outgoing_function_call(message: BaseMessage) -> Optional[FunctionCall]:
    # GigaChat carries at most one call per message, so only the first counts.
    if isinstance(message, AIMessage) and message.tool_calls:
        first = message.tool_calls[0]
        return {"name": first["name"], "arguments": first["args"]}

    legacy = message.additional_kwargs.get("function_call")
    if legacy:
        return {
            "name": legacy["name"],
            "arguments": parse_json_arguments(legacy.get("arguments")),
        }
    return None


def message_to_vendor(message: BaseMessage) -> VendorMessage:
    """
    Convert a single LangChain message to a GigaChat message dict.

    Args:
        message (BaseMessage): Any LangChain message.

    Returns:
        VendorMessage: The flat GigaChat record. Optional fields that are
        not set on the source message are omitted.
    """
    role = message_to_vendor_role(message)
    content = extract_text_content(message.content)
    if role == "function":
        content = json.dumps(content, ensure_ascii=False)

    converted: VendorMessage = {"role": role, "content": content}

    function_call = _outgoing_function_call(message)
    if function_call is not None:
        converted["function_call"] = function_call

    attachments = message.additional_kwargs.get("attachments")
    if attachments is not None:
        converted["attachments"] = list(attachments)

    state_id = message.additional_kwargs.get("functions_state_id")
    if state_id is not None:
        converted["functions_state_id"] = state_id

    return converted


def convert_messages_to_payload(messages: List[BaseMessage]) -> List[VendorMessage]:
    """Convert a LangChain conversation to the GigaChat ``messages`` list."""
    return [message_to_vendor(message) for message in messages]


# =============================================================================
# GigaChat -> LangChain
# =============================================================================

def _arguments_text(arguments: Any) -> str:
    if arguments is None:
        return ""
    if isinstance(arguments, str):
        return arguments
    return json.dumps(arguments, ensure_ascii=False)


def vendor_message_to_message(message: Any, usage: Any = None) -> BaseMessage:
    """
    Convert a GigaChat response message to a LangChain message.

    Only the "assistant" role produces an ``AIMessage`` (with tool calls and
    usage metadata). Every other role comes back as a ``ChatMessage``
    carrying the raw content and role string, or "unknown" when the vendor
    sent no role.

    Args:
        message: ``choices[0].message`` of a GigaChat completion.
        usage: The completion's usage record, if any.

    Returns:
        BaseMessage: The translated message.
    """
    role = role_value(getattr(message, "role", None))
    content = getattr(message, "content", None) or ""

    if role != "assistant":
        return ChatMessage(content=content, role=role or "unknown")

    tool_calls = []
    invalid_tool_calls = []
    additional_kwargs: Dict[str, Any] = {}

    function_call = getattr(message, "function_call", None)
    if function_call is not None:
        name = function_call.name
        raw_arguments = function_call.arguments
        try:
            args = parse_json_arguments(raw_arguments)
        except json.JSONDecodeError as e:
            invalid_tool_calls.append(
                invalid_tool_call(
                    name=name,
                    args=_arguments_text(raw_arguments),
                    id=None,
                    error=f"Malformed function call arguments: {e}",
                )
            )
        else:
            tool_calls.append(tool_call(name=name, args=args, id=None))
        additional_kwargs["function_call"] = {
            "name": name,
            "arguments": _arguments_text(raw_arguments),
        }

    state_id = getattr(message, "functions_state_id", None)
    if state_id is not None:
        additional_kwargs["functions_state_id"] = state_id

    stats = usage_from_vendor(usage)
    return AIMessage(
        content=content,
        tool_calls=tool_calls,
        invalid_tool_calls=invalid_tool_calls,
        additional_kwargs=additional_kwargs,
        usage_metadata=usage_to_metadata(stats) if stats is not None else None,
    )


def delta_to_message_chunk(
    delta: Any,
    role: str,
    *,
    include_function_name: bool = True,
    include_state_id: bool = True,
) -> BaseMessageChunk:
    """
    Convert one streaming delta to a LangChain message chunk.

    The role is decided by the caller (the first delta fixes it for the
    whole stream). Function-call arguments stay as raw JSON text here; they
    are only parsed once the chunks have been merged.

    Args:
        delta: ``choices[0].delta`` of a GigaChat stream chunk.
        role: The role fixed for this stream.
        include_function_name: False when an earlier delta already carried
            the function name, so that merging does not repeat it.
        include_state_id: False when an earlier delta already carried the
            same ``functions_state_id``.

    Returns:
        BaseMessageChunk: A chunk of the class matching `role`.
    """
    content = getattr(delta, "content", None) or ""
    function_call = getattr(delta, "function_call", None)

    additional_kwargs: Dict[str, Any] = {}
    name = None
    args_text = ""
    if function_call is not None:
        name = function_call.name if include_function_name else None
        args_text = _arguments_text(function_call.arguments)
        additional_kwargs["function_call"] = {"name": name, "arguments": args_text}

    state_id = getattr(delta, "functions_state_id", None)
    if state_id is not None and include_state_id:
        additional_kwargs["functions_state_id"] = state_id

    if role == "user":
        return HumanMessageChunk(content=content)
    if role == "assistant":
        chunks = []
        if function_call is not None:
            chunks.append(tool_call_chunk(name=name, args=args_text, id=None, index=0))
        return AIMessageChunk(
            content=content,
            tool_call_chunks=chunks,
            additional_kwargs=additional_kwargs,
        )
    if role == "system":
        return SystemMessageChunk(content=content)
    if role == "function":
        # Name stays empty: chunks with differing names refuse to merge.
        return FunctionMessageChunk(
            content=content,
            name="",
            additional_kwargs=additional_kwargs,
        )
    return ChatMessageChunk(content=content, role=role)
