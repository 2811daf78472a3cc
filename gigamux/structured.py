"""Structured output through a single forced function call.

GigaChat has no JSON mode, so structured output is always obtained by
offering exactly one function and pinning ``function_call`` to it, then
parsing that call's arguments.
"""

import json
from operator import itemgetter
from typing import Any, Dict, List, Mapping, Optional, Type

from langchain_core.exceptions import OutputParserException
from langchain_core.language_models import BaseChatModel, LanguageModelInput
from langchain_core.messages import BaseMessage
from langchain_core.output_parsers import BaseGenerationOutputParser
from langchain_core.outputs import ChatGeneration, Generation
from langchain_core.runnables import Runnable, RunnableMap, RunnablePassthrough
from langchain_core.utils.pydantic import is_basemodel_subclass
from pydantic import BaseModel, ValidationError

from .exceptions import ConfigurationError, ToolConversionError
from .tools import schema_to_function
from .types import FunctionSpec
from .utils import parse_json_arguments

DEFAULT_FUNCTION_NAME = "extract"

SUPPORTED_METHODS = (None, "function_calling")


class FunctionCallOutputParser(BaseGenerationOutputParser[Any]):
    """
    Extract the arguments of one named function call from a chat message.

    Looks at parsed tool calls first, then at calls whose arguments failed
    to parse, then at the raw ``function_call`` in ``additional_kwargs``.
    When `pydantic_schema` is set the arguments are validated into it.
    """

    key_name: str
    pydantic_schema: Optional[Type[BaseModel]] = None

    def _find_arguments(self, message: BaseMessage) -> Any:
        for call in getattr(message, "tool_calls", None) or []:
            if call["name"] == self.key_name:
                return call["args"]
        for call in getattr(message, "invalid_tool_calls", None) or []:
            if call.get("name") == self.key_name:
                return call.get("args")
        legacy = message.additional_kwargs.get("function_call")
        if legacy and legacy.get("name") == self.key_name:
            return legacy.get("arguments")
        raise OutputParserException(
            f"Model output contains no call to function '{self.key_name}'",
            llm_output=str(message.content),
        )

    def parse_result(self, result: List[Generation], *, partial: bool = False) -> Any:
        generation = result[0]
        if not isinstance(generation, ChatGeneration):
            raise OutputParserException("This output parser only works on chat generations")

        arguments = self._find_arguments(generation.message)
        try:
            parsed: Dict[str, Any] = parse_json_arguments(arguments)
        except json.JSONDecodeError as e:
            raise OutputParserException(
                f"Function '{self.key_name}' arguments are not valid JSON: {e}",
                llm_output=str(arguments),
            ) from e

        if self.pydantic_schema is None:
            return parsed
        try:
            return self.pydantic_schema.model_validate(parsed)
        except ValidationError as e:
            raise OutputParserException(
                f"Function '{self.key_name}' arguments do not match the schema: {e}",
                llm_output=json.dumps(parsed, ensure_ascii=False),
            ) from e


def _is_function_spec(schema: Mapping[str, Any]) -> bool:
    return (
        isinstance(schema.get("name"), str)
        and isinstance(schema.get("description"), str)
        and isinstance(schema.get("parameters"), Mapping)
    )


def schema_to_forced_function(schema: Any, name: Optional[str] = None) -> tuple:
    """
    Turn an output schema into the one function the model will be forced to call.

    Returns:
        (FunctionSpec, function name, pydantic model class or None)

    Raises:
        ToolConversionError: If the schema is neither a pydantic model class
            nor a dict.
    """
    function_name = name or DEFAULT_FUNCTION_NAME
    if is_basemodel_subclass(schema):
        return schema_to_function(schema, name=function_name), function_name, schema
    if isinstance(schema, Mapping):
        if _is_function_spec(schema):
            return dict(schema), schema["name"], None
        function: FunctionSpec = {
            "name": function_name,
            "description": schema.get("description", ""),
            "parameters": dict(schema),
        }
        return function, function_name, None
    raise ToolConversionError(f"Unsupported structured output schema: {schema!r}")


def with_structured_output(
    llm: BaseChatModel,
    schema: Any,
    *,
    include_raw: bool = False,
    name: Optional[str] = None,
    method: Optional[str] = None,
    **kwargs: Any,
) -> Runnable[LanguageModelInput, Any]:
    """
    Build a runnable that returns output shaped by `schema`.

    Args:
        llm: The chat model to bind the forced function to.
        schema: A pydantic model class, a GigaChat function spec dict, or a
            bare JSON schema dict.
        include_raw: If False the runnable returns only the parsed value and
            raises when parsing fails. If True it returns
            ``{"raw": message, "parsed": value}`` and a parsing failure yields
            ``parsed=None`` instead of an error.
        name: Function name for pydantic and bare JSON schemas
            (default "extract").
        method: Only "function_calling" (or None) is supported.
        **kwargs: Extra call options bound alongside the tool.

    Raises:
        ConfigurationError: For any other `method`.
    """
    if method not in SUPPORTED_METHODS:
        raise ConfigurationError(
            f'GigaChat only supports "function_calling" as a method, got "{method}"'
        )

    function, function_name, pydantic_schema = schema_to_forced_function(schema, name)
    bound = llm.bind_tools([function], tool_choice={"name": function_name}, **kwargs)
    parser = FunctionCallOutputParser(key_name=function_name, pydantic_schema=pydantic_schema)

    if not include_raw:
        return (bound | parser).with_config(run_name="GigaChatStructuredOutput")

    parser_assign = RunnablePassthrough.assign(parsed=itemgetter("raw") | parser)
    parser_none = RunnablePassthrough.assign(parsed=lambda _: None)
    parsed_with_fallback = parser_assign.with_fallbacks(fallbacks=[parser_none])
    return (RunnableMap(raw=bound) | parsed_with_fallback).with_config(
        run_name="StructuredOutputRunnable"
    )
