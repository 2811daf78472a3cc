"""Conversion of tool descriptions to GigaChat function specs."""

import enum
import json
from typing import Any, Dict, Mapping, Optional, Sequence, Union

from langchain_core.tools import BaseTool
from langchain_core.utils.function_calling import convert_to_openai_function
from langchain_core.utils.pydantic import is_basemodel_subclass

from .exceptions import ToolConversionError
from .types import FunctionCallChoice, FunctionSpec

DEFAULT_FUNCTION_DESCRIPTION = "A function available to call."


class ToolKind(str, enum.Enum):
    """Closed set of shapes a tool description can take."""

    ALREADY_NORMALIZED = "already_normalized"
    SCHEMA_BACKED = "schema_backed"
    PLAIN_DESCRIPTOR = "plain_descriptor"
    INVALID = "invalid"


def classify_tool(tool: Any) -> ToolKind:
    """
    Decide which conversion applies to a tool description.

    - a mapping with both ``name`` and ``parameters`` is already GigaChat-shaped
    - a LangChain ``BaseTool`` or a pydantic model class is schema-backed
    - any other mapping is a plain descriptor
    - everything else is invalid
    """
    if isinstance(tool, Mapping):
        if "name" in tool and "parameters" in tool:
            return ToolKind.ALREADY_NORMALIZED
        return ToolKind.PLAIN_DESCRIPTOR
    if isinstance(tool, BaseTool) or is_basemodel_subclass(tool):
        return ToolKind.SCHEMA_BACKED
    return ToolKind.INVALID


def _describe(tool: Any) -> str:
    try:
        return json.dumps(tool, indent=2, ensure_ascii=False, default=repr)
    except (TypeError, ValueError):
        return repr(tool)


def schema_to_function(
    schema: Any,
    *,
    name: Optional[str] = None,
    description: Optional[str] = None,
) -> FunctionSpec:
    """
    Lower a schema-backed tool (``BaseTool`` or pydantic model) to a FunctionSpec.

    Args:
        schema: The tool or model class.
        name: Overrides the name derived from the schema.
        description: Used when the schema carries no description.

    Returns:
        FunctionSpec: ``{name, description, parameters}``.
    """
    lowered = convert_to_openai_function(schema)
    return {
        "name": name or lowered["name"],
        "description": lowered.get("description") or description or DEFAULT_FUNCTION_DESCRIPTION,
        "parameters": lowered.get("parameters") or {"type": "object", "properties": {}},
    }


def convert_to_gigachat_function(tool: Any) -> FunctionSpec:
    """
    Convert one tool description to a GigaChat function spec.

    Already-normalized specs are returned as is (the same object).

    Raises:
        ToolConversionError: If the tool is neither GigaChat-shaped nor
            schema-backed.
    """
    kind = classify_tool(tool)
    if kind is ToolKind.ALREADY_NORMALIZED:
        return tool
    if kind is ToolKind.SCHEMA_BACKED:
        return schema_to_function(tool)
    raise ToolConversionError(f"Unknown tool type passed to GigaChat: {_describe(tool)}")


def convert_to_gigachat_functions(
    tools: Optional[Sequence[Any]],
) -> Optional[list]:
    """
    Convert a list of tool descriptions.

    Returns:
        The converted list, or None when no tools were given. GigaChat treats
        an empty ``functions`` list differently from an absent one, so an
        empty list is never returned.
    """
    if not tools:
        return None
    return [convert_to_gigachat_function(tool) for tool in tools]


def format_tool_choice(
    tool_choice: Union[str, Dict[str, Any], None],
) -> Optional[FunctionCallChoice]:
    """
    Normalize a tool choice to GigaChat's ``function_call`` field.

    "auto" and "none" pass through, a bare function name forces that
    function, and a ``{"name": ...}`` dict is used as is.
    """
    if tool_choice is None:
        return None
    if isinstance(tool_choice, str):
        if tool_choice in ("auto", "none"):
            return tool_choice
        return {"name": tool_choice}
    if isinstance(tool_choice, Mapping) and "name" in tool_choice:
        return {"name": tool_choice["name"]}
    raise ToolConversionError(f"Unsupported tool_choice for GigaChat: {_describe(tool_choice)}")
