import json
from typing import Any, Dict, Optional

from langchain_core.messages.ai import UsageMetadata

from .types import UsageStats

_USAGE_FIELDS = ("prompt_tokens", "completion_tokens", "total_tokens")

# =============================================================================
# Content Helpers
# =============================================================================

def extract_text_content(content: Any) -> str:
    """
    Reduce LangChain message content to the plain text GigaChat accepts.

    String content is returned verbatim. For a list of content parts, only
    the parts tagged ``{"type": "text"}`` are kept, in their original order,
    and joined with a single space. Images and other non-text parts are
    dropped.

    Args:
        content: A string or a list of content parts.

    Returns:
        str: The text view of the content ('' for anything else).
    """
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return " ".join(
            str(part.get("text", ""))
            for part in content
            if isinstance(part, dict) and part.get("type") == "text"
        )
    return ""


def parse_json_arguments(arguments: Any) -> Dict[str, Any]:
    """
    Parse function-call arguments that may arrive as a JSON string.

    Raises:
        json.JSONDecodeError: If a string payload is not valid JSON.
    """
    if isinstance(arguments, str):
        return json.loads(arguments) if arguments else {}
    return dict(arguments or {})


# =============================================================================
# Usage Helpers
# =============================================================================

def usage_from_vendor(usage: Any) -> Optional[UsageStats]:
    """
    Normalize the vendor's usage record (object or dict) to a UsageStats dict.

    Missing fields are left out rather than filled with zero so that callers
    can tell "not reported" apart from "zero tokens".
    """
    if usage is None:
        return None
    stats: UsageStats = {}
    for field in _USAGE_FIELDS:
        value = usage.get(field) if isinstance(usage, dict) else getattr(usage, field, None)
        if value is not None:
            stats[field] = int(value)
    return stats


def combine_usage(*usages: Optional[UsageStats]) -> UsageStats:
    """
    Add usage records field by field.

    Absent records and absent fields count as zero, so the operation is
    associative and order independent.

    Args:
        *usages: Any number of UsageStats dicts (or None).

    Returns:
        UsageStats: A record with all three fields set.
    """
    total: UsageStats = {field: 0 for field in _USAGE_FIELDS}
    for usage in usages:
        if not usage:
            continue
        for field in _USAGE_FIELDS:
            total[field] += usage.get(field) or 0
    return total


def usage_to_metadata(usage: UsageStats) -> UsageMetadata:
    """Map GigaChat usage names onto LangChain's ``usage_metadata`` names."""
    return {
        "input_tokens": usage.get("prompt_tokens", 0),
        "output_tokens": usage.get("completion_tokens", 0),
        "total_tokens": usage.get("total_tokens", 0),
    }


def role_value(role: Any) -> Optional[str]:
    """Return a role as a plain string; the SDK may hand back an Enum member."""
    if role is None:
        return None
    return str(getattr(role, "value", role))
