from typing import Literal, List, Dict, Any, Union, TypedDict, get_args

# =============================================================================
# Type Definitions
# =============================================================================

# Roles GigaChat is known to accept. The API adds new ones from time to time,
# so a role outside this set is a warning, not an error.
KnownRole = Literal[
    "system",
    "user",
    "assistant",
    "function",
    "function_in_progress",
    "search_result",
]

KNOWN_ROLES = frozenset(get_args(KnownRole))


# =============================================================================
# Function Calling Type Definitions
# =============================================================================

class FunctionParameters(TypedDict, total=False):
    """
    JSON Schema for function parameters.
    """
    type: Literal["object"]
    properties: Dict[str, Any]
    required: List[str]


class FunctionSpec(TypedDict, total=False):
    """
    Function definition in GigaChat format.
    """
    name: str
    description: str
    parameters: FunctionParameters


class FunctionCall(TypedDict):
    """
    A single function call on a GigaChat message. Arguments are a parsed
    JSON object, not a string.
    """
    name: str
    arguments: Dict[str, Any]


# "auto", "none" or {"name": "<function>"} to force a single function.
FunctionCallChoice = Union[Literal["auto", "none"], Dict[str, str]]


# =============================================================================
# Message Type (depends on FunctionCall)
# =============================================================================

class VendorMessage(TypedDict, total=False):
    """
    Flat GigaChat chat message.

    Fields:
    - role: one of KnownRole, or any newer role string the API accepts
    - content: plain text
    - function_call: at most one outgoing function call
    - attachments: ids of previously uploaded files
    - functions_state_id: session token tying a function result to its call
    """
    role: str
    content: str
    function_call: FunctionCall
    attachments: List[str]
    functions_state_id: str


class VendorRequest(TypedDict, total=False):
    """
    Chat request payload accepted by `GigaChat.chat` / `GigaChat.stream`.
    """
    model: str
    messages: List[VendorMessage]
    temperature: float
    max_tokens: int
    top_p: float
    repetition_penalty: float
    update_interval: float
    stop_sequences: List[str]
    stream: bool
    functions: List[FunctionSpec]
    function_call: FunctionCallChoice
    additional_fields: Dict[str, Any]


# =============================================================================
# Usage
# =============================================================================

class UsageStats(TypedDict, total=False):
    """
    Token usage reported by GigaChat.
    """
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
