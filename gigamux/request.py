"""Assembly of GigaChat chat request payloads."""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict

from .types import VendorMessage, VendorRequest


class ChatParams(BaseModel):
    """
    Sampling and tool parameters of a chat request.

    Every field is optional: a layer only states what it wants to override.
    Keys GigaChat supports but this model does not name are kept as extras.
    """

    model_config = ConfigDict(extra="allow")

    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    repetition_penalty: Optional[float] = None
    update_interval: Optional[float] = None
    stop_sequences: Optional[List[str]] = None
    functions: Optional[List[Dict[str, Any]]] = None
    function_call: Optional[Union[str, Dict[str, Any]]] = None

    def as_payload(self) -> Dict[str, Any]:
        # Top-level only: None inside a JSON schema is meaningful.
        return {k: v for k, v in self.model_dump().items() if v is not None}


def apply_overrides(*layers: Optional[ChatParams]) -> ChatParams:
    """
    Merge parameter layers in ascending priority.

    Later layers win; a None value never overrides anything.
    """
    merged: Dict[str, Any] = {}
    for layer in layers:
        if layer is not None:
            merged.update(layer.as_payload())
    return ChatParams(**merged)


def build_request(
    defaults: ChatParams,
    options: Optional[ChatParams],
    messages: List[VendorMessage],
    *,
    stream: bool,
    extra: Optional[Dict[str, Any]] = None,
) -> VendorRequest:
    """
    Build a GigaChat chat request.

    Priority, lowest first: model defaults, per-call options, the caller's
    `extra` bag. `messages` and `stream` are always set explicitly so the
    vendor default never applies.

    Args:
        defaults: Parameters configured on the model.
        options: Parameters passed for this call.
        messages: Already-converted GigaChat messages.
        stream: Whether to request a streamed response.
        extra: Additional vendor parameters (``invocation_kwargs``).

    Returns:
        VendorRequest: The payload for ``GigaChat.chat`` / ``GigaChat.stream``.
    """
    request: Dict[str, Any] = apply_overrides(defaults, options).as_payload()
    request.update({k: v for k, v in (extra or {}).items() if v is not None})
    request["messages"] = messages
    request["stream"] = stream
    return request
