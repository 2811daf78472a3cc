import logging
from typing import Any, AsyncIterator, Dict, Iterator, List, Protocol, Tuple

from gigachat import GigaChat as GigaChatClient
from gigachat.models import Chat

from .config import GigaChatSettings

logger = logging.getLogger(__name__)


class VendorClient(Protocol):
    """
    The part of the GigaChat SDK client this package calls.

    Anything with these methods can be injected in place of the real client
    (tests use mocks).
    """

    def chat(self, payload: Dict[str, Any]) -> Any:
        ...

    async def achat(self, payload: Dict[str, Any]) -> Any:
        ...

    def stream(self, payload: Dict[str, Any]) -> Iterator[Any]:
        ...

    def astream(self, payload: Dict[str, Any]) -> AsyncIterator[Any]:
        ...

    def embeddings(self, texts: List[str], model: str) -> Any:
        ...

    async def aembeddings(self, texts: List[str], model: str) -> Any:
        ...

    def tokens_count(self, input_: List[str], model: str) -> Any:
        ...


def create_client(settings: GigaChatSettings, **overrides: Any) -> VendorClient:
    """
    Construct the GigaChat SDK client from settings.

    Args:
        settings: Connection settings; unset values fall back to SDK defaults.
        **overrides: Extra constructor arguments (e.g. ``model``).

    Returns:
        VendorClient: A configured ``gigachat.GigaChat``.
    """
    kwargs = settings.client_kwargs()
    kwargs.update({k: v for k, v in overrides.items() if v is not None})
    # Only names, never values: kwargs carries credentials.
    logger.debug("Creating GigaChat client with settings: %s", sorted(kwargs))
    return GigaChatClient(**kwargs)


def _declared_request_fields() -> Dict[str, Any]:
    return Chat.model_fields


def fit_request_to_sdk(payload: Dict[str, Any]) -> Tuple[Dict[str, Any], List[str]]:
    """
    Make every payload key reach the API through the SDK's ``Chat`` model.

    The SDK validates the request dict into ``Chat`` and silently ignores
    keys it does not declare (``stop_sequences`` among them). Such keys are
    moved into ``additional_fields``, which the SDK merges back into the
    request body.

    Returns:
        The adjusted payload and the keys that still cannot be sent, which
        is non-empty only for SDK releases without ``additional_fields``.
    """
    known = _declared_request_fields()
    extra = {key: value for key, value in payload.items() if key not in known}
    if not extra:
        return payload, []
    if "additional_fields" not in known:
        return payload, sorted(extra)
    fitted = {key: value for key, value in payload.items() if key in known}
    fitted["additional_fields"] = {**extra, **(payload.get("additional_fields") or {})}
    return fitted, []
