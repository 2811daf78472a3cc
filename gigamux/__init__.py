from .chat_models import ChatGigaChat
from .config import GigaChatSettings
from .embeddings import GigaChatEmbeddings
from .exceptions import (
    CallAbortedError,
    ConfigurationError,
    EmptyStreamError,
    GigaMuxError,
    MessageConversionError,
    ToolConversionError,
)
from .retry import RetryPolicy, RetryingExecutor
from .types import FunctionSpec, UsageStats, VendorMessage

__all__ = [
    "ChatGigaChat",
    "GigaChatEmbeddings",
    "GigaChatSettings",
    "RetryPolicy",
    "RetryingExecutor",
    "FunctionSpec",
    "UsageStats",
    "VendorMessage",
    "GigaMuxError",
    "MessageConversionError",
    "ToolConversionError",
    "ConfigurationError",
    "EmptyStreamError",
    "CallAbortedError",
]
