class GigaMuxError(Exception):
    """Base class for errors raised by gigamux itself."""


class MessageConversionError(GigaMuxError, ValueError):
    """A LangChain message has no GigaChat counterpart."""


class ToolConversionError(GigaMuxError, ValueError):
    """A tool description is neither GigaChat-shaped nor convertible."""


class ConfigurationError(GigaMuxError, ValueError):
    """Conflicting or unsupported model configuration."""


class EmptyStreamError(GigaMuxError, RuntimeError):
    """The vendor stream ended without producing a single chunk."""


class CallAbortedError(GigaMuxError):
    """The caller's cancellation signal fired while a call was in flight."""
