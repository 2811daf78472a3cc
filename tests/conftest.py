import os
import pytest
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

from gigamux.retry import RetryPolicy


def make_function_call(name, arguments):
    return SimpleNamespace(name=name, arguments=arguments)


def make_completion(
    content="",
    role="assistant",
    finish_reason="stop",
    function_call=None,
    functions_state_id=None,
    usage=(1, 2, 3),
    extra_choices=0,
):
    """Build a GigaChat ChatCompletion look-alike."""
    message = SimpleNamespace(
        role=role,
        content=content,
        function_call=function_call,
        functions_state_id=functions_state_id,
    )
    choices = [SimpleNamespace(index=0, message=message, finish_reason=finish_reason)]
    for i in range(extra_choices):
        other = SimpleNamespace(role="assistant", content=f"other {i}", function_call=None, functions_state_id=None)
        choices.append(SimpleNamespace(index=i + 1, message=other, finish_reason="stop"))
    prompt, completion, total = usage if usage else (None, None, None)
    return SimpleNamespace(
        choices=choices,
        model="GigaChat:1.0",
        usage=SimpleNamespace(prompt_tokens=prompt, completion_tokens=completion, total_tokens=total)
        if usage
        else None,
    )


def make_chunk(content=None, role=None, function_call=None, finish_reason=None, usage=None, functions_state_id=None):
    """Build a GigaChat ChatCompletionChunk look-alike."""
    delta = SimpleNamespace(
        role=role,
        content=content,
        function_call=function_call,
        functions_state_id=functions_state_id,
    )
    return SimpleNamespace(
        choices=[SimpleNamespace(index=0, delta=delta, finish_reason=finish_reason)],
        model="GigaChat:1.0",
        usage=usage,
    )


async def async_iter(items):
    for item in items:
        if isinstance(item, BaseException):
            raise item
        yield item


def sync_iter(items):
    for item in items:
        if isinstance(item, BaseException):
            raise item
        yield item


@pytest.fixture
def fast_retry():
    """Retry policy without backoff delays."""
    return RetryPolicy(max_retries=2, initial_delay=0, max_delay=0, jitter=0)


@pytest.fixture
def mock_client():
    """A GigaChat SDK client double."""
    client = MagicMock()
    client.achat = AsyncMock()
    client.aembeddings = AsyncMock()
    return client


@pytest.fixture
def clean_env(monkeypatch):
    """Remove GIGACHAT_* variables so settings come only from arguments."""
    for key in list(os.environ):
        if key.startswith("GIGACHAT_"):
            monkeypatch.delenv(key, raising=False)
