"""Retry wrapper around single GigaChat calls.

Uses tenacity, the same retry engine LangChain's ``Runnable.with_retry``
is built on. The policy is data (`RetryPolicy`) so callers can inject their
own attempt count, backoff and retry predicate.
"""

import asyncio
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Iterator, Optional, TypeVar

import httpx
from gigachat.exceptions import ResponseError
from pydantic import BaseModel, ConfigDict, Field
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from .exceptions import CallAbortedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_STATUS_CODES = frozenset([408, 409, 429, 500, 502, 503, 504])

_EXHAUSTED = object()


def _status_code(error: BaseException) -> Optional[int]:
    code = getattr(error, "status_code", None)
    if code is None and len(error.args) > 1 and isinstance(error.args[1], int):
        # gigachat raises ResponseError(url, status_code, content, headers)
        code = error.args[1]
    return code


def is_retryable_error(error: BaseException) -> bool:
    """
    Default retry predicate.

    Network failures and timeouts are retried. Vendor HTTP errors are retried
    only for rate limiting and server-side statuses; auth and request errors
    fail immediately.
    """
    if isinstance(error, CallAbortedError):
        return False
    if isinstance(error, (httpx.TransportError, ConnectionError, TimeoutError)):
        return True
    if isinstance(error, ResponseError):
        code = _status_code(error)
        return code is None or code in RETRYABLE_STATUS_CODES or code >= 500
    return False


class RetryPolicy(BaseModel):
    """
    Exponential backoff with a bounded number of retries.

    The delay before retry n is ``initial_delay * 2 ** (n - 1)``, capped at
    ``max_delay``, plus up to ``jitter`` seconds of random delay.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    max_retries: int = Field(default=6, ge=0)
    initial_delay: float = Field(default=1.0, ge=0)
    max_delay: float = Field(default=60.0, ge=0)
    jitter: float = Field(default=1.0, ge=0)
    retry_on: Callable[[BaseException], bool] = is_retryable_error

    def _retry_kwargs(self) -> dict:
        return {
            "stop": stop_after_attempt(self.max_retries + 1),
            "wait": wait_exponential(multiplier=self.initial_delay, max=self.max_delay)
            + wait_random(0, self.jitter),
            "retry": retry_if_exception(self.retry_on),
            "before_sleep": _log_retry,
            "reraise": True,
        }

    def retrying(self) -> Retrying:
        return Retrying(**self._retry_kwargs())

    def async_retrying(self) -> AsyncRetrying:
        return AsyncRetrying(**self._retry_kwargs())


def _log_retry(state: RetryCallState) -> None:
    error = state.outcome.exception() if state.outcome else None
    logger.warning(
        "GigaChat call failed (attempt %d): %r; retrying",
        state.attempt_number,
        error,
    )


class RetryingExecutor:
    """
    Runs vendor calls under a `RetryPolicy`.

    Non-streaming calls are retried as a whole. Streams are retried only
    until their first chunk arrives; after that a failure is terminal,
    because chunks already handed to the caller cannot be taken back.
    """

    def __init__(self, policy: Optional[RetryPolicy] = None):
        self.policy = policy or RetryPolicy()

    # ==========================================================================
    # Single calls
    # ==========================================================================

    def call(self, thunk: Callable[[], T]) -> T:
        """Run a synchronous vendor call with retries."""
        for attempt in self.policy.retrying():
            with attempt:
                return thunk()
        raise AssertionError("unreachable")  # pragma: no cover

    async def acall(
        self,
        thunk: Callable[[], Awaitable[T]],
        signal: Optional[asyncio.Event] = None,
    ) -> T:
        """
        Run an async vendor call with retries.

        Args:
            thunk: Creates a fresh awaitable per attempt.
            signal: Optional cancellation signal. Setting it aborts the
                in-flight attempt and stops further retries.

        Raises:
            CallAbortedError: If `signal` fired before the call completed.
        """
        async for attempt in self.policy.async_retrying():
            with attempt:
                if signal is not None and signal.is_set():
                    raise CallAbortedError("GigaChat call aborted by caller")
                return await self._attempt(thunk, signal)
        raise AssertionError("unreachable")  # pragma: no cover

    @staticmethod
    async def _attempt(
        thunk: Callable[[], Awaitable[T]],
        signal: Optional[asyncio.Event],
    ) -> T:
        if signal is None:
            return await thunk()

        call = asyncio.ensure_future(thunk())
        aborted = asyncio.ensure_future(signal.wait())
        try:
            await asyncio.wait({call, aborted}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            call.cancel()
            raise
        finally:
            aborted.cancel()
        if call.done():
            return call.result()
        call.cancel()
        try:
            await call
        except asyncio.CancelledError:
            pass
        raise CallAbortedError("GigaChat call aborted by caller")

    # ==========================================================================
    # Streams
    # ==========================================================================

    def stream(self, factory: Callable[[], Iterator[T]]) -> Iterator[T]:
        """
        Open a synchronous vendor stream, retrying until the first chunk.

        Closing the returned generator closes the vendor stream.
        """

        def open_stream():
            chunks = iter(factory())
            try:
                return chunks, next(chunks, _EXHAUSTED)
            except BaseException:
                _close(chunks)
                raise

        chunks, first = self.call(open_stream)
        try:
            if first is _EXHAUSTED:
                return
            yield first
            yield from chunks
        finally:
            _close(chunks)

    async def astream(self, factory: Callable[[], AsyncIterator[T]]) -> AsyncIterator[T]:
        """Async counterpart of `stream`."""

        async def open_stream():
            chunks = factory().__aiter__()
            try:
                return chunks, await chunks.__anext__()
            except StopAsyncIteration:
                return chunks, _EXHAUSTED
            except BaseException:
                await _aclose(chunks)
                raise

        chunks, first = await self.acall(open_stream)
        try:
            if first is _EXHAUSTED:
                return
            yield first
            async for chunk in chunks:
                yield chunk
        finally:
            await _aclose(chunks)


def _close(chunks: Any) -> None:
    close = getattr(chunks, "close", None)
    if close is not None:
        close()


async def _aclose(chunks: Any) -> None:
    aclose = getattr(chunks, "aclose", None)
    if aclose is not None:
        await aclose()
