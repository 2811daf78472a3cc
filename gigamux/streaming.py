"""Accumulation of GigaChat stream chunks into LangChain generation chunks.

A `StreamAccumulator` lives for exactly one stream. It translates each
vendor delta into a `ChatGenerationChunk`, yields it, and folds it into a
running total with LangChain's chunk ``+`` (content is concatenated, tool
call argument fragments are concatenated by index, metadata is merged).

States::

    IDLE --first delta--> ACCUMULATING --end of stream--> DONE
                               |  \\--transport error--> FAILED
                               \\--consumer stops------> CANCELLED
"""

import enum
import logging
from typing import Any, AsyncIterator, Iterator, Optional

from langchain_core.outputs import ChatGenerationChunk

from .exceptions import EmptyStreamError
from .messages import delta_to_message_chunk
from .types import KNOWN_ROLES
from .utils import extract_text_content, role_value, usage_from_vendor, usage_to_metadata

logger = logging.getLogger(__name__)


class StreamState(str, enum.Enum):
    IDLE = "idle"
    ACCUMULATING = "accumulating"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


class StreamAccumulator:
    """Per-stream translation and merge state."""

    def __init__(self) -> None:
        self.state = StreamState.IDLE
        self.role: Optional[str] = None
        self.chunk_count = 0
        self._function_name: Optional[str] = None
        self._state_id: Optional[str] = None
        self._merged: Optional[ChatGenerationChunk] = None

    @property
    def merged(self) -> Optional[ChatGenerationChunk]:
        """The fold of every chunk pushed so far."""
        return self._merged

    def _fix_role(self, delta_role: Optional[str]) -> str:
        if self.role is None:
            if delta_role in KNOWN_ROLES:
                self.role = delta_role
            else:
                if delta_role is not None:
                    logger.warning("Unknown stream role %s, treating as assistant", delta_role)
                self.role = "assistant"
        return self.role

    def translate(self, chunk: Any) -> ChatGenerationChunk:
        """
        Translate one GigaChat ``ChatCompletionChunk`` without merging it.

        The first delta fixes the role for the rest of the stream; roles on
        later deltas are ignored.
        """
        choice = chunk.choices[0]
        delta = choice.delta
        role = self._fix_role(role_value(getattr(delta, "role", None)))

        function_call = getattr(delta, "function_call", None)
        include_name = True
        if function_call is not None and function_call.name:
            include_name = function_call.name != self._function_name
            self._function_name = function_call.name

        state_id = getattr(delta, "functions_state_id", None)
        include_state_id = state_id is not None and state_id != self._state_id
        if state_id is not None:
            self._state_id = state_id

        message = delta_to_message_chunk(
            delta,
            role,
            include_function_name=include_name,
            include_state_id=include_state_id,
        )

        usage = usage_from_vendor(getattr(chunk, "usage", None))
        if usage and role == "assistant":
            message.usage_metadata = usage_to_metadata(usage)

        finish_reason = getattr(choice, "finish_reason", None)
        generation_info = {"finish_reason": finish_reason} if finish_reason else None
        return ChatGenerationChunk(
            message=message,
            text=extract_text_content(message.content),
            generation_info=generation_info,
        )

    def push(self, generation: ChatGenerationChunk) -> None:
        """Fold a translated chunk into the running total, in arrival order."""
        if self.state is StreamState.IDLE:
            self.state = StreamState.ACCUMULATING
        self._merged = generation if self._merged is None else self._merged + generation
        self.chunk_count += 1

    def _finish(self) -> None:
        if self.chunk_count == 0:
            self.state = StreamState.FAILED
            raise EmptyStreamError("No chunks returned from GigaChat API.")
        self.state = StreamState.DONE
        logger.debug("Stream finished after %d chunks", self.chunk_count)

    def consume(self, chunks: Iterator[Any]) -> Iterator[ChatGenerationChunk]:
        """
        Drive a synchronous vendor stream, yielding one chunk per delta.

        Raises:
            EmptyStreamError: If the stream ended without any delta.
        """
        try:
            for chunk in chunks:
                generation = self.translate(chunk)
                self.push(generation)
                yield generation
        except GeneratorExit:
            self.state = StreamState.CANCELLED
            raise
        except Exception:
            self.state = StreamState.FAILED
            raise
        finally:
            close = getattr(chunks, "close", None)
            if close is not None:
                close()
        self._finish()

    async def aconsume(self, chunks: AsyncIterator[Any]) -> AsyncIterator[ChatGenerationChunk]:
        """Async counterpart of `consume`."""
        try:
            async for chunk in chunks:
                generation = self.translate(chunk)
                self.push(generation)
                yield generation
        except GeneratorExit:
            self.state = StreamState.CANCELLED
            raise
        except Exception:
            self.state = StreamState.FAILED
            raise
        finally:
            aclose = getattr(chunks, "aclose", None)
            if aclose is not None:
                await aclose()
        self._finish()
