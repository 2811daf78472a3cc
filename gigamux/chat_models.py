"""LangChain chat model backed by the GigaChat API."""

import logging
from typing import Any, AsyncIterator, Dict, Iterator, List, Optional, Sequence, Union

from langchain_core.callbacks import (
    AsyncCallbackManagerForLLMRun,
    CallbackManagerForLLMRun,
)
from langchain_core.language_models import BaseChatModel, LangSmithParams, LanguageModelInput
from langchain_core.messages import BaseMessage
from langchain_core.outputs import ChatGenerationChunk, ChatResult
from langchain_core.runnables import Runnable
from pydantic import Field, PrivateAttr, model_validator

from .client import VendorClient, create_client, fit_request_to_sdk
from .config import SECRET_ENV_VARS, GigaChatSettings, collect_client_settings
from .exceptions import ConfigurationError
from .messages import convert_messages_to_payload
from .request import ChatParams, apply_overrides, build_request
from .responses import combine_llm_outputs, completion_to_chat_result
from .retry import RetryingExecutor, RetryPolicy
from .streaming import StreamAccumulator
from .structured import with_structured_output as _with_structured_output
from .tools import convert_to_gigachat_functions, format_tool_choice
from .types import VendorRequest

logger = logging.getLogger(__name__)

# Call kwargs LangChain may forward that are not request parameters.
_NON_REQUEST_KWARGS = ("stream", "signal", "ls_structured_output_format")


class ChatGigaChat(BaseChatModel):
    """
    GigaChat chat model.

    Connection settings (``credentials``, ``scope``, ``base_url``, ...) can be
    passed as keyword arguments or taken from GIGACHAT_* environment
    variables. Sampling parameters set here are defaults; per-call options
    override them, and ``invocation_kwargs`` overrides both.

    Example:
        ```python
        from gigamux import ChatGigaChat

        llm = ChatGigaChat(credentials="...", scope="GIGACHAT_API_PERS", temperature=0.3)
        llm.invoke("Hello")
        ```
    """

    model: str = "GigaChat"
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    repetition_penalty: Optional[float] = None
    update_interval: Optional[float] = None
    """Minimum interval in seconds between streamed tokens."""
    stop_sequence: Optional[List[str]] = None
    """Default stop sequences. A call may not pass ``stop`` as well."""
    streaming: bool = False
    """Stream by default; LangChain then routes ``invoke`` through ``_stream``."""
    use_api_for_tokens: bool = False
    """Count tokens with the GigaChat API instead of a local tokenizer."""
    invocation_kwargs: Dict[str, Any] = Field(default_factory=dict)
    """Extra request parameters, applied over everything else."""
    retry_policy: RetryPolicy = Field(default_factory=RetryPolicy)
    client_settings: GigaChatSettings = Field(
        default_factory=GigaChatSettings, exclude=True, repr=False
    )
    client: Optional[Any] = Field(default=None, exclude=True, repr=False)
    """Pre-built GigaChat client; built from ``client_settings`` when unset."""

    _client: Optional[VendorClient] = PrivateAttr(default=None)

    @model_validator(mode="before")
    @classmethod
    def _collect_client_settings(cls, values: Any) -> Any:
        return collect_client_settings(values)

    @property
    def _llm_type(self) -> str:
        return "giga-chat-model"

    @classmethod
    def is_lc_serializable(cls) -> bool:
        return True

    @property
    def lc_secrets(self) -> Dict[str, str]:
        return dict(SECRET_ENV_VARS)

    @property
    def lc_attributes(self) -> Dict[str, Any]:
        # Connection settings live in client_settings, which is excluded from
        # the model dump; explicitly set ones are serialized as constructor
        # keywords. Secrets among them are swapped for their env var ids.
        return {
            name: getattr(self.client_settings, name)
            for name in self.client_settings.model_fields_set
        }

    # ==========================================================================
    # Parameters
    # ==========================================================================

    def _default_params(self) -> ChatParams:
        return ChatParams(
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            top_p=self.top_p,
            repetition_penalty=self.repetition_penalty,
            update_interval=self.update_interval,
            stop_sequences=self.stop_sequence,
        )

    @staticmethod
    def _call_options(stop: Optional[List[str]], kwargs: Dict[str, Any]) -> ChatParams:
        options = {k: v for k, v in kwargs.items() if k not in _NON_REQUEST_KWARGS}
        tools = options.pop("tools", None)
        tool_choice = options.pop("tool_choice", None)
        return ChatParams(
            stop_sequences=stop,
            functions=convert_to_gigachat_functions(tools),
            function_call=format_tool_choice(tool_choice),
            **options,
        )

    def invocation_params(self, stop: Optional[List[str]] = None, **kwargs: Any) -> Dict[str, Any]:
        """
        The request parameters (everything but ``messages``) a call would use.
        """
        params = apply_overrides(self._default_params(), self._call_options(stop, kwargs)).as_payload()
        params["stream"] = self.streaming
        params.update(self.invocation_kwargs)
        return params

    @property
    def _identifying_params(self) -> Dict[str, Any]:
        return {"model_name": self.model, **self.invocation_params()}

    def _get_ls_params(self, stop: Optional[List[str]] = None, **kwargs: Any) -> LangSmithParams:
        params = LangSmithParams(
            ls_provider="gigachat",
            ls_model_name=self.model,
            ls_model_type="chat",
        )
        if self.temperature is not None:
            params["ls_temperature"] = self.temperature
        if self.max_tokens is not None:
            params["ls_max_tokens"] = self.max_tokens
        if stop or self.stop_sequence:
            params["ls_stop"] = stop or self.stop_sequence
        return params

    def _prepare_request(
        self,
        messages: List[BaseMessage],
        stop: Optional[List[str]],
        *,
        stream: bool,
        **kwargs: Any,
    ) -> VendorRequest:
        if self.stop_sequence and stop:
            raise ConfigurationError(
                '"stop_sequence" parameter found in input and default params'
            )
        payload = build_request(
            self._default_params(),
            self._call_options(stop, kwargs),
            convert_messages_to_payload(messages),
            stream=stream,
            extra=self.invocation_kwargs,
        )
        logger.debug(
            "GigaChat request: model=%s messages=%d stream=%s functions=%d",
            payload.get("model"),
            len(payload["messages"]),
            stream,
            len(payload.get("functions") or []),
        )
        payload, dropped = fit_request_to_sdk(payload)
        if dropped:
            logger.warning(
                "Installed GigaChat SDK does not forward request parameters %s; they have no effect",
                ", ".join(dropped),
            )
        return payload

    # ==========================================================================
    # Client
    # ==========================================================================

    def _get_client(self) -> VendorClient:
        if self.client is not None:
            return self.client
        if self._client is None:
            self._client = create_client(self.client_settings, model=self.model)
        return self._client

    def _executor(self) -> RetryingExecutor:
        return RetryingExecutor(self.retry_policy)

    # ==========================================================================
    # Generation
    # ==========================================================================

    def _generate(
        self,
        messages: List[BaseMessage],
        stop: Optional[List[str]] = None,
        run_manager: Optional[CallbackManagerForLLMRun] = None,
        **kwargs: Any,
    ) -> ChatResult:
        payload = self._prepare_request(messages, stop, stream=False, **kwargs)
        client = self._get_client()
        response = self._executor().call(lambda: client.chat(payload))
        return completion_to_chat_result(response)

    async def _agenerate(
        self,
        messages: List[BaseMessage],
        stop: Optional[List[str]] = None,
        run_manager: Optional[AsyncCallbackManagerForLLMRun] = None,
        **kwargs: Any,
    ) -> ChatResult:
        signal = kwargs.get("signal")
        payload = self._prepare_request(messages, stop, stream=False, **kwargs)
        client = self._get_client()
        response = await self._executor().acall(lambda: client.achat(payload), signal=signal)
        return completion_to_chat_result(response)

    def _stream(
        self,
        messages: List[BaseMessage],
        stop: Optional[List[str]] = None,
        run_manager: Optional[CallbackManagerForLLMRun] = None,
        **kwargs: Any,
    ) -> Iterator[ChatGenerationChunk]:
        payload = self._prepare_request(messages, stop, stream=True, **kwargs)
        client = self._get_client()
        chunks = self._executor().stream(lambda: client.stream(payload))
        for generation in StreamAccumulator().consume(chunks):
            if run_manager:
                run_manager.on_llm_new_token(generation.text, chunk=generation)
            yield generation

    async def _astream(
        self,
        messages: List[BaseMessage],
        stop: Optional[List[str]] = None,
        run_manager: Optional[AsyncCallbackManagerForLLMRun] = None,
        **kwargs: Any,
    ) -> AsyncIterator[ChatGenerationChunk]:
        # Streams take no cancellation signal: stop iterating to cancel.
        payload = self._prepare_request(messages, stop, stream=True, **kwargs)
        client = self._get_client()
        chunks = self._executor().astream(lambda: client.astream(payload))
        async for generation in StreamAccumulator().aconsume(chunks):
            if run_manager:
                await run_manager.on_llm_new_token(generation.text, chunk=generation)
            yield generation

    def _combine_llm_outputs(self, llm_outputs: List[Optional[dict]]) -> dict:
        return combine_llm_outputs(llm_outputs)

    # ==========================================================================
    # Tools and structured output
    # ==========================================================================

    def bind_tools(
        self,
        tools: Sequence[Any],
        *,
        tool_choice: Optional[Union[str, Dict[str, Any]]] = None,
        **kwargs: Any,
    ) -> Runnable[LanguageModelInput, BaseMessage]:
        """
        Bind tools to the model.

        Args:
            tools: GigaChat function specs, LangChain tools or pydantic models.
            tool_choice: "auto", "none", or a function name (or
                ``{"name": ...}``) to force that function.
            **kwargs: Further call options to bind.

        Raises:
            ToolConversionError: If any tool cannot be converted.
        """
        formatted = convert_to_gigachat_functions(tools)
        if tool_choice is not None:
            kwargs["tool_choice"] = format_tool_choice(tool_choice)
        return super().bind(tools=formatted, **kwargs)

    def with_structured_output(
        self,
        schema: Any,
        *,
        include_raw: bool = False,
        **kwargs: Any,
    ) -> Runnable[LanguageModelInput, Any]:
        """
        Return a runnable producing output that matches `schema`.

        Only forced function calling is supported. See
        `gigamux.structured.with_structured_output` for the arguments.
        """
        return _with_structured_output(self, schema, include_raw=include_raw, **kwargs)

    # ==========================================================================
    # Tokens
    # ==========================================================================

    def get_num_tokens(self, text: str) -> int:
        if not self.use_api_for_tokens:
            return super().get_num_tokens(text)
        client = self._get_client()
        counts = self._executor().call(lambda: client.tokens_count([text], self.model))
        return counts[0].tokens
