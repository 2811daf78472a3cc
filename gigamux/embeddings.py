"""LangChain embeddings backed by the GigaChat API."""

import asyncio
import logging
from typing import Any, List, Optional

from langchain_core.embeddings import Embeddings
from langchain_core.utils.iter import batch_iterate
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, model_validator

from .client import VendorClient, create_client
from .config import GigaChatSettings, collect_client_settings
from .retry import RetryingExecutor, RetryPolicy

logger = logging.getLogger(__name__)

DEFAULT_PREFIX_QUERY = "Дано предложение, необходимо найти его парафраз \nпредложение: "


class GigaChatEmbeddings(BaseModel, Embeddings):
    """
    GigaChat embeddings.

    Documents are sent in batches of ``batch_size``; each batch is one
    retried API call. Connection settings work as for ``ChatGigaChat``.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    model: str = "Embeddings"
    batch_size: int = Field(default=512, gt=0)
    strip_new_lines: bool = True
    """Replace newlines with spaces before embedding."""
    use_prefix_query: bool = False
    prefix_query: str = DEFAULT_PREFIX_QUERY
    retry_policy: RetryPolicy = Field(default_factory=RetryPolicy)
    client_settings: GigaChatSettings = Field(
        default_factory=GigaChatSettings, exclude=True, repr=False
    )
    client: Optional[Any] = Field(default=None, exclude=True, repr=False)

    _client: Optional[VendorClient] = PrivateAttr(default=None)

    @model_validator(mode="before")
    @classmethod
    def _collect_client_settings(cls, values: Any) -> Any:
        return collect_client_settings(values)

    def _get_client(self) -> VendorClient:
        if self.client is not None:
            return self.client
        if self._client is None:
            self._client = create_client(self.client_settings, model=self.model)
        return self._client

    def _executor(self) -> RetryingExecutor:
        return RetryingExecutor(self.retry_policy)

    def _prepare(self, text: str) -> str:
        if self.use_prefix_query:
            text = self.prefix_query + text
        if self.strip_new_lines:
            text = text.replace("\n", " ")
        return text

    def _batches(self, texts: List[str]) -> List[List[str]]:
        return list(batch_iterate(self.batch_size, (self._prepare(text) for text in texts)))

    @staticmethod
    def _vectors(response: Any) -> List[List[float]]:
        return [list(item.embedding) for item in response.data]

    def _embed_batch(self, batch: List[str]) -> List[List[float]]:
        client = self._get_client()
        response = self._executor().call(lambda: client.embeddings(batch, self.model))
        return self._vectors(response)

    async def _aembed_batch(self, batch: List[str]) -> List[List[float]]:
        client = self._get_client()
        response = await self._executor().acall(lambda: client.aembeddings(batch, self.model))
        return self._vectors(response)

    def embed_documents(self, texts: List[str]) -> List[List[float]]:
        """
        Embed a list of documents.

        Args:
            texts: The documents.

        Returns:
            One vector per document, in input order.
        """
        batches = self._batches(texts)
        logger.debug("Embedding %d texts in %d batches", len(texts), len(batches))
        embeddings: List[List[float]] = []
        for batch in batches:
            embeddings.extend(self._embed_batch(batch))
        return embeddings

    async def aembed_documents(self, texts: List[str]) -> List[List[float]]:
        """Async `embed_documents`; batches are requested concurrently."""
        batches = self._batches(texts)
        logger.debug("Embedding %d texts in %d batches", len(texts), len(batches))
        results = await asyncio.gather(*(self._aembed_batch(batch) for batch in batches))
        return [vector for batch in results for vector in batch]

    def embed_query(self, text: str) -> List[float]:
        return self._embed_batch([self._prepare(text)])[0]

    async def aembed_query(self, text: str) -> List[float]:
        return (await self._aembed_batch([self._prepare(text)]))[0]
