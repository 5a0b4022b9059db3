"""
Keyword embeddings for clustering jobs.

``EmbeddingService`` is the interface the keyword clustering handler depends
on; ``OpenAIEmbeddingService`` implements it with OpenAI's text-embedding
models. Tests substitute a deterministic implementation.
"""

import logging
from abc import ABC, abstractmethod
from typing import Sequence

import numpy as np
from openai import APIConnectionError, APIError, AsyncOpenAI

from app.core.config import Settings, settings as default_settings
from app.core.exceptions import EmbeddingFailure

logger = logging.getLogger(__name__)


class EmbeddingService(ABC):
    """Abstract interface for text embedding providers."""

    @abstractmethod
    async def encode_batch(self, texts: Sequence[str]) -> np.ndarray:
        """Encode texts into an array of shape (len(texts), dimension).

        Raises:
            EmbeddingFailure: If the provider cannot produce embeddings
        """
        ...

    async def aclose(self) -> None:
        return None


class OpenAIEmbeddingService(EmbeddingService):
    """EmbeddingService backed by the OpenAI embeddings API.

    Example:
        service = OpenAIEmbeddingService()
        vectors = await service.encode_batch(["seo audit", "site audit"])
    """

    def __init__(
        self,
        config: Settings | None = None,
        client: AsyncOpenAI | None = None,
        batch_size: int = 100,
    ):
        self._config = config or default_settings
        self._model = self._config.EMBEDDING_MODEL
        self._batch_size = batch_size
        self._dimension = 3072 if "large" in self._model else 1536
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self._config.OPENAI_API_KEY:
                raise EmbeddingFailure("Embedding API key not configured")
            self._client = AsyncOpenAI(api_key=self._config.OPENAI_API_KEY, timeout=30.0)
        return self._client

    @property
    def embedding_dimension(self) -> int:
        return self._dimension

    async def encode_batch(self, texts: Sequence[str]) -> np.ndarray:
        if not texts:
            return np.zeros((0, self._dimension), dtype=np.float32)

        client = self._get_client()
        vectors: list[np.ndarray] = []
        try:
            for start in range(0, len(texts), self._batch_size):
                batch = [text.strip() for text in texts[start : start + self._batch_size]]
                response = await client.embeddings.create(model=self._model, input=batch)
                # Responses carry an index; keep input order
                for item in sorted(response.data, key=lambda d: d.index):
                    vectors.append(np.array(item.embedding, dtype=np.float32))
        except APIConnectionError as e:
            logger.error("Failed to connect to OpenAI for embeddings", extra={"error": str(e)})
            raise EmbeddingFailure(f"Connection failed: {e}", cause=e) from e
        except APIError as e:
            logger.error("OpenAI embedding API error", extra={"error": str(e)})
            raise EmbeddingFailure(f"API error: {e}", cause=e) from e

        logger.debug(
            "Keyword embeddings generated",
            extra={"count": len(vectors), "model": self._model},
        )
        return np.vstack(vectors)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
