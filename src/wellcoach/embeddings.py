"""Text embedding providers.

The production provider talks to the standalone sentence-transformers service
(``scripts/embed_service.py``) which accepts ``{"texts": [...]}`` and answers
``{"vectors": [[...]]}``. The hashing provider needs no model and is meant for
local development and tests.
"""

from __future__ import annotations

import hashlib
import re
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

import httpx
import numpy as np

from wellcoach.core.config import Settings
from wellcoach.core.errors import EmbeddingUnavailable
from wellcoach.core.logging import get_logger
from wellcoach.vector.codec import Vector, as_vector

logger = get_logger(__name__)


class EmbeddingProvider(ABC):
    """Turns text into fixed-length vectors. Implementations hold no per-request state.

    Failures surface as ``EmbeddingUnavailable``; retrying is the caller's call.
    """

    dimension: int

    @abstractmethod
    async def embed_many(self, texts: Sequence[str]) -> List[Vector]:
        ...

    async def embed(self, text: str) -> Vector:
        vectors = await self.embed_many([text])
        return vectors[0]

    async def close(self) -> None:
        return None


class HttpEmbeddingProvider(EmbeddingProvider):
    def __init__(
        self,
        url: str,
        dimension: int,
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url
        self.dimension = dimension
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def embed_many(self, texts: Sequence[str]) -> List[Vector]:
        if not texts:
            return []
        try:
            response = await self._get_client().post(self.url, json={"texts": list(texts)})
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            raise EmbeddingUnavailable(f"Embedding service at {self.url} failed: {exc}") from exc
        except ValueError as exc:
            raise EmbeddingUnavailable(f"Embedding service returned invalid JSON: {exc}") from exc

        if not isinstance(payload, dict):
            raise EmbeddingUnavailable("Embedding service response is not a JSON object")
        raw = payload.get("vectors")
        if not isinstance(raw, list) or len(raw) != len(texts):
            raise EmbeddingUnavailable("Embedding service returned an unexpected number of vectors")
        vectors: List[Vector] = []
        for item in raw:
            try:
                vector = as_vector(item)
            except (TypeError, ValueError) as exc:
                raise EmbeddingUnavailable(f"Embedding service returned a malformed vector: {exc}") from exc
            if vector.shape[0] != self.dimension:
                raise EmbeddingUnavailable(
                    f"Embedding dimension {vector.shape[0]} does not match configured {self.dimension}"
                )
            vectors.append(vector)
        return vectors

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


_TOKEN = re.compile(r"[a-z0-9]+")


class HashEmbeddingProvider(EmbeddingProvider):
    """Deterministic feature-hashed bag of words (plus character trigrams).

    Texts sharing vocabulary land close together under cosine distance, which is
    enough to exercise the cache and the retriever without a model.
    """

    def __init__(self, dimension: int = 384):
        self.dimension = dimension

    def _features(self, text: str) -> List[str]:
        tokens = _TOKEN.findall(text.lower())
        features = list(tokens)
        for token in tokens:
            padded = f"#{token}#"
            features.extend(padded[i:i + 3] for i in range(len(padded) - 2))
        return features

    def embed_text(self, text: str) -> Vector:
        vector = np.zeros(self.dimension, dtype=np.float32)
        for feature in self._features(text):
            digest = hashlib.md5(feature.encode("utf-8")).digest()
            bucket = int.from_bytes(digest[:4], "little") % self.dimension
            sign = 1.0 if digest[4] & 1 else -1.0
            vector[bucket] += sign
        norm = float(np.linalg.norm(vector))
        if norm > 0:
            vector /= norm
        return as_vector(vector)

    async def embed_many(self, texts: Sequence[str]) -> List[Vector]:
        return [self.embed_text(text) for text in texts]


def build_embedding_provider(settings: Settings) -> EmbeddingProvider:
    if settings.embedding_backend == "hash":
        logger.info("Using hashing embeddings (dim %d)", settings.embedding_dimension)
        return HashEmbeddingProvider(settings.embedding_dimension)
    logger.info("Using embedding service at %s", settings.embed_url)
    return HttpEmbeddingProvider(
        settings.embed_url,
        dimension=settings.embedding_dimension,
        timeout=settings.embed_timeout,
    )
