"""Semantic LLM-response cache on top of the chat cache vector index.

A lookup embeds the query (plus the rendered health context, when there is
one) and searches the index without any user filter, so answers are shared
across users who ask near-identical questions. Distances are cosine
distances: a hit needs ``distance <= threshold``.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from wellcoach.core.config import Settings
from wellcoach.core.errors import IndexNotFound, InvalidQuery, WellnessError
from wellcoach.core.logging import get_logger
from wellcoach.embeddings import EmbeddingProvider
from wellcoach.health.analysis import HEALTH_CONTEXT_VERSION
from wellcoach.recommend.schemas import CacheEntry, parse_document
from wellcoach.vector.codec import Vector, vector_to_list
from wellcoach.vector.schema import CHAT_CACHE_INDEX, CHAT_KEY_PREFIX
from wellcoach.vector.store import MATCH_ALL, VectorIndexStore

logger = get_logger(__name__)

CACHE_RETURN_FIELDS = ("response", "inputText", "userId", "timestamp", "hasHealthContext", "contextVersion")


@dataclass(frozen=True)
class CacheLookup:
    hit: bool
    response: Optional[str] = None
    distance: Optional[float] = None
    embedding: Optional[Vector] = None
    has_context: bool = False


def normalize_query(text: str) -> str:
    return (text or "").strip().lower()


def cache_key(user_id: str, timestamp_ms: int) -> str:
    return f"{CHAT_KEY_PREFIX}{user_id}:{timestamp_ms}"


def lookup_text(query_text: str, context_text: Optional[str] = None) -> str:
    context = (context_text or "").strip()
    return f"{query_text}\n{context}" if context else query_text


class SemanticCache:
    def __init__(
        self,
        store: VectorIndexStore,
        embedder: EmbeddingProvider,
        settings: Settings,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.embedder = embedder
        self.threshold = settings.cache_distance_threshold
        self.threshold_with_context = settings.cache_distance_threshold_with_context
        self.top_k = settings.cache_top_k
        self._clock = clock

    def threshold_for(self, has_context: bool) -> float:
        return self.threshold_with_context if has_context else self.threshold

    async def lookup_or_miss(
        self,
        user_id: str,
        query_text: str,
        context_text: Optional[str] = None,
    ) -> CacheLookup:
        """Return the cached answer of the closest stored query, or a miss.

        Raises ``InvalidQuery`` for a blank query (before any embedding call),
        ``EmbeddingUnavailable`` when the query cannot be embedded and
        ``StoreUnavailable`` when the index cannot be searched. A missing index
        counts as an empty cache.
        """
        if not query_text or not query_text.strip():
            raise InvalidQuery("Query must not be empty")

        has_context = bool((context_text or "").strip())
        embedding = await self.embedder.embed(lookup_text(query_text, context_text))
        try:
            hits = await self.store.search(CHAT_CACHE_INDEX, MATCH_ALL, embedding, self.top_k, CACHE_RETURN_FIELDS)
        except IndexNotFound:
            logger.warning("Chat cache index is missing; treating lookup as a miss")
            hits = []

        threshold = self.threshold_for(has_context)
        for hit in hits:
            entry = parse_document("cache", hit.fields, hit.id)
            if entry is None:
                continue
            if hit.distance <= threshold:
                logger.info("Cache hit for %s (distance %.4f <= %.2f, key %s)", user_id, hit.distance, threshold, hit.id)
                return CacheLookup(True, entry.response, hit.distance, embedding, has_context)
            logger.info("Cache miss for %s (closest distance %.4f > %.2f)", user_id, hit.distance, threshold)
            return CacheLookup(False, None, hit.distance, embedding, has_context)

        logger.info("Cache miss for %s (no stored neighbours)", user_id)
        return CacheLookup(False, None, None, embedding, has_context)

    async def record_entry(
        self,
        user_id: str,
        query_text: str,
        response_text: str,
        has_context: bool,
        embedding: Optional[Sequence[float]] = None,
        context_text: Optional[str] = None,
    ) -> Optional[str]:
        """Store a finished answer for future lookups and return its key.

        ``embedding`` should be the vector the lookup used, so later lookups
        with the same query and context land on it. Failures are logged and
        swallowed: the user already has the answer.
        """
        if not response_text or not response_text.strip():
            logger.debug("Skipping cache write for %s: empty response", user_id)
            return None
        timestamp = int(self._clock() * 1000)
        key = cache_key(user_id, timestamp)
        try:
            if embedding is None:
                embedding = await self.embedder.embed(lookup_text(query_text, context_text))
            entry = CacheEntry(
                response=response_text,
                userId=user_id,
                timestamp=timestamp,
                inputText=normalize_query(query_text),
                hasHealthContext=has_context,
                contextVersion=HEALTH_CONTEXT_VERSION if has_context else None,
            )
            await self.store.upsert(key, entry.to_document(vector_to_list(embedding)))
        except WellnessError as exc:
            logger.warning("Cache write for %s failed: %s", key, exc)
            return None
        logger.info("Cached response at %s", key)
        return key
