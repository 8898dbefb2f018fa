"""Process-wide vector store handle with an explicit lifecycle.

The application creates one ``VectorStoreResource`` at startup, stores it on
``app.state`` and closes it at shutdown. Components never reach for a global
client; they receive the store from this resource.
"""

from __future__ import annotations

from typing import Callable, List, Optional

from wellcoach.core.config import Settings
from wellcoach.core.logging import get_logger

from .memory_store import InMemoryVectorStore
from .schema import IndexSpec, all_indices
from .store import VectorIndexStore

logger = get_logger(__name__)


def build_vector_store(settings: Settings) -> VectorIndexStore:
    if settings.vector_backend == "memory":
        logger.info("Using in-memory vector store")
        return InMemoryVectorStore()
    from .redis_store import RedisVectorStore

    logger.info("Using Redis vector store at %s", settings.redis_url)
    return RedisVectorStore(settings.redis_url)


class VectorStoreResource:
    def __init__(self, settings: Settings, factory: Optional[Callable[[Settings], VectorIndexStore]] = None):
        self.settings = settings
        self._factory = factory or build_vector_store
        self._store: Optional[VectorIndexStore] = None
        self._ready = False

    def init(self) -> VectorIndexStore:
        if self._store is None:
            self._store = self._factory(self.settings)
        return self._store

    def set_store(self, store: VectorIndexStore) -> None:
        self._store = store
        self._ready = False

    @property
    def store(self) -> VectorIndexStore:
        return self.init()

    @property
    def index_specs(self) -> List[IndexSpec]:
        return all_indices(
            self.settings.embedding_dimension,
            m=self.settings.hnsw_m,
            ef_construction=self.settings.hnsw_ef_construction,
        )

    async def ensure_indices_ready(self) -> None:
        """Create every index once per process. Safe to call before each search.

        Store failures propagate; the caller turns them into a 503.
        """
        if self._ready:
            return
        store = self.store
        for spec in self.index_specs:
            await store.ensure_index(spec)
        self._ready = True

    async def shutdown(self) -> None:
        if self._store is None:
            return
        try:
            await self._store.close()
        finally:
            self._store = None
            self._ready = False
