"""Vector index storage: schemas, filter expressions and store backends."""

from .memory_store import InMemoryVectorStore
from .resource import VectorStoreResource, build_vector_store
from .schema import (
    CHAT_CACHE_INDEX,
    MEALS_INDEX,
    WORKOUTS_INDEX,
    IndexSpec,
    all_indices,
)
from .store import MATCH_ALL, SearchHit, VectorIndexStore

__all__ = [
    "CHAT_CACHE_INDEX",
    "MEALS_INDEX",
    "WORKOUTS_INDEX",
    "MATCH_ALL",
    "IndexSpec",
    "InMemoryVectorStore",
    "SearchHit",
    "VectorIndexStore",
    "VectorStoreResource",
    "all_indices",
    "build_vector_store",
]
