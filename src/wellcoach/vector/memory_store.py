"""Process-local vector index store.

Exact k-NN over numpy arrays. Used for development without Redis and as the
test double for every component that needs a store.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from wellcoach.core.errors import IndexNotFound, StoreUnavailable
from wellcoach.core.logging import get_logger

from .codec import as_vector, cosine_distance
from .filters import compile_filter
from .schema import IndexSpec, VECTOR_FIELD
from .store import SearchHit, VectorIndexStore, project_fields

logger = get_logger(__name__)


class InMemoryVectorStore(VectorIndexStore):
    def __init__(self) -> None:
        self._documents: Dict[str, Dict[str, Any]] = {}
        self._indices: Dict[str, IndexSpec] = {}
        self.create_calls = 0
        self.available = True

    def _check_available(self) -> None:
        if not self.available:
            raise StoreUnavailable("In-memory store is marked unavailable")

    @property
    def indices(self) -> Dict[str, IndexSpec]:
        return dict(self._indices)

    @property
    def documents(self) -> Dict[str, Dict[str, Any]]:
        return dict(self._documents)

    async def ensure_index(self, spec: IndexSpec) -> None:
        self._check_available()
        if spec.name in self._indices:
            return
        # Yield once so concurrent callers interleave the way they would against a server.
        await asyncio.sleep(0)
        if spec.name in self._indices:
            logger.debug("Index %s already exists", spec.name)
            return
        self._indices[spec.name] = spec
        self.create_calls += 1
        logger.info("Created index %s (prefix %s, dim %d)", spec.name, spec.key_prefix, spec.dimension)

    async def drop_index(self, name: str) -> None:
        self._indices.pop(name, None)

    async def upsert(self, key: str, document: Dict[str, Any]) -> None:
        self._check_available()
        self._documents[key] = dict(document)

    def _candidates(self, spec: IndexSpec) -> List[Tuple[str, Dict[str, Any], np.ndarray]]:
        rows: List[Tuple[str, Dict[str, Any], np.ndarray]] = []
        for key, document in self._documents.items():
            if not key.startswith(spec.key_prefix):
                continue
            raw = document.get(VECTOR_FIELD)
            if raw is None:
                continue
            try:
                vector = as_vector(raw)
            except (TypeError, ValueError):
                logger.warning("Skipping %s: embedding is not a numeric vector", key)
                continue
            # Documents whose vector does not match the schema are not indexed.
            if vector.shape[0] != spec.dimension:
                continue
            rows.append((key, document, vector))
        return rows

    async def search(
        self,
        index_name: str,
        filter_expr: str,
        vector: Sequence[float],
        k: int,
        return_fields: Optional[Sequence[str]] = None,
    ) -> List[SearchHit]:
        self._check_available()
        spec = self._indices.get(index_name)
        if spec is None:
            raise IndexNotFound(index_name)
        predicate = compile_filter(filter_expr, spec)
        query = as_vector(vector)
        if query.shape[0] != spec.dimension:
            raise ValueError(f"Query vector has dimension {query.shape[0]}, index {index_name} expects {spec.dimension}")
        if k <= 0:
            return []

        hits: List[SearchHit] = []
        for key, document, stored in self._candidates(spec):
            if not predicate(document):
                continue
            hits.append(
                SearchHit(
                    id=key,
                    distance=cosine_distance(query, stored),
                    fields=project_fields(document, return_fields),
                )
            )
        hits.sort(key=lambda hit: (hit.distance, hit.id))
        return hits[:k]

    async def ping(self) -> bool:
        return self.available
