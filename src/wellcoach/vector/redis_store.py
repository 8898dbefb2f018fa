"""RediSearch-backed vector index store over RedisJSON documents."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Sequence

from redis import asyncio as aioredis
from redis.commands.search.field import NumericField, TagField, TextField, VectorField
from redis.commands.search.index_definition import IndexDefinition, IndexType
from redis.commands.search.query import Query
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError, ResponseError
from redis.exceptions import TimeoutError as RedisTimeoutError

from wellcoach.core.errors import IndexNotFound, QuerySyntaxError, StoreUnavailable
from wellcoach.core.logging import get_logger

from .codec import vector_to_bytes
from .schema import DISTANCE_FIELD, VECTOR_FIELD, FieldSpec, IndexSpec
from .store import SearchHit, VectorIndexStore, project_fields

logger = get_logger(__name__)

_MISSING_INDEX_MARKERS = ("unknown index name", "no such index")
_SYNTAX_MARKERS = ("syntax error", "unknown field")


def _is_missing_index(exc: ResponseError) -> bool:
    message = str(exc).lower()
    return any(marker in message for marker in _MISSING_INDEX_MARKERS)


def _is_already_exists(exc: ResponseError) -> bool:
    return "index already exists" in str(exc).lower()


def _is_syntax_error(exc: ResponseError) -> bool:
    message = str(exc).lower()
    return any(marker in message for marker in _SYNTAX_MARKERS)


def _redis_field(spec: FieldSpec, index: IndexSpec):
    if spec.kind == "VECTOR":
        return VectorField(
            spec.json_path,
            "HNSW",
            {
                "TYPE": "FLOAT32",
                "DIM": index.dimension,
                "DISTANCE_METRIC": index.distance_metric,
                "M": index.m,
                "EF_CONSTRUCTION": index.ef_construction,
            },
            as_name=spec.name,
        )
    if spec.kind == "TAG":
        return TagField(spec.json_path, as_name=spec.name)
    if spec.kind == "NUMERIC":
        return NumericField(spec.json_path, as_name=spec.name)
    return TextField(spec.json_path, as_name=spec.name)


def redis_schema(index: IndexSpec) -> tuple:
    return tuple(_redis_field(spec, index) for spec in index.fields)


def knn_query(filter_expr: str, k: int) -> Query:
    base = f"({filter_expr})=>[KNN {k} @{VECTOR_FIELD} $vec AS {DISTANCE_FIELD}]"
    return Query(base).return_fields("$", DISTANCE_FIELD).sort_by(DISTANCE_FIELD).paging(0, k).dialect(2)


class RedisVectorStore(VectorIndexStore):
    """Vector store on Redis Stack (RediSearch + RedisJSON).

    The client is created once and shared; connection pooling is left to
    redis-py.
    """

    def __init__(self, url: str, client: Optional[Any] = None):
        self.url = url
        self._client = client if client is not None else aioredis.from_url(url, decode_responses=True)

    @property
    def client(self) -> Any:
        return self._client

    async def _index_exists(self, name: str) -> bool:
        try:
            await self._client.ft(name).info()
            return True
        except ResponseError as exc:
            if _is_missing_index(exc):
                return False
            raise StoreUnavailable(f"Could not describe index {name}: {exc}") from exc

    async def ensure_index(self, spec: IndexSpec) -> None:
        try:
            if await self._index_exists(spec.name):
                return
            await self._client.ft(spec.name).create_index(
                fields=redis_schema(spec),
                definition=IndexDefinition(prefix=[spec.key_prefix], index_type=IndexType.JSON),
            )
            logger.info("Created index %s (prefix %s, dim %d)", spec.name, spec.key_prefix, spec.dimension)
        except ResponseError as exc:
            if _is_already_exists(exc):
                # Another worker created it between our check and create.
                logger.debug("Index %s already exists", spec.name)
                return
            raise StoreUnavailable(f"Could not create index {spec.name}: {exc}") from exc
        except (RedisConnectionError, RedisTimeoutError) as exc:
            raise StoreUnavailable(f"Redis unreachable while creating {spec.name}: {exc}") from exc

    async def upsert(self, key: str, document: Dict[str, Any]) -> None:
        try:
            await self._client.json().set(key, "$", document)
        except RedisError as exc:
            raise StoreUnavailable(f"Could not write {key}: {exc}") from exc

    @staticmethod
    def _parse_document(doc: Any) -> Optional[Dict[str, Any]]:
        raw = getattr(doc, "json", None)
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        try:
            payload = json.loads(raw)
        except (TypeError, ValueError):
            return None
        if isinstance(payload, list):
            payload = payload[0] if payload else None
        return payload if isinstance(payload, dict) else None

    async def search(
        self,
        index_name: str,
        filter_expr: str,
        vector: Sequence[float],
        k: int,
        return_fields: Optional[Sequence[str]] = None,
    ) -> List[SearchHit]:
        if k <= 0:
            return []
        query = knn_query(filter_expr or "*", k)
        try:
            result = await self._client.ft(index_name).search(query, query_params={"vec": vector_to_bytes(vector)})
        except ResponseError as exc:
            if _is_missing_index(exc):
                raise IndexNotFound(index_name) from exc
            if _is_syntax_error(exc):
                raise QuerySyntaxError(f"{exc} (filter: {filter_expr!r})") from exc
            raise StoreUnavailable(f"Search on {index_name} failed: {exc}") from exc
        except (RedisConnectionError, RedisTimeoutError) as exc:
            raise StoreUnavailable(f"Redis unreachable while searching {index_name}: {exc}") from exc
        except RedisError as exc:
            raise StoreUnavailable(f"Search on {index_name} failed: {exc}") from exc

        hits: List[SearchHit] = []
        for doc in result.docs:
            document = self._parse_document(doc)
            if document is None:
                logger.warning("Skipping %s in %s: payload is not a JSON object", doc.id, index_name)
                continue
            try:
                distance = float(getattr(doc, DISTANCE_FIELD))
            except (AttributeError, TypeError, ValueError):
                logger.warning("Skipping %s in %s: missing distance", doc.id, index_name)
                continue
            hits.append(SearchHit(id=doc.id, distance=distance, fields=project_fields(document, return_fields)))
        hits.sort(key=lambda hit: hit.distance)
        return hits

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError as exc:
            logger.warning("Redis ping failed: %s", exc)
            return False

    async def close(self) -> None:
        await self._client.aclose()
