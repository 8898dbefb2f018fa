"""Request-scoped access to the process-wide resources kept on ``app.state``."""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status

from wellcoach.cache.semantic import SemanticCache
from wellcoach.core.config import Settings
from wellcoach.core.errors import WellnessError
from wellcoach.core.logging import get_logger
from wellcoach.core.tasks import BackgroundTasks
from wellcoach.embeddings import EmbeddingProvider
from wellcoach.llm import ChatModel
from wellcoach.recommend.service import RecommendationService
from wellcoach.vector.resource import VectorStoreResource
from wellcoach.vector.store import VectorIndexStore

logger = get_logger(__name__)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_vector_resource(request: Request) -> VectorStoreResource:
    return request.app.state.vector


def get_embedder(request: Request) -> EmbeddingProvider:
    return request.app.state.embedder


def get_chat_model(request: Request) -> ChatModel:
    return request.app.state.chat_model


def get_background(request: Request) -> BackgroundTasks:
    return request.app.state.background


async def get_ready_store(resource: VectorStoreResource = Depends(get_vector_resource)) -> VectorIndexStore:
    """The vector store, with every index bootstrapped. A failed bootstrap is a 503."""
    try:
        await resource.ensure_indices_ready()
    except WellnessError as exc:
        logger.error("Error ensuring indices exist: %s", exc)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Search index unavailable")
    return resource.store


def get_semantic_cache(
    store: VectorIndexStore = Depends(get_ready_store),
    embedder: EmbeddingProvider = Depends(get_embedder),
    settings: Settings = Depends(get_app_settings),
) -> SemanticCache:
    return SemanticCache(store, embedder, settings)


def get_recommendation_service(
    store: VectorIndexStore = Depends(get_ready_store),
    embedder: EmbeddingProvider = Depends(get_embedder),
) -> RecommendationService:
    return RecommendationService(store, embedder)
