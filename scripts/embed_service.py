#!/usr/bin/env python
"""
Sentence-transformers embedding service backing ``HttpEmbeddingProvider``.

Run with `uvicorn scripts.embed_service:app --port 8001` after
`pip install -e .[embed]`. The model named by EMBED_MODEL must produce vectors
of EMBEDDING_DIMENSION floats or the service refuses to start.
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Any, Callable, List, Optional

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, Field

from wellcoach.core.config import Settings, get_settings
from wellcoach.core.logging import get_logger

logger = get_logger(__name__)

MODEL_NAME = os.getenv("EMBED_MODEL", "sentence-transformers/all-MiniLM-L6-v2")
MAX_BATCH = 64


class EmbedRequest(BaseModel):
    texts: List[str] = Field(min_length=1, max_length=MAX_BATCH)


class EmbedResponse(BaseModel):
    vectors: List[List[float]]


class ServiceStatus(BaseModel):
    status: str
    model: str
    dimension: int
    normalized: bool = True


@lru_cache(maxsize=1)
def load_sentence_model(model_name: str) -> Any:
    from sentence_transformers import SentenceTransformer

    return SentenceTransformer(model_name, device="cpu")


def create_embed_app(
    settings: Optional[Settings] = None,
    model_name: str = MODEL_NAME,
    loader: Callable[[str], Any] = load_sentence_model,
) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(application: FastAPI):
        model = loader(model_name)
        dimension = model.get_sentence_embedding_dimension()
        if dimension != settings.embedding_dimension:
            raise RuntimeError(
                f"{model_name} produces {dimension}-d vectors but EMBEDDING_DIMENSION is {settings.embedding_dimension}"
            )
        logger.info("Loaded %s (%d dimensions)", model_name, dimension)
        application.state.model = model
        application.state.dimension = dimension
        yield

    application = FastAPI(title="Wellness Coach Embedding Service", version=settings.app_version, lifespan=lifespan)

    @application.post("/embed", response_model=EmbedResponse)
    def embed(req: EmbedRequest, request: Request) -> EmbedResponse:
        blank = [i for i, text in enumerate(req.texts) if not text.strip()]
        if blank:
            raise HTTPException(status_code=400, detail=f"Blank texts at positions {blank}")
        vectors = request.app.state.model.encode(req.texts, normalize_embeddings=True, convert_to_numpy=True)
        return EmbedResponse(vectors=vectors.tolist())

    @application.get("/healthz", response_model=ServiceStatus)
    def healthz(request: Request) -> ServiceStatus:
        return ServiceStatus(status="ok", model=model_name, dimension=request.app.state.dimension)

    return application


app = create_embed_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("scripts.embed_service:app", host="127.0.0.1", port=8001, reload=False)
