from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse, RedirectResponse

from wellcoach.core import database
from wellcoach.core.config import Settings, get_settings
from wellcoach.core.errors import InvalidQuery, WellnessError
from wellcoach.core.logging import get_logger, setup_logging
from wellcoach.core.tasks import BackgroundTasks
from wellcoach.embeddings import EmbeddingProvider, build_embedding_provider
from wellcoach.llm import ChatModel, build_chat_model
from wellcoach.routers import chat, health, ingest, recommend
from wellcoach.vector.resource import VectorStoreResource

logger = get_logger(__name__)

CORE_ROUTERS = (
    (chat.router, {}),
    (recommend.router, {}),
    (ingest.router, {}),
    (health.router, {}),
)


@asynccontextmanager
async def lifespan(application: FastAPI):
    database.init_db()
    application.state.vector.init()
    yield
    state = application.state
    await state.background.drain()
    await state.vector.shutdown()
    await state.embedder.close()
    await state.chat_model.close()


def create_app(
    settings: Optional[Settings] = None,
    vector: Optional[VectorStoreResource] = None,
    embedder: Optional[EmbeddingProvider] = None,
    chat_model: Optional[ChatModel] = None,
) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.log_level)
    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        docs_url=settings.docs_url,
        lifespan=lifespan,
    )

    # The vector store client connects lazily on first use.
    application.state.settings = settings
    application.state.vector = vector or VectorStoreResource(settings)
    application.state.embedder = embedder or build_embedding_provider(settings)
    application.state.chat_model = chat_model or build_chat_model(settings)
    application.state.background = BackgroundTasks()

    @application.middleware("http")
    async def enforce_utf8_json(request: Request, call_next):
        response = await call_next(request)
        if response.headers.get("content-type", "").startswith("application/json"):
            response.headers["content-type"] = "application/json; charset=utf-8"
        return response

    @application.exception_handler(InvalidQuery)
    async def invalid_query_handler(request: Request, exc: InvalidQuery):
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})

    @application.exception_handler(WellnessError)
    async def wellness_error_handler(request: Request, exc: WellnessError):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc, exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "An internal error occurred. Please try again."},
        )

    @application.get("/favicon.ico", include_in_schema=False)
    def favicon():
        return Response(status_code=204)

    for router, include_kwargs in CORE_ROUTERS:
        application.include_router(router, **include_kwargs)

    @application.get("/", include_in_schema=False)
    def root():
        return RedirectResponse(settings.docs_url or "/docs")

    @application.get("/__routes", include_in_schema=False)
    def routes_snapshot():
        return sorted(f"{route.path}  [{','.join(route.methods)}]" for route in application.router.routes)

    return application


app = create_app()
