from __future__ import annotations

from typing import AsyncIterator, List

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field
from sqlmodel import Session
from starlette.concurrency import run_in_threadpool

from wellcoach.cache.semantic import SemanticCache
from wellcoach.core.auth import get_current_user_id
from wellcoach.core.database import get_session
from wellcoach.core.errors import GenerationUnavailable, InvalidQuery
from wellcoach.core.logging import get_logger
from wellcoach.health.service import HealthDataService
from wellcoach.llm import ChatMessage, ChatModel, build_system_prompt, echo_stream, stream_with_completion

from .deps import get_chat_model, get_semantic_cache

logger = get_logger(__name__)

router = APIRouter(tags=["chat"])

STREAM_MEDIA_TYPE = "text/plain; charset=utf-8"


class ChatRequest(BaseModel):
    messages: List[ChatMessage] = Field(min_length=1)


async def start_stream(chunks: AsyncIterator[str]) -> AsyncIterator[str]:
    """Pull the first chunk before the response starts.

    A model that is down fails here, while a proper error status can still be
    sent. Failures after the first chunk end the stream early.
    """
    try:
        first = await chunks.__anext__()
    except StopAsyncIteration:
        return echo_stream("")

    async def _rest() -> AsyncIterator[str]:
        yield first
        try:
            async for chunk in chunks:
                yield chunk
        except GenerationUnavailable as exc:
            logger.error("Generation failed mid-stream: %s", exc)

    return _rest()


def _health_context(session: Session, user_id: str, query: str) -> str:
    _, text = HealthDataService(session).build_context_text(user_id, query)
    return text


@router.post("/chat")
async def chat(
    payload: ChatRequest,
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
    cache: SemanticCache = Depends(get_semantic_cache),
    chat_model: ChatModel = Depends(get_chat_model),
):
    query = payload.messages[-1].content
    if not query.strip():
        raise InvalidQuery("Message must not be empty")

    context_text = ""
    try:
        context_text = await run_in_threadpool(_health_context, session, user_id, query)
    except Exception as exc:
        logger.warning("Failed to get health context for %s: %s", user_id, exc)

    lookup = await cache.lookup_or_miss(user_id, query, context_text)
    headers = {"X-Health-Context": "true" if lookup.has_context else "false"}

    if lookup.hit:
        headers["X-Response-Source"] = "cache"
        return StreamingResponse(echo_stream(lookup.response or ""), media_type=STREAM_MEDIA_TYPE, headers=headers)

    async def _remember(full_text: str) -> None:
        await cache.record_entry(user_id, query, full_text, lookup.has_context, embedding=lookup.embedding)

    generated = stream_with_completion(
        chat_model.stream_completion(build_system_prompt(context_text), payload.messages),
        _remember,
    )
    headers["X-Response-Source"] = "generated"
    return StreamingResponse(await start_stream(generated), media_type=STREAM_MEDIA_TYPE, headers=headers)
