"""Streaming chat completions from a local Ollama server."""

from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from typing import AsyncIterator, Awaitable, Callable, List, Literal, Optional, Sequence

import httpx
from pydantic import BaseModel, Field

from wellcoach.core.config import Settings
from wellcoach.core.errors import GenerationUnavailable
from wellcoach.core.logging import get_logger

logger = get_logger(__name__)

SYSTEM_PROMPT_COACH = """You are an AI wellness coach. Your role is to provide helpful, encouraging, and evidence-based advice on health, fitness, nutrition, and mental well-being.

Guidelines:
- Be supportive and motivational
- Provide practical, actionable advice
- Ask clarifying questions when needed
- Encourage professional medical consultation for serious health concerns
- Focus on sustainable lifestyle changes
- Use the provided health data context to give personalized advice
- Reference specific data points when relevant (e.g., "I see your sleep average this week is...")
- Celebrate achievements and provide encouragement for areas needing improvement"""

SYSTEM_PROMPT_DATA_USAGE = """When the user's health data is available, use it to:
1. Provide personalized insights and recommendations
2. Track progress toward their goals
3. Identify patterns and trends
4. Offer specific, data-driven advice

Focus on small, sustainable improvements rather than dramatic changes."""


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"] = "user"
    content: str = Field(default="", max_length=8000)


def build_system_prompt(health_context: Optional[str] = None) -> str:
    ctx = (health_context or "").strip()
    if ctx:
        return f"{SYSTEM_PROMPT_COACH}\n\n{ctx}\n\n{SYSTEM_PROMPT_DATA_USAGE}"
    return f"{SYSTEM_PROMPT_COACH}\n\n{SYSTEM_PROMPT_DATA_USAGE}"


class ChatModel(ABC):
    @abstractmethod
    def stream_completion(self, system_prompt: str, messages: Sequence[ChatMessage]) -> AsyncIterator[str]:
        """Yield answer text chunks. Raises ``GenerationUnavailable`` on upstream failure."""

    async def close(self) -> None:
        return None


class OllamaChatModel(ChatModel):
    def __init__(
        self,
        base_url: str,
        model: str,
        timeout: float = 100.0,
        max_tokens: int = 500,
        temperature: float = 0.7,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    def _payload(self, system_prompt: str, messages: Sequence[ChatMessage]) -> dict:
        history = [{"role": "system", "content": system_prompt}]
        history.extend({"role": m.role, "content": m.content} for m in messages if m.role != "system")
        return {
            "model": self.model,
            "messages": history,
            "stream": True,
            "options": {"temperature": self.temperature, "num_predict": self.max_tokens},
        }

    async def stream_completion(self, system_prompt: str, messages: Sequence[ChatMessage]) -> AsyncIterator[str]:
        url = f"{self.base_url}/api/chat"
        try:
            async with self._get_client().stream("POST", url, json=self._payload(system_prompt, messages)) as response:
                if response.status_code != 200:
                    raise GenerationUnavailable(f"Ollama error {response.status_code}")
                async for line in response.aiter_lines():
                    if not line.strip():
                        continue
                    try:
                        event = json.loads(line)
                    except ValueError as exc:
                        raise GenerationUnavailable(f"Ollama sent an unreadable chunk: {line[:80]!r}") from exc
                    if event.get("error"):
                        raise GenerationUnavailable(f"Ollama error: {event['error']}")
                    content = (event.get("message") or {}).get("content", "")
                    if content:
                        yield content
                    if event.get("done"):
                        return
        except httpx.HTTPError as exc:
            raise GenerationUnavailable(f"Ollama unreachable at {self.base_url}: {exc}") from exc

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


def build_chat_model(settings: Settings) -> ChatModel:
    return OllamaChatModel(
        settings.ollama_url,
        settings.ollama_model,
        timeout=settings.llm_timeout,
        max_tokens=settings.llm_max_tokens,
        temperature=settings.llm_temperature,
    )


_WORD_CHUNK = re.compile(r"\S+\s*|\s+")


async def echo_stream(text: str) -> AsyncIterator[str]:
    """Replay finished text word by word so cached answers stream like fresh ones."""
    for match in _WORD_CHUNK.finditer(text):
        yield match.group(0)


async def stream_with_completion(
    chunks: AsyncIterator[str],
    on_complete: Callable[[str], Awaitable[None]],
) -> AsyncIterator[str]:
    """Pass ``chunks`` through and call ``on_complete`` with the full text.

    The callback runs only when the source is exhausted normally. If the
    consumer stops early (client disconnect closes this generator) or the
    source raises, it never runs.
    """
    parts: List[str] = []
    async for chunk in chunks:
        parts.append(chunk)
        yield chunk
    await on_complete("".join(parts))
