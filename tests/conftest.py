import tempfile
from contextlib import suppress
from pathlib import Path
from typing import AsyncIterator, Iterator, List, Sequence

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlmodel import Session, SQLModel, create_engine

from wellcoach.core import database as core_database
from wellcoach.core.config import Settings
from wellcoach.core.database import get_session
from wellcoach.embeddings import HashEmbeddingProvider
from wellcoach.llm import ChatMessage, ChatModel
from wellcoach.main import create_app
from wellcoach.vector.memory_store import InMemoryVectorStore
from wellcoach.vector.resource import VectorStoreResource

TEST_DIMENSION = 128


class ScriptedChatModel(ChatModel):
    """Streams a fixed answer and records every prompt it was given."""

    def __init__(self, chunks: Sequence[str] = ("Aim for ", "seven to ", "nine hours.")):
        self.chunks = list(chunks)
        self.calls: List[tuple] = []

    async def stream_completion(self, system_prompt: str, messages: Sequence[ChatMessage]):
        self.calls.append((system_prompt, list(messages)))
        for chunk in self.chunks:
            yield chunk


@pytest.fixture
def settings() -> Settings:
    return Settings(
        vector_backend="memory",
        embedding_backend="hash",
        embedding_dimension=TEST_DIMENSION,
    )


@pytest.fixture
def vector_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture
def embedder() -> HashEmbeddingProvider:
    return HashEmbeddingProvider(TEST_DIMENSION)


@pytest.fixture
def chat_model() -> ScriptedChatModel:
    return ScriptedChatModel()


@pytest.fixture
def engine(monkeypatch):
    # Fresh SQLite DB file in a temp dir per test for isolation
    tmp = tempfile.TemporaryDirectory()
    db_path = Path(tmp.name) / "test.db"
    engine = create_engine(f"sqlite:///{db_path}", connect_args={"check_same_thread": False})

    from wellcoach import models  # noqa: F401

    SQLModel.metadata.create_all(engine)

    # patch global engine/init_db so background work and startup use the test database
    monkeypatch.setattr(core_database, "engine", engine, raising=False)
    monkeypatch.setattr(core_database, "init_db", lambda: SQLModel.metadata.create_all(engine), raising=False)
    try:
        yield engine
    finally:
        with suppress(Exception):
            engine.dispose()
        tmp.cleanup()


@pytest.fixture
def session(engine) -> Iterator[Session]:
    with Session(engine) as session:
        yield session


@pytest.fixture
def test_app(engine, settings, vector_store, embedder, chat_model) -> Iterator[FastAPI]:
    resource = VectorStoreResource(settings)
    resource.set_store(vector_store)

    def _override_get_session():
        with Session(engine) as session:
            yield session

    app = create_app(settings=settings, vector=resource, embedder=embedder, chat_model=chat_model)
    app.dependency_overrides[get_session] = _override_get_session
    try:
        yield app
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
async def client(test_app: FastAPI) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth_headers() -> dict:
    return {"X-User-Id": "user-1"}
