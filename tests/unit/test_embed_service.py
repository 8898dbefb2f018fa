import numpy as np
import pytest
from httpx import ASGITransport, AsyncClient

from scripts.embed_service import create_embed_app
from wellcoach.core.config import Settings


class FakeSentenceModel:
    def __init__(self, dimension):
        self.dimension = dimension
        self.batches = []

    def get_sentence_embedding_dimension(self):
        return self.dimension

    def encode(self, texts, normalize_embeddings, convert_to_numpy):
        self.batches.append(list(texts))
        vectors = np.ones((len(texts), self.dimension), dtype=np.float32)
        return vectors / np.linalg.norm(vectors, axis=1, keepdims=True)


def _app(model, dimension=8):
    settings = Settings(embedding_dimension=dimension)
    return create_embed_app(settings=settings, model_name="fake-minilm", loader=lambda name: model)


@pytest.mark.asyncio
async def test_embed_returns_normalized_vectors():
    model = FakeSentenceModel(8)
    application = _app(model)
    async with application.router.lifespan_context(application):
        async with AsyncClient(transport=ASGITransport(app=application), base_url="http://test") as client:
            resp = await client.post("/embed", json={"texts": ["oat porridge", "evening yoga"]})
            status = await client.get("/healthz")

    assert resp.status_code == 200
    vectors = np.array(resp.json()["vectors"])
    assert vectors.shape == (2, 8)
    np.testing.assert_allclose(np.linalg.norm(vectors, axis=1), 1.0, rtol=1e-5)
    assert status.json() == {"status": "ok", "model": "fake-minilm", "dimension": 8, "normalized": True}


@pytest.mark.asyncio
@pytest.mark.parametrize("texts", [[], ["ok", "   "]])
async def test_embed_rejects_empty_or_blank_texts(texts):
    model = FakeSentenceModel(8)
    application = _app(model)
    async with application.router.lifespan_context(application):
        async with AsyncClient(transport=ASGITransport(app=application), base_url="http://test") as client:
            resp = await client.post("/embed", json={"texts": texts})

    assert resp.status_code in (400, 422)
    assert model.batches == []


@pytest.mark.asyncio
async def test_dimension_mismatch_refuses_to_start():
    application = _app(FakeSentenceModel(384), dimension=128)
    with pytest.raises(RuntimeError, match="384-d vectors"):
        async with application.router.lifespan_context(application):
            pass
