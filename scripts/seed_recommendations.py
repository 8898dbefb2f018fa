"""Create the vector indices and load the sample meal/workout corpus.

Usage:
    python scripts/seed_recommendations.py
"""

from __future__ import annotations

import asyncio
import sys

from wellcoach.core.config import get_settings
from wellcoach.core.errors import WellnessError
from wellcoach.embeddings import build_embedding_provider
from wellcoach.recommend.seed import seed_sample_data
from wellcoach.vector.resource import VectorStoreResource


async def seed() -> dict:
    settings = get_settings()
    resource = VectorStoreResource(settings)
    embedder = build_embedding_provider(settings)
    try:
        await resource.ensure_indices_ready()
        return await seed_sample_data(resource.store, embedder)
    finally:
        await embedder.close()
        await resource.shutdown()


def main() -> None:
    try:
        counts = asyncio.run(seed())
    except WellnessError as exc:
        print(f"[ERROR] Seeding failed: {exc}")
        sys.exit(1)
    print(f"Seeded {counts['meals']} meals and {counts['workouts']} workouts.")


if __name__ == "__main__":
    main()
