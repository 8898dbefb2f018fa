"""Hybrid meal/workout retrieval: filtered k-NN plus composite re-ranking."""

from __future__ import annotations

from typing import Iterable, List, Optional, Tuple, Union

from wellcoach.core.errors import EmbeddingUnavailable, QuerySyntaxError, RetrievalUnavailable, StoreError
from wellcoach.core.logging import get_logger
from wellcoach.embeddings import EmbeddingProvider
from wellcoach.health.schemas import HealthProfile
from wellcoach.vector.codec import Vector
from wellcoach.vector.schema import MEALS_INDEX, WORKOUTS_INDEX
from wellcoach.vector.store import VectorIndexStore

from .postprocess import RelevanceScorer
from .preprocess import RecommendationQueryBuilder
from .schemas import Meal, RecommendationFilters, RecommendationResult, Workout, parse_document

logger = get_logger(__name__)

Candidate = Tuple[float, Union[Meal, Workout]]


class RecommendationService:
    def __init__(
        self,
        store: VectorIndexStore,
        embedder: EmbeddingProvider,
        scorer: Optional[RelevanceScorer] = None,
        query_builder: Optional[RecommendationQueryBuilder] = None,
    ):
        self.store = store
        self.embedder = embedder
        self.scorer = scorer or RelevanceScorer()
        self.query_builder = query_builder or RecommendationQueryBuilder()

    async def _search_kind(
        self,
        kind: str,
        index_name: str,
        filter_expr: str,
        vector: Vector,
        k: int,
    ) -> List[Candidate]:
        """k-NN for one document kind. Store failures cost this kind its results, nothing more."""
        try:
            hits = await self.store.search(index_name, filter_expr, vector, k)
        except QuerySyntaxError:
            logger.exception("Filter expression rejected by %s: %r", index_name, filter_expr)
            return []
        except StoreError as exc:
            logger.warning("%s search failed, returning no %ss: %s", index_name, kind, exc)
            return []

        candidates: List[Candidate] = []
        for hit in hits:
            item = parse_document(kind, hit.fields, hit.id)
            if item is not None:
                candidates.append((hit.distance, item))
        return candidates

    async def get_recommendations(
        self,
        user_id: str,
        filters: RecommendationFilters,
        limit: int = 10,
        profile: Optional[HealthProfile] = None,
    ) -> List[RecommendationResult]:
        """Recommend meals and/or workouts for ``filters``, best first.

        Args:
            user_id: Requesting user, used for logging only
            filters: Structured filters from the request
            limit: Maximum number of results, also the k of each search
            profile: Optional health profile whose goals bias the search text

        Returns:
            Up to ``limit`` results sorted by composite score, descending

        Raises:
            RetrievalUnavailable: The synthesized query could not be embedded
        """
        goal_keys: Iterable[str] = profile.goal_keys() if profile is not None else ()
        search_text = self.query_builder.build_search_text(filters, goal_keys)
        try:
            vector = await self.embedder.embed(search_text)
        except EmbeddingUnavailable as exc:
            raise RetrievalUnavailable(f"Could not embed recommendation query: {exc}") from exc

        candidates: List[Candidate] = []
        if filters.wants_meals:
            candidates.extend(
                await self._search_kind("meal", MEALS_INDEX, self.query_builder.meal_filter(filters), vector, limit)
            )
        if filters.wants_workouts:
            candidates.extend(
                await self._search_kind(
                    "workout", WORKOUTS_INDEX, self.query_builder.workout_filter(filters), vector, limit
                )
            )

        results = self.scorer.rank(candidates, filters, limit)
        logger.info("Recommendations for %s: %d of %d candidates", user_id, len(results), len(candidates))
        return results
