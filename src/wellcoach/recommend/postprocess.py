"""Scoring, explanation and ranking of retrieved meals and workouts."""

from __future__ import annotations

from typing import Iterable, List, Sequence, Tuple, Union

from .schemas import Meal, RecommendationFilters, RecommendationResult, Workout

Item = Union[Meal, Workout]


def _fmt(value: float) -> str:
    number = float(value)
    return str(int(number)) if number.is_integer() else f"{number:.1f}"


class RelevanceScorer:
    """Fuses vector similarity with explicit filter matches."""

    def __init__(self, vector_weight: float = 0.6, filter_weight: float = 0.4):
        """Initialize the scorer.

        Args:
            vector_weight: Weight of the cosine similarity between query and item
            filter_weight: Weight of the normalized filter-match credit
        """
        self.vector_weight = vector_weight
        self.filter_weight = filter_weight

    @staticmethod
    def similarity_from_distance(distance: float) -> float:
        """Cosine distance to similarity, clamped to [0, 1]."""
        return max(0.0, min(1.0, 1.0 - float(distance)))

    @staticmethod
    def overlap_fraction(requested: Sequence[str], available: Iterable[str]) -> float:
        if not requested:
            return 0.0
        have = {value.lower() for value in available}
        matched = [value for value in requested if value.lower() in have]
        return len(matched) / len(requested)

    @staticmethod
    def matching(requested: Sequence[str], available: Iterable[str]) -> List[str]:
        have = {value.lower() for value in available}
        return [value for value in requested if value.lower() in have]

    def filter_credits(self, item: Item, filters: RecommendationFilters) -> List[float]:
        """One credit in [0, 1] per criterion the caller actually supplied."""
        credits: List[float] = []

        if isinstance(item, Meal):
            if filters.mealType:
                credits.append(1.0 if item.type == filters.mealType else 0.0)
            if filters.dietPreference:
                credits.append(self.overlap_fraction(filters.dietPreference, item.dietaryRestrictions))
            if filters.timeAvailable:
                credits.append(1.0 if item.total_time <= filters.timeAvailable else 0.0)
        else:
            if filters.workoutType:
                credits.append(1.0 if item.type == filters.workoutType else 0.0)
            if filters.difficulty:
                credits.append(1.0 if item.difficulty == filters.difficulty else 0.0)
            if filters.timeAvailable:
                credits.append(1.0 if item.duration <= filters.timeAvailable else 0.0)
            if filters.equipment:
                credits.append(self.overlap_fraction(filters.equipment, item.equipment))

        if filters.tags:
            credits.append(self.overlap_fraction(filters.tags, item.tags))
        return credits

    def score(self, similarity: float, item: Item, filters: RecommendationFilters) -> float:
        """Composite relevance in [0, 1].

        With no supplied criteria the score is the similarity alone, so loosely
        specified requests are not penalized.
        """
        similarity = max(0.0, min(1.0, similarity))
        credits = self.filter_credits(item, filters)
        if not credits:
            return similarity
        match = sum(credits) / len(credits)
        return max(0.0, min(1.0, self.vector_weight * similarity + self.filter_weight * match))

    def relevance_reason(self, item: Item, filters: RecommendationFilters) -> str:
        reasons: List[str] = []

        if isinstance(item, Meal):
            if filters.mealType and item.type == filters.mealType:
                reasons.append(f"Perfect for {filters.mealType}")
            diets = self.matching(filters.dietPreference, item.dietaryRestrictions)
            if diets:
                reasons.append(f"Fits {', '.join(diets)} diet")
            if filters.timeAvailable and item.total_time <= filters.timeAvailable:
                reasons.append(f"Quick {item.total_time}-minute prep")
            reasons.append(f"{_fmt(item.calories)} calories")
        else:
            if filters.difficulty and item.difficulty == filters.difficulty:
                reasons.append(f"{item.difficulty} level")
            if filters.timeAvailable and item.duration <= filters.timeAvailable:
                reasons.append(f"{item.duration}-minute workout")
            reasons.append(f"Burns ~{_fmt(item.caloriesBurned)} calories")

        return " • ".join(reasons) if reasons else "Recommended for you"

    def to_result(self, distance: float, item: Item, filters: RecommendationFilters) -> RecommendationResult:
        similarity = self.similarity_from_distance(distance)
        return RecommendationResult(
            id=item.id,
            title=item.title,
            description=item.description,
            type="meal" if isinstance(item, Meal) else "workout",
            score=self.score(similarity, item, filters),
            relevanceReason=self.relevance_reason(item, filters),
            item=item.model_copy(update={"embedding": None}),
        )

    def rank(
        self,
        candidates: Iterable[Tuple[float, Item]],
        filters: RecommendationFilters,
        limit: int,
    ) -> List[RecommendationResult]:
        """Score ``(distance, item)`` pairs, sort by score descending and keep ``limit``."""
        results = [self.to_result(distance, item, filters) for distance, item in candidates]
        results.sort(key=lambda result: result.score, reverse=True)
        return results[:limit]
