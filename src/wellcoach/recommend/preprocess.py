"""Query synthesis and filter translation for recommendations.

Turns a ``RecommendationFilters`` plus the user's goals into the text that gets
embedded and into one filter expression per index.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Optional

from wellcoach.vector.filters import combine, range_clause, tag_clause

from .schemas import RecommendationFilters

GOAL_PHRASES = (
    ("weight_loss", "weight loss fat burning"),
    ("muscle_gain", "muscle building strength"),
    ("endurance", "endurance cardio stamina"),
)


class RecommendationQueryBuilder:
    """Builds the hidden search text and per-kind filter expressions."""

    @staticmethod
    def normalize_text(text: str) -> str:
        return re.sub(r"\s+", " ", (text or "").strip())

    @staticmethod
    def prep_time_phrase(minutes: int) -> str:
        if minutes <= 15:
            return "quick easy"
        if minutes <= 30:
            return "moderate prep"
        return "elaborate"

    @staticmethod
    def build_search_text(filters: RecommendationFilters, goal_keys: Optional[Iterable[str]] = None) -> str:
        """Deterministic natural-language query for the embedding model.

        Args:
            filters: Requested filters
            goal_keys: Goal identifiers from the user's profile (e.g. ``weight_loss``)

        Returns:
            Normalized search text; never shown to the user
        """
        bits: List[str] = []

        if filters.wants_meals:
            bits.append("healthy nutritious meal")
            if filters.mealType:
                bits.append(filters.mealType)
            bits.extend(filters.dietPreference)
            if filters.timeAvailable:
                bits.append(RecommendationQueryBuilder.prep_time_phrase(filters.timeAvailable))

        if filters.wants_workouts:
            bits.append("effective workout exercise")
            if filters.workoutType:
                bits.append(filters.workoutType)
            if filters.difficulty:
                bits.append(filters.difficulty)
            if filters.timeAvailable:
                bits.append(f"{filters.timeAvailable} minutes")
            bits.extend(filters.equipment)

        goals = set(goal_keys or ())
        for key, phrase in GOAL_PHRASES:
            if key in goals:
                bits.append(phrase)

        bits.extend(filters.tags)
        return RecommendationQueryBuilder.normalize_text(" ".join(bits))

    @staticmethod
    def meal_filter(filters: RecommendationFilters) -> str:
        calorie_clause = None
        if filters.calorieRange is not None:
            calorie_clause = range_clause(
                "calories",
                filters.calorieRange.min if filters.calorieRange.min is not None else 0,
                filters.calorieRange.max,
            )
        return combine(
            [
                tag_clause("type", [filters.mealType] if filters.mealType else []),
                tag_clause("dietaryRestrictions", filters.dietPreference),
                range_clause("prepTime", 0, filters.timeAvailable) if filters.timeAvailable else None,
                calorie_clause,
                tag_clause("tags", filters.tags),
            ]
        )

    @staticmethod
    def workout_filter(filters: RecommendationFilters) -> str:
        return combine(
            [
                tag_clause("type", [filters.workoutType] if filters.workoutType else []),
                tag_clause("difficulty", [filters.difficulty] if filters.difficulty else []),
                range_clause("duration", 0, filters.timeAvailable) if filters.timeAvailable else None,
                tag_clause("equipment", filters.equipment),
                tag_clause("tags", filters.tags),
            ]
        )
