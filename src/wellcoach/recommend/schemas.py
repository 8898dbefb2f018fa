from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from wellcoach.core.logging import get_logger

logger = get_logger(__name__)

MealType = Literal["breakfast", "lunch", "dinner", "snack"]
WorkoutType = Literal["cardio", "strength", "flexibility", "mixed"]
Difficulty = Literal["beginner", "intermediate", "advanced"]


class StoredDocument(BaseModel):
    """Base for every document kind kept in a vector index."""

    model_config = ConfigDict(extra="ignore")

    embedding: Optional[List[float]] = None

    def to_document(self, embedding: Optional[List[float]] = None) -> Dict[str, Any]:
        payload = self.model_dump(mode="json", exclude={"embedding"})
        vector = embedding if embedding is not None else self.embedding
        if vector is not None:
            payload["embedding"] = list(vector)
        return payload


class Nutrition(BaseModel):
    protein: float = 0
    carbs: float = 0
    fat: float = 0
    fiber: float = 0


class Meal(StoredDocument):
    kind: Literal["meal"] = "meal"
    id: str
    title: str
    description: str = ""
    type: MealType
    tags: List[str] = Field(default_factory=list)
    dietaryRestrictions: List[str] = Field(default_factory=list)
    calories: float = Field(ge=0)
    prepTime: int = Field(default=0, ge=0, description="minutes")
    cookTime: int = Field(default=0, ge=0, description="minutes")
    servings: int = Field(default=1, ge=1)
    ingredients: List[str] = Field(default_factory=list)
    instructions: List[str] = Field(default_factory=list)
    nutrition: Nutrition = Field(default_factory=Nutrition)
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    @property
    def total_time(self) -> int:
        return self.prepTime + self.cookTime

    def embedding_text(self) -> str:
        return f"{self.title} {self.description} {' '.join(self.tags)}".strip()


class Exercise(BaseModel):
    name: str
    sets: Optional[int] = None
    reps: Optional[int] = None
    duration: Optional[int] = Field(default=None, description="seconds, for time-based exercises")
    rest: Optional[int] = Field(default=None, description="seconds between sets")
    instructions: str = ""


class Workout(StoredDocument):
    kind: Literal["workout"] = "workout"
    id: str
    title: str
    description: str = ""
    type: WorkoutType
    tags: List[str] = Field(default_factory=list)
    difficulty: Difficulty
    duration: int = Field(ge=0, description="minutes")
    equipment: List[str] = Field(default_factory=list)
    targetMuscles: List[str] = Field(default_factory=list)
    exercises: List[Exercise] = Field(default_factory=list)
    caloriesBurned: float = Field(default=0, ge=0)
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    def embedding_text(self) -> str:
        return f"{self.title} {self.description} {' '.join(self.tags)}".strip()


class CacheEntry(StoredDocument):
    kind: Literal["cache"] = "cache"
    response: str
    userId: str
    timestamp: int = Field(description="epoch milliseconds")
    inputText: str
    hasHealthContext: bool = False
    contextVersion: Optional[int] = None


DocumentKind = Literal["meal", "workout", "cache"]
_MODELS = {"meal": Meal, "workout": Workout, "cache": CacheEntry}


def parse_document(kind: DocumentKind, payload: Dict[str, Any], key: str = "?") -> Optional[StoredDocument]:
    """Validate a raw store payload as ``kind``. Unexpected shapes are logged and dropped."""
    declared = payload.get("kind")
    if declared is not None and declared != kind:
        logger.warning("Rejected %s: expected a %s document, found kind=%r", key, kind, declared)
        return None
    try:
        return _MODELS[kind].model_validate(payload)
    except ValidationError as exc:
        logger.warning("Rejected %s: not a valid %s document (%d errors)", key, kind, exc.error_count())
        return None


class CalorieRange(BaseModel):
    min: Optional[float] = Field(default=None, ge=0)
    max: Optional[float] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _check_bounds(self) -> "CalorieRange":
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError("calorieRange.min must not exceed calorieRange.max")
        return self


class RecommendationFilters(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Optional[Literal["meal", "workout", "all"]] = None
    mealType: Optional[MealType] = None
    workoutType: Optional[WorkoutType] = None
    dietPreference: List[str] = Field(default_factory=list)
    timeAvailable: Optional[int] = Field(default=None, ge=1, le=180, description="minutes")
    difficulty: Optional[Difficulty] = None
    equipment: List[str] = Field(default_factory=list)
    calorieRange: Optional[CalorieRange] = None
    tags: List[str] = Field(default_factory=list)

    @property
    def wants_meals(self) -> bool:
        return self.type in (None, "meal", "all")

    @property
    def wants_workouts(self) -> bool:
        return self.type in (None, "workout", "all")


class RecommendationResult(BaseModel):
    id: str
    title: str
    description: str
    type: Literal["meal", "workout"]
    score: float = Field(ge=0, le=1)
    relevanceReason: str
    item: Union[Meal, Workout] = Field(discriminator="kind")
