"""Declared schemas of the vector indices and their key-prefix conventions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Literal, Optional, Tuple

FieldKind = Literal["VECTOR", "TEXT", "TAG", "NUMERIC"]

CHAT_CACHE_INDEX = "chat_cache"
MEALS_INDEX = "meals_index"
WORKOUTS_INDEX = "workouts_index"

CHAT_KEY_PREFIX = "chat:"
MEAL_KEY_PREFIX = "meal:"
WORKOUT_KEY_PREFIX = "workout:"

VECTOR_FIELD = "embedding"
DISTANCE_FIELD = "vector_score"


@dataclass(frozen=True)
class FieldSpec:
    name: str
    kind: FieldKind
    # TAG fields backed by a list of strings are indexed element-wise.
    multi: bool = False

    @property
    def json_path(self) -> str:
        path = f"$.{self.name}"
        return f"{path}[*]" if self.multi else path


@dataclass(frozen=True)
class IndexSpec:
    name: str
    key_prefix: str
    dimension: int
    fields: Tuple[FieldSpec, ...] = field(default_factory=tuple)
    distance_metric: str = "COSINE"
    m: int = 16
    ef_construction: int = 200

    def get_field(self, name: str) -> Optional[FieldSpec]:
        for spec in self.fields:
            if spec.name == name:
                return spec
        return None


def chat_cache_index(dimension: int, m: int = 16, ef_construction: int = 200) -> IndexSpec:
    return IndexSpec(
        name=CHAT_CACHE_INDEX,
        key_prefix=CHAT_KEY_PREFIX,
        dimension=dimension,
        m=m,
        ef_construction=ef_construction,
        fields=(
            FieldSpec(VECTOR_FIELD, "VECTOR"),
            FieldSpec("response", "TEXT"),
            FieldSpec("userId", "TEXT"),
            FieldSpec("timestamp", "NUMERIC"),
            FieldSpec("inputText", "TEXT"),
        ),
    )


def meals_index(dimension: int, m: int = 16, ef_construction: int = 200) -> IndexSpec:
    return IndexSpec(
        name=MEALS_INDEX,
        key_prefix=MEAL_KEY_PREFIX,
        dimension=dimension,
        m=m,
        ef_construction=ef_construction,
        fields=(
            FieldSpec(VECTOR_FIELD, "VECTOR"),
            FieldSpec("title", "TEXT"),
            FieldSpec("description", "TEXT"),
            FieldSpec("type", "TAG"),
            FieldSpec("tags", "TAG", multi=True),
            FieldSpec("dietaryRestrictions", "TAG", multi=True),
            FieldSpec("calories", "NUMERIC"),
            FieldSpec("prepTime", "NUMERIC"),
            FieldSpec("cookTime", "NUMERIC"),
        ),
    )


def workouts_index(dimension: int, m: int = 16, ef_construction: int = 200) -> IndexSpec:
    return IndexSpec(
        name=WORKOUTS_INDEX,
        key_prefix=WORKOUT_KEY_PREFIX,
        dimension=dimension,
        m=m,
        ef_construction=ef_construction,
        fields=(
            FieldSpec(VECTOR_FIELD, "VECTOR"),
            FieldSpec("title", "TEXT"),
            FieldSpec("description", "TEXT"),
            FieldSpec("type", "TAG"),
            FieldSpec("tags", "TAG", multi=True),
            FieldSpec("difficulty", "TAG"),
            FieldSpec("duration", "NUMERIC"),
            FieldSpec("equipment", "TAG", multi=True),
            FieldSpec("targetMuscles", "TAG", multi=True),
            FieldSpec("caloriesBurned", "NUMERIC"),
        ),
    )


def all_indices(dimension: int, m: int = 16, ef_construction: int = 200) -> List[IndexSpec]:
    return [
        chat_cache_index(dimension, m, ef_construction),
        meals_index(dimension, m, ef_construction),
        workouts_index(dimension, m, ef_construction),
    ]
