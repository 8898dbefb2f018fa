"""Sample meal and workout corpus for fresh deployments."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Sequence, Union

from wellcoach.core.logging import get_logger
from wellcoach.embeddings import EmbeddingProvider
from wellcoach.models import utc_now
from wellcoach.vector.codec import vector_to_list
from wellcoach.vector.schema import MEAL_KEY_PREFIX, WORKOUT_KEY_PREFIX
from wellcoach.vector.store import VectorIndexStore

from .schemas import Meal, Workout

logger = get_logger(__name__)

SAMPLE_MEALS: List[Dict] = [
    {
        "id": "meal_001",
        "title": "Protein Power Smoothie Bowl",
        "description": "A nutrient-packed smoothie bowl with Greek yogurt, berries, and protein powder "
        "topped with granola and nuts.",
        "type": "breakfast",
        "tags": ["high-protein", "quick", "energizing", "antioxidants"],
        "dietaryRestrictions": ["vegetarian", "gluten-free"],
        "calories": 350,
        "prepTime": 10,
        "cookTime": 0,
        "servings": 1,
        "ingredients": ["Greek yogurt", "protein powder", "frozen berries", "banana", "granola", "almonds", "honey"],
        "instructions": ["Blend yogurt, protein powder, and fruits", "Pour into bowl", "Top with granola and nuts"],
        "nutrition": {"protein": 25, "carbs": 35, "fat": 8, "fiber": 6},
    },
    {
        "id": "meal_002",
        "title": "Mediterranean Quinoa Salad",
        "description": "Fresh Mediterranean salad with quinoa, vegetables, feta cheese, and olive oil dressing.",
        "type": "lunch",
        "tags": ["mediterranean", "healthy", "filling", "fresh"],
        "dietaryRestrictions": ["vegetarian", "gluten-free"],
        "calories": 420,
        "prepTime": 15,
        "cookTime": 15,
        "servings": 2,
        "ingredients": ["quinoa", "cherry tomatoes", "cucumber", "feta cheese", "olive oil", "lemon", "herbs"],
        "instructions": ["Cook quinoa", "Chop vegetables", "Mix all ingredients", "Add dressing"],
        "nutrition": {"protein": 16, "carbs": 45, "fat": 18, "fiber": 8},
    },
    {
        "id": "meal_003",
        "title": "Grilled Salmon with Sweet Potato",
        "description": "Herb-crusted grilled salmon served with roasted sweet potato and steamed broccoli.",
        "type": "dinner",
        "tags": ["high-protein", "omega-3", "balanced", "anti-inflammatory"],
        "dietaryRestrictions": ["gluten-free", "dairy-free"],
        "calories": 480,
        "prepTime": 10,
        "cookTime": 25,
        "servings": 1,
        "ingredients": ["salmon fillet", "sweet potato", "broccoli", "herbs", "olive oil", "lemon"],
        "instructions": ["Season salmon", "Roast sweet potato", "Grill salmon", "Steam broccoli"],
        "nutrition": {"protein": 35, "carbs": 30, "fat": 22, "fiber": 6},
    },
]

SAMPLE_WORKOUTS: List[Dict] = [
    {
        "id": "workout_001",
        "title": "HIIT Cardio Blast",
        "description": "High-intensity interval training workout to boost metabolism and burn calories quickly.",
        "type": "cardio",
        "tags": ["hiit", "fat-burning", "energizing", "quick"],
        "difficulty": "intermediate",
        "duration": 20,
        "equipment": ["none"],
        "targetMuscles": ["full-body"],
        "exercises": [
            {"name": "Jumping Jacks", "duration": 45, "rest": 15, "instructions": "Jump with arms and legs wide, return to start"},
            {"name": "Burpees", "reps": 10, "rest": 30, "instructions": "Squat, jump back to plank, push-up, jump forward, jump up"},
            {"name": "Mountain Climbers", "duration": 30, "rest": 15, "instructions": "Plank position, alternate bringing knees to chest"},
            {"name": "High Knees", "duration": 30, "rest": 15, "instructions": "Run in place, bringing knees up high"},
        ],
        "caloriesBurned": 200,
    },
    {
        "id": "workout_002",
        "title": "Upper Body Strength Builder",
        "description": "Comprehensive upper body strength workout targeting chest, shoulders, and arms.",
        "type": "strength",
        "tags": ["strength", "muscle-building", "upper-body", "progressive"],
        "difficulty": "intermediate",
        "duration": 45,
        "equipment": ["dumbbells", "bench"],
        "targetMuscles": ["chest", "shoulders", "arms"],
        "exercises": [
            {"name": "Push-ups", "sets": 3, "reps": 12, "rest": 60, "instructions": "Standard push-up with good form"},
            {"name": "Dumbbell Press", "sets": 3, "reps": 10, "rest": 90, "instructions": "Chest press with dumbbells"},
            {"name": "Shoulder Press", "sets": 3, "reps": 10, "rest": 60, "instructions": "Press dumbbells overhead"},
            {"name": "Bicep Curls", "sets": 3, "reps": 12, "rest": 45, "instructions": "Curl dumbbells to shoulders"},
        ],
        "caloriesBurned": 180,
    },
    {
        "id": "workout_003",
        "title": "Relaxing Yoga Flow",
        "description": "Gentle yoga sequence to improve flexibility and reduce stress.",
        "type": "flexibility",
        "tags": ["yoga", "relaxing", "flexibility", "mindfulness"],
        "difficulty": "beginner",
        "duration": 30,
        "equipment": ["yoga-mat"],
        "targetMuscles": ["full-body"],
        "exercises": [
            {"name": "Sun Salutation", "sets": 3, "instructions": "Flow through classic sun salutation sequence"},
            {"name": "Warrior Poses", "duration": 60, "instructions": "Hold warrior I and II poses"},
            {"name": "Downward Dog", "duration": 60, "instructions": "Hold downward facing dog"},
            {"name": "Child's Pose", "duration": 90, "instructions": "Relaxing rest pose"},
        ],
        "caloriesBurned": 120,
    },
]


def sample_meals(now: datetime) -> List[Meal]:
    return [Meal.model_validate({**raw, "createdAt": now, "updatedAt": now}) for raw in SAMPLE_MEALS]


def sample_workouts(now: datetime) -> List[Workout]:
    return [Workout.model_validate({**raw, "createdAt": now, "updatedAt": now}) for raw in SAMPLE_WORKOUTS]


async def store_items(
    store: VectorIndexStore,
    embedder: EmbeddingProvider,
    items: Sequence[Union[Meal, Workout]],
) -> int:
    """Embed each item's title, description and tags and upsert it under its kind's prefix."""
    if not items:
        return 0
    vectors = await embedder.embed_many([item.embedding_text() for item in items])
    for item, vector in zip(items, vectors):
        prefix = MEAL_KEY_PREFIX if isinstance(item, Meal) else WORKOUT_KEY_PREFIX
        await store.upsert(f"{prefix}{item.id}", item.to_document(vector_to_list(vector)))
    return len(items)


async def seed_sample_data(store: VectorIndexStore, embedder: EmbeddingProvider) -> Dict[str, int]:
    now = utc_now()
    meals = await store_items(store, embedder, sample_meals(now))
    logger.info("Sample meals seeded (%d)", meals)
    workouts = await store_items(store, embedder, sample_workouts(now))
    logger.info("Sample workouts seeded (%d)", workouts)
    return {"meals": meals, "workouts": workouts}
