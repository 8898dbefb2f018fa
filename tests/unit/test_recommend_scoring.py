import itertools

import pytest

from wellcoach.recommend.postprocess import RelevanceScorer
from wellcoach.recommend.preprocess import RecommendationQueryBuilder
from wellcoach.recommend.schemas import CalorieRange, Meal, RecommendationFilters, Workout


def _meal(**overrides):
    data = dict(
        id="m1",
        title="Quinoa Salad",
        description="Fresh salad",
        type="lunch",
        tags=["fresh", "healthy"],
        dietaryRestrictions=["vegetarian", "gluten-free"],
        calories=420,
        prepTime=15,
        cookTime=15,
    )
    data.update(overrides)
    return Meal(**data)


def _workout(**overrides):
    data = dict(
        id="w1",
        title="HIIT",
        description="Intervals",
        type="cardio",
        tags=["hiit", "quick"],
        difficulty="intermediate",
        duration=20,
        equipment=["none"],
        caloriesBurned=200,
    )
    data.update(overrides)
    return Workout(**data)


scorer = RelevanceScorer()


def test_similarity_from_distance_is_clamped():
    assert scorer.similarity_from_distance(0.0) == 1.0
    assert scorer.similarity_from_distance(0.25) == pytest.approx(0.75)
    assert scorer.similarity_from_distance(1.7) == 0.0
    assert scorer.similarity_from_distance(-0.1) == 1.0


def test_no_criteria_relies_on_similarity_alone():
    assert scorer.score(0.8, _meal(), RecommendationFilters()) == pytest.approx(0.8)
    assert scorer.filter_credits(_meal(), RecommendationFilters()) == []


def test_full_match_beats_partial_match():
    filters = RecommendationFilters(mealType="lunch", dietPreference=["vegetarian"])
    both = scorer.score(0.5, _meal(), filters)
    one = scorer.score(0.5, _meal(type="dinner"), filters)
    assert both == pytest.approx(0.6 * 0.5 + 0.4 * 1.0)
    assert one == pytest.approx(0.6 * 0.5 + 0.4 * 0.5)
    assert both > one


def test_overlap_fractions_give_partial_credit():
    filters = RecommendationFilters(dietPreference=["vegetarian", "vegan"], tags=["fresh"])
    assert scorer.filter_credits(_meal(), filters) == [0.5, 1.0]


def test_workout_credits():
    filters = RecommendationFilters(
        workoutType="cardio", difficulty="beginner", timeAvailable=30, equipment=["none", "mat"]
    )
    assert scorer.filter_credits(_workout(), filters) == [1.0, 0.0, 1.0, 0.5]


def test_score_stays_in_unit_interval_for_any_filter_combination():
    options = [
        {"mealType": "lunch"},
        {"dietPreference": ["vegan", "vegetarian"]},
        {"timeAvailable": 10},
        {"difficulty": "advanced"},
        {"equipment": ["dumbbells"]},
        {"tags": ["fresh", "spicy"]},
        {"workoutType": "strength"},
    ]
    for size in range(len(options) + 1):
        for combo in itertools.combinations(options, size):
            merged = {}
            for option in combo:
                merged.update(option)
            filters = RecommendationFilters(**merged)
            for distance in (0.0, 0.3, 1.0, 2.0):
                similarity = scorer.similarity_from_distance(distance)
                for item in (_meal(), _workout()):
                    assert 0.0 <= scorer.score(similarity, item, filters) <= 1.0


def test_matching_meal_type_ranks_first_at_equal_similarity():
    filters = RecommendationFilters(type="meal", mealType="breakfast")
    breakfast = _meal(id="b", type="breakfast")
    dinner = _meal(id="d", type="dinner")
    results = scorer.rank([(0.2, dinner), (0.2, breakfast)], filters, limit=10)
    assert [result.id for result in results] == ["b", "d"]
    assert results[0].item.embedding is None


def test_rank_truncates_to_limit():
    items = [(0.1 * i, _meal(id=f"m{i}")) for i in range(5)]
    results = scorer.rank(items, RecommendationFilters(), limit=2)
    assert [result.id for result in results] == ["m0", "m1"]


def test_relevance_reason():
    filters = RecommendationFilters(mealType="lunch", dietPreference=["vegetarian"], timeAvailable=45)
    assert scorer.relevance_reason(_meal(), filters) == (
        "Perfect for lunch • Fits vegetarian diet • Quick 30-minute prep • 420 calories"
    )
    assert scorer.relevance_reason(_workout(), RecommendationFilters(difficulty="intermediate")) == (
        "intermediate level • Burns ~200 calories"
    )


def test_search_text_includes_goal_phrases_and_is_deterministic():
    filters = RecommendationFilters(type="meal", mealType="breakfast", dietPreference=["vegan"], timeAvailable=10)
    text = RecommendationQueryBuilder.build_search_text(filters, ["weight_loss"])
    assert text == "healthy nutritious meal breakfast vegan quick easy weight loss fat burning"
    assert RecommendationQueryBuilder.build_search_text(filters, ["weight_loss"]) == text


def test_search_text_covers_both_kinds_when_type_unset():
    text = RecommendationQueryBuilder.build_search_text(RecommendationFilters())
    assert text == "healthy nutritious meal effective workout exercise"


def test_filter_expressions():
    meal_filters = RecommendationFilters(
        mealType="lunch",
        dietPreference=["vegan", "gluten-free"],
        timeAvailable=20,
        calorieRange=CalorieRange(max=500),
    )
    assert RecommendationQueryBuilder.meal_filter(meal_filters) == (
        "@type:{lunch} @dietaryRestrictions:{vegan | gluten\\-free} @prepTime:[0 20] @calories:[0 500]"
    )
    assert RecommendationQueryBuilder.meal_filter(RecommendationFilters(calorieRange=CalorieRange(min=300))) == (
        "@calories:[300 +inf]"
    )
    workout_filters = RecommendationFilters(workoutType="strength", difficulty="beginner", equipment=["yoga-mat"])
    assert RecommendationQueryBuilder.workout_filter(workout_filters) == (
        "@type:{strength} @difficulty:{beginner} @equipment:{yoga\\-mat}"
    )
    assert RecommendationQueryBuilder.workout_filter(RecommendationFilters()) == "*"


def test_calorie_range_bounds_validated():
    with pytest.raises(ValueError):
        CalorieRange(min=600, max=300)
