from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, ValidationError
from sqlmodel import Session
from starlette.concurrency import run_in_threadpool

from wellcoach.core.auth import get_current_user_id
from wellcoach.core.config import Settings
from wellcoach.core.database import get_session
from wellcoach.core.logging import get_logger
from wellcoach.embeddings import EmbeddingProvider
from wellcoach.health import repository
from wellcoach.recommend.schemas import RecommendationFilters, RecommendationResult
from wellcoach.recommend.seed import seed_sample_data
from wellcoach.recommend.service import RecommendationService
from wellcoach.vector.store import VectorIndexStore

from .deps import get_app_settings, get_embedder, get_ready_store, get_recommendation_service

logger = get_logger(__name__)

router = APIRouter(prefix="/recommend", tags=["recommend"])

LIST_PARAMS = ("dietPreference", "equipment", "tags")
SCALAR_PARAMS = ("type", "mealType", "workoutType", "difficulty")


class RecommendationsResponse(BaseModel):
    success: bool = True
    data: List[RecommendationResult]
    filters: Dict[str, Any]
    count: int


class SeedRequest(BaseModel):
    action: Literal["seed"]


def _split(raw: str) -> List[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


def _invalid(fields: List[str]) -> HTTPException:
    names = ", ".join(dict.fromkeys(fields))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid filter value: {names}")


def parse_limit(raw: Optional[str], settings: Settings) -> int:
    if raw is None or raw == "":
        return settings.recommend_default_limit
    try:
        limit = int(raw)
    except ValueError:
        raise _invalid(["limit"])
    if not 1 <= limit <= settings.recommend_max_limit:
        raise _invalid(["limit"])
    return limit


def parse_filters(params) -> RecommendationFilters:
    """Build filters from query parameters; list filters are comma separated.

    Raises a 400 naming every offending parameter.
    """
    raw: Dict[str, Any] = {}
    for name in SCALAR_PARAMS:
        if params.get(name):
            raw[name] = params[name]
    for name in LIST_PARAMS:
        if params.get(name):
            raw[name] = _split(params[name])
    if params.get("timeAvailable"):
        raw["timeAvailable"] = params["timeAvailable"]
    calorie_range: Dict[str, Any] = {}
    if params.get("calorieMin"):
        calorie_range["min"] = params["calorieMin"]
    if params.get("calorieMax"):
        calorie_range["max"] = params["calorieMax"]
    if calorie_range:
        raw["calorieRange"] = calorie_range

    try:
        return RecommendationFilters.model_validate(raw)
    except ValidationError as exc:
        fields = []
        for error in exc.errors():
            loc = [str(part) for part in error.get("loc", ())]
            if loc[:1] == ["calorieRange"]:
                bound = loc[1] if len(loc) > 1 else ""
                fields.append({"min": "calorieMin", "max": "calorieMax"}.get(bound, "calorieRange"))
            else:
                fields.append(loc[0] if loc else "filters")
        raise _invalid(fields)


@router.get("", response_model=RecommendationsResponse)
async def get_recommendations(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
    service: RecommendationService = Depends(get_recommendation_service),
):
    params = request.query_params
    filters = parse_filters(params)
    limit = parse_limit(params.get("limit"), settings)
    profile = await run_in_threadpool(repository.get_profile, session, user_id)

    results = await service.get_recommendations(user_id, filters, limit, profile=profile)
    echoed = filters.model_dump(exclude_none=True, exclude_defaults=True)
    echoed["limit"] = limit
    return RecommendationsResponse(data=results, filters=echoed, count=len(results))


@router.post("")
async def seed_recommendations(
    payload: SeedRequest,
    user_id: str = Depends(get_current_user_id),
    store: VectorIndexStore = Depends(get_ready_store),
    embedder: EmbeddingProvider = Depends(get_embedder),
):
    counts = await seed_sample_data(store, embedder)
    logger.info("Sample data seeded by %s", user_id)
    return {"success": True, "message": "Sample data seeded successfully", **counts}
