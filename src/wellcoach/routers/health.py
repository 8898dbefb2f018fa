from __future__ import annotations

from datetime import datetime, time, timedelta
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlmodel import Session

from wellcoach.core.auth import get_current_user_id
from wellcoach.core.config import Settings
from wellcoach.core.database import get_session
from wellcoach.core.logging import get_logger
from wellcoach.health import repository
from wellcoach.health.insights import HealthInsightService
from wellcoach.health.schemas import (
    GOAL_METRICS,
    NUMERIC_METRICS,
    PRIORITIES,
    GoalProgress,
    GoalSetting,
    HealthEntryIn,
    HealthProfile,
    HealthProfileUpdate,
    InsightsResponse,
    MetricData,
    MetricsResponse,
    Preferences,
    ProfileDetails,
)
from wellcoach.health.service import HealthDataService
from wellcoach.models import utc_now
from wellcoach.vector.resource import VectorStoreResource

from .deps import get_app_settings, get_vector_resource

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


# ----------------------------
# Service health
# ----------------------------


@router.get("/healthz")
async def healthz(resource: VectorStoreResource = Depends(get_vector_resource)):
    timestamp = utc_now().isoformat()
    if await resource.store.ping():
        return {
            "status": "healthy",
            "services": {"vector_store": "connected", "api": "running"},
            "timestamp": timestamp,
        }
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "unhealthy",
            "services": {"vector_store": "disconnected", "api": "running"},
            "timestamp": timestamp,
        },
    )


# ----------------------------
# Dashboard metrics
# ----------------------------


@router.get("/metrics", response_model=MetricsResponse)
def metrics(user_id: str = Depends(get_current_user_id), session: Session = Depends(get_session)):
    now = utc_now()
    # today plus the six days before it
    start = datetime.combine((now - timedelta(days=6)).date(), time.min, tzinfo=now.tzinfo)

    def _series(metric: str):
        return [
            MetricData(date=row.recorded_at.date().isoformat(), value=row.value)
            for row in repository.metric_series(session, user_id, metric, start, now)
        ]

    return MetricsResponse(sleepData=_series("sleep"), stepsData=_series("steps"))


# ----------------------------
# Insights
# ----------------------------


@router.get("/health/insights", response_model=InsightsResponse)
def insights(
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
):
    stored = repository.list_insights(session, user_id, limit=settings.insights_max_stored)
    if not stored:
        latest = repository.latest_entry(session, user_id)
        if latest is not None:
            logger.info("No insights for %s, generating from the latest entry", user_id)
            entry = HealthEntryIn(
                steps=latest.steps,
                sleep=latest.sleep,
                mood=latest.mood,
                water=latest.water,
                timestamp=repository.to_epoch_ms(latest.recorded_at),
            )
            HealthInsightService(session, max_stored=settings.insights_max_stored).process_new_entry(user_id, entry)
            stored = repository.list_insights(session, user_id, limit=settings.insights_max_stored)

    now = utc_now()
    progress = [
        GoalProgress(
            metric=row.metric,
            target=row.target,
            current=row.current,
            progress=row.progress,
            date=row.day.isoformat(),
            timestamp=repository.to_epoch_ms(row.updated_at),
        )
        for row in repository.goal_progress_for_day(session, user_id, now.date())
    ]
    trends = HealthDataService(session).get_trends(user_id, NUMERIC_METRICS, now)
    return InsightsResponse(insights=stored, trends=trends, goalProgress=progress, lastUpdated=now)


# ----------------------------
# Profile
# ----------------------------


def validate_goals(goals: Dict[str, Any]) -> Dict[str, GoalSetting]:
    validated: Dict[str, GoalSetting] = {}
    for metric, goal in goals.items():
        if metric not in GOAL_METRICS:
            raise _bad_request(f"Invalid metric: {metric}")
        goal = goal if isinstance(goal, dict) else {}
        target = goal.get("target")
        if isinstance(target, bool) or not isinstance(target, (int, float)) or target <= 0:
            raise _bad_request(f"Invalid target for {metric}: must be a positive number")
        if goal.get("priority") not in PRIORITIES:
            raise _bad_request(f"Invalid priority for {metric}: must be high, medium, or low")
        validated[metric] = GoalSetting(target=target, priority=goal["priority"])
    return validated


@router.get("/health/profile", response_model=HealthProfile)
def get_profile(user_id: str = Depends(get_current_user_id), session: Session = Depends(get_session)):
    profile = repository.get_profile(session, user_id)
    if profile is None:
        profile = repository.save_profile(session, repository.default_profile(user_id))
    return profile


@router.put("/health/profile", response_model=HealthProfile)
def update_profile(
    payload: Dict[str, Any] = Body(...),
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    try:
        update = HealthProfileUpdate.model_validate(payload)
    except ValidationError as exc:
        fields = ", ".join(dict.fromkeys(".".join(str(p) for p in err["loc"]) for err in exc.errors()))
        raise _bad_request(f"Invalid profile fields: {fields}")

    current = repository.get_profile(session, user_id) or repository.default_profile(user_id)
    changes: Dict[str, Any] = {"lastUpdated": utc_now()}

    if update.goals:
        changes["goals"] = {**current.goals, **validate_goals(update.goals)}
    if update.preferences:
        try:
            changes["preferences"] = Preferences.model_validate({**current.preferences.model_dump(), **update.preferences})
        except ValidationError as exc:
            fields = ", ".join(dict.fromkeys(str(err["loc"][0]) for err in exc.errors()))
            raise _bad_request(f"Invalid preferences: {fields}")
    if update.profile is not None:
        existing = current.profile.model_dump(exclude_none=True) if current.profile else {}
        changes["profile"] = ProfileDetails.model_validate({**existing, **update.profile.model_dump(exclude_unset=True)})
    if update.healthConditions is not None:
        changes["healthConditions"] = update.healthConditions

    return repository.save_profile(session, current.model_copy(update=changes))
