"""SQL access for health profiles, metric series, the entry log and insights."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from wellcoach.models import (
    GoalProgressRecord,
    HealthEntry,
    HealthProfileRecord,
    InsightRecord,
    MetricSample,
    utc_now,
)

from .schemas import GoalSetting, HealthEntryIn, HealthInsight, HealthProfile, Preferences, ProfileDetails

DEFAULT_GOALS = {
    "sleep": {"target": 8, "priority": "high"},
    "steps": {"target": 10000, "priority": "medium"},
    "water": {"target": 2, "priority": "medium"},
}


class DuplicateEntry(Exception):
    """An entry for this user and timestamp is already recorded."""


def from_epoch_ms(value: int) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def to_epoch_ms(value: datetime) -> int:
    # naive values are read as UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


# ----------------------------
# Profiles
# ----------------------------


def profile_from_record(record: HealthProfileRecord) -> HealthProfile:
    return HealthProfile(
        userId=record.user_id,
        goals={metric: GoalSetting.model_validate(goal) for metric, goal in (record.goals or {}).items()},
        preferences=Preferences.model_validate(record.preferences or {}),
        profile=ProfileDetails.model_validate(record.profile) if record.profile else None,
        healthConditions=record.health_conditions,
        lastUpdated=record.last_updated,
    )


def default_profile(user_id: str) -> HealthProfile:
    return HealthProfile(
        userId=user_id,
        goals={metric: GoalSetting.model_validate(goal) for metric, goal in DEFAULT_GOALS.items()},
        preferences=Preferences(),
        lastUpdated=utc_now(),
    )


def get_profile(session: Session, user_id: str) -> Optional[HealthProfile]:
    record = session.get(HealthProfileRecord, user_id)
    return profile_from_record(record) if record else None


def save_profile(session: Session, profile: HealthProfile) -> HealthProfile:
    record = session.get(HealthProfileRecord, profile.userId)
    if record is None:
        record = HealthProfileRecord(user_id=profile.userId)
    record.goals = {metric: goal.model_dump() for metric, goal in profile.goals.items()}
    record.preferences = profile.preferences.model_dump()
    record.profile = profile.profile.model_dump(exclude_none=True) if profile.profile else None
    record.health_conditions = profile.healthConditions
    record.last_updated = profile.lastUpdated
    session.add(record)
    session.commit()
    session.refresh(record)
    return profile_from_record(record)


# ----------------------------
# Entry log and metric series
# ----------------------------


def entry_exists(session: Session, user_id: str, recorded_at: datetime) -> bool:
    stmt = select(HealthEntry.id).where(HealthEntry.user_id == user_id, HealthEntry.recorded_at == recorded_at)
    return session.exec(stmt).first() is not None


def add_entry(session: Session, user_id: str, entry: HealthEntryIn) -> HealthEntry:
    """Append an entry and its metric samples in one transaction.

    Raises ``DuplicateEntry`` when the user already has data at that timestamp.
    """
    recorded_at = from_epoch_ms(entry.timestamp)
    if entry_exists(session, user_id, recorded_at):
        raise DuplicateEntry(f"Entry at {entry.timestamp} already exists")

    row = HealthEntry(
        user_id=user_id,
        recorded_at=recorded_at,
        steps=entry.steps,
        sleep=entry.sleep,
        mood=entry.mood,
        water=entry.water or None,
    )
    session.add(row)
    samples = {"steps": float(entry.steps), "sleep": float(entry.sleep)}
    if entry.water:
        samples["water"] = float(entry.water)
    for metric, value in samples.items():
        session.add(MetricSample(user_id=user_id, metric=metric, recorded_at=recorded_at, value=value))
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise DuplicateEntry(f"Entry at {entry.timestamp} already exists") from exc
    session.refresh(row)
    return row


def metric_series(session: Session, user_id: str, metric: str, start: datetime, end: datetime) -> List[MetricSample]:
    stmt = (
        select(MetricSample)
        .where(
            MetricSample.user_id == user_id,
            MetricSample.metric == metric,
            MetricSample.recorded_at >= start,
            MetricSample.recorded_at <= end,
        )
        .order_by(col(MetricSample.recorded_at))
    )
    return list(session.exec(stmt).all())


def entries_between(session: Session, user_id: str, start: datetime, end: Optional[datetime] = None) -> List[HealthEntry]:
    stmt = select(HealthEntry).where(HealthEntry.user_id == user_id, HealthEntry.recorded_at >= start)
    if end is not None:
        stmt = stmt.where(HealthEntry.recorded_at <= end)
    return list(session.exec(stmt.order_by(col(HealthEntry.recorded_at))).all())


def latest_entry(session: Session, user_id: str) -> Optional[HealthEntry]:
    stmt = (
        select(HealthEntry)
        .where(HealthEntry.user_id == user_id)
        .order_by(col(HealthEntry.recorded_at).desc())
    )
    return session.exec(stmt).first()


# ----------------------------
# Insights and goal progress
# ----------------------------


def list_insights(session: Session, user_id: str, limit: int = 50) -> List[HealthInsight]:
    stmt = (
        select(InsightRecord)
        .where(InsightRecord.user_id == user_id)
        .order_by(col(InsightRecord.created_at).desc(), col(InsightRecord.id).desc())
        .limit(limit)
    )
    return [
        HealthInsight(
            type=row.type,
            message=row.message,
            metric=row.metric,
            importance=row.importance,
            timestamp=row.created_at,
        )
        for row in session.exec(stmt).all()
    ]


def store_insights(session: Session, user_id: str, insights: Iterable[HealthInsight], max_keep: int = 50) -> None:
    """Add insights and prune everything beyond the newest ``max_keep``."""
    for insight in insights:
        session.add(
            InsightRecord(
                user_id=user_id,
                type=insight.type,
                message=insight.message,
                metric=insight.metric,
                importance=insight.importance,
                created_at=insight.timestamp,
            )
        )
    session.flush()

    keep_ids = session.exec(
        select(InsightRecord.id)
        .where(InsightRecord.user_id == user_id)
        .order_by(col(InsightRecord.created_at).desc(), col(InsightRecord.id).desc())
        .limit(max_keep)
    ).all()
    session.execute(
        delete(InsightRecord).where(
            InsightRecord.user_id == user_id,
            col(InsightRecord.id).not_in(list(keep_ids)),
        )
    )
    session.commit()


def upsert_goal_progress(
    session: Session,
    user_id: str,
    metric: str,
    day: date,
    target: float,
    current: float,
) -> GoalProgressRecord:
    progress = min((current / target) * 100 if target > 0 else 0.0, 100.0)
    stmt = select(GoalProgressRecord).where(
        GoalProgressRecord.user_id == user_id,
        GoalProgressRecord.metric == metric,
        GoalProgressRecord.day == day,
    )
    record = session.exec(stmt).first()
    if record is None:
        record = GoalProgressRecord(user_id=user_id, metric=metric, day=day, target=target, current=current, progress=progress)
    else:
        record.target = target
        record.current = current
        record.progress = progress
        record.updated_at = utc_now()
    session.add(record)
    session.commit()
    session.refresh(record)
    return record


def goal_progress_for_day(session: Session, user_id: str, day: date) -> List[GoalProgressRecord]:
    stmt = (
        select(GoalProgressRecord)
        .where(GoalProgressRecord.user_id == user_id, GoalProgressRecord.day == day)
        .order_by(col(GoalProgressRecord.metric))
    )
    return list(session.exec(stmt).all())
