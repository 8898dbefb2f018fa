from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import Column, JSON
from sqlmodel import Field, SQLModel, UniqueConstraint


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class HealthProfileRecord(SQLModel, table=True):
    __tablename__ = "health_profile"

    user_id: str = Field(primary_key=True)
    goals: Dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
        description="metric -> {target, priority}",
    )
    preferences: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    profile: Optional[Dict[str, Any]] = Field(
        default=None,
        sa_column=Column(JSON, nullable=True),
        description="goal, diet, activityLevel, personalInfo",
    )
    health_conditions: Optional[List[str]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    last_updated: datetime = Field(default_factory=utc_now)


class MetricSample(SQLModel, table=True):
    __tablename__ = "metric_sample"
    __table_args__ = (UniqueConstraint("user_id", "metric", "recorded_at", name="uq_user_metric_ts"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    metric: str = Field(index=True, description="sleep | steps | water")
    recorded_at: datetime = Field(index=True)
    value: float


class HealthEntry(SQLModel, table=True):
    """Append-only log of what the user reported for one point in time."""

    __tablename__ = "health_entry"
    __table_args__ = (UniqueConstraint("user_id", "recorded_at", name="uq_user_entry_ts"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    recorded_at: datetime = Field(index=True)
    steps: int = Field(default=0, ge=0)
    sleep: float = Field(default=0.0, ge=0)
    mood: str = ""
    water: Optional[float] = Field(default=None, ge=0)


class InsightRecord(SQLModel, table=True):
    __tablename__ = "health_insight"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    type: str
    message: str
    metric: Optional[str] = None
    importance: str = "medium"
    created_at: datetime = Field(default_factory=utc_now, index=True)


class GoalProgressRecord(SQLModel, table=True):
    __tablename__ = "goal_progress"
    __table_args__ = (UniqueConstraint("user_id", "metric", "day", name="uq_user_metric_day"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    metric: str
    day: date = Field(index=True)
    target: float
    current: float
    progress: float = Field(description="Percent of target, capped at 100")
    updated_at: datetime = Field(default_factory=utc_now)
