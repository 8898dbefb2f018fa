from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Timeframe = Literal[
    "today",
    "yesterday",
    "day_before_yesterday",
    "three_days_ago",
    "week",
    "last_week",
    "month",
    "year",
]
Metric = Literal["sleep", "steps", "water", "mood"]
NumericMetric = Literal["sleep", "steps", "water"]
Intent = Literal["compare", "trend", "goal_progress", "recommendation", "general"]
Priority = Literal["high", "medium", "low"]
Direction = Literal["up", "down", "stable"]

ALL_METRICS: List[str] = ["sleep", "steps", "water", "mood"]
NUMERIC_METRICS: List[str] = ["sleep", "steps", "water"]
GOAL_METRICS = ("sleep", "steps", "water")
PRIORITIES = ("high", "medium", "low")


class MetricData(BaseModel):
    date: str
    value: float


class MoodData(BaseModel):
    date: str
    mood: str


class RecentData(BaseModel):
    sleep: List[MetricData] = Field(default_factory=list)
    steps: List[MetricData] = Field(default_factory=list)
    water: List[MetricData] = Field(default_factory=list)
    mood: List[MoodData] = Field(default_factory=list)


class HealthTrend(BaseModel):
    metric: str
    direction: Direction
    percentage: float = Field(description="Absolute percent change")
    period: str = "week"
    currentAvg: Optional[float] = None
    previousAvg: Optional[float] = None


class UserGoal(BaseModel):
    metric: str
    target: float
    current: float = 0.0
    progress: float = 0.0
    priority: Priority = "medium"


class HealthInsight(BaseModel):
    type: Literal["achievement", "warning", "suggestion", "milestone"]
    message: str
    metric: Optional[str] = None
    importance: Priority = "medium"
    timestamp: datetime


class QueryAnalysis(BaseModel):
    intent: Intent = "general"
    timeframe: Timeframe = "week"
    metrics: List[str] = Field(default_factory=lambda: list(ALL_METRICS))
    contextNeeded: bool = True
    confidence: float = 0.8


class HealthContext(BaseModel):
    timeframe: Timeframe
    metrics: List[str]
    trends: List[HealthTrend] = Field(default_factory=list)
    goals: List[UserGoal] = Field(default_factory=list)
    insights: List[HealthInsight] = Field(default_factory=list)
    recentData: RecentData = Field(default_factory=RecentData)


class GoalSetting(BaseModel):
    target: float
    priority: Priority = "medium"


class Preferences(BaseModel):
    model_config = ConfigDict(extra="allow")

    units: Literal["metric", "imperial"] = "metric"
    reminderTimes: List[str] = Field(default_factory=lambda: ["09:00", "15:00", "21:00"])


class PersonalInfo(BaseModel):
    weight: Optional[float] = None
    height: Optional[float] = None
    age: Optional[int] = None
    gender: Optional[Literal["male", "female", "other"]] = None


class ProfileDetails(BaseModel):
    goal: Optional[Literal["weight_loss", "weight_gain", "muscle_gain", "maintenance", "general_health"]] = None
    diet: Optional[str] = None
    activityLevel: Optional[Literal["sedentary", "light", "moderate", "active", "very_active"]] = None
    personalInfo: Optional[PersonalInfo] = None


class HealthProfile(BaseModel):
    userId: str
    goals: Dict[str, GoalSetting] = Field(default_factory=dict)
    preferences: Preferences = Field(default_factory=Preferences)
    profile: Optional[ProfileDetails] = None
    healthConditions: Optional[List[str]] = None
    lastUpdated: datetime

    def goal_keys(self) -> List[str]:
        keys = list(self.goals)
        if self.profile is not None and self.profile.goal:
            keys.append(self.profile.goal)
        return keys


class HealthProfileUpdate(BaseModel):
    """Partial update; goals are validated by the profile router so errors can name the metric."""

    goals: Optional[Dict[str, Dict]] = None
    preferences: Optional[Dict] = None
    profile: Optional[ProfileDetails] = None
    healthConditions: Optional[List[str]] = None


class HealthEntryIn(BaseModel):
    steps: int = Field(ge=0)
    sleep: float = Field(ge=0, le=24)
    mood: str = Field(default="", max_length=32)
    water: Optional[float] = Field(default=None, ge=0)
    timestamp: int = Field(gt=0, description="epoch milliseconds")


class GoalProgress(BaseModel):
    metric: str
    target: float
    current: float
    progress: float
    date: str
    timestamp: int


class InsightsResponse(BaseModel):
    insights: List[HealthInsight]
    trends: List[HealthTrend]
    goalProgress: List[GoalProgress]
    lastUpdated: datetime


class MetricsResponse(BaseModel):
    sleepData: List[MetricData]
    stepsData: List[MetricData]
