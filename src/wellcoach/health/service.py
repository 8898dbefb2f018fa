"""Read-side aggregation of a user's health data into prompt context."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from sqlmodel import Session

from wellcoach.core.logging import get_logger
from wellcoach.models import utc_now

from . import repository
from .analysis import analyze_query, average, classify_trend, format_health_context, mood_score, timeframe_window
from .schemas import (
    NUMERIC_METRICS,
    GoalSetting,
    HealthContext,
    HealthTrend,
    MetricData,
    MoodData,
    QueryAnalysis,
    RecentData,
    UserGoal,
)

logger = get_logger(__name__)


class HealthDataService:
    """Builds ``HealthContext`` snapshots from the primary datastore.

    Synchronous; async callers run it in a worker thread.
    """

    def __init__(self, session: Session, now: Optional[Callable[[], datetime]] = None):
        self.session = session
        self._now = now or utc_now

    def now(self) -> datetime:
        return self._now()

    def analyze_query(self, query: str) -> QueryAnalysis:
        analysis = analyze_query(query)
        logger.debug("Query %r -> timeframe=%s metrics=%s intent=%s", query, analysis.timeframe, analysis.metrics, analysis.intent)
        return analysis

    def get_recent_data(self, user_id: str, timeframe: str, now: Optional[datetime] = None) -> RecentData:
        start, end = timeframe_window(timeframe, now or self.now())
        series: Dict[str, List[MetricData]] = {}
        for metric in NUMERIC_METRICS:
            rows = repository.metric_series(self.session, user_id, metric, start, end)
            series[metric] = [MetricData(date=row.recorded_at.date().isoformat(), value=row.value) for row in rows]
        moods = [
            MoodData(date=row.recorded_at.date().isoformat(), mood=row.mood)
            for row in repository.entries_between(self.session, user_id, start, end)
            if row.mood
        ]
        return RecentData(mood=moods, **series)

    def weekly_averages(self, user_id: str, metric: str, now: Optional[datetime] = None) -> Tuple[Optional[float], Optional[float]]:
        """Average of the last 7 days and of the 7 days before that."""
        now = now or self.now()
        week_ago = now - timedelta(days=7)
        two_weeks_ago = now - timedelta(days=14)
        current = repository.metric_series(self.session, user_id, metric, week_ago, now)
        previous = repository.metric_series(self.session, user_id, metric, two_weeks_ago, week_ago)
        return average(r.value for r in current), average(r.value for r in previous)

    def compute_trend(self, user_id: str, metric: str, now: Optional[datetime] = None) -> Optional[HealthTrend]:
        if metric not in NUMERIC_METRICS:
            return None
        current, previous = self.weekly_averages(user_id, metric, now)
        if current is None or previous is None:
            return None
        classified = classify_trend(current, previous)
        if classified is None:
            return None
        direction, pct = classified
        return HealthTrend(
            metric=metric,
            direction=direction,
            percentage=pct,
            period="week",
            currentAvg=current,
            previousAvg=previous,
        )

    def get_trends(self, user_id: str, metrics: Sequence[str], now: Optional[datetime] = None) -> List[HealthTrend]:
        trends: List[HealthTrend] = []
        for metric in metrics:
            trend = self.compute_trend(user_id, metric, now)
            if trend is not None:
                trends.append(trend)
        return trends

    def goal_settings(self, user_id: str) -> Dict[str, GoalSetting]:
        profile = repository.get_profile(self.session, user_id)
        if profile is None or not profile.goals:
            return {metric: GoalSetting.model_validate(goal) for metric, goal in repository.DEFAULT_GOALS.items()}
        return dict(profile.goals)

    def get_user_goals(self, user_id: str, now: Optional[datetime] = None, week: Optional[RecentData] = None) -> List[UserGoal]:
        week = week or self.get_recent_data(user_id, "week", now)
        goals: List[UserGoal] = []
        for metric, setting in self.goal_settings(user_id).items():
            if metric == "mood":
                current = average(mood_score(entry.mood) for entry in week.mood) or 0.0
            else:
                current = average(point.value for point in getattr(week, metric, [])) or 0.0
            goals.append(
                UserGoal(
                    metric=metric,
                    target=setting.target,
                    current=current,
                    progress=(current / setting.target) * 100 if setting.target > 0 else 0.0,
                    priority=setting.priority,
                )
            )
        return goals

    def get_user_health_context(self, user_id: str, query: str) -> HealthContext:
        now = self.now()
        analysis = self.analyze_query(query)
        recent = self.get_recent_data(user_id, analysis.timeframe, now)
        week = recent if analysis.timeframe == "week" else None
        return HealthContext(
            timeframe=analysis.timeframe,
            metrics=analysis.metrics,
            trends=self.get_trends(user_id, analysis.metrics, now),
            goals=self.get_user_goals(user_id, now, week=week),
            insights=repository.list_insights(self.session, user_id),
            recentData=recent,
        )

    def format_health_context(self, context: HealthContext) -> str:
        return format_health_context(context, self.now())

    def build_context_text(self, user_id: str, query: str) -> Tuple[HealthContext, str]:
        context = self.get_user_health_context(user_id, query)
        return context, self.format_health_context(context)
