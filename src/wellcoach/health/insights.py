"""Rule-based insights generated whenever a new health entry arrives."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Sequence

from sqlmodel import Session
from starlette.concurrency import run_in_threadpool

from wellcoach.core.database import session_scope
from wellcoach.core.logging import get_logger
from wellcoach.models import utc_now

from . import repository
from .analysis import POSITIVE_MOODS, average, fmt_number
from .schemas import GOAL_METRICS, GoalSetting, HealthEntryIn, HealthInsight

logger = get_logger(__name__)

HISTORY_DAYS = 30


def _is_positive(mood: Optional[str]) -> bool:
    return (mood or "").lower() in POSITIVE_MOODS


class HealthInsightService:
    def __init__(
        self,
        session: Session,
        now: Optional[Callable[[], datetime]] = None,
        max_stored: int = 50,
    ):
        self.session = session
        self._now = now or utc_now
        self.max_stored = max_stored

    def _insight(self, type_: str, message: str, importance: str, metric: Optional[str] = None) -> HealthInsight:
        return HealthInsight(type=type_, message=message, metric=metric, importance=importance, timestamp=self._now())

    def timeline(self, user_id: str, entry: HealthEntryIn) -> List:
        """Up to 30 days of entries ending with ``entry``, oldest first."""
        recorded_at = repository.from_epoch_ms(entry.timestamp)
        since = self._now() - timedelta(days=HISTORY_DAYS)
        history = [
            row for row in repository.entries_between(self.session, user_id, since) if row.recorded_at != recorded_at
        ]
        return history[-(HISTORY_DAYS - 1):] + [entry]

    def analyze_sleep(self, entry, timeline: Sequence, goals: Dict[str, GoalSetting]) -> List[HealthInsight]:
        insights: List[HealthInsight] = []
        goal = goals.get("sleep")
        if goal and entry.sleep >= goal.target:
            insights.append(
                self._insight("achievement", f"Great job! You hit your sleep goal of {fmt_number(goal.target)} hours.", "high", "sleep")
            )
        elif goal and entry.sleep < goal.target - 2:
            short = fmt_number(goal.target - entry.sleep)
            insights.append(
                self._insight(
                    "warning",
                    f"You're {short} hours short of your sleep goal. Consider going to bed earlier tonight.",
                    "high",
                    "sleep",
                )
            )

        recent, previous = timeline[-7:], timeline[-14:-7]
        if len(recent) == 7 and len(previous) == 7:
            change = (average(e.sleep for e in recent) or 0.0) - (average(e.sleep for e in previous) or 0.0)
            if change > 0.5:
                insights.append(
                    self._insight(
                        "achievement",
                        f"Your sleep has improved by {change:.1f} hours this week compared to last week!",
                        "medium",
                        "sleep",
                    )
                )
            elif change < -0.5:
                insights.append(
                    self._insight(
                        "suggestion",
                        f"Your sleep has decreased by {abs(change):.1f} hours this week. "
                        "Try maintaining a consistent bedtime routine.",
                        "medium",
                        "sleep",
                    )
                )

        if entry.sleep < 6:
            insights.append(
                self._insight(
                    "warning",
                    "Getting less than 6 hours of sleep can impact your health and mood. Try to prioritize sleep tonight.",
                    "high",
                    "sleep",
                )
            )
        elif entry.sleep > 9:
            insights.append(
                self._insight(
                    "suggestion",
                    "You slept more than 9 hours. While rest is important, consistently oversleeping "
                    "might indicate other health issues.",
                    "low",
                    "sleep",
                )
            )
        return insights

    def analyze_steps(self, entry, timeline: Sequence, goals: Dict[str, GoalSetting]) -> List[HealthInsight]:
        insights: List[HealthInsight] = []
        goal = goals.get("steps")
        if goal and entry.steps >= goal.target:
            insights.append(
                self._insight(
                    "achievement",
                    f"Awesome! You reached your daily step goal of {int(goal.target):,} steps.",
                    "high",
                    "steps",
                )
            )

        if entry.steps >= 15000:
            insights.append(
                self._insight(
                    "milestone",
                    "Outstanding! You walked over 15,000 steps today. That's excellent for your cardiovascular health!",
                    "high",
                    "steps",
                )
            )
        elif entry.steps >= 10000:
            insights.append(
                self._insight(
                    "achievement",
                    "Great work hitting 10,000+ steps! You're meeting the daily activity recommendation.",
                    "medium",
                    "steps",
                )
            )
        elif entry.steps < 5000:
            insights.append(
                self._insight(
                    "suggestion",
                    "Try to get more steps in today. Even a short 10-minute walk can make a difference!",
                    "medium",
                    "steps",
                )
            )

        if len(timeline) >= 7 and goal:
            daily_average = sum(e.steps for e in timeline[-7:]) / 7
            if daily_average >= goal.target:
                insights.append(
                    self._insight(
                        "achievement",
                        f"You're averaging {round(daily_average):,} steps this week - above your daily goal!",
                        "medium",
                        "steps",
                    )
                )
        return insights

    def analyze_water(self, entry, goals: Dict[str, GoalSetting]) -> List[HealthInsight]:
        goal = goals.get("water")
        if not entry.water or not goal:
            return []
        if entry.water >= goal.target:
            return [
                self._insight(
                    "achievement",
                    f"Well done! You've met your hydration goal of {fmt_number(goal.target)}L today.",
                    "medium",
                    "water",
                )
            ]
        if entry.water < goal.target * 0.5:
            return [
                self._insight(
                    "warning",
                    "You're drinking less water than usual. Try to increase your intake throughout the day.",
                    "medium",
                    "water",
                )
            ]
        return []

    def analyze_mood(self, timeline: Sequence) -> List[HealthInsight]:
        if len(timeline) < 7:
            return []
        positive = sum(1 for e in timeline[-7:] if _is_positive(e.mood))
        if positive >= 5:
            return [
                self._insight(
                    "achievement",
                    "You've had mostly positive moods this week! Keep up whatever you're doing.",
                    "medium",
                    "mood",
                )
            ]
        if positive <= 2:
            return [
                self._insight(
                    "suggestion",
                    "Your mood has been lower lately. Consider activities that usually make you feel better, "
                    "or talk to someone you trust.",
                    "high",
                    "mood",
                )
            ]
        return []

    def analyze_correlations(self, timeline: Sequence) -> List[HealthInsight]:
        if len(timeline) < 14:
            return []
        insights: List[HealthInsight] = []

        good_sleep = [e for e in timeline if e.sleep >= 7]
        poor_sleep = [e for e in timeline if e.sleep < 6]
        if len(good_sleep) >= 5 and len(poor_sleep) >= 5:
            good_steps = average(e.steps for e in good_sleep) or 0.0
            poor_steps = average(e.steps for e in poor_sleep) or 0.0
            if good_steps > poor_steps * 1.2:
                insights.append(
                    self._insight(
                        "suggestion",
                        "I notice you tend to be more active on days when you sleep well. "
                        "Good sleep really does boost your energy!",
                        "low",
                    )
                )

        positive_days = [e for e in timeline if _is_positive(e.mood)]
        if len(positive_days) >= 5:
            positive_sleep = average(e.sleep for e in positive_days) or 0.0
            overall_sleep = average(e.sleep for e in timeline) or 0.0
            if positive_sleep > overall_sleep + 0.5:
                insights.append(
                    self._insight(
                        "suggestion",
                        "Your mood tends to be better on days when you get more sleep. "
                        "Prioritizing sleep might help your overall well-being.",
                        "medium",
                    )
                )
        return insights

    def goal_settings(self, user_id: str) -> Dict[str, GoalSetting]:
        profile = repository.get_profile(self.session, user_id)
        if profile is not None and profile.goals:
            return dict(profile.goals)
        return {metric: GoalSetting.model_validate(goal) for metric, goal in repository.DEFAULT_GOALS.items()}

    def generate_insights(self, user_id: str, entry: HealthEntryIn) -> List[HealthInsight]:
        goals = self.goal_settings(user_id)
        timeline = self.timeline(user_id, entry)
        insights: List[HealthInsight] = []
        insights.extend(self.analyze_sleep(entry, timeline, goals))
        insights.extend(self.analyze_steps(entry, timeline, goals))
        insights.extend(self.analyze_water(entry, goals))
        insights.extend(self.analyze_mood(timeline))
        insights.extend(self.analyze_correlations(timeline))
        return insights

    def update_goal_progress(self, user_id: str, entry: HealthEntryIn) -> None:
        today = self._now().date()
        for metric, goal in self.goal_settings(user_id).items():
            if metric not in GOAL_METRICS:
                continue
            current = float(getattr(entry, metric) or 0.0)
            repository.upsert_goal_progress(self.session, user_id, metric, today, goal.target, current)

    def process_new_entry(self, user_id: str, entry: HealthEntryIn) -> List[HealthInsight]:
        insights = self.generate_insights(user_id, entry)
        if insights:
            repository.store_insights(self.session, user_id, insights, max_keep=self.max_stored)
        self.update_goal_progress(user_id, entry)
        logger.info("Processed entry for %s: %d new insights", user_id, len(insights))
        return insights


async def process_entry_detached(user_id: str, entry: HealthEntryIn, max_stored: int = 50) -> List[HealthInsight]:
    """Run insight processing on its own session, off the event loop."""

    def _work() -> List[HealthInsight]:
        with session_scope() as session:
            return HealthInsightService(session, max_stored=max_stored).process_new_entry(user_id, entry)

    return await run_in_threadpool(_work)
