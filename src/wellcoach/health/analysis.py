"""Query classification, time windows, trend rules and the health context block.

Everything here is pure: callers pass ``now`` explicitly so results are
reproducible. The rendered context block is embedded as part of cache keys;
bump ``HEALTH_CONTEXT_VERSION`` whenever its layout changes.
"""

from __future__ import annotations

import re
from collections import Counter
from datetime import datetime, time, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .schemas import ALL_METRICS, HealthContext, QueryAnalysis

HEALTH_CONTEXT_VERSION = 1

TREND_THRESHOLD_PCT = 5.0

# Ordered most specific first: "day before yesterday" must win over "yesterday",
# "last week" over "week".
TIMEFRAME_RULES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("day_before_yesterday", ("day before yesterday", "day before yest", "2 days ago", "two days ago")),
    ("three_days_ago", ("3 days ago", "three days ago")),
    ("yesterday", ("yesterday", "yest")),
    ("today", ("today", "today's", "current")),
    ("last_week", ("last week", "previous week")),
    ("week", ("week", "weekly", "past week", "this week", "7 days")),
    ("month", ("month", "monthly", "past month", "this month", "30 days")),
    ("year", ("year", "yearly", "annual")),
)

METRIC_RULES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("sleep", ("sleep", "sleeping", "slept", "rest", "bedtime")),
    ("steps", ("steps", "walking", "activity", "movement")),
    ("water", ("water", "hydration", "drink", "fluid")),
    ("mood", ("mood", "emotion", "feelings", "mental")),
)

INTENT_RULES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("compare", ("compare", "vs", "versus", "difference", "better", "worse")),
    ("trend", ("trend", "progress", "improvement", "decline", "pattern")),
    ("goal_progress", ("goal", "target", "achievement", "reach")),
    ("recommendation", ("advice", "suggest", "recommend", "help", "improve")),
)

MOOD_SCORES: Dict[str, float] = {"sad": 1.0, "neutral": 2.5, "happy": 4.0, "excited": 5.0}
POSITIVE_MOODS = frozenset({"happy", "excited", "energetic", "content"})


def _contains_phrase(text: str, phrase: str) -> bool:
    return re.search(rf"(?<!\w){re.escape(phrase)}(?!\w)", text) is not None


def _first_match(text: str, rules: Sequence[Tuple[str, Tuple[str, ...]]]) -> Optional[str]:
    for name, phrases in rules:
        if any(_contains_phrase(text, phrase) for phrase in phrases):
            return name
    return None


def analyze_query(query: str) -> QueryAnalysis:
    """Classify timeframe, metrics and intent of a free-text question."""
    text = (query or "").lower()
    timeframe = _first_match(text, TIMEFRAME_RULES) or "week"
    metrics = [name for name, phrases in METRIC_RULES if any(_contains_phrase(text, p) for p in phrases)]
    intent = _first_match(text, INTENT_RULES) or "general"
    return QueryAnalysis(
        intent=intent,
        timeframe=timeframe,
        metrics=metrics or list(ALL_METRICS),
        contextNeeded=True,
        confidence=0.8,
    )


def _day_bounds(day: datetime) -> Tuple[datetime, datetime]:
    start = datetime.combine(day.date(), time.min, tzinfo=day.tzinfo)
    return start, datetime.combine(day.date(), time.max, tzinfo=day.tzinfo)


def timeframe_window(timeframe: str, now: datetime) -> Tuple[datetime, datetime]:
    """Inclusive ``(start, end)`` of the data a timeframe refers to."""
    if timeframe == "today":
        return _day_bounds(now)
    if timeframe == "yesterday":
        return _day_bounds(now - timedelta(days=1))
    if timeframe == "day_before_yesterday":
        return _day_bounds(now - timedelta(days=2))
    if timeframe == "three_days_ago":
        return _day_bounds(now - timedelta(days=3))
    if timeframe == "last_week":
        return now - timedelta(days=14), now - timedelta(days=7)
    if timeframe == "month":
        return now - timedelta(days=30), now
    if timeframe == "year":
        return now - timedelta(days=365), now
    return now - timedelta(days=7), now


def timeframe_description(timeframe: str, now: datetime) -> str:
    single_days = {
        "today": ("today", 0),
        "yesterday": ("yesterday", 1),
        "day_before_yesterday": ("day before yesterday", 2),
        "three_days_ago": ("three days ago", 3),
    }
    if timeframe in single_days:
        label, offset = single_days[timeframe]
        return f"{label} ({(now - timedelta(days=offset)).date().isoformat()})"
    return {
        "week": "the past 7 days",
        "last_week": "last week",
        "month": "the past 30 days",
        "year": "the past year",
    }.get(timeframe, timeframe)


def average(values: Iterable[float]) -> Optional[float]:
    items = list(values)
    if not items:
        return None
    return sum(items) / len(items)


def classify_trend(current: float, previous: float) -> Optional[Tuple[str, float]]:
    """Direction and absolute percent change of ``current`` against ``previous``.

    ``None`` when there is no baseline to compare against.
    """
    if previous == 0:
        return None
    pct = (current - previous) / previous * 100.0
    if pct >= TREND_THRESHOLD_PCT:
        direction = "up"
    elif pct <= -TREND_THRESHOLD_PCT:
        direction = "down"
    else:
        direction = "stable"
    return direction, abs(pct)


def mood_score(mood: Optional[str]) -> float:
    return MOOD_SCORES.get((mood or "").lower(), 2.5)


def mood_distribution(moods: Iterable[str]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for mood in moods:
        key = (mood or "").lower() or "unknown"
        counts[key] = counts.get(key, 0) + 1
    return counts


def fmt_number(value: float) -> str:
    number = float(value)
    if number.is_integer():
        return str(int(number))
    return f"{round(number, 2):g}"


def format_health_context(context: HealthContext, now: datetime) -> str:
    """Render the context block injected into prompts and cache-key embeddings."""
    lines: List[str] = [
        f"--- USER HEALTH DATA CONTEXT (v{HEALTH_CONTEXT_VERSION}) ---",
        f"Data for {timeframe_description(context.timeframe, now)}:",
    ]

    for metric in context.metrics:
        if metric == "mood":
            moods = [entry.mood for entry in context.recentData.mood if entry.mood]
            if not moods:
                lines.append("- mood: No data available")
                continue
            counts = mood_distribution(moods)
            most_common = Counter(counts).most_common(1)[0][0]
            lines.append(f"- mood: Latest: {moods[-1]}, Most common: {most_common}")
            lines.append("  Mood distribution: " + ", ".join(f"{mood}({count})" for mood, count in counts.items()))
            continue
        series = getattr(context.recentData, metric, None) or []
        if not series:
            lines.append(f"- {metric}: No data available")
            continue
        avg = average(point.value for point in series) or 0.0
        lines.append(f"- {metric}: Latest: {fmt_number(series[-1].value)}, Average: {avg:.1f}")

    if context.goals:
        lines.append("")
        lines.append("Goals and Progress:")
        for goal in context.goals:
            lines.append(
                f"- {goal.metric}: {goal.current:.1f}/{fmt_number(goal.target)} ({goal.progress:.1f}% complete)"
            )

    if context.trends:
        lines.append("")
        lines.append("Recent Trends:")
        for trend in context.trends:
            lines.append(f"- {trend.metric}: {trend.direction} by {trend.percentage:.1f}% over past {trend.period}")

    if context.insights:
        lines.append("")
        lines.append("Key Insights:")
        for insight in context.insights[:3]:
            lines.append(f"- {insight.message}")

    lines.append("--- END HEALTH DATA CONTEXT ---")
    return "\n".join(lines)
