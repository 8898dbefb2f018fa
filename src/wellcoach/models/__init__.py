from wellcoach.models.health import (
    GoalProgressRecord,
    HealthEntry,
    HealthProfileRecord,
    InsightRecord,
    MetricSample,
    utc_now,
)

__all__ = [
    "GoalProgressRecord",
    "HealthEntry",
    "HealthProfileRecord",
    "InsightRecord",
    "MetricSample",
    "utc_now",
]
