from datetime import datetime, timedelta, timezone

import pytest

from wellcoach.health import repository
from wellcoach.health.schemas import GoalSetting, HealthEntryIn, HealthInsight
from wellcoach.health.service import HealthDataService

NOW = datetime(2025, 3, 15, 12, 0, 0, tzinfo=timezone.utc)


def _entry(days_ago, steps=8000, sleep=7.5, mood="happy", water=None, hours=0):
    at = NOW - timedelta(days=days_ago, hours=hours)
    return HealthEntryIn(steps=steps, sleep=sleep, mood=mood, water=water, timestamp=repository.to_epoch_ms(at))


def _service(session):
    return HealthDataService(session, now=lambda: NOW)


def test_epoch_conversions_round_trip():
    at = datetime(2025, 3, 14, 7, 30, 0, tzinfo=timezone.utc)
    restored = repository.from_epoch_ms(repository.to_epoch_ms(at))
    assert restored == at
    assert restored.utcoffset() == timedelta(0)
    # naive values count as UTC
    assert repository.to_epoch_ms(at.replace(tzinfo=None)) == repository.to_epoch_ms(at)


def test_stored_timestamps_come_back_as_utc(session):
    entry = _entry(1)
    repository.add_entry(session, "user-1", entry)

    row = repository.latest_entry(session, "user-1")

    assert row.recorded_at.utcoffset() == timedelta(0)
    assert repository.to_epoch_ms(row.recorded_at) == entry.timestamp


def test_add_entry_records_samples_and_rejects_duplicates(session):
    repository.add_entry(session, "user-1", _entry(1, water=1.5))
    with pytest.raises(repository.DuplicateEntry):
        repository.add_entry(session, "user-1", _entry(1))
    # same timestamp for another user is fine
    repository.add_entry(session, "user-2", _entry(1))

    water = repository.metric_series(session, "user-1", "water", NOW - timedelta(days=7), NOW)
    assert [sample.value for sample in water] == [1.5]


def test_recent_data_respects_timeframe(session):
    repository.add_entry(session, "user-1", _entry(1, sleep=6.5, mood="sad"))
    repository.add_entry(session, "user-1", _entry(3, sleep=8.0))

    recent = _service(session).get_recent_data("user-1", "yesterday")

    assert [point.value for point in recent.sleep] == [6.5]
    assert recent.sleep[0].date == "2025-03-14"
    assert [m.mood for m in recent.mood] == ["sad"]
    assert recent.water == []


def test_weekly_trend(session):
    for days in (1, 2, 3):
        repository.add_entry(session, "user-1", _entry(days, sleep=8.4, steps=5000))
    for days in (8, 9, 10):
        repository.add_entry(session, "user-1", _entry(days, sleep=7.0, steps=5100))

    service = _service(session)
    sleep = service.compute_trend("user-1", "sleep")
    steps = service.compute_trend("user-1", "steps")

    assert sleep.direction == "up"
    assert sleep.percentage == pytest.approx(20.0)
    assert sleep.currentAvg == pytest.approx(8.4)
    assert sleep.previousAvg == pytest.approx(7.0)
    assert steps.direction == "stable"
    assert service.compute_trend("user-1", "water") is None
    assert service.compute_trend("user-1", "mood") is None


def test_goals_default_when_no_profile(session):
    repository.add_entry(session, "user-1", _entry(1, sleep=6.0, steps=12000, water=1.0))
    repository.add_entry(session, "user-1", _entry(2, sleep=8.0, steps=8000, water=2.0))

    goals = {goal.metric: goal for goal in _service(session).get_user_goals("user-1")}

    assert set(goals) == {"sleep", "steps", "water"}
    assert goals["sleep"].current == pytest.approx(7.0)
    assert goals["sleep"].progress == pytest.approx(87.5)
    assert goals["steps"].progress == pytest.approx(100.0)
    assert goals["water"].priority == "medium"


def test_mood_goal_uses_mood_scores(session):
    profile = repository.default_profile("user-1")
    profile.goals["mood"] = GoalSetting(target=4, priority="low")
    repository.save_profile(session, profile)
    repository.add_entry(session, "user-1", _entry(1, mood="happy"))
    repository.add_entry(session, "user-1", _entry(2, mood="excited"))

    goals = {goal.metric: goal for goal in _service(session).get_user_goals("user-1")}

    assert goals["mood"].current == pytest.approx(4.5)
    assert goals["mood"].progress == pytest.approx(112.5)


def test_context_for_sleep_yesterday_without_data(session):
    context, text = _service(session).build_context_text("user-1", "How was my sleep yesterday?")

    assert context.timeframe == "yesterday"
    assert context.metrics == ["sleep"]
    assert context.recentData.sleep == []
    assert "sleep: No data available" in text


def test_context_includes_stored_insights_newest_first(session):
    repository.store_insights(
        session,
        "user-1",
        [
            HealthInsight(type="warning", message="older", importance="high", timestamp=NOW - timedelta(hours=2)),
            HealthInsight(type="achievement", message="newer", importance="high", timestamp=NOW),
        ],
    )
    context = _service(session).get_user_health_context("user-1", "any tips?")
    assert [insight.message for insight in context.insights] == ["newer", "older"]


def test_store_insights_keeps_only_the_newest(session):
    insights = [
        HealthInsight(type="suggestion", message=f"m{i}", importance="low", timestamp=NOW + timedelta(minutes=i))
        for i in range(6)
    ]
    repository.store_insights(session, "user-1", insights, max_keep=4)
    kept = repository.list_insights(session, "user-1")
    assert [insight.message for insight in kept] == ["m5", "m4", "m3", "m2"]


def test_goal_progress_is_capped_and_upserted(session):
    day = NOW.date()
    repository.upsert_goal_progress(session, "user-1", "steps", day, 10000, 12000)
    repository.upsert_goal_progress(session, "user-1", "steps", day, 10000, 5000)
    rows = repository.goal_progress_for_day(session, "user-1", day)
    assert len(rows) == 1
    assert rows[0].progress == pytest.approx(50.0)

    repository.upsert_goal_progress(session, "user-1", "sleep", day, 8, 10)
    sleep = [row for row in repository.goal_progress_for_day(session, "user-1", day) if row.metric == "sleep"][0]
    assert sleep.progress == 100.0
