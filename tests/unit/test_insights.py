from datetime import datetime, timedelta, timezone

import pytest

from wellcoach.health import repository
from wellcoach.health.insights import HealthInsightService, process_entry_detached
from wellcoach.health.schemas import HealthEntryIn

NOW = datetime(2025, 3, 15, 20, 0, 0, tzinfo=timezone.utc)


def _entry(days_ago=0, steps=8000, sleep=7.5, mood="neutral", water=None):
    at = NOW - timedelta(days=days_ago)
    return HealthEntryIn(steps=steps, sleep=sleep, mood=mood, water=water, timestamp=repository.to_epoch_ms(at))


def _service(session, **kwargs):
    return HealthInsightService(session, now=lambda: NOW, **kwargs)


def _messages(insights):
    return [insight.message for insight in insights]


def test_sleep_goal_achievement(session):
    insights = _service(session).generate_insights("user-1", _entry(sleep=8.5))
    assert "Great job! You hit your sleep goal of 8 hours." in _messages(insights)


def test_short_sleep_warns_twice(session):
    insights = _service(session).generate_insights("user-1", _entry(sleep=5.5))
    sleep = [i for i in insights if i.metric == "sleep"]
    assert [i.type for i in sleep] == ["warning", "warning"]
    assert sleep[0].message.startswith("You're 2.5 hours short of your sleep goal.")


def test_weekly_sleep_improvement(session):
    for days in range(13, 6, -1):
        repository.add_entry(session, "user-1", _entry(days, sleep=6.5))
    for days in range(6, 0, -1):
        repository.add_entry(session, "user-1", _entry(days, sleep=7.5))

    insights = _service(session).generate_insights("user-1", _entry(sleep=7.5))

    assert "Your sleep has improved by 1.0 hours this week compared to last week!" in _messages(insights)


def test_steps_milestone_and_goal(session):
    insights = _service(session).generate_insights("user-1", _entry(steps=16000))
    steps = [i for i in insights if i.metric == "steps"]
    assert [i.type for i in steps] == ["achievement", "milestone"]
    assert steps[0].message == "Awesome! You reached your daily step goal of 10,000 steps."


def test_low_steps_suggestion(session):
    insights = _service(session).generate_insights("user-1", _entry(steps=3000))
    assert any(i.type == "suggestion" and i.metric == "steps" for i in insights)


def test_water_rules(session):
    service = _service(session)
    assert [i.type for i in service.generate_insights("user-1", _entry(water=2.5)) if i.metric == "water"] == [
        "achievement"
    ]
    assert [i.type for i in service.generate_insights("user-1", _entry(water=0.5)) if i.metric == "water"] == [
        "warning"
    ]
    assert not [i for i in service.generate_insights("user-1", _entry(water=1.5)) if i.metric == "water"]


def test_positive_mood_streak(session):
    for days in range(6, 0, -1):
        repository.add_entry(session, "user-1", _entry(days, mood="happy"))

    insights = _service(session).generate_insights("user-1", _entry(mood="excited"))

    mood = [i for i in insights if i.metric == "mood"]
    assert len(mood) == 1
    assert mood[0].type == "achievement"


def test_new_entry_is_not_counted_twice(session):
    entry = _entry(sleep=7.0)
    repository.add_entry(session, "user-1", entry)
    timeline = _service(session).timeline("user-1", entry)
    assert len(timeline) == 1
    assert timeline[-1] is entry


def test_process_new_entry_stores_and_caps(session):
    service = _service(session, max_stored=2)
    generated = service.process_new_entry("user-1", _entry(steps=16000, sleep=9.5, water=3))

    assert len(generated) > 2
    assert len(repository.list_insights(session, "user-1")) == 2


def test_goal_progress_follows_the_entry(session):
    _service(session).process_new_entry("user-1", _entry(steps=12000, sleep=6.0, water=1.0))

    rows = {row.metric: row for row in repository.goal_progress_for_day(session, "user-1", NOW.date())}
    assert set(rows) == {"sleep", "steps", "water"}
    assert rows["steps"].progress == 100.0
    assert rows["sleep"].progress == pytest.approx(75.0)
    assert rows["water"].current == pytest.approx(1.0)


def test_goal_progress_updates_without_insights(session):
    # 7h sleep, 8000 steps and no water trigger no rule
    entry = _entry(steps=8000, sleep=7.0)
    service = _service(session)

    assert service.process_new_entry("user-1", entry) == []
    assert repository.list_insights(session, "user-1") == []
    assert len(repository.goal_progress_for_day(session, "user-1", NOW.date())) == 3


async def test_detached_processing_uses_its_own_session(session):
    entry = HealthEntryIn(steps=16000, sleep=8.0, mood="happy", timestamp=repository.to_epoch_ms(datetime.now(timezone.utc)))
    repository.add_entry(session, "user-1", entry)

    insights = await process_entry_detached("user-1", entry)

    assert insights
    assert len(repository.list_insights(session, "user-1")) == len(insights)
