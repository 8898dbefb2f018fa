from datetime import datetime, timedelta, timezone

import pytest

from wellcoach.health import repository


def _payload(at=None, **overrides):
    at = at or datetime.now(timezone.utc)
    body = {"steps": 16000, "sleep": 8.5, "mood": "happy", "water": 2.5, "timestamp": repository.to_epoch_ms(at)}
    body.update(overrides)
    return body


@pytest.mark.asyncio
async def test_ingest_creates_entry_and_insights(client, auth_headers, test_app, session):
    resp = await client.post("/ingest", json=_payload(), headers=auth_headers)
    assert resp.status_code == 201, resp.text
    assert resp.json() == {"message": "Successfully Added the data."}

    await test_app.state.background.drain()

    assert repository.latest_entry(session, "user-1").steps == 16000
    messages = [insight.message for insight in repository.list_insights(session, "user-1")]
    assert "Great job! You hit your sleep goal of 8 hours." in messages
    progress = {row.metric: row.progress for row in repository.goal_progress_for_day(session, "user-1", datetime.now(timezone.utc).date())}
    assert progress == {"sleep": 100.0, "steps": 100.0, "water": 100.0}


@pytest.mark.asyncio
async def test_ingest_duplicate_is_409(client, auth_headers, test_app):
    at = datetime.now(timezone.utc) - timedelta(days=1)
    first = await client.post("/ingest", json=_payload(at), headers=auth_headers)
    again = await client.post("/ingest", json=_payload(at, steps=1), headers=auth_headers)
    await test_app.state.background.drain()

    assert first.status_code == 201
    assert again.status_code == 409
    assert again.json()["detail"] == "Data for this date already exists. Please edit or delete it first."


@pytest.mark.asyncio
async def test_ingest_same_time_other_user(client, test_app):
    at = datetime.now(timezone.utc)
    a = await client.post("/ingest", json=_payload(at), headers={"X-User-Id": "alice"})
    b = await client.post("/ingest", json=_payload(at), headers={"X-User-Id": "bob"})
    await test_app.state.background.drain()
    assert (a.status_code, b.status_code) == (201, 201)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [{"steps": -1}, {"sleep": 30}, {"timestamp": 0}, {"water": -0.5}],
)
async def test_ingest_validates_payload(client, auth_headers, overrides):
    resp = await client.post("/ingest", json=_payload(**overrides), headers=auth_headers)
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_ingest_requires_user(client):
    resp = await client.post("/ingest", json=_payload())
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_ingested_data_reaches_chat_context(client, auth_headers, chat_model, test_app):
    yesterday = datetime.now(timezone.utc).replace(hour=12, minute=0, second=0, microsecond=0) - timedelta(days=1)
    await client.post("/ingest", json=_payload(yesterday, sleep=6.5), headers=auth_headers)
    await test_app.state.background.drain()

    resp = await client.post(
        "/chat",
        json={"messages": [{"role": "user", "content": "How was my sleep yesterday?"}]},
        headers=auth_headers,
    )

    assert resp.status_code == 200
    system_prompt, _ = chat_model.calls[0]
    assert "- sleep: Latest: 6.5, Average: 6.5" in system_prompt


@pytest.mark.asyncio
async def test_ingested_entry_shows_up_in_metrics(client, auth_headers, test_app):
    at = datetime.now(timezone.utc) - timedelta(hours=1)
    created = await client.post("/ingest", json=_payload(at, sleep=7.25), headers=auth_headers)
    await test_app.state.background.drain()

    metrics = await client.get("/metrics", headers=auth_headers)

    assert created.status_code == 201, created.text
    assert metrics.status_code == 200, metrics.text
    assert metrics.json()["sleepData"] == [{"date": at.date().isoformat(), "value": 7.25}]
