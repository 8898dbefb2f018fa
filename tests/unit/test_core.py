import asyncio
import logging

import pytest
from starlette.datastructures import Headers

from wellcoach.core.auth import resolve_user_id
from wellcoach.core.config import Settings
from wellcoach.core.tasks import BackgroundTasks


@pytest.mark.parametrize(
    "headers, expected",
    [
        ({"X-User-Id": "user-1"}, "user-1"),
        ({"x-user-id": "  user-2 "}, "user-2"),
        ({"X-User-Id": "   "}, None),
        ({}, None),
    ],
)
def test_resolve_user_id(headers, expected):
    assert resolve_user_id(Headers(headers)) == expected


def test_settings_defaults():
    settings = Settings()
    assert settings.cache_distance_threshold == 0.10
    assert settings.cache_distance_threshold_with_context == 0.08
    assert settings.cache_top_k == 3


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("CACHE_TOP_K", "5")
    monkeypatch.setenv("VECTOR_BACKEND", "memory")
    settings = Settings()
    assert settings.cache_top_k == 5
    assert settings.vector_backend == "memory"


@pytest.mark.asyncio
async def test_background_failures_are_logged_not_raised(caplog):
    tasks = BackgroundTasks()

    async def _boom():
        raise RuntimeError("disk full")

    async def _ok():
        await asyncio.sleep(0)
        return "done"

    with caplog.at_level(logging.ERROR):
        failed = tasks.spawn(_boom(), name="insights:user-1:1")
        succeeded = tasks.spawn(_ok(), name="insights:user-1:2")
        assert tasks.pending == 2
        await tasks.drain()

    assert tasks.pending == 0
    assert succeeded.result() == "done"
    assert isinstance(failed.exception(), RuntimeError)
    assert "Background task insights:user-1:1 failed" in caplog.text
