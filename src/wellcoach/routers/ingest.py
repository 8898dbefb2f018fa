from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session
from starlette.concurrency import run_in_threadpool

from wellcoach.core.auth import get_current_user_id
from wellcoach.core.config import Settings
from wellcoach.core.database import get_session
from wellcoach.core.logging import get_logger
from wellcoach.core.tasks import BackgroundTasks
from wellcoach.health import repository
from wellcoach.health.insights import process_entry_detached
from wellcoach.health.schemas import HealthEntryIn

from .deps import get_app_settings, get_background

logger = get_logger(__name__)

router = APIRouter(tags=["ingest"])


@router.post("/ingest", status_code=status.HTTP_201_CREATED)
async def ingest(
    entry: HealthEntryIn,
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
    background: BackgroundTasks = Depends(get_background),
):
    try:
        await run_in_threadpool(repository.add_entry, session, user_id, entry)
    except repository.DuplicateEntry:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Data for this date already exists. Please edit or delete it first.",
        )

    # Insights are derived off the request path; failures only reach the log.
    background.spawn(
        process_entry_detached(user_id, entry, max_stored=settings.insights_max_stored),
        name=f"insights:{user_id}:{entry.timestamp}",
    )
    return {"message": "Successfully Added the data."}
