from __future__ import annotations

from typing import Optional

from fastapi import HTTPException, Request, status

from .config import get_settings


def resolve_user_id(headers) -> Optional[str]:
    """Return the authenticated user id forwarded by the session gateway, if any."""
    raw = headers.get(get_settings().auth_user_header)
    if raw is None:
        return None
    user_id = raw.strip()
    return user_id or None


def get_current_user_id(request: Request) -> str:
    user_id = resolve_user_id(request.headers)
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return user_id
