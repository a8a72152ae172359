"""Shared router dependencies: caller identity and the per-request academy service."""
from typing import Annotated

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import verify_session_token
from app.db.session import get_db
from app.services.academy import AcademyService


def get_current_user_id(request: Request) -> str:
    """User id from the signed auth cookie; X-User-Id is accepted in debug mode only."""
    settings = request.app.state.settings
    token = request.cookies.get(settings.auth_cookie_name)
    if token:
        user_id = verify_session_token(token)
        if user_id is not None:
            return user_id

    if settings.debug:
        header = request.headers.get("X-User-Id")
        if header:
            return header

    raise HTTPException(status_code=401, detail="Not authenticated")


def get_academy_service(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> AcademyService:
    state = request.app.state
    return AcademyService(db, state.guidance_adapter, settings=state.settings, events=state.events)


CurrentUser = Annotated[str, Depends(get_current_user_id)]
Academy = Annotated[AcademyService, Depends(get_academy_service)]
