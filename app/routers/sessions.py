"""Session routes: start, record metrics, complete, abandon."""

from fastapi import APIRouter

from app.routers.deps import Academy, CurrentUser
from app.schemas.progress import CertificationOutSchema
from app.schemas.session import (
    CompletionOutSchema,
    MetricsSubmitSchema,
    PerformanceDataSchema,
    SessionOutSchema,
    SessionStartSchema,
)

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


@router.post("", response_model=SessionOutSchema, status_code=201)
async def start_session(body: SessionStartSchema, user_id: CurrentUser, service: Academy):
    """Start (or resume a scheduled) training session for a module."""
    session = await service.start_session(user_id, body.module_id)
    return SessionOutSchema.model_validate(session)


@router.post("/scheduled", response_model=SessionOutSchema, status_code=201)
async def schedule_session(body: SessionStartSchema, user_id: CurrentUser, service: Academy):
    session = await service.schedule_session(user_id, body.module_id)
    return SessionOutSchema.model_validate(session)


@router.get("/{session_id}", response_model=SessionOutSchema)
async def get_session(session_id: str, user_id: CurrentUser, service: Academy):
    session = await service.get_session(session_id, user_id)
    return SessionOutSchema.model_validate(session)


@router.post("/{session_id}/metrics", response_model=SessionOutSchema)
async def record_metrics(session_id: str, body: MetricsSubmitSchema, user_id: CurrentUser, service: Academy):
    session = await service.record_session_metrics(session_id, body.exercise_id, body.metrics, user_id)
    return SessionOutSchema.model_validate(session)


@router.post("/{session_id}/complete", response_model=CompletionOutSchema)
async def complete_session(session_id: str, body: PerformanceDataSchema, user_id: CurrentUser, service: Academy):
    """Complete a session; returns credits, new score, streak, certification and STELLA guidance.

    A completion that cannot commit within ``complete_timeout_seconds`` answers 504.
    """
    result = await service.complete_session(session_id, body, user_id)

    certification = None
    if result.certification is not None:
        certification = CertificationOutSchema.model_validate(result.certification)
    return CompletionOutSchema(
        session=SessionOutSchema.model_validate(result.session),
        credits_awarded=result.credits_awarded,
        new_score=result.new_score,
        streak=result.streak,
        completed_sessions=result.completed_sessions,
        overall_progress=result.overall_progress,
        certification=certification,
        guidance=result.guidance,
    )


@router.post("/{session_id}/abandon", response_model=SessionOutSchema)
async def abandon_session(session_id: str, user_id: CurrentUser, service: Academy):
    session = await service.abandon_session(session_id, user_id)
    return SessionOutSchema.model_validate(session)
