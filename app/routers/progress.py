"""Progress routes: progress summary, certifications, milestones, guidance, leaderboard, modules."""
from fastapi import APIRouter, Query

from app.routers.deps import Academy, CurrentUser
from app.schemas.progress import (
    CertificationOutSchema,
    LeaderboardEntrySchema,
    MilestoneOutSchema,
    MilestoneUnlockSchema,
    ModuleOutSchema,
    ProgressOutSchema,
)
from app.schemas.session import GuidanceSchema

router = APIRouter(prefix="/api", tags=["progress"])


@router.get("/progress", response_model=ProgressOutSchema)
async def get_progress(user_id: CurrentUser, service: Academy):
    return await service.get_progress(user_id)


@router.get("/progress/certifications", response_model=list[CertificationOutSchema])
async def get_certifications(user_id: CurrentUser, service: Academy):
    certifications = await service.get_certifications(user_id)
    return [CertificationOutSchema.model_validate(c) for c in certifications]


@router.post("/progress/milestones")
async def unlock_milestone(body: MilestoneUnlockSchema, user_id: CurrentUser, service: Academy):
    """Unlock a milestone; a repeat unlock reports unlocked=false."""
    result = await service.unlock_milestone(user_id, body.module_id, body.name)
    return {
        "unlocked": result.unlocked,
        "milestone": MilestoneOutSchema.model_validate(result.milestone),
        "certification": (
            CertificationOutSchema.model_validate(result.certification)
            if result.certification is not None
            else None
        ),
    }


@router.get("/progress/guidance", response_model=GuidanceSchema)
async def get_guidance(user_id: CurrentUser, service: Academy, module_id: str | None = None):
    return await service.get_guidance(user_id, module_id)


@router.get("/progress/rank")
async def get_rank(user_id: CurrentUser, service: Academy):
    return {"user_id": user_id, "rank": await service.get_user_rank(user_id)}


@router.get("/leaderboard", response_model=list[LeaderboardEntrySchema])
async def get_leaderboard(service: Academy, limit: int = Query(default=10, ge=1, le=100)):
    return await service.get_leaderboard(limit)


@router.get("/modules", response_model=list[ModuleOutSchema])
async def list_modules(service: Academy):
    modules = await service.list_modules()
    return [ModuleOutSchema.model_validate(m) for m in modules]
