"""Caller-facing operations of the academy core, used by the HTTP routers."""
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings
from app.models.certification import Certification
from app.models.session import TrainingSession
from app.schemas.progress import (
    CertificationOutSchema,
    CreditsSchema,
    LeaderboardEntrySchema,
    ModuleProgressOutSchema,
    ProgressOutSchema,
)
from app.schemas.session import GuidanceSchema, PerformanceDataSchema
from app.services.catalog import list_modules
from app.services.events import EventPublisher
from app.services.exceptions import NotFoundError
from app.services.guidance import RecommendationAdapter
from app.services.progress_store import ProgressStore
from app.services.scoring import credit_level, score_breakdown
from app.services.sessions import (
    CompletionResult,
    MilestoneResult,
    SessionLifecycleManager,
    guidance_context,
)

MAX_LEADERBOARD_LIMIT = 100


class AcademyService:
    """Thin facade over the lifecycle manager and the progress store."""

    def __init__(
        self,
        db: AsyncSession,
        adapter: RecommendationAdapter,
        *,
        settings: Settings | None = None,
        events: EventPublisher | None = None,
    ):
        self.db = db
        self.sessions = SessionLifecycleManager(db, adapter, settings=settings, events=events)
        self.store: ProgressStore = self.sessions.store

    # ---------- sessions ----------

    async def schedule_session(self, user_id: str, module_id: str) -> TrainingSession:
        return await self.sessions.schedule(user_id, module_id)

    async def start_session(self, user_id: str, module_id: str) -> TrainingSession:
        return await self.sessions.start(user_id, module_id)

    async def get_session(self, session_id: str, user_id: str) -> TrainingSession:
        session = await self.sessions.get_session(session_id)
        self.sessions.check_owner(session, user_id, "get_session")
        return session

    async def record_session_metrics(
        self, session_id: str, exercise_id: str, metrics: dict[str, float], user_id: str
    ) -> TrainingSession:
        return await self.sessions.record_metrics(session_id, exercise_id, metrics, user_id=user_id)

    async def complete_session(
        self, session_id: str, performance: PerformanceDataSchema, user_id: str
    ) -> CompletionResult:
        return await self.sessions.complete(session_id, performance, user_id=user_id)

    async def abandon_session(self, session_id: str, user_id: str) -> TrainingSession:
        return await self.sessions.abandon(session_id, user_id=user_id)

    async def unlock_milestone(self, user_id: str, module_id: str, name: str) -> MilestoneResult:
        return await self.sessions.unlock_milestone(user_id, module_id, name)

    # ---------- reads ----------

    async def get_progress(self, user_id: str) -> ProgressOutSchema:
        progress = await self.store.get(user_id)
        breakdown = dict(progress.credits_breakdown or {})
        return ProgressOutSchema(
            user_id=progress.user_id,
            credits=CreditsSchema(
                total=progress.credits_total,
                breakdown=breakdown,
                level=credit_level(progress.credits_total),
            ),
            leaderboard_score=progress.leaderboard_score,
            module_progress=[ModuleProgressOutSchema.model_validate(m) for m in progress.module_progress],
            score_breakdown=[score_breakdown(m) for m in progress.module_progress],
            certifications=[CertificationOutSchema.model_validate(c) for c in progress.certifications],
        )

    async def get_certifications(self, user_id: str) -> list[Certification]:
        progress = await self.store.get(user_id)
        return list(progress.certifications)

    async def get_leaderboard(self, limit: int = 10) -> list[LeaderboardEntrySchema]:
        limit = max(1, min(limit, MAX_LEADERBOARD_LIMIT))
        rows = await self.store.leaderboard(limit)
        return [
            LeaderboardEntrySchema(rank=rank, user_id=user_id, leaderboard_score=score, credits_total=credits)
            for rank, user_id, score, credits in rows
        ]

    async def get_user_rank(self, user_id: str) -> int:
        return await self.store.rank_of(user_id)

    async def get_guidance(self, user_id: str, module_id: str | None = None) -> GuidanceSchema:
        progress = await self.store.get(user_id)
        module_progress = None
        if module_id is not None:
            module_progress = progress.find_module(module_id)
            if module_progress is None:
                raise NotFoundError("module progress", module_id)
        elif progress.module_progress:
            module_progress = progress.module_progress[-1]
        return await self.sessions.safe_guidance(user_id, guidance_context(progress, module_progress))

    async def list_modules(self):
        return await list_modules(self.db)
