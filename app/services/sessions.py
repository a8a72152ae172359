"""
Session Lifecycle Manager

Drives a training session through scheduled -> in-progress -> completed /
abandoned and applies the consequences to the owner's progress record.

Status transitions are conditional UPDATEs on the status column, so two
concurrent completions of the same session cannot both succeed. Progress
changes for a completion are made on a freshly re-read, row-locked snapshot
inside the same transaction as the status change.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional
from zoneinfo import ZoneInfo

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import as_utc, utcnow
from app.core.config import Settings, get_settings
from app.models.certification import Certification
from app.models.progress import Milestone, ModuleProgress, TrainingLog, UserProgress
from app.models.session import SessionStatus, TrainingSession, new_session_id
from app.schemas.progress import CreditAwardSchema
from app.schemas.session import GuidanceSchema, PerformanceDataSchema
from app.services.catalog import get_module
from app.services.certification import CertificationEvaluator
from app.services.events import AcademyEvents, EventPublisher
from app.services.exceptions import (
    AcademyError,
    CompletionTimeoutError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    PersistenceError,
)
from app.services.guidance import RecommendationAdapter, fallback_guidance
from app.services.progress_store import ProgressStore
from app.services.scoring import (
    MILESTONE_CREDITS,
    compute_credits,
    compute_module_progress,
    update_streak,
)

logger = logging.getLogger(__name__)


@dataclass
class CompletionResult:
    session: TrainingSession
    credits_awarded: CreditAwardSchema
    new_score: int
    streak: int
    completed_sessions: int
    overall_progress: int
    certification: Optional[Certification]
    guidance: GuidanceSchema


@dataclass
class MilestoneResult:
    milestone: Milestone
    unlocked: bool  # False when it was already unlocked
    certification: Optional[Certification] = None


def guidance_context(
    progress: UserProgress,
    module_progress: ModuleProgress | None,
    session: TrainingSession | None = None,
    performance: PerformanceDataSchema | None = None,
) -> dict[str, Any]:
    """Training data forwarded to STELLA. Only plain JSON values."""
    context: dict[str, Any] = {
        "credits_total": progress.credits_total,
        "leaderboard_score": progress.leaderboard_score,
    }
    if module_progress is not None:
        recent = module_progress.training_logs[-3:]
        context.update({
            "module_id": module_progress.module_id,
            "completed_sessions": module_progress.completed_sessions,
            "streak": module_progress.streak,
            "overall_progress": module_progress.overall_progress,
            "recent_sessions": [
                {
                    "exercises": list(log.exercises_completed or []),
                    "duration": log.duration,
                    "calories_burned": log.calories_burned,
                }
                for log in recent
            ],
        })
    if session is not None:
        context["metrics"] = dict(session.metrics or {})
    if performance is not None:
        context["performance"] = performance.model_dump(exclude_none=True)
    return context


class SessionLifecycleManager:
    """State machine for training sessions, bound to one database session."""

    def __init__(
        self,
        db: AsyncSession,
        adapter: RecommendationAdapter,
        *,
        settings: Settings | None = None,
        events: EventPublisher | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.store = ProgressStore(db)
        self.certifier = CertificationEvaluator(self.store, self.settings.certification_validity_days)
        self.adapter = adapter
        self.events = events or EventPublisher()
        self.clock = clock
        self.tz = ZoneInfo(self.settings.streak_timezone)

    # ---------- helpers ----------

    async def get_session(self, session_id: str) -> TrainingSession:
        result = await self.db.execute(
            select(TrainingSession)
            .where(TrainingSession.session_id == session_id)
            .execution_options(populate_existing=True)
        )
        session = result.scalar_one_or_none()
        if session is None:
            raise NotFoundError("session", session_id)
        return session

    async def _find_session(self, user_id: str, module_id: str, status: SessionStatus) -> TrainingSession | None:
        result = await self.db.execute(
            select(TrainingSession)
            .where(
                TrainingSession.user_id == user_id,
                TrainingSession.module_id == module_id,
                TrainingSession.status == status.value,
            )
            .order_by(TrainingSession.created_at.asc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    @staticmethod
    def check_owner(session: TrainingSession, user_id: str | None, operation: str) -> None:
        if user_id is not None and session.user_id != user_id:
            raise ForbiddenError(operation, user_id=user_id)

    async def _conditional_update(self, session_id: str, allowed: tuple[SessionStatus, ...], **values) -> bool:
        """UPDATE guarded on the current status; True if this caller changed the row."""
        result = await self.db.execute(
            update(TrainingSession)
            .where(
                TrainingSession.session_id == session_id,
                TrainingSession.status.in_([s.value for s in allowed]),
            )
            .values(**values)
        )
        return result.rowcount == 1

    async def _current_status(self, session_id: str) -> str:
        await self.db.rollback()
        return (await self.get_session(session_id)).status

    # ---------- lifecycle ----------

    async def schedule(self, user_id: str, module_id: str) -> TrainingSession:
        await get_module(self.db, module_id)
        session = TrainingSession(
            session_id=new_session_id(),
            user_id=user_id,
            module_id=module_id,
            status=SessionStatus.SCHEDULED.value,
            metrics={},
            credits_earned=0,
        )
        self.db.add(session)
        await self.store.commit()
        logger.info(f"Scheduled session {session.session_id} for user {user_id} on {module_id}")
        return session

    async def start(self, user_id: str, module_id: str) -> TrainingSession:
        """Begin a session. Only one in-progress session per user and module."""
        await get_module(self.db, module_id)

        active = await self._find_session(user_id, module_id, SessionStatus.IN_PROGRESS)
        if active is not None:
            raise InvalidStateError(
                SessionStatus.IN_PROGRESS.value,
                SessionStatus.IN_PROGRESS.value,
                message=f"Session {active.session_id} is already in progress for {module_id}",
                details={"session_id": active.session_id},
            )

        progress = await self.store.get_or_create(user_id)
        self.store.get_or_create_module_progress(progress, module_id)
        await self.store.save(progress)

        now = self.clock()
        try:
            session = None
            scheduled = await self._find_session(user_id, module_id, SessionStatus.SCHEDULED)
            if scheduled is not None and await self._conditional_update(
                scheduled.session_id,
                (SessionStatus.SCHEDULED,),
                status=SessionStatus.IN_PROGRESS.value,
                start_time=now,
            ):
                session = scheduled
            if session is None:
                session = TrainingSession(
                    session_id=new_session_id(),
                    user_id=user_id,
                    module_id=module_id,
                    status=SessionStatus.IN_PROGRESS.value,
                    start_time=now,
                    metrics={},
                    credits_earned=0,
                )
                self.db.add(session)
            await self.db.commit()
        except IntegrityError as exc:
            # lost the race on the one-active-session index, either on the
            # promoting UPDATE or on the INSERT at commit
            await self.db.rollback()
            raise InvalidStateError(
                SessionStatus.IN_PROGRESS.value,
                SessionStatus.IN_PROGRESS.value,
                message=f"A session is already in progress for {module_id}",
            ) from exc

        session = await self.get_session(session.session_id)
        logger.info(f"Session {session.session_id} started: user={user_id} module={module_id}")
        self.events.publish(AcademyEvents.SESSION_STARTED, {
            "session_id": session.session_id,
            "user_id": user_id,
            "module_id": module_id,
        })
        return session

    async def record_metrics(
        self,
        session_id: str,
        exercise_id: str,
        metrics: dict[str, float],
        user_id: str | None = None,
    ) -> TrainingSession:
        """Store measurements for one exercise; last write wins per exercise id."""
        session = await self.get_session(session_id)
        self.check_owner(session, user_id, "record_metrics")
        if session.status != SessionStatus.IN_PROGRESS.value:
            raise NotFoundError(
                "in-progress session",
                session_id,
                message=f"No in-progress session {session_id} (status: {session.status})",
            )

        updated = dict(session.metrics or {})
        updated[exercise_id] = dict(metrics)
        if not await self._conditional_update(session_id, (SessionStatus.IN_PROGRESS,), metrics=updated):
            await self.db.rollback()
            raise NotFoundError("in-progress session", session_id)
        await self.store.commit()
        return await self.get_session(session_id)

    async def complete(
        self,
        session_id: str,
        performance: PerformanceDataSchema,
        user_id: str | None = None,
    ) -> CompletionResult:
        """Complete a session and apply it to the owner's progress.

        The transaction gets ``complete_timeout_seconds``; on expiry it is
        rolled back and CompletionTimeoutError is raised. Guidance only
        runs once the transaction is committed and gets whatever is left
        of the budget, falling back to the static guidance when none is.
        """
        loop = asyncio.get_running_loop()
        budget = self.settings.complete_timeout_seconds
        deadline = loop.time() + budget
        try:
            session, progress, module_progress, award, certification, old_rank = await asyncio.wait_for(
                self._apply_completion(session_id, performance, user_id), timeout=budget
            )
        except asyncio.TimeoutError as exc:
            await self.db.rollback()
            logger.error(f"Completing session {session_id} timed out after {budget}s, rolled back")
            raise CompletionTimeoutError(session_id, budget) from exc

        owner = session.user_id
        new_score = progress.leaderboard_score
        logger.info(
            f"Session {session_id} completed: user={owner} module={session.module_id} "
            f"credits={award.total_earned} score={new_score}"
        )
        self._publish_completion(session, progress, module_progress, certification)
        new_rank = await self.store.rank_for_score(new_score, exclude_user_id=owner)
        if new_rank < old_rank:
            self.events.publish(AcademyEvents.LEADERBOARD_RANK_IMPROVED, {
                "user_id": owner,
                "old_rank": old_rank,
                "new_rank": new_rank,
                "score": new_score,
            })

        # (8) best effort; committed state above is never rolled back
        guidance = await self.safe_guidance(
            owner,
            guidance_context(progress, module_progress, session, performance),
            timeout=deadline - loop.time(),
        )

        return CompletionResult(
            session=session,
            credits_awarded=award,
            new_score=new_score,
            streak=module_progress.streak,
            completed_sessions=module_progress.completed_sessions,
            overall_progress=module_progress.overall_progress,
            certification=certification,
            guidance=guidance,
        )

    async def _apply_completion(
        self,
        session_id: str,
        performance: PerformanceDataSchema,
        user_id: str | None,
    ) -> tuple[TrainingSession, UserProgress, ModuleProgress, CreditAwardSchema, Optional[Certification], int]:
        """Steps (1) to (7) in one transaction, committed before returning."""
        session = await self.get_session(session_id)
        self.check_owner(session, user_id, "complete")
        owner = session.user_id
        now = self.clock()

        # (1) in-progress -> completed, atomically
        if not await self._conditional_update(
            session_id,
            (SessionStatus.IN_PROGRESS,),
            status=SessionStatus.COMPLETED.value,
            completed_at=now,
        ):
            current = await self._current_status(session_id)
            raise InvalidStateError(current, SessionStatus.COMPLETED.value)

        try:
            module = await get_module(self.db, session.module_id)
            # locked until commit: concurrent completions for this user queue here
            progress = await self.store.refresh(owner)
            old_rank = await self.store.rank_for_score(progress.leaderboard_score, exclude_user_id=owner)
            module_progress = self.store.get_or_create_module_progress(progress, session.module_id)

            # (2) training log
            exercises = set(performance.exercises_completed) | set((session.metrics or {}).keys())
            module_progress.training_logs.append(TrainingLog(
                date=now,
                exercises_completed=sorted(exercises),
                duration=performance.duration,
                calories_burned=performance.calories_burned,
            ))
            # (3) counter
            module_progress.completed_sessions += 1
            # (4) streak
            last = as_utc(module_progress.last_session_date)
            module_progress.streak = update_streak(module_progress.streak, last, now, self.tz)
            if last is None or now > last:
                module_progress.last_session_date = now
            # (5) credits: total and bucket move together
            award = compute_credits(performance)
            self.store.award_credits(progress, "attendance", award.base)
            self.store.award_credits(progress, "performance", award.bonus_challenge + award.time_bonus)
            module_progress.total_credits_earned += award.total_earned
            session.credits_earned = award.total_earned

            if performance.assessment_score is not None:
                best = module_progress.best_assessment_score
                module_progress.best_assessment_score = max(best or 0, performance.assessment_score)
            module_progress.overall_progress = compute_module_progress(
                module_progress.completed_sessions, module.required_sessions
            )
            # (6) leaderboard score from scratch
            self.store.recompute_score(progress)
            await self.store.save(progress)

            # (7) certification at 100%
            certification = None
            if module_progress.overall_progress >= 100:
                certification = await self.certifier.evaluate(progress, module_progress, module, now=now)

            await self.store.commit()
        except AcademyError:
            await self.db.rollback()
            raise
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error(f"Completing session {session_id} failed: {exc}")
            raise PersistenceError("Storage failure while completing session", user_id=owner) from exc

        return session, progress, module_progress, award, certification, old_rank

    async def abandon(self, session_id: str, user_id: str | None = None) -> TrainingSession:
        """Close a session without touching progress."""
        session = await self.get_session(session_id)
        self.check_owner(session, user_id, "abandon")

        if not await self._conditional_update(
            session_id,
            (SessionStatus.SCHEDULED, SessionStatus.IN_PROGRESS),
            status=SessionStatus.ABANDONED.value,
        ):
            current = await self._current_status(session_id)
            raise InvalidStateError(current, SessionStatus.ABANDONED.value)
        await self.store.commit()

        session = await self.get_session(session_id)
        logger.info(f"Session {session_id} abandoned by user {session.user_id}")
        self.events.publish(AcademyEvents.SESSION_ABANDONED, {
            "session_id": session_id,
            "user_id": session.user_id,
            "module_id": session.module_id,
        })
        return session

    # ---------- milestones ----------

    async def unlock_milestone(self, user_id: str, module_id: str, name: str) -> MilestoneResult:
        module = await get_module(self.db, module_id)
        progress = await self.store.refresh(user_id)
        module_progress = progress.find_module(module_id)
        if module_progress is None:
            raise NotFoundError("module progress", module_id)

        for existing in module_progress.milestones:
            if existing.name == name:
                return MilestoneResult(milestone=existing, unlocked=False)

        now = self.clock()
        milestone = Milestone(name=name, completed=True, date_achieved=now)
        try:
            module_progress.milestones.append(milestone)
            self.store.award_credits(progress, "milestones", MILESTONE_CREDITS)
            module_progress.total_credits_earned += MILESTONE_CREDITS
            await self.store.save(progress)

            certification = None
            if module_progress.overall_progress >= 100:
                certification = await self.certifier.evaluate(progress, module_progress, module, now=now)
            await self.store.commit()
        except AcademyError:
            await self.db.rollback()
            raise

        logger.info(f"Milestone {name} unlocked for user {user_id} on {module_id}")
        self.events.publish(AcademyEvents.MILESTONE_UNLOCKED, {
            "user_id": user_id,
            "module_id": module_id,
            "name": name,
        })
        if certification is not None:
            self._publish_certification(user_id, certification)
        return MilestoneResult(milestone=milestone, unlocked=True, certification=certification)

    # ---------- guidance & events ----------

    async def safe_guidance(
        self, user_id: str, context: dict[str, Any], timeout: float | None = None
    ) -> GuidanceSchema:
        if timeout is not None and timeout <= 0:
            logger.warning(f"No time left for guidance for user {user_id}")
            return fallback_guidance()
        try:
            return await asyncio.wait_for(self.adapter.get_guidance(user_id, context), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Guidance for user {user_id} cut off after {timeout}s")
            return fallback_guidance()
        except Exception as exc:  # guidance never fails a completed operation
            logger.warning(f"Guidance adapter raised for user {user_id}: {exc}")
            return fallback_guidance()

    def _publish_completion(
        self,
        session: TrainingSession,
        progress: UserProgress,
        module_progress: ModuleProgress,
        certification: Certification | None,
    ) -> None:
        self.events.publish(AcademyEvents.SESSION_COMPLETED, {
            "session_id": session.session_id,
            "user_id": session.user_id,
            "module_id": session.module_id,
            "credits_earned": session.credits_earned,
            "leaderboard_score": progress.leaderboard_score,
            "streak": module_progress.streak,
        })
        if certification is not None:
            self._publish_certification(session.user_id, certification)

    def _publish_certification(self, user_id: str, certification: Certification) -> None:
        self.events.publish(AcademyEvents.CERTIFICATION_AWARDED, {
            "user_id": user_id,
            "module_id": certification.module_id,
            "name": certification.name,
            "credits_earned": certification.credits_earned,
            "expiry_date": certification.expiry_date.isoformat(),
        })
