"""Progress Store: persistence of UserProgress and its nested module records.

Every write path goes through ``save`` which re-checks the credit invariant
(``credits_total == sum(credits_breakdown)``) before flushing.
"""
import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.progress import CREDIT_BUCKETS, ModuleProgress, UserProgress, empty_breakdown
from app.services.exceptions import NotFoundError, PersistenceError
from app.services.scoring import compute_leaderboard_score

logger = logging.getLogger(__name__)


def check_invariants(progress: UserProgress) -> None:
    """Raise PersistenceError if the progress record is inconsistent."""
    breakdown = progress.credits_breakdown or {}
    total = progress.credits_total or 0

    if total < 0 or any(v < 0 for v in breakdown.values()):
        raise PersistenceError("Negative credit balance", user_id=progress.user_id)
    if total != sum(breakdown.values()):
        raise PersistenceError(
            "Credit total does not match breakdown",
            user_id=progress.user_id,
            details={"total": total, "breakdown": dict(breakdown)},
        )
    for module in progress.module_progress:
        if min(module.completed_sessions, module.streak, module.total_credits_earned) < 0:
            raise PersistenceError(
                f"Negative counter on module {module.module_id}",
                user_id=progress.user_id,
            )
    if progress.leaderboard_score is not None and progress.leaderboard_score < 0:
        raise PersistenceError("Negative leaderboard score", user_id=progress.user_id)


def progress_query(user_id: str, *, for_update: bool = False):
    """SELECT for one progress row; ``for_update`` re-reads it fresh and locks it until commit."""
    stmt = select(UserProgress).where(UserProgress.user_id == user_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    return stmt


class ProgressStore:
    """Per-user progress persistence on top of an AsyncSession."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find(self, user_id: str) -> UserProgress | None:
        result = await self.db.execute(progress_query(user_id))
        return result.scalar_one_or_none()

    async def get(self, user_id: str) -> UserProgress:
        progress = await self.find(user_id)
        if progress is None:
            raise NotFoundError("progress", user_id)
        return progress

    async def refresh(self, user_id: str) -> UserProgress:
        """Re-read the freshest snapshot and hold a row lock on it until the transaction ends.

        Read-modify-write paths start here, so two writers for the same user
        run one after the other. SQLite has no FOR UPDATE; its single writer
        lock gives the same ordering.
        """
        result = await self.db.execute(progress_query(user_id, for_update=True))
        progress = result.scalar_one_or_none()
        if progress is None:
            raise NotFoundError("progress", user_id)
        return progress

    async def get_or_create(self, user_id: str) -> UserProgress:
        progress = await self.find(user_id)
        if progress is not None:
            return progress

        progress = UserProgress(
            user_id=user_id,
            credits_total=0,
            credits_breakdown=empty_breakdown(),
            leaderboard_score=0,
            module_progress=[],
            certifications=[],
        )
        self.db.add(progress)
        try:
            await self.db.commit()
        except IntegrityError:
            # another request created it first
            await self.db.rollback()
            return await self.get(user_id)

        logger.info(f"Created progress record for user {user_id}")
        return progress

    @staticmethod
    def get_or_create_module_progress(progress: UserProgress, module_id: str) -> ModuleProgress:
        """Return the nested module record, appending a zeroed one if absent. Caller persists."""
        module = progress.find_module(module_id)
        if module is None:
            module = ModuleProgress(
                module_id=module_id,
                completed_sessions=0,
                total_credits_earned=0,
                streak=0,
                overall_progress=0,
                training_logs=[],
                milestones=[],
            )
            progress.module_progress.append(module)
        return module

    @staticmethod
    def award_credits(progress: UserProgress, bucket: str, amount: int) -> None:
        """Add credits to one bucket and to the total together."""
        if bucket not in CREDIT_BUCKETS:
            raise PersistenceError(f"Unknown credit bucket: {bucket}", user_id=progress.user_id)
        if amount < 0:
            raise PersistenceError("Credit awards must be non-negative", user_id=progress.user_id)
        if amount == 0:
            return
        breakdown = dict(progress.credits_breakdown or empty_breakdown())
        breakdown[bucket] = breakdown.get(bucket, 0) + amount
        # reassign so the JSON column is marked dirty
        progress.credits_breakdown = breakdown
        progress.credits_total = (progress.credits_total or 0) + amount

    @staticmethod
    def recompute_score(progress: UserProgress) -> int:
        progress.leaderboard_score = compute_leaderboard_score(progress.module_progress)
        return progress.leaderboard_score

    async def save(self, progress: UserProgress) -> None:
        check_invariants(progress)
        self.db.add(progress)
        try:
            await self.db.flush()
        except SQLAlchemyError as exc:
            logger.error(f"Failed to save progress for user {progress.user_id}: {exc}")
            raise PersistenceError("Storage failure while saving progress", user_id=progress.user_id) from exc

    async def commit(self) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error(f"Commit failed: {exc}")
            raise PersistenceError("Storage failure while committing") from exc

    # ---------- leaderboard ----------

    async def leaderboard(self, limit: int = 10) -> list[tuple[int, str, int, int]]:
        """Top users as (rank, user_id, score, credits). Equal scores share a rank."""
        result = await self.db.execute(
            select(UserProgress.user_id, UserProgress.leaderboard_score, UserProgress.credits_total)
            .order_by(UserProgress.leaderboard_score.desc(), UserProgress.user_id.asc())
            .limit(limit)
        )
        rows = result.all()

        ranked = []
        rank = 0
        previous_score = None
        for position, (user_id, score, credits) in enumerate(rows, start=1):
            if score != previous_score:
                rank = position
                previous_score = score
            ranked.append((rank, user_id, score, credits))
        return ranked

    async def rank_for_score(self, score: int, exclude_user_id: str | None = None) -> int:
        """1 + number of other users strictly above ``score``."""
        stmt = select(func.count(UserProgress.id)).where(UserProgress.leaderboard_score > score)
        if exclude_user_id is not None:
            stmt = stmt.where(UserProgress.user_id != exclude_user_id)
        result = await self.db.execute(stmt)
        return result.scalar_one() + 1

    async def rank_of(self, user_id: str) -> int:
        progress = await self.get(user_id)
        return await self.rank_for_score(progress.leaderboard_score, exclude_user_id=user_id)
