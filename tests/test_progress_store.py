"""
Tests for ProgressStore persistence, the credit invariant and leaderboard ranks.
"""

import logging

import pytest
from sqlalchemy import update
from sqlalchemy.dialects import postgresql

from app.models.progress import UserProgress
from app.services.exceptions import NotFoundError, PersistenceError
from app.services.progress_store import ProgressStore, check_invariants, progress_query

pytestmark = pytest.mark.anyio


class TestGetOrCreate:
    """Test lazy creation of progress records."""

    async def test_creates_zeroed_record(self, db):
        store = ProgressStore(db)
        progress = await store.get_or_create("astro-1")

        assert progress.user_id == "astro-1"
        assert progress.credits_total == 0
        assert progress.credits_breakdown == {
            "attendance": 0, "performance": 0, "milestones": 0, "completion": 0,
        }
        assert progress.leaderboard_score == 0
        assert progress.module_progress == []

    async def test_returns_existing_record(self, db):
        store = ProgressStore(db)
        first = await store.get_or_create("astro-1")
        second = await store.get_or_create("astro-1")
        assert first.id == second.id

    async def test_creation_logged(self, db, caplog):
        with caplog.at_level(logging.INFO, logger="app.services.progress_store"):
            await ProgressStore(db).get_or_create("astro-1")
        assert "Created progress record for user astro-1" in caplog.messages

    async def test_get_unknown_user(self, db):
        with pytest.raises(NotFoundError) as exc_info:
            await ProgressStore(db).get("nobody")
        assert exc_info.value.status_code == 404

    async def test_module_progress_appended_once(self, db):
        store = ProgressStore(db)
        progress = await store.get_or_create("astro-1")
        first = store.get_or_create_module_progress(progress, "core-balance-foundation")
        second = store.get_or_create_module_progress(progress, "core-balance-foundation")
        await store.save(progress)
        await store.commit()

        assert first is second
        reloaded = await store.refresh("astro-1")
        assert [m.module_id for m in reloaded.module_progress] == ["core-balance-foundation"]


class TestCreditInvariant:
    """Test that credits_total always equals the sum of the breakdown."""

    async def test_award_updates_total_and_bucket(self, db):
        store = ProgressStore(db)
        progress = await store.get_or_create("astro-1")
        store.award_credits(progress, "attendance", 50)
        store.award_credits(progress, "performance", 35)
        await store.save(progress)
        await store.commit()

        reloaded = await store.refresh("astro-1")
        assert reloaded.credits_total == 85
        assert reloaded.credits_breakdown["attendance"] == 50
        assert reloaded.credits_breakdown["performance"] == 35
        assert reloaded.credits_total == sum(reloaded.credits_breakdown.values())

    async def test_save_rejects_mismatched_total(self, db):
        store = ProgressStore(db)
        progress = await store.get_or_create("astro-1")
        progress.credits_total = 10

        with pytest.raises(PersistenceError) as exc_info:
            await store.save(progress)
        assert exc_info.value.details["total"] == 10

    async def test_unknown_bucket(self, db):
        store = ProgressStore(db)
        progress = await store.get_or_create("astro-1")
        with pytest.raises(PersistenceError):
            store.award_credits(progress, "assessments", 10)

    async def test_negative_award(self, db):
        store = ProgressStore(db)
        progress = await store.get_or_create("astro-1")
        with pytest.raises(PersistenceError):
            store.award_credits(progress, "attendance", -5)

    async def test_negative_counter(self, db):
        store = ProgressStore(db)
        progress = await store.get_or_create("astro-1")
        module = store.get_or_create_module_progress(progress, "core-balance-foundation")
        module.streak = -1
        with pytest.raises(PersistenceError):
            check_invariants(progress)


class TestLeaderboard:
    """Test leaderboard ordering and shared ranks."""

    async def _seed_scores(self, db, scores):
        store = ProgressStore(db)
        for user_id, score in scores.items():
            progress = await store.get_or_create(user_id)
            progress.leaderboard_score = score
            await store.save(progress)
        await store.commit()
        return store

    async def test_ordering_and_ties(self, db):
        store = await self._seed_scores(db, {"a": 100, "b": 300, "c": 300, "d": 50})
        rows = await store.leaderboard(limit=10)

        assert rows == [
            (1, "b", 300, 0),
            (1, "c", 300, 0),
            (3, "a", 100, 0),
            (4, "d", 50, 0),
        ]

    async def test_limit(self, db):
        store = await self._seed_scores(db, {"a": 100, "b": 300, "c": 200})
        rows = await store.leaderboard(limit=2)
        assert [r[1] for r in rows] == ["b", "c"]

    async def test_rank_of(self, db):
        store = await self._seed_scores(db, {"a": 100, "b": 300, "c": 300})
        assert await store.rank_of("b") == 1
        assert await store.rank_of("c") == 1
        assert await store.rank_of("a") == 3


class TestRefresh:
    """Test the locking re-read used by read-modify-write paths."""

    async def test_locks_row_for_update(self):
        sql = str(progress_query("astro-1", for_update=True).compile(dialect=postgresql.dialect()))
        assert sql.rstrip().endswith("FOR UPDATE")
        assert "FOR UPDATE" not in str(progress_query("astro-1").compile(dialect=postgresql.dialect()))

    async def test_sees_writes_made_behind_the_identity_map(self, db):
        store = ProgressStore(db)
        progress = await store.get_or_create("astro-1")
        await db.execute(
            update(UserProgress)
            .where(UserProgress.user_id == "astro-1")
            .values(
                credits_total=20,
                credits_breakdown={"attendance": 20, "performance": 0, "milestones": 0, "completion": 0},
            )
            .execution_options(synchronize_session=False)
        )

        assert (await store.find("astro-1")).credits_total == 0
        fresh = await store.refresh("astro-1")
        assert fresh is progress
        assert fresh.credits_total == 20
        assert fresh.credits_breakdown["attendance"] == 20

    async def test_unknown_user(self, db):
        with pytest.raises(NotFoundError):
            await ProgressStore(db).refresh("nobody")
