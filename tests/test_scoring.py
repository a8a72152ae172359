"""
Tests for leaderboard scoring, credit awards, streaks and levels.
"""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from zoneinfo import ZoneInfo

import pytest

from app.schemas.session import PerformanceDataSchema
from app.services.scoring import (
    compute_credits,
    compute_leaderboard_score,
    compute_module_progress,
    credit_level,
    score_breakdown,
    update_streak,
)


def make_module(module_id="core-balance-foundation", sessions=0, streak=0, logs=()):
    return SimpleNamespace(
        module_id=module_id,
        completed_sessions=sessions,
        streak=streak,
        training_logs=[
            SimpleNamespace(exercises_completed=list(exercises), duration=duration)
            for exercises, duration in logs
        ],
    )


# =============================================================================
# Leaderboard score
# =============================================================================

class TestLeaderboardScore:
    """Test compute_leaderboard_score and score_breakdown."""

    def test_empty_progress_scores_zero(self):
        assert compute_leaderboard_score([]) == 0

    def test_first_session_with_one_exercise(self):
        module = make_module(sessions=1, streak=1, logs=[(["plank"], 30.0)])
        assert compute_leaderboard_score([module]) == 175

    def test_breakdown_components(self):
        module = make_module(sessions=2, streak=2, logs=[(["plank", "squat"], 20.0), (["plank"], 23.5)])
        breakdown = score_breakdown(module)

        assert breakdown.sessions_score == 200
        assert breakdown.streak_score == 100
        assert breakdown.exercise_variety_score == 50
        assert breakdown.duration_improvement_score == 35
        assert breakdown.total == 385

    def test_duration_regression_scores_nothing(self):
        module = make_module(sessions=2, streak=1, logs=[(["plank"], 30.0), (["plank"], 20.0)])
        assert score_breakdown(module).duration_improvement_score == 0

    def test_single_log_has_no_duration_component(self):
        module = make_module(sessions=1, streak=1, logs=[(["plank"], 45.0)])
        assert score_breakdown(module).duration_improvement_score == 0

    def test_only_last_two_logs_count(self):
        module = make_module(
            sessions=3,
            streak=1,
            logs=[(["a"], 10.0), (["a"], 50.0), (["a"], 51.0)],
        )
        assert score_breakdown(module).duration_improvement_score == 10

    def test_sums_over_modules(self):
        first = make_module("core-balance-foundation", sessions=1, streak=1, logs=[(["plank"], 30.0)])
        second = make_module("zero-g-adaptation", sessions=1, streak=1, logs=[(["drift"], 30.0)])
        assert compute_leaderboard_score([first, second]) == 350

    def test_recompute_is_idempotent(self):
        module = make_module(sessions=3, streak=2, logs=[(["a", "b"], 12.0), (["c"], 14.2)])
        assert compute_leaderboard_score([module]) == compute_leaderboard_score([module])


# =============================================================================
# Credits
# =============================================================================

class TestComputeCredits:
    """Test credit awards for completed sessions."""

    def test_completion_earns_base(self):
        award = compute_credits(PerformanceDataSchema(completion=True))
        assert award.base == 50
        assert award.bonus_challenge == 0
        assert award.time_bonus == 0
        assert award.total_earned == 50

    def test_incomplete_session_earns_nothing(self):
        award = compute_credits(PerformanceDataSchema(completion=False))
        assert award.total_earned == 0

    def test_partial_completion_rate(self):
        award = compute_credits(PerformanceDataSchema(completion=True, completion_rate=50))
        assert award.base == 25

    def test_challenge_bonus(self):
        award = compute_credits(PerformanceDataSchema(challenge_completed=True))
        assert award.bonus_challenge == 25
        assert award.total_earned == 75

    def test_time_bonus_within_target(self):
        award = compute_credits(PerformanceDataSchema(duration=28.0, target_duration=30.0))
        assert award.time_bonus == 10
        assert award.total_earned == 60

    def test_no_time_bonus_over_target(self):
        award = compute_credits(PerformanceDataSchema(duration=31.0, target_duration=30.0))
        assert award.time_bonus == 0

    def test_no_time_bonus_without_duration(self):
        award = compute_credits(PerformanceDataSchema(duration=0, target_duration=30.0))
        assert award.time_bonus == 0

    def test_total_is_sum_of_parts(self):
        award = compute_credits(PerformanceDataSchema(
            completion_rate=80, challenge_completed=True, duration=10, target_duration=12,
        ))
        assert award.total_earned == award.base + award.bonus_challenge + award.time_bonus == 75


# =============================================================================
# Streak
# =============================================================================

class TestUpdateStreak:
    """Test the calendar-day streak rule."""

    NOW = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)

    def test_first_session(self):
        assert update_streak(0, None, self.NOW) == 1

    def test_same_day_keeps_streak(self):
        assert update_streak(3, self.NOW - timedelta(hours=2), self.NOW) == 3

    def test_same_day_never_below_one(self):
        assert update_streak(0, self.NOW - timedelta(hours=2), self.NOW) == 1

    def test_next_day_extends(self):
        assert update_streak(3, self.NOW - timedelta(days=1), self.NOW) == 4

    @pytest.mark.parametrize("days", [2, 3, 30])
    def test_gap_resets(self, days):
        assert update_streak(5, self.NOW - timedelta(days=days), self.NOW) == 1

    def test_clock_skew_treated_as_same_day(self):
        assert update_streak(2, self.NOW + timedelta(days=1), self.NOW) == 2

    def test_calendar_days_not_elapsed_hours(self):
        last = datetime(2025, 3, 9, 23, 30, tzinfo=timezone.utc)
        now = datetime(2025, 3, 10, 0, 30, tzinfo=timezone.utc)
        assert update_streak(1, last, now) == 2

    def test_reference_timezone_decides_the_day(self):
        # both instants fall on March 9 in New York
        last = datetime(2025, 3, 9, 20, 0, tzinfo=timezone.utc)
        now = datetime(2025, 3, 10, 2, 0, tzinfo=timezone.utc)
        assert update_streak(1, last, now, ZoneInfo("America/New_York")) == 1

    def test_naive_dates_are_utc(self):
        last = datetime(2025, 3, 9, 9, 0)
        assert update_streak(1, last, self.NOW) == 2


# =============================================================================
# Module progress and levels
# =============================================================================

class TestModuleProgressAndLevels:
    """Test module percentage and credit level labels."""

    @pytest.mark.parametrize(
        "completed, required, expected",
        [(0, 3, 0), (1, 3, 33), (2, 3, 66), (3, 3, 100), (5, 3, 100), (1, 0, 100)],
    )
    def test_module_progress(self, completed, required, expected):
        assert compute_module_progress(completed, required) == expected

    @pytest.mark.parametrize(
        "total, level",
        [(0, "Bronze"), (299, "Bronze"), (300, "Silver"), (600, "Gold"), (999, "Gold"), (1000, "Platinum")],
    )
    def test_credit_level(self, total, level):
        assert credit_level(total) == level
