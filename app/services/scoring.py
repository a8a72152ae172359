"""Leaderboard score, credit awards and streak computation. Pure functions, no I/O."""
from datetime import datetime, timezone, tzinfo
from typing import Iterable

from app.core.clock import as_utc
from app.schemas.progress import CreditAwardSchema, ScoreBreakdownSchema
from app.schemas.session import PerformanceDataSchema

# Leaderboard points per module
SESSION_POINTS = 100
STREAK_POINTS = 50
EXERCISE_VARIETY_POINTS = 25
DURATION_IMPROVEMENT_POINTS = 10

# Credits per completed session
BASE_SESSION_CREDITS = 50
CHALLENGE_BONUS_CREDITS = 25
TIME_BONUS_CREDITS = 10
MILESTONE_CREDITS = 20

# (minimum total, label), highest first
CREDIT_LEVELS = [
    (1000, "Platinum"),
    (600, "Gold"),
    (300, "Silver"),
    (0, "Bronze"),
]


def score_breakdown(module_progress) -> ScoreBreakdownSchema:
    """Return the four leaderboard components for one module."""
    logs = list(getattr(module_progress, "training_logs", None) or [])

    exercises: set[str] = set()
    for log in logs:
        exercises.update(log.exercises_completed or [])

    duration_score = 0
    if len(logs) >= 2:
        improvement = (logs[-1].duration or 0) - (logs[-2].duration or 0)
        duration_score = round(max(0, improvement) * DURATION_IMPROVEMENT_POINTS)

    return ScoreBreakdownSchema(
        module_id=module_progress.module_id,
        sessions_score=(module_progress.completed_sessions or 0) * SESSION_POINTS,
        streak_score=(module_progress.streak or 0) * STREAK_POINTS,
        exercise_variety_score=len(exercises) * EXERCISE_VARIETY_POINTS,
        duration_improvement_score=duration_score,
    )


def compute_leaderboard_score(module_progress_list: Iterable) -> int:
    """Recompute the total score from scratch over every module."""
    return sum(score_breakdown(m).total for m in module_progress_list)


def compute_credits(performance: PerformanceDataSchema) -> CreditAwardSchema:
    """Credits for one completed session: base + challenge bonus + time bonus."""
    rate = performance.completion_rate
    if rate is None:
        rate = 100.0 if performance.completion else 0.0
    rate = max(0.0, min(100.0, rate))
    base = round(BASE_SESSION_CREDITS * rate / 100)

    bonus_challenge = CHALLENGE_BONUS_CREDITS if performance.challenge_completed else 0

    time_bonus = 0
    target = performance.target_duration
    if target and 0 < performance.duration <= target:
        time_bonus = TIME_BONUS_CREDITS

    return CreditAwardSchema(
        base=base,
        bonus_challenge=bonus_challenge,
        time_bonus=time_bonus,
        total_earned=base + bonus_challenge + time_bonus,
    )


def update_streak(
    existing_streak: int,
    last_session_date: datetime | None,
    now: datetime,
    tz: tzinfo = timezone.utc,
) -> int:
    """Apply the calendar-day gap rule.

    Same day keeps the streak, the next day extends it, anything longer
    starts over at 1. The gap is counted in whole calendar days in ``tz``.
    """
    if last_session_date is None:
        return 1
    last_day = as_utc(last_session_date).astimezone(tz).date()
    today = as_utc(now).astimezone(tz).date()
    gap = (today - last_day).days
    if gap <= 0:
        return max(existing_streak, 1)
    if gap == 1:
        return existing_streak + 1
    return 1


def compute_module_progress(completed_sessions: int, required_sessions: int) -> int:
    """Module completion percentage, capped at 100."""
    required = max(required_sessions or 1, 1)
    return min(100, completed_sessions * 100 // required)


def credit_level(total_credits: int) -> str:
    """Return level label from total credits."""
    for minimum, label in CREDIT_LEVELS:
        if total_credits >= minimum:
            return label
    return "Bronze"  # fallback
