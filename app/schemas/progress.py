"""Pydantic schemas for progress, credits, certifications and leaderboard."""
from datetime import datetime

from pydantic import BaseModel, Field


class CreditAwardSchema(BaseModel):
    base: int = 0
    bonus_challenge: int = 0
    time_bonus: int = 0
    total_earned: int = 0


class ScoreBreakdownSchema(BaseModel):
    module_id: str
    sessions_score: int
    streak_score: int
    exercise_variety_score: int
    duration_improvement_score: int

    @property
    def total(self) -> int:
        return (
            self.sessions_score
            + self.streak_score
            + self.exercise_variety_score
            + self.duration_improvement_score
        )


class CreditsSchema(BaseModel):
    total: int
    breakdown: dict[str, int]
    level: str


class TrainingLogOutSchema(BaseModel):
    date: datetime
    exercises_completed: list[str]
    duration: float
    calories_burned: float

    class Config:
        from_attributes = True


class MilestoneOutSchema(BaseModel):
    name: str
    completed: bool
    date_achieved: datetime

    class Config:
        from_attributes = True


class ModuleProgressOutSchema(BaseModel):
    module_id: str
    completed_sessions: int
    total_credits_earned: int
    streak: int
    last_session_date: datetime | None = None
    overall_progress: int
    best_assessment_score: int | None = None
    training_logs: list[TrainingLogOutSchema] = []
    milestones: list[MilestoneOutSchema] = []

    class Config:
        from_attributes = True


class CertificationOutSchema(BaseModel):
    name: str
    module_id: str
    earned_date: datetime
    expiry_date: datetime
    level: str
    credits_earned: int

    class Config:
        from_attributes = True


class ProgressOutSchema(BaseModel):
    user_id: str
    credits: CreditsSchema
    leaderboard_score: int
    module_progress: list[ModuleProgressOutSchema]
    score_breakdown: list[ScoreBreakdownSchema] = []
    certifications: list[CertificationOutSchema] = []


class LeaderboardEntrySchema(BaseModel):
    rank: int
    user_id: str
    leaderboard_score: int
    credits_total: int


class MilestoneUnlockSchema(BaseModel):
    module_id: str
    name: str = Field(min_length=1, max_length=128)


class ModuleOutSchema(BaseModel):
    module_id: str
    title: str
    category: str
    difficulty: str
    required_sessions: int
    required_milestones: list[str]
    minimum_assessment_score: int | None = None
    certification_name: str
    certification_credit_value: int

    class Config:
        from_attributes = True
