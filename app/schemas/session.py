"""Pydantic schemas for training sessions and their completion."""
from datetime import datetime

from pydantic import BaseModel, Field

from app.schemas.progress import CertificationOutSchema, CreditAwardSchema


class SessionStartSchema(BaseModel):
    module_id: str = Field(min_length=1, max_length=64)


class MetricsSubmitSchema(BaseModel):
    exercise_id: str = Field(min_length=1, max_length=64)
    metrics: dict[str, float]


class PerformanceDataSchema(BaseModel):
    completion: bool = True
    completion_rate: float | None = Field(default=None, ge=0, le=100)  # percent
    challenge_completed: bool = False
    duration: float = Field(default=0.0, ge=0)  # minutes
    target_duration: float | None = Field(default=None, ge=0)
    exercises_completed: list[str] = []
    calories_burned: float = Field(default=0.0, ge=0)
    assessment_score: int | None = Field(default=None, ge=0, le=100)


class SessionOutSchema(BaseModel):
    session_id: str
    user_id: str
    module_id: str
    status: str
    start_time: datetime | None = None
    completed_at: datetime | None = None
    metrics: dict[str, dict[str, float]] = {}
    credits_earned: int = 0

    class Config:
        from_attributes = True


class GuidanceSchema(BaseModel):
    message: str
    action_items: list[str]


class CompletionOutSchema(BaseModel):
    session: SessionOutSchema
    credits_awarded: CreditAwardSchema
    new_score: int
    streak: int
    completed_sessions: int
    overall_progress: int
    certification: CertificationOutSchema | None = None
    guidance: GuidanceSchema
