"""TrainingSession model: one timed attempt at a module, owned by one user."""
import uuid
from enum import Enum

from sqlalchemy import Column, DateTime, Index, Integer, JSON, String, text

from app.core.clock import utcnow
from app.db.session import Base


class SessionStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.ABANDONED)


def new_session_id() -> str:
    return str(uuid.uuid4())


class TrainingSession(Base):
    __tablename__ = "training_sessions"
    __table_args__ = (
        # at most one in-progress session per user and module
        Index(
            "uq_training_sessions_active",
            "user_id",
            "module_id",
            unique=True,
            sqlite_where=text("status = 'in-progress'"),
            postgresql_where=text("status = 'in-progress'"),
        ),
    )

    session_id = Column(String(36), primary_key=True, default=new_session_id)
    user_id = Column(String(64), nullable=False, index=True)
    module_id = Column(String(64), nullable=False)
    status = Column(String(16), nullable=False, default=SessionStatus.IN_PROGRESS.value)
    start_time = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    # exercise id -> measurements; last write wins per exercise
    metrics = Column(JSON, nullable=False, default=dict)
    credits_earned = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
