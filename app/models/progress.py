"""Progress models: one UserProgress per user, one ModuleProgress per module it touched.

Credits are stored as a total plus a per-bucket breakdown (JSON). The two
are only ever written together through ProgressStore.award_credits.
"""
from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, JSON, String, UniqueConstraint
from sqlalchemy.orm import relationship

from app.core.clock import utcnow
from app.db.session import Base

CREDIT_BUCKETS = ("attendance", "performance", "milestones", "completion")


def empty_breakdown() -> dict[str, int]:
    return {bucket: 0 for bucket in CREDIT_BUCKETS}


class UserProgress(Base):
    __tablename__ = "user_progress"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), unique=True, nullable=False, index=True)

    credits_total = Column(Integer, nullable=False, default=0)
    credits_breakdown = Column(JSON, nullable=False, default=empty_breakdown)
    leaderboard_score = Column(Integer, nullable=False, default=0, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    module_progress = relationship(
        "ModuleProgress",
        back_populates="progress",
        order_by="ModuleProgress.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    certifications = relationship(
        "Certification",
        back_populates="progress",
        order_by="Certification.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def find_module(self, module_id: str) -> "ModuleProgress | None":
        for module in self.module_progress:
            if module.module_id == module_id:
                return module
        return None


class ModuleProgress(Base):
    __tablename__ = "module_progress"
    __table_args__ = (UniqueConstraint("progress_id", "module_id", name="uq_module_progress_module"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    progress_id = Column(Integer, ForeignKey("user_progress.id"), nullable=False, index=True)
    module_id = Column(String(64), nullable=False)

    completed_sessions = Column(Integer, nullable=False, default=0)
    total_credits_earned = Column(Integer, nullable=False, default=0)
    streak = Column(Integer, nullable=False, default=0)  # consecutive calendar days
    last_session_date = Column(DateTime(timezone=True), nullable=True)
    overall_progress = Column(Integer, nullable=False, default=0)  # 0-100
    best_assessment_score = Column(Integer, nullable=True)

    progress = relationship("UserProgress", back_populates="module_progress")
    training_logs = relationship(
        "TrainingLog",
        back_populates="module_progress",
        order_by="TrainingLog.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    milestones = relationship(
        "Milestone",
        back_populates="module_progress",
        order_by="Milestone.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def milestone_names(self) -> set[str]:
        return {m.name for m in self.milestones if m.completed}


class TrainingLog(Base):
    __tablename__ = "training_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    module_progress_id = Column(Integer, ForeignKey("module_progress.id"), nullable=False, index=True)
    date = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    # sorted, de-duplicated exercise ids
    exercises_completed = Column(JSON, nullable=False, default=list)
    duration = Column(Float, nullable=False, default=0.0)
    calories_burned = Column(Float, nullable=False, default=0.0)

    module_progress = relationship("ModuleProgress", back_populates="training_logs")


class Milestone(Base):
    __tablename__ = "milestones"
    __table_args__ = (UniqueConstraint("module_progress_id", "name", name="uq_milestones_name"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    module_progress_id = Column(Integer, ForeignKey("module_progress.id"), nullable=False, index=True)
    name = Column(String(128), nullable=False)
    completed = Column(Boolean, nullable=False, default=True)
    date_achieved = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    module_progress = relationship("ModuleProgress", back_populates="milestones")
