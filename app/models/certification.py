"""Certification model: issued once per user/module when eligibility passes."""
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from app.db.session import Base


class Certification(Base):
    __tablename__ = "certifications"
    __table_args__ = (UniqueConstraint("progress_id", "module_id", name="uq_certifications_module"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    progress_id = Column(Integer, ForeignKey("user_progress.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    module_id = Column(String(64), nullable=False)
    earned_date = Column(DateTime(timezone=True), nullable=False)
    expiry_date = Column(DateTime(timezone=True), nullable=False)
    level = Column(String(32), nullable=False)  # module difficulty at award time
    credits_earned = Column(Integer, nullable=False, default=0)

    progress = relationship("UserProgress", back_populates="certifications")
