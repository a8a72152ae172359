"""TrainingModule model: catalog entry with completion and certification requirements."""
from sqlalchemy import Column, Integer, JSON, String

from app.db.session import Base


class TrainingModule(Base):
    __tablename__ = "training_modules"

    module_id = Column(String(64), primary_key=True)
    title = Column(String(255), nullable=False)
    category = Column(String(32), nullable=False)  # physical | technical | simulation | eva
    difficulty = Column(String(32), nullable=False)  # beginner | intermediate | advanced | expert
    # completed sessions needed for 100% module progress
    required_sessions = Column(Integer, nullable=False, default=1)
    required_milestones = Column(JSON, nullable=False, default=list)
    minimum_assessment_score = Column(Integer, nullable=True)
    certification_name = Column(String(255), nullable=False)
    certification_credit_value = Column(Integer, nullable=False, default=0)
