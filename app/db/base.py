"""SQLAlchemy declarative base and model imports for metadata.create_all."""
from app.db.session import Base

# Import all models so Base.metadata sees them
from app.models.certification import Certification  # noqa: F401
from app.models.module import TrainingModule  # noqa: F401
from app.models.progress import Milestone, ModuleProgress, TrainingLog, UserProgress  # noqa: F401
from app.models.session import TrainingSession  # noqa: F401

__all__ = [
    "Base",
    "Certification",
    "Milestone",
    "ModuleProgress",
    "TrainingLog",
    "TrainingModule",
    "TrainingSession",
    "UserProgress",
]
