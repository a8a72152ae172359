from app.models.certification import Certification
from app.models.module import TrainingModule
from app.models.progress import Milestone, ModuleProgress, TrainingLog, UserProgress
from app.models.session import SessionStatus, TrainingSession

__all__ = [
    "Certification",
    "Milestone",
    "ModuleProgress",
    "SessionStatus",
    "TrainingLog",
    "TrainingModule",
    "TrainingSession",
    "UserProgress",
]
