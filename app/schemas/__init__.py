from app.schemas.progress import (
    CertificationOutSchema,
    CreditAwardSchema,
    LeaderboardEntrySchema,
    ProgressOutSchema,
    ScoreBreakdownSchema,
)
from app.schemas.session import (
    CompletionOutSchema,
    GuidanceSchema,
    PerformanceDataSchema,
    SessionOutSchema,
)

__all__ = [
    "CertificationOutSchema",
    "CompletionOutSchema",
    "CreditAwardSchema",
    "GuidanceSchema",
    "LeaderboardEntrySchema",
    "PerformanceDataSchema",
    "ProgressOutSchema",
    "ScoreBreakdownSchema",
    "SessionOutSchema",
]
