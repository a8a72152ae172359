"""Certification Evaluator: module completion checks and certificate issuance."""
import logging
from datetime import datetime, timedelta

from app.core.clock import utcnow
from app.models.certification import Certification
from app.models.module import TrainingModule
from app.models.progress import ModuleProgress, UserProgress
from app.services.exceptions import AlreadyCertifiedError
from app.services.progress_store import ProgressStore

logger = logging.getLogger(__name__)

DEFAULT_VALIDITY_DAYS = 365


class CertificationEvaluator:
    """Checks a module's requirements and appends certifications to a progress record."""

    def __init__(self, store: ProgressStore, validity_days: int = DEFAULT_VALIDITY_DAYS):
        self.store = store
        self.validity_days = validity_days

    @staticmethod
    def check_eligibility(module_progress: ModuleProgress | None, module: TrainingModule) -> bool:
        """True when progress is 100%, required milestones are reached and the assessment bar is met."""
        if module_progress is None:
            return False
        if (module_progress.overall_progress or 0) < 100:
            return False

        required = set(module.required_milestones or [])
        if not required <= module_progress.milestone_names():
            return False

        minimum = module.minimum_assessment_score
        if minimum is not None:
            best = module_progress.best_assessment_score
            if best is None or best < minimum:
                return False
        return True

    async def award(
        self,
        progress: UserProgress,
        module: TrainingModule,
        now: datetime | None = None,
    ) -> Certification:
        """Append a certification and its completion credits; the caller commits."""
        for existing in progress.certifications:
            if existing.module_id == module.module_id:
                raise AlreadyCertifiedError(progress.user_id, module.module_id)

        earned = now or utcnow()
        certification = Certification(
            name=module.certification_name,
            module_id=module.module_id,
            earned_date=earned,
            expiry_date=earned + timedelta(days=self.validity_days),
            level=module.difficulty,
            credits_earned=module.certification_credit_value or 0,
        )
        progress.certifications.append(certification)
        self.store.award_credits(progress, "completion", certification.credits_earned)
        await self.store.save(progress)

        logger.info(
            f"Awarded {certification.name} to user {progress.user_id} (+{certification.credits_earned} credits)"
        )
        return certification

    async def evaluate(
        self,
        progress: UserProgress,
        module_progress: ModuleProgress,
        module: TrainingModule,
        now: datetime | None = None,
    ) -> Certification | None:
        """Award when eligible. A repeat award is a no-op returning None."""
        if not self.check_eligibility(module_progress, module):
            return None
        try:
            return await self.award(progress, module, now=now)
        except AlreadyCertifiedError:
            logger.debug(f"User {progress.user_id} already certified for {module.module_id}")
            return None
