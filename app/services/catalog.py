"""Module catalog: lookup of training modules and startup seeding."""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.module import TrainingModule
from app.services.exceptions import NotFoundError

logger = logging.getLogger(__name__)

# Physical readiness track plus the EVA capstone
MODULE_CATALOG = [
    {
        "module_id": "core-balance-foundation",
        "title": "Core & Balance Foundation",
        "category": "physical",
        "difficulty": "beginner",
        "required_sessions": 3,
        "required_milestones": ["plank-hold-mastery"],
        "minimum_assessment_score": None,
        "certification_name": "Core Stability Certification",
        "certification_credit_value": 100,
    },
    {
        "module_id": "zero-g-adaptation",
        "title": "Zero-G Movement Series",
        "category": "physical",
        "difficulty": "intermediate",
        "required_sessions": 4,
        "required_milestones": [],
        "minimum_assessment_score": 70,
        "certification_name": "Zero-G Mobility Certification",
        "certification_credit_value": 200,
    },
    {
        "module_id": "space-suit-mobility",
        "title": "Space Suit Mobility Training",
        "category": "physical",
        "difficulty": "intermediate",
        "required_sessions": 3,
        "required_milestones": ["suit-donning"],
        "minimum_assessment_score": 75,
        "certification_name": "Space Physical Readiness Certification",
        "certification_credit_value": 250,
    },
    {
        "module_id": "core-eva-001",
        "title": "EVA Training",
        "category": "eva",
        "difficulty": "advanced",
        "required_sessions": 6,
        "required_milestones": ["tether-protocol", "emergency-ingress"],
        "minimum_assessment_score": 85,
        "certification_name": "EVA Operations Certification",
        "certification_credit_value": 500,
    },
]


async def get_module(db: AsyncSession, module_id: str) -> TrainingModule:
    result = await db.execute(select(TrainingModule).where(TrainingModule.module_id == module_id))
    module = result.scalar_one_or_none()
    if module is None:
        raise NotFoundError("module", module_id)
    return module


async def list_modules(db: AsyncSession) -> list[TrainingModule]:
    result = await db.execute(select(TrainingModule).order_by(TrainingModule.module_id))
    return list(result.scalars().all())


async def seed_modules(db: AsyncSession) -> int:
    """Insert catalog modules that are missing. Returns how many were added."""
    result = await db.execute(select(TrainingModule.module_id))
    existing = set(result.scalars().all())

    added = 0
    for entry in MODULE_CATALOG:
        if entry["module_id"] in existing:
            continue
        db.add(TrainingModule(**entry))
        added += 1

    if added:
        await db.commit()
        logger.info(f"Seeded {added} training modules")
    return added
