"""SharedStars Academy - FastAPI app entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.config import Settings, get_settings
from app.db.base import Base
from app.db.session import AsyncSessionLocal, engine
from app.routers import progress, sessions
from app.services.catalog import seed_modules
from app.services.events import EventPublisher
from app.services.exceptions import AcademyError
from app.services.guidance import GuidanceCache, RecommendationAdapter
from app.services.llm_client import build_text_generator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # create tables (async)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # seed module catalog (async)
    async with AsyncSessionLocal() as db:
        await seed_modules(db)

    yield
    await app.state.text_generator.aclose()


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title=settings.app_name,
        description="Astronaut training progress, credits and certification",
        lifespan=lifespan,
    )

    generator = build_text_generator(settings)
    app.state.settings = settings
    app.state.events = EventPublisher()
    app.state.text_generator = generator
    app.state.guidance_adapter = RecommendationAdapter(
        generator,
        timeout=settings.guidance_timeout_seconds,
        model=settings.llm_model,
        fallback_model=settings.llm_fallback_model,
        max_tokens=settings.llm_max_tokens,
        cache=GuidanceCache(settings.guidance_cache_ttl_seconds, settings.guidance_cache_size),
    )

    @app.exception_handler(AcademyError)
    async def academy_error_handler(request: Request, exc: AcademyError):
        if exc.status_code >= 500:
            logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    app.include_router(sessions.router)
    app.include_router(progress.router)

    @app.get("/health")
    async def health():
        return {"status": "ok", "stella_configured": bool(settings.llm_api_key)}

    return app


app = create_app()
