"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from badger import audit
from badger.applications.router import router as applications_router
from badger.catalog.router import router as catalog_router
from badger.catalog.seed import seed_catalog
from badger.config import get_settings
from badger.database import close_db, get_session, init_db
from badger.health.router import router as health_router
from badger.middleware import setup_middleware
from badger.promotions.router import router as promotions_router
from badger.templates.router import router as templates_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await audit.connect(settings.redis_url)

    if settings.seed_catalog:
        try:
            async for db in get_session():
                await seed_catalog(db)
                break
        except Exception:
            logger.warning("Catalog seeding failed (tables may not exist yet)", exc_info=True)

    yield

    await close_db()
    await audit.disconnect()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Badger API",
        description="Badge reservation and promotion validation engine",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(promotions_router)
    app.include_router(templates_router)
    app.include_router(applications_router)
    app.include_router(catalog_router)

    return app


app = create_app()
