"""Health, readiness and version probes."""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from badger import audit
from badger.config import get_settings
from badger.database import get_session

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness: the process is up."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> dict[str, object]:
    """Readiness: the database answers. Redis only feeds the audit sink, so it can degrade but never block."""
    checks: dict[str, object] = {}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as exc:
        checks["database"] = f"error: {exc}"

    checks["redis"] = await audit.check()

    ready = checks["database"] == "ok"
    degraded = ready and checks["redis"] not in ("ok", "disabled")
    status = "degraded" if degraded else ("ready" if ready else "unavailable")
    return {"status": status, "checks": checks}


@router.get("/version")
async def version() -> dict[str, str]:
    settings = get_settings()
    return {
        "version": settings.app_version,
        "environment": settings.environment,
    }
