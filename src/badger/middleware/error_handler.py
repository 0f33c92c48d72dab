"""Global error handlers: consistent JSON error responses."""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from badger.errors import BadgerError

logger = structlog.get_logger()


def _field_errors(exc: RequestValidationError) -> list[dict[str, str]]:
    """Flatten pydantic errors to ``{field, message}`` pairs, dropping the body/path prefix."""
    details = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "path", "query")]
        details.append({"field": ".".join(loc), "message": err.get("msg", "Invalid value")})
    return details


def setup_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(BadgerError)
    async def domain_exception_handler(request: Request, exc: BadgerError) -> JSONResponse:
        """Expected domain outcomes carry their own status and detail."""
        logger.info(
            "domain_error",
            path=request.url.path,
            method=request.method,
            error=exc.error,
            status=exc.status_code,
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Handle HTTP exceptions with consistent JSON format."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        """Malformed input (bad UUIDs, empty batches, over-long reasons) is a 400."""
        return JSONResponse(
            status_code=400,
            content={
                "error": "validation_error",
                "message": "Validation failed",
                "details": _field_errors(exc),
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions: log everything, expose nothing."""
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"error": "internal_error", "message": "An unexpected error occurred"},
        )
