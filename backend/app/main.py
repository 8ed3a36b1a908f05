"""FastAPI application."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from backend.app.api.routes.docs import router as docs_router
from backend.app.api.routes.health import router as health_router
from backend.app.api.routes.mcp import router as mcp_router
from backend.app.api.routes.metrics import router as metrics_router
from backend.app.api.routes.repositories import router as repositories_router
from backend.app.api.routes.rules import router as rules_router
from backend.app.api.routes.templates import router as templates_router
from backend.app.errors import (
    AuthError,
    GenerationError,
    InkyError,
    NotFoundError,
    RemoteServiceError,
    StaleVersionError,
    ValidationError,
)
from backend.app.utils.logging import configure_logging

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Inky Rules API", version="0.1.0")

# First isinstance match wins, so subclasses come first
_STATUS_BY_ERROR: list[tuple[type[InkyError], int]] = [
    (StaleVersionError, status.HTTP_409_CONFLICT),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (AuthError, status.HTTP_401_UNAUTHORIZED),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (RemoteServiceError, status.HTTP_502_BAD_GATEWAY),
    (GenerationError, status.HTTP_502_BAD_GATEWAY),
]


def status_for_error(exc: InkyError) -> int:
    """HTTP status for a domain error."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@app.exception_handler(InkyError)
async def handle_domain_error(request: Request, exc: InkyError) -> JSONResponse:
    """Translate domain errors into JSON responses."""
    status_code = status_for_error(exc)

    if isinstance(exc, (RemoteServiceError, GenerationError)):
        # Upstream details stay in the logs
        logger.warning(f"{request.method} {request.url.path} failed: {exc}")
        detail = "Upstream service unavailable"
    else:
        detail = str(exc)

    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return JSONResponse({"detail": detail}, status_code=status_code, headers=headers)


# Register routes
app.include_router(health_router, tags=["health"])
app.include_router(metrics_router, tags=["metrics"])
app.include_router(rules_router, tags=["rules"])
app.include_router(templates_router, tags=["templates"])
app.include_router(repositories_router, tags=["repositories"])
app.include_router(docs_router, tags=["docs"])
app.include_router(mcp_router, tags=["mcp"])


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "Inky Rules API", "version": "0.1.0"}
