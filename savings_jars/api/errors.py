"""Translation of domain errors into HTTP responses."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from savings_jars.core.errors import (
    ImportFormatError,
    InsufficientFundsError,
    NotFoundError,
    PersistenceError,
    SavingsJarError,
    ValidationError,
)
from savings_jars.core.utils import get_logger

logger = get_logger("savings-jars.api")

STATUS_BY_ERROR: dict[type[SavingsJarError], int] = {
    NotFoundError: 404,
    ValidationError: 422,
    InsufficientFundsError: 409,
    ImportFormatError: 400,
    PersistenceError: 503,
}


async def handle_savings_jar_error(request: Request, exc: SavingsJarError) -> JSONResponse:
    """Render a domain error as ``{"detail": message}`` with a matching status code."""
    status_code = next((code for cls, code in STATUS_BY_ERROR.items() if isinstance(exc, cls)), 500)
    if status_code >= 500:  # noqa: PLR2004
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse({"detail": str(exc)}, status_code=status_code)


def register_error_handlers(app: FastAPI) -> None:
    """Attach the domain error handler to ``app``."""
    app.add_exception_handler(SavingsJarError, handle_savings_jar_error)
