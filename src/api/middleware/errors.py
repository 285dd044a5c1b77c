"""
Error Translation

Innermost gate of the pipeline: turns exceptions raised by business handlers
into the structured error envelope.

- TaskManagerException -> its status, message and field errors
- anything else        -> 500 "Internal server error" (details only in logs)

FastAPI's own HTTPException and request validation errors are caught by the
router before they reach a middleware, so matching exception handlers render
them in the same envelope.
"""

from typing import Any

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from src.api.responses import error_response
from src.core.exceptions import TaskManagerException
from src.observability.logging import get_logger


logger = get_logger("task_manager.errors")

INTERNAL_ERROR_MESSAGE = "Internal server error"


class ErrorTranslationMiddleware(BaseHTTPMiddleware):
    """Translate handler exceptions into structured error responses."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        try:
            return await call_next(request)
        except TaskManagerException as e:
            if e.status_code >= 500:
                logger.error(
                    "application error",
                    path=request.url.path,
                    error_code=e.code,
                    exc_info=True,
                )
            return error_response(e.status_code, e.message, e.errors)
        except Exception:
            logger.error("unhandled error", path=request.url.path, exc_info=True)
            return error_response(500, INTERNAL_ERROR_MESSAGE)


# =============================================================================
# Framework Exception Handlers
# =============================================================================


def format_validation_errors(errors: list[dict[str, Any]]) -> list[dict[str, str]]:
    """
    Convert pydantic error entries into {"path", "message"} pairs.

    The leading location segment ("body", "query", "path") is dropped.
    """
    formatted = []
    for error in errors:
        loc = [str(part) for part in error.get("loc", ())]
        if loc and loc[0] in {"body", "query", "path", "header"}:
            loc = loc[1:]
        formatted.append(
            {"path": ".".join(loc) or "body", "message": error.get("msg", "invalid value")}
        )
    return formatted


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> Response:
    """Render request validation failures as 400 with field errors."""
    errors = exc.errors()
    if any(error.get("type") == "json_invalid" for error in errors):
        return error_response(400, "Invalid JSON")
    return error_response(400, "Validation failed", format_validation_errors(errors))


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> Response:
    """Render framework HTTP errors (404, 405, ...) in the error envelope."""
    return error_response(
        exc.status_code,
        str(exc.detail),
        headers=getattr(exc, "headers", None),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the envelope-rendering handlers to an application."""
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
