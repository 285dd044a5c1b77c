"""
Response helpers shared by gates, exception handlers and routes.
"""

from typing import Any, Optional

from fastapi.responses import JSONResponse

from src.models.responses import ErrorResponse, SuccessResponse


def success_response(status_code: int, message: str, data: Any = None) -> JSONResponse:
    """Render the success envelope."""
    body = SuccessResponse(message=message, data=data)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def error_response(
    status_code: int,
    message: str,
    errors: Optional[list[dict[str, Any]]] = None,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    """
    Render the error envelope.

    Args:
        status_code: HTTP status
        message: Client-safe message
        errors: Optional field-level errors ({"path", "message"} dicts)
        headers: Extra response headers
    """
    body = ErrorResponse(message=message, errors=errors)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json"),
        headers=headers,
    )
