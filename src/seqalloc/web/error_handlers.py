import logging

from fastapi import Request
from fastapi.responses import JSONResponse, Response

from seqalloc.errors import (
    CapacityError,
    ConflictError,
    InfrastructureError,
    NotFoundError,
    RetriesExhaustedError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def create_json_error_response(status_code: int, message: str, error_type: str | None = None) -> JSONResponse:
    """Create JSON error response with optional type for machine parsing."""
    content = {"message": message}
    if error_type:
        content["type"] = error_type
    return JSONResponse(status_code=status_code, content=content)


async def user_error_handler(_: Request, exc: Exception) -> Response:
    """Handle all UserError subclasses with appropriate status codes."""
    if isinstance(exc, NotFoundError):
        status_code = 404
        error_type = "not_found"
    elif isinstance(exc, ValidationError):
        status_code = 400
        error_type = "validation_error"
    else:
        status_code = 400
        error_type = "bad_request"

    return create_json_error_response(status_code=status_code, message=str(exc), error_type=error_type)


async def allocation_error_handler(_: Request, exc: Exception) -> Response:
    """Handle store and allocation failures."""
    if isinstance(exc, ConflictError):
        status_code = 409
        error_type = "conflict"
    elif isinstance(exc, RetriesExhaustedError):
        status_code = 409
        error_type = "retries_exhausted"
    elif isinstance(exc, CapacityError):
        status_code = 413
        error_type = "capacity_exceeded"
    elif isinstance(exc, InfrastructureError):
        logger.warning("Store unavailable: %s", exc)
        status_code = 503
        error_type = "store_unavailable"
    else:
        status_code = 500
        error_type = "allocation_error"

    return create_json_error_response(status_code=status_code, message=str(exc), error_type=error_type)


async def general_exception_handler(_: Request, exc: Exception) -> Response:
    """Handle unexpected errors (500)."""
    logger.exception("Unexpected error: %s", exc)
    return create_json_error_response(
        status_code=500, message="An unexpected error occurred.", error_type="internal_server_error"
    )
