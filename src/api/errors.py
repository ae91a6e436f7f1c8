"""Structured error response models for consistent API error handling."""

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from src.core.errors import (
    ConcurrentUpdateError,
    RuleAlreadyExistsError,
    RuleNotFoundError,
    RuleValidationError,
)


class ErrorResponse(BaseModel):
    """Standardized error response schema."""

    error: bool = True
    code: str
    message: str
    retry_after: int | None = None
    details: dict[str, Any] | None = None


def create_error_response(
    code: str, message: str, retry_after: int | None = None, details: dict[str, Any] | None = None
) -> ErrorResponse:
    """Create standardized error response."""
    return ErrorResponse(code=code, message=message, retry_after=retry_after, details=details)


def _json_error(status_code: int, body: ErrorResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


async def rule_validation_error_handler(request: Request, exc: RuleValidationError) -> JSONResponse:
    body = create_error_response("invalid_rule", "Rule definition is invalid.", details=exc.to_details())
    return _json_error(status.HTTP_422_UNPROCESSABLE_ENTITY, body)


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Malformed rule bodies get the same envelope as rules the validator rejects.
    errors = []
    for item in exc.errors():
        location = ".".join(str(part) for part in item["loc"] if part != "body") or "body"
        errors.append(f"{location}: {item['msg']}")
    if "/rules" in request.url.path:
        body = create_error_response("invalid_rule", "Rule definition is invalid.", details={"errors": errors})
    else:
        body = create_error_response("invalid_request", "Request body is invalid.", details={"errors": errors})
    return _json_error(status.HTTP_422_UNPROCESSABLE_ENTITY, body)


async def rule_not_found_handler(request: Request, exc: RuleNotFoundError) -> JSONResponse:
    body = create_error_response("rule_not_found", str(exc), details={"rule_id": exc.rule_id})
    return _json_error(status.HTTP_404_NOT_FOUND, body)


async def rule_exists_handler(request: Request, exc: RuleAlreadyExistsError) -> JSONResponse:
    body = create_error_response("rule_exists", str(exc), details={"rule_id": exc.rule_id})
    return _json_error(status.HTTP_409_CONFLICT, body)


async def concurrent_update_handler(request: Request, exc: ConcurrentUpdateError) -> JSONResponse:
    body = create_error_response("concurrent_update", str(exc), retry_after=1, details={"rule_id": exc.rule_id})
    return _json_error(status.HTTP_409_CONFLICT, body)


def register_exception_handlers(app: FastAPI) -> None:
    """Map domain exceptions to ErrorResponse bodies."""
    app.add_exception_handler(RuleValidationError, rule_validation_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(RuleNotFoundError, rule_not_found_handler)
    app.add_exception_handler(RuleAlreadyExistsError, rule_exists_handler)
    app.add_exception_handler(ConcurrentUpdateError, concurrent_update_handler)
