"""Structured API errors.

Every failure the store surfaces to a caller carries a machine-readable
``code`` next to the human ``detail`` so clients can tell "fix your input"
(400) from "you may not do this" (401/403), "refresh and retry" (409) and
"try again later" (503).

These subclass ``HTTPException`` so service functions can raise them directly,
the same way they raise plain ``HTTPException`` elsewhere.
"""

from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from libs.common.logging import get_logger

logger = get_logger(__name__)


class StoreError(HTTPException):
    """Base class for structured store errors."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "STORE_ERROR"

    def __init__(
        self,
        detail: str,
        *,
        code: Optional[str] = None,
        headers: Optional[dict[str, str]] = None,
    ):
        super().__init__(status_code=self.status_code, detail=detail, headers=headers)
        if code:
            self.code = code


class ValidationFailed(StoreError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"


class Unauthenticated(StoreError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "UNAUTHORIZED"

    def __init__(self, detail: str = "Could not validate credentials", **kwargs):
        kwargs.setdefault("headers", {"WWW-Authenticate": "Bearer"})
        super().__init__(detail, **kwargs)


class AuthorizationDenied(StoreError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"


class ResourceNotFound(StoreError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class StateConflict(StoreError):
    status_code = status.HTTP_409_CONFLICT
    code = "STATE_CONFLICT"


class OperationalFailure(StoreError):
    """A collaborator (database, payment gateway) failed.

    ``operation`` and ``target_id`` are kept for logs only; the client sees a
    generic message.
    """

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "SERVICE_UNAVAILABLE"

    def __init__(
        self,
        operation: str,
        target_id: Optional[Any] = None,
        detail: str = "The service is temporarily unavailable, please retry",
        **kwargs,
    ):
        super().__init__(detail, **kwargs)
        self.operation = operation
        self.target_id = target_id

    def __str__(self) -> str:
        return f"{self.operation} failed (target={self.target_id})"


async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    if isinstance(exc, OperationalFailure):
        logger.error(
            "Operational failure during %s",
            exc.operation,
            extra={"extra_fields": {"target_id": str(exc.target_id)}},
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": exc.code},
        headers=exc.headers,
    )


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": "Missing or invalid fields",
            "code": ValidationFailed.code,
            "errors": jsonable_errors(exc),
        },
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StoreError, store_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
