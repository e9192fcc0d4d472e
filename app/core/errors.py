"""
Custom exception hierarchy for the EcoHunt reward engine.

Rule: every error has a machine-readable `code` string so clients
can branch on it without parsing English messages. The same codes are
used as `error_code` on failed ProcessResults, so a fallback reward and
an HTTP error speak the same vocabulary.
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class EcoHuntException(Exception):
    """Base class for all application-level errors."""
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class SubmissionValidationError(EcoHuntException):
    """Malformed or missing submission fields, detected before verification."""
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        super().__init__(
            message=message,
            details={"field": field} if field else {},
        )


class SubcheckFailure(EcoHuntException):
    code = "SUBCHECK_FAILURE"

    def __init__(self, check: str, reason: str):
        super().__init__(
            message=f"Photo sub-check '{check}' failed: {reason}",
            details={"check": check, "reason": reason},
        )


class PipelineFailure(EcoHuntException):
    code = "PIPELINE_FAILURE"

    def __init__(self, step: str, reason: str):
        super().__init__(
            message=f"Pipeline step '{step}' failed: {reason}",
            details={"step": step, "reason": reason},
        )


class SubmissionTimeoutError(EcoHuntException):
    http_status = status.HTTP_504_GATEWAY_TIMEOUT
    code = "SUBMISSION_TIMEOUT"

    def __init__(self, timeout_seconds: float):
        super().__init__(
            message=f"Submission processing exceeded {timeout_seconds:g}s.",
            details={"timeout_seconds": timeout_seconds},
        )


class PhotoNotFoundError(EcoHuntException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "PHOTO_NOT_FOUND"

    def __init__(self, reference: str):
        super().__init__(
            message=f"Photo '{reference}' could not be resolved.",
            details={"reference": reference},
        )


class IssuanceError(EcoHuntException):
    """Reward issuance failed. `kind` is one of the constants below."""
    http_status = status.HTTP_502_BAD_GATEWAY
    code = "ISSUANCE_FAILED"

    NETWORK = "network"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    INVALID_RECIPIENT = "invalid_recipient"
    INVALID_AMOUNT = "invalid_amount"

    def __init__(self, kind: str, message: str):
        self.kind = kind
        super().__init__(message=message, details={"kind": kind})


class ProcessNotFoundError(EcoHuntException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "PROCESS_NOT_FOUND"

    def __init__(self, process_id: str):
        super().__init__(
            message=f"No processed activity with id '{process_id}'.",
            details={"process_id": process_id},
        )


class IssuanceNotRetryableError(EcoHuntException):
    http_status = status.HTTP_409_CONFLICT
    code = "ISSUANCE_NOT_RETRYABLE"

    def __init__(self, process_id: str, reason: str):
        super().__init__(
            message=f"Reward for '{process_id}' cannot be issued: {reason}",
            details={"process_id": process_id, "reason": reason},
        )


class BatchTooLargeError(EcoHuntException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "BATCH_TOO_LARGE"

    def __init__(self, max_items: int, received: int):
        super().__init__(
            message=f"Batch exceeds maximum size of {max_items} items. Received {received}.",
            details={"max_items": max_items, "received": received},
        )


class EmptyBatchError(EcoHuntException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "EMPTY_BATCH"

    def __init__(self):
        super().__init__(message="Batch must contain at least one submission.")


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def ecohunt_exception_handler(request: Request, exc: EcoHuntException) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """422 with one `{field, message, type}` entry per failing field."""
    field_errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "code": SubmissionValidationError.code,
            "message": "Request validation failed.",
            "details": {"errors": field_errors},
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=EcoHuntException("An unexpected error occurred.").to_dict(),
    )
