"""
Error taxonomy for the JsonMaster HTTP layer.

Every application error has:
  - A stable error code (prefixed by domain)
  - An HTTP status code
  - A human-readable message
  - An optional detail dict for machine consumers

The comparison services never raise these; they return validation problems
as data and the API maps them here.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    """Stable error codes. Never reuse a retired code."""

    # Comparison
    COMPARE_INVALID_INPUT = "CMP_001"
    COMPARE_MISSING_INPUT = "CMP_002"

    # Text sessions
    TEXT_SESSION_EXPIRED = "TXT_001"

    # Reports
    REPORT_NOT_FOUND = "RPT_001"

    # Generic
    VALIDATION_ERROR = "GEN_001"
    INTERNAL_ERROR = "GEN_002"
    NOT_FOUND = "GEN_003"
    RATE_LIMITED = "GEN_004"


class AppError(Exception):
    """Base class for all application errors."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        http_status: int = 500,
        detail: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.http_status = http_status
        self.detail = detail or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "detail": self.detail,
            }
        }


# ── Typed convenience subclasses ──────────────────────────────────────── #


class NotFoundError(AppError):
    def __init__(
        self, entity: str, entity_id: str | None = None, code: ErrorCode = ErrorCode.NOT_FOUND
    ) -> None:
        detail = {"entity": entity}
        if entity_id:
            detail["id"] = entity_id
        super().__init__(code=code, message=f"{entity} not found", http_status=404, detail=detail)


class ValidationError(AppError):
    def __init__(self, message: str, detail: dict[str, Any] | None = None) -> None:
        super().__init__(
            code=ErrorCode.VALIDATION_ERROR,
            message=message,
            http_status=422,
            detail=detail,
        )


class ComparisonValidationError(AppError):
    """The two documents cannot be compared as requested."""

    def __init__(self, message: str) -> None:
        super().__init__(code=ErrorCode.COMPARE_INVALID_INPUT, message=message, http_status=400)


class MissingInputError(AppError):
    def __init__(self, message: str = "Please provide exactly 2 files or 2 JSON strings.") -> None:
        super().__init__(code=ErrorCode.COMPARE_MISSING_INPUT, message=message, http_status=400)


class SessionExpiredError(AppError):
    def __init__(self, session_id: str) -> None:
        super().__init__(
            code=ErrorCode.TEXT_SESSION_EXPIRED,
            message="Session expired",
            http_status=400,
            detail={"session_id": session_id},
        )
