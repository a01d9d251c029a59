"""
DDRide error taxonomy.

Every failure an operation can report is a DDRideError carrying:
- code: machine-readable error code (e.g. DD_CONFLICT)
- message: human-readable description
- details: structured metadata safe to return to clients

Validation and conflict errors are raised before (or instead of) any
mutation. PartialCascadeError is for operators only and is never surfaced
to end users.
"""
from typing import Any, Dict, List, Optional


class DDRideError(Exception):
    """Base exception for all DDRide errors."""

    status_code = 500

    def __init__(
        self,
        message: str,
        code: str = "DD_INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for JSON serialization."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(DDRideError):
    """Malformed input or missing prerequisite data (e.g. no baseline)."""

    status_code = 422

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="DD_VALIDATION_ERROR", details=details)


class ConflictError(DDRideError):
    """State changed or already resolved; the caller must re-fetch."""

    status_code = 409

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="DD_CONFLICT", details=details)


class NotFoundError(DDRideError):
    status_code = 404

    def __init__(self, resource: str, resource_id: Any):
        super().__init__(
            f"{resource} not found",
            code="DD_NOT_FOUND",
            details={"resource": resource, "id": resource_id},
        )


class AuthenticationError(DDRideError):
    status_code = 401

    def __init__(self, message: str = "Missing or invalid caller identity"):
        super().__init__(message, code="DD_UNAUTHENTICATED")


class PermissionDeniedError(DDRideError):
    status_code = 403

    def __init__(self, message: str):
        super().__init__(message, code="DD_FORBIDDEN")


class StorageError(DDRideError):
    """Blob storage rejected or failed an upload."""

    status_code = 502

    def __init__(self, message: str):
        super().__init__(message, code="DD_STORAGE_ERROR")


class PartialCascadeError(DDRideError):
    """
    One or more revocation cascade steps failed.

    Completed steps are not rolled back. Recovery is re-running the
    cascade (it is idempotent), not retrying here.
    """

    def __init__(self, user_id: int, failed_steps: List[str], report: Dict[str, Any]):
        super().__init__(
            f"Revocation cascade for user {user_id} incomplete: {', '.join(failed_steps)}",
            code="DD_PARTIAL_CASCADE",
            details={"user_id": user_id, "failed_steps": failed_steps, "report": report},
        )
        self.user_id = user_id
        self.failed_steps = failed_steps
        self.report = report
