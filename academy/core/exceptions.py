# academy/core/exceptions.py
"""Error taxonomy for the enrollment and attendance engine."""
from typing import Any, Dict, Optional


class AcademyException(Exception):
    """Base exception for the academy service"""
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        retryable: bool = False,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        if code:
            self.code = code
        self.retryable = retryable
        self.details = details
        super().__init__(self.message)


class ValidationError(AcademyException):
    """Malformed or missing input"""
    status_code = 400
    code = "VALIDATION_ERROR"


class InvalidQRCodeError(ValidationError):
    """QR payload does not resolve to a known student"""
    code = "INVALID_QR_CODE"


class UnauthorizedError(AcademyException):
    status_code = 401
    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class ForbiddenError(AcademyException):
    status_code = 403
    code = "FORBIDDEN"

    def __init__(self, message: str = "Permission denied"):
        super().__init__(message)


class NotFoundError(AcademyException):
    """Resource not found exception"""
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str, id: Any = None):
        message = f"{resource} not found"
        if id:
            message += f" with id: {id}"
        super().__init__(message)


class ConflictError(AcademyException):
    status_code = 409
    code = "CONFLICT"


class CapacityExceededError(ConflictError):
    code = "CAPACITY_EXCEEDED"


class AlreadyProcessedError(ConflictError):
    code = "ALREADY_PROCESSED"


class InternalError(AcademyException):
    """Unexpected store failure or broken invariant"""
    status_code = 500
    code = "INTERNAL_ERROR"
