# enrollment_ledger/services/errors.py - Error taxonomy for ledger and enrollment operations
from fastapi import status


class EnrollmentLedgerError(Exception):
    """Base class for every failure the core reports to its callers"""

    kind = "internal_failure"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(EnrollmentLedgerError):
    """Malformed or missing input; the caller can correct it"""

    kind = "validation_error"
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidAmount(ValidationError):
    pass


class InvalidStatus(ValidationError):
    pass


class NotFoundError(EnrollmentLedgerError):
    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class StudentNotFound(NotFoundError):
    pass


class CourseNotFound(NotFoundError):
    pass


class EnrollmentNotFound(NotFoundError):
    pass


class ConflictError(EnrollmentLedgerError):
    """The request is well-formed but the current state forbids it"""

    kind = "conflict"
    status_code = status.HTTP_409_CONFLICT


class DuplicateEnrollment(ConflictError):
    pass


class InsufficientFunds(ConflictError):
    pass


class CourseClosed(ConflictError):
    pass


class PermissionDenied(EnrollmentLedgerError):
    kind = "permission_denied"
    status_code = status.HTTP_403_FORBIDDEN


class InternalFailure(EnrollmentLedgerError):
    """Storage or transaction failure; nothing from the unit of work persisted"""


__all__ = [
    "EnrollmentLedgerError",
    "ValidationError",
    "InvalidAmount",
    "InvalidStatus",
    "NotFoundError",
    "StudentNotFound",
    "CourseNotFound",
    "EnrollmentNotFound",
    "ConflictError",
    "DuplicateEnrollment",
    "InsufficientFunds",
    "CourseClosed",
    "PermissionDenied",
    "InternalFailure",
]
