"""
Custom Exception Classes for the CRM auth core

Every error raised by the stores, the authentication engine and the
authorization guards derives from CRMAuthError. Callers branch on
``error_code`` (an ErrorCode member) and the structured ``details`` dict,
never on the message text.
"""

from enum import Enum
from typing import Any

from fastapi import status


class ErrorCode(str, Enum):
    """Machine-readable error codes returned in every error body."""

    VALIDATION_FAILED = "VALIDATION_FAILED"
    WEAK_PASSWORD = "VALIDATION_WEAK_PASSWORD"
    INVITATION_EXPIRED = "VALIDATION_INVITATION_EXPIRED"
    INVITATION_INVALID = "VALIDATION_INVITATION_INVALID"
    AUTH_FAILED = "AUTH_FAILED"
    AUTH_INVALID_CREDENTIALS = "AUTH_INVALID_CREDENTIALS"
    AUTH_CURRENT_PASSWORD_INCORRECT = "AUTH_CURRENT_PASSWORD_INCORRECT"
    AUTH_PERMISSION_DENIED = "AUTH_PERMISSION_DENIED"
    AUTH_TENANT_ACCESS_DENIED = "AUTH_TENANT_ACCESS_DENIED"
    AUTH_ROLE_REQUIRED = "AUTH_ROLE_REQUIRED"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    STORE_TIMEOUT = "STORE_TIMEOUT"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class CRMAuthError(Exception):
    """Base exception class for all auth-core exceptions"""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


# ============================================================================
# Authentication & Authorization Exceptions
# ============================================================================


class AuthenticationError(CRMAuthError):
    """Raised when the caller's identity cannot be established"""

    def __init__(
        self,
        message: str = "Authentication required",
        error_code: ErrorCode = ErrorCode.AUTH_FAILED,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_code=error_code,
            details=details,
        )


class InvalidCredentialsError(AuthenticationError):
    """Raised for every credential failure; one message so accounts cannot be enumerated"""

    def __init__(self):
        super().__init__(message="Invalid credentials", error_code=ErrorCode.AUTH_INVALID_CREDENTIALS)


class AuthorizationError(CRMAuthError):
    """Raised when an authenticated caller lacks the rights for an action"""

    def __init__(
        self,
        message: str = "You do not have permission to perform this action",
        error_code: ErrorCode = ErrorCode.AUTH_PERMISSION_DENIED,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            error_code=error_code,
            details=details,
        )


# ============================================================================
# Validation, Conflict & Not Found Exceptions
# ============================================================================


class ValidationError(CRMAuthError):
    """Raised when input shape or policy validation fails"""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        error_code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        details: dict[str, Any] | None = None,
    ):
        error_details = details or {}
        if field:
            error_details["field"] = field
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code=error_code,
            details=error_details,
        )


class WeakPasswordError(ValidationError):
    """Raised when a password fails the strength policy"""

    def __init__(self, errors: list[str], field: str = "password"):
        super().__init__(
            message=f"Password validation failed: {', '.join(errors)}",
            field=field,
            error_code=ErrorCode.WEAK_PASSWORD,
            details={"errors": errors},
        )


class ConflictError(CRMAuthError):
    """Raised when a uniqueness constraint would be violated"""

    def __init__(self, resource_type: str, field: str, value: Any):
        super().__init__(
            message=f"{resource_type} with this {field} already exists",
            status_code=status.HTTP_409_CONFLICT,
            error_code=ErrorCode.RESOURCE_CONFLICT,
            details={"resource_type": resource_type, "field": field},
        )
        self.value = value


class NotFoundError(CRMAuthError):
    """Raised when a referenced entity does not exist"""

    def __init__(self, resource_type: str, resource_id: Any | None = None):
        super().__init__(
            message=f"{resource_type} not found",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code=ErrorCode.RESOURCE_NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


# ============================================================================
# Store & Internal Exceptions
# ============================================================================


class InternalError(CRMAuthError):
    """Raised when a store operation or an unexpected step fails"""

    def __init__(
        self,
        message: str = "An internal error occurred",
        operation: str | None = None,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
    ):
        details = {"operation": operation} if operation else {}
        super().__init__(
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code=error_code,
            details=details,
        )


class StoreTimeoutError(InternalError):
    """Raised when a store operation exceeds its deadline"""

    def __init__(self, operation: str | None = None):
        super().__init__(message="Store operation timed out", operation=operation, error_code=ErrorCode.STORE_TIMEOUT)
