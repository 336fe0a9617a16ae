"""
Custom Exceptions for Maintrack
===============================

Use these instead of generic Exception to:
1. Keep "no data yet", "storage unreachable" and "bad input" apart
2. Let the API layer map each failure to its HTTP status
3. Give the client a machine-readable error code with every failure

Usage:
    from app.core.exceptions import StorageUnavailableError, WorkNotFoundError

    if not removed:
        raise WorkNotFoundError(work_id, year)

    try:
        partition = await store.load(year)
    except StorageUnavailableError as e:
        logger.error(f"Partition {year} unreachable: {e}")
        raise
"""

from typing import Optional, Any, Dict


class MaintrackError(Exception):
    """Base exception for all Maintrack errors"""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Authentication & Authorization Errors
# ============================================

class AuthenticationError(MaintrackError):
    """User authentication failed"""

    status_code = 401

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, code="AUTH_FAILED")


class InvalidCredentialsError(AuthenticationError):
    """Username/password pair rejected"""

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message)
        self.code = "INVALID_CREDENTIALS"


class MissingTokenError(AuthenticationError):
    """No bearer token on a protected route"""

    def __init__(self):
        super().__init__("Access token required")
        self.code = "TOKEN_REQUIRED"


class InvalidTokenError(MaintrackError):
    """JWT token is invalid or expired"""

    status_code = 403

    def __init__(self, message: str = "Invalid or expired token"):
        super().__init__(message, code="INVALID_TOKEN")


class UserAlreadyExistsError(MaintrackError):
    """Username is taken"""

    status_code = 409

    def __init__(self, username: str):
        super().__init__(
            "Username already exists",
            code="USER_EXISTS",
            details={"username": username}
        )


# ============================================
# Resource Errors (404-type)
# ============================================

class ResourceNotFoundError(MaintrackError):
    """Base class for not found errors"""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} with ID '{resource_id}' not found",
            code=f"{resource_type.upper()}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": resource_id}
        )


class WorkNotFoundError(ResourceNotFoundError):
    """Work item not found in the target year partition"""

    def __init__(self, work_id: str, year: Optional[int] = None):
        super().__init__("Work", work_id)
        if year is not None:
            self.details["year"] = year


class UserNotFoundError(ResourceNotFoundError):
    """User not found"""

    def __init__(self, user_id: str):
        super().__init__("User", user_id)


# ============================================
# Validation Errors (400-type)
# ============================================

class InvalidInputError(MaintrackError):
    """Payload or query parameters rejected"""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None, errors: Optional[list] = None):
        details: Dict[str, Any] = {}
        if field:
            details["field"] = field
        if errors:
            details["errors"] = errors
        super().__init__(message, code="INVALID_INPUT", details=details)


# ============================================
# Storage Errors
# ============================================

class StorageError(MaintrackError):
    """Storage operation failed"""

    def __init__(self, message: str, code: str = "STORAGE_ERROR"):
        super().__init__(message, code=code)


class StorageUnavailableError(StorageError):
    """Data directory or partition file cannot be reached (mount, permission, disk)"""

    status_code = 503

    def __init__(self, message: str = "Storage unavailable", path: Optional[str] = None):
        super().__init__(message, code="STORAGE_UNAVAILABLE")
        if path:
            self.details["path"] = path


class MalformedContentError(StorageError):
    """Partition file exists but does not hold a valid partition"""

    def __init__(self, year: int, reason: str):
        super().__init__(f"Partition {year} is malformed: {reason}", code="MALFORMED_CONTENT")
        self.details = {"year": year, "reason": reason}


# ============================================
# Client-side Errors
# ============================================

class ApiError(MaintrackError):
    """Unexpected error response received by the works client"""

    def __init__(self, status_code: int, message: str, code: str = "API_ERROR"):
        super().__init__(message, code=code, details={"status_code": status_code})
        self.status_code = status_code


class ServerUnreachableError(StorageUnavailableError):
    """Works API could not be reached at all (connection refused, timeout)"""

    def __init__(self, base_url: str, reason: str):
        super().__init__(f"Works API at {base_url} is unreachable: {reason}")
        self.code = "SERVER_UNREACHABLE"
        self.details["base_url"] = base_url


# ============================================
# Helper function for API responses
# ============================================

def error_response(error: MaintrackError) -> Dict[str, Any]:
    """Convert exception to API error response format"""
    return {
        "success": False,
        "error": error.to_dict()
    }
