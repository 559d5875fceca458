from typing import Any, Optional


class ApiError(Exception):
    """Base class for errors that map onto the JSON error envelope"""

    status_code = 500
    default_code: Optional[str] = None

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Any = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        body = {"success": False, "error": self.message}
        if self.code:
            body["code"] = self.code
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(ApiError):
    status_code = 400
    default_code = "VALIDATION_ERROR"


class AuthenticationError(ApiError):
    status_code = 401
    default_code = "UNAUTHENTICATED"


class AuthorizationError(ApiError):
    status_code = 403
    default_code = "FORBIDDEN"


class NotFoundError(ApiError):
    status_code = 404
    default_code = "NOT_FOUND"


class ConflictError(ApiError):
    status_code = 409
    default_code = "CONFLICT"


class RateLimitError(ApiError):
    status_code = 429
    default_code = "RATE_LIMITED"
