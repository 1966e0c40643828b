from typing import Optional


class AppError(Exception):
    """Base exception for application errors."""
    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class LLMError(AppError):
    """Base class for completion provider failures."""
    pass


class ConfigError(LLMError):
    """Raised when credentials, provider or model selection are missing or invalid.

    Never retried; surfaced to the user before any network call.
    """
    pass


class AuthError(LLMError):
    """Raised when a vendor rejects the API key (HTTP 401)."""
    pass


class RequestError(LLMError):
    """Raised when a vendor request fails for any reason other than auth."""
    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        original_error: Exception = None,
    ):
        super().__init__(message, original_error=original_error)
        self.status_code = status_code


class ParseError(AppError):
    """Raised when model output does not match the expected structured shape."""
    pass


class SearchError(AppError):
    """Raised when the external paper index cannot be queried."""
    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        original_error: Exception = None,
    ):
        super().__init__(message, original_error=original_error)
        self.status_code = status_code


class DatabaseError(AppError):
    """Raised when a database operation fails."""
    pass


class ValidationError(AppError):
    """Raised when input validation fails."""
    pass


class NavigationError(AppError):
    """Raised when a workflow step navigation is denied."""
    pass
