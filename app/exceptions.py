"""
Domain exceptions raised by services and rendered by the API layer

Every error carries the HTTP status it maps to, a stable machine-readable
code and a human-readable message. Extra keyword arguments are added to the
response body as-is.
"""
from typing import Any, Dict


class QuizHubError(Exception):
    """Base exception for QuizHub"""
    status_code: int = 500
    error: str = "internal_error"
    default_message: str = "An unexpected error occurred"

    def __init__(self, message: str = None, error: str = None, **extra: Any):
        self.message = message or self.default_message
        if error:
            self.error = error
        self.extra: Dict[str, Any] = extra
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body = {
            "error": self.error,
            "message": self.message,
            "status_code": self.status_code,
        }
        body.update(self.extra)
        return body


class InvalidError(QuizHubError):
    """
    Raised for malformed payloads.

    Examples:
    - Question not part of the quiz
    - Answer option not belonging to the question
    - Same question answered twice in one payload
    """
    status_code = 400
    error = "invalid_request"
    default_message = "Invalid request"


class AuthenticationError(QuizHubError):
    """Raised for missing, invalid or expired credentials."""
    status_code = 401
    error = "not_authenticated"
    default_message = "Could not validate credentials"


class PaymentRequiredError(QuizHubError):
    """Raised when a premium-gated resource is requested without entitlement."""
    status_code = 402
    error = "premium_required"
    default_message = "A premium subscription is required to access this quiz"


class ForbiddenError(QuizHubError):
    """Raised when the caller is authenticated but not allowed."""
    status_code = 403
    error = "forbidden"
    default_message = "Access forbidden"


class NotFoundError(QuizHubError):
    """Raised when a resource doesn't exist or is not visible to the caller."""
    status_code = 404
    error = "not_found"
    default_message = "Resource not found"


class ConflictError(QuizHubError):
    """
    Raised when an operation conflicts with the current state.

    Examples:
    - Submitting or abandoning an attempt that already finished
    - Losing a race on a terminal attempt transition
    - Registering an existing username or email
    """
    status_code = 409
    error = "conflict"
    default_message = "Request conflicts with the current state"


class ServiceUnavailableError(QuizHubError):
    """Raised when an external dependency (Gemini, Google) cannot serve the request."""
    status_code = 503
    error = "service_unavailable"
    default_message = "A required external service is unavailable"


class RateLimitError(QuizHubError):
    """Raised when a client exceeds its request budget."""
    status_code = 429
    error = "rate_limit_exceeded"
    default_message = "Too many requests"
