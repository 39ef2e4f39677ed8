"""Project-wide custom exception types.

Every error that can reach a caller derives from :class:`FeedbackError` and
carries a stable ``category`` string next to its human-readable message.
"""


class FeedbackError(RuntimeError):
    """Base class for caller-visible failures."""

    category = "internal_error"

    def __init__(self, message: str) -> None:  # noqa: D401 – simple constructor
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.category, "message": self.message}


class RequestValidationError(FeedbackError):
    """A request was missing a required field or carried a malformed one."""

    category = "validation_error"


class AuthenticationError(FeedbackError):
    """No caller identity was available."""

    category = "unauthenticated"


class PermissionDeniedError(FeedbackError):
    """The caller is known but may not access the resource."""

    category = "permission_denied"


class EventNotFoundError(FeedbackError):
    """The referenced event does not exist."""

    category = "not_found"


class ProcessingError(FeedbackError):
    """Storage failed while serving a request; the caller may retry."""

    category = "processing_failed"


class RateLimitExceededError(RuntimeError):
    """Raised internally when the remote completion budget is exhausted."""
