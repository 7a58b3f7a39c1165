"""
Custom error classes for the application.
"""
from typing import Optional


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        status_code: int = 500,
        details: Optional[dict] = None
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert error to dictionary for response."""
        return {
            "error": True,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(AppError):
    """Required settings are missing or invalid. Raised at startup."""

    def __init__(self, message: str, missing: Optional[list] = None):
        details = {"missing": missing} if missing else None
        super().__init__(message, "CONFIGURATION_ERROR", status_code=500, details=details)


class AuthError(AppError):
    """Authentication related errors."""

    def __init__(self, message: str, code: str = "AUTH_ERROR"):
        super().__init__(message, code, status_code=401)


class NotSignedInError(AppError):
    """A protected route was called without a bound session."""

    def __init__(self):
        super().__init__("No signed-in user for this session.", "NOT_SIGNED_IN", status_code=400)


class GraphError(AppError):
    """Microsoft Graph API related errors."""

    def __init__(self, message: str = "Couldn't reach Microsoft Graph. Please try again.", status: Optional[int] = None):
        details = {"graph_status": status} if status else None
        super().__init__(message, "GRAPH_ERROR", status_code=502, details=details)


class GraphTimeoutError(AppError):
    """Microsoft Graph did not answer in time."""

    def __init__(self, message: str = "Microsoft Graph timed out. Please try again."):
        super().__init__(message, "GRAPH_TIMEOUT", status_code=504)


class GraphNotFoundError(AppError):
    """Graph answered 404. Callers re-raise a more specific error."""

    def __init__(self, path: str = ""):
        super().__init__(f"Resource not found: {path}", "NOT_FOUND", status_code=404)


class MessageNotFoundError(AppError):
    """Message not found."""

    def __init__(self, message_id: str = ""):
        message = f"Couldn't find message '{message_id}'." if message_id else "Message not found."
        super().__init__(message, "MESSAGE_NOT_FOUND", status_code=404)


class SubscriptionNotFoundError(AppError):
    """Subscription not found."""

    def __init__(self, subscription_id: str = ""):
        message = f"Couldn't find subscription '{subscription_id}'." if subscription_id else "Subscription not found."
        super().__init__(message, "SUBSCRIPTION_NOT_FOUND", status_code=404)


class InvalidSubscriptionError(AppError):
    """Subscription request rejected before calling the provider."""

    def __init__(self, message: str):
        super().__init__(message, "INVALID_SUBSCRIPTION", status_code=400)


class NotificationParseError(AppError):
    """Webhook body is not a change notification collection."""

    def __init__(self, message: str = "Invalid notification payload.", errors: Optional[list] = None):
        details = {"errors": errors} if errors else None
        super().__init__(message, "INVALID_NOTIFICATION", status_code=400, details=details)


class InvalidRequestError(AppError):
    """Invalid request format."""

    def __init__(self, message: str = "Invalid request format."):
        super().__init__(message, "INVALID_REQUEST", status_code=400)


class IdentityTimeoutError(AppError):
    """The identity platform did not answer in time."""

    def __init__(self, message: str = "The sign-in service timed out. Please try again."):
        super().__init__(message, "IDENTITY_TIMEOUT", status_code=504)


class IdentityUnavailableError(AppError):
    """The identity platform could not be reached."""

    def __init__(self, message: str = "Couldn't reach the sign-in service. Please try again."):
        super().__init__(message, "IDENTITY_UNAVAILABLE", status_code=502)
