"""
Domain errors raised by the services.

Each error carries the HTTP status the API layer answers with and a message
that is safe to show to the caller. Server-side errors (5xx) replace their
message with a generic one unless the app runs in debug mode.
"""

from fastapi import status


GENERIC_SERVER_ERROR = "Internal server error"


class ClickLinkError(Exception):
    """Base class for errors the API turns into JSON responses"""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = GENERIC_SERVER_ERROR

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def is_server_error(self) -> bool:
        return self.status_code >= 500


class ValidationError(ClickLinkError):
    """Bad input the user can fix"""
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid input"


class AliasConflictError(ClickLinkError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Custom alias already exists"


class CodeSpaceExhaustedError(ClickLinkError):
    """No free short code found within the bounded attempts"""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Could not generate a unique short code"


class NotFoundError(ClickLinkError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "URL not found"


class GoneError(ClickLinkError):
    """The link existed but is inactive or expired"""
    status_code = status.HTTP_410_GONE
    default_message = "URL is no longer available"


class InternalError(ClickLinkError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = GENERIC_SERVER_ERROR


class UnauthorizedError(ClickLinkError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"


class ForbiddenError(ClickLinkError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Not authorized to access this URL"
