from typing import Optional, Type

from integrations.backend import BackendAPIError, BackendError, BackendUnavailableError


class MeetupError(Exception):
    """Base exception for coordination errors surfaced to the caller"""

    default_message = "Something went wrong."

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(MeetupError):
    """Raised when an operation needs a signed-in user"""

    default_message = "Please sign in first."


class NotFound(MeetupError):
    """Raised when a user or request lookup misses"""

    default_message = "Not found."


class UserNotFound(NotFound):
    default_message = "User not found."


class RequestNotFound(NotFound):
    default_message = "Request not found."


class Conflict(MeetupError):
    """Raised when the requested relation already exists"""

    default_message = "Conflict."


class AlreadyFriends(Conflict):
    default_message = "You are already friends."


class RequestAlreadyPending(Conflict):
    default_message = "A friend request is already pending."


class AlreadyResolved(MeetupError):
    """Raised when a request that already left `pending` is answered again"""

    default_message = "This request has already been answered."


class ValidationError(MeetupError):
    """Raised before any network call when input is incomplete"""

    default_message = "Invalid input."


class NoEmailOnFile(ValidationError):
    default_message = "This friend has no email on file."


class NotAvailable(MeetupError):
    """Advisory only: the recipient is busy at the proposed time"""

    default_message = "Recipient is not available at that time."


class NetworkError(MeetupError):
    """Raised when the backend could not be reached"""

    default_message = "Could not reach the server."


class RequestFailed(MeetupError):
    """Raised for a well-formed non-2xx response with no more specific meaning"""

    def __init__(self, status_code: Optional[int], message: Optional[str] = None) -> None:
        self.status_code = status_code
        super().__init__(
            message
            or (f"Request failed ({status_code})" if status_code else "Request failed")
        )


def from_backend_error(
    error: BackendError,
    *,
    not_found: Type[MeetupError] = NotFound,
    conflict: Type[MeetupError] = Conflict,
) -> MeetupError:
    """Translate a transport-level failure into the domain taxonomy"""
    if isinstance(error, BackendUnavailableError):
        return NetworkError()
    if isinstance(error, BackendAPIError):
        if error.status_code == 401:
            return Unauthenticated(error.message)
        if error.status_code == 404:
            return not_found(error.message)
        if error.status_code == 409:
            return conflict(error.message)
        return RequestFailed(error.status_code, error.message)
    return RequestFailed(None, str(error))
