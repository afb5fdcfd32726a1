"""
Domain errors raised by the scoring services.

Each error carries a stable machine code and the HTTP status the API layer
responds with. None of them indicate a crash: they describe why an
operation cannot (or need not) happen.
"""

from fastapi import status


class HasanatError(Exception):
    """Base class for expected, caller-recoverable failures."""

    code = "HASANAT_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Request could not be completed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class TimingsNotFound(HasanatError):
    code = "TIMINGS_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Prayer timings not found for this date. Please fetch timings first."


class InvalidTimings(HasanatError):
    code = "INVALID_TIMINGS"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "Prayer timings must be strictly increasing"


class TimingsProviderError(HasanatError):
    code = "TIMINGS_PROVIDER_ERROR"
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Could not retrieve prayer timings"


class LocationRequired(HasanatError):
    code = "LOCATION_REQUIRED"
    default_message = "Set your location before fetching prayer timings."


class TooEarly(HasanatError):
    code = "TOO_EARLY"
    default_message = "Prayer time has not started yet."


class WindowClosed(HasanatError):
    code = "WINDOW_CLOSED"
    default_message = "Prayer window has ended. This prayer is now missed."


class AlreadyLogged(HasanatError):
    code = "ALREADY_LOGGED"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Prayer already logged for this date."


class AlreadySet(HasanatError):
    code = "ALREADY_SET"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Fasting status already set for this date."


class AlreadyBroken(HasanatError):
    code = "ALREADY_BROKEN"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Fast already broken for this date."


class NotFasting(HasanatError):
    code = "NOT_FASTING"
    default_message = "You are not fasting on this date, so there is nothing to break."


class NoFastingLog(HasanatError):
    code = "NO_FASTING_LOG"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "No fasting log found for this date. Set fasting status first."


class StorageConflict(HasanatError):
    """
    A uniqueness constraint rejected an insert or a guarded update matched
    no row. Services translate this into the matching idempotent outcome.
    """

    code = "STORAGE_CONFLICT"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflicting write"


class TransportFailure(HasanatError):
    """Push delivery failed. Logged by the fanout, never shown to the actor."""

    code = "TRANSPORT_FAILURE"
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Push delivery failed"
