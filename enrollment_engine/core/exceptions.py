import enum
from typing import Any, Dict, Optional


class ErrorKind(str, enum.Enum):
    UNAUTHORIZED = "UNAUTHORIZED"
    PROFILE_NOT_FOUND = "PROFILE_NOT_FOUND"
    EVENT_NOT_FOUND = "EVENT_NOT_FOUND"
    EVENT_NOT_PUBLISHED = "EVENT_NOT_PUBLISHED"
    EVENT_STARTED = "EVENT_STARTED"
    ALREADY_ENROLLED = "ALREADY_ENROLLED"
    ENROLLMENT_NOT_FOUND = "ENROLLMENT_NOT_FOUND"
    EVENT_BUSY = "EVENT_BUSY"


# User-facing message for every error code
ERROR_MESSAGES: Dict[ErrorKind, str] = {
    ErrorKind.UNAUTHORIZED: "You are not allowed to perform this operation",
    ErrorKind.PROFILE_NOT_FOUND: "Profile not found, complete your registration first",
    ErrorKind.EVENT_NOT_FOUND: "Event not found",
    ErrorKind.EVENT_NOT_PUBLISHED: "This event is not open for enrollment yet",
    ErrorKind.EVENT_STARTED: "This event has already started, enrollment is closed",
    ErrorKind.ALREADY_ENROLLED: "You are already enrolled in this event",
    ErrorKind.ENROLLMENT_NOT_FOUND: "Enrollment not found",
    ErrorKind.EVENT_BUSY: "This event is receiving many requests, please try again in a moment",
}

ERROR_STATUS_CODES: Dict[ErrorKind, int] = {
    ErrorKind.UNAUTHORIZED: 403,
    ErrorKind.PROFILE_NOT_FOUND: 404,
    ErrorKind.EVENT_NOT_FOUND: 404,
    ErrorKind.EVENT_NOT_PUBLISHED: 400,
    ErrorKind.EVENT_STARTED: 400,
    ErrorKind.ALREADY_ENROLLED: 409,
    ErrorKind.ENROLLMENT_NOT_FOUND: 404,
    ErrorKind.EVENT_BUSY: 503,
}


class AdmissionError(Exception):
    """Base class for rejected admission requests.

    Raised before anything is written; the coordinator turns it into a
    failed result and the HTTP layer into a JSON error response.
    """

    kind: ErrorKind = ErrorKind.UNAUTHORIZED

    def __init__(
        self,
        message: Optional[str] = None,
        kind: Optional[ErrorKind] = None,
        data: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        self.kind = kind or self.kind
        self.message = message or ERROR_MESSAGES[self.kind]
        self.data = data or {}
        self._status_code = status_code
        super().__init__(self.message)

    @property
    def error_code(self) -> str:
        return self.kind.value

    @property
    def status_code(self) -> int:
        return self._status_code or ERROR_STATUS_CODES[self.kind]

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(error_code={self.error_code}, message={self.message})"


class UnauthorizedError(AdmissionError):
    kind = ErrorKind.UNAUTHORIZED


class ProfileNotFoundError(AdmissionError):
    kind = ErrorKind.PROFILE_NOT_FOUND


class EventNotFoundError(AdmissionError):
    kind = ErrorKind.EVENT_NOT_FOUND


class EventNotPublishedError(AdmissionError):
    kind = ErrorKind.EVENT_NOT_PUBLISHED


class EventStartedError(AdmissionError):
    kind = ErrorKind.EVENT_STARTED


class AlreadyEnrolledError(AdmissionError):
    kind = ErrorKind.ALREADY_ENROLLED


class EnrollmentNotFoundError(AdmissionError):
    kind = ErrorKind.ENROLLMENT_NOT_FOUND


class EventBusyError(AdmissionError):
    """Per-event lock could not be acquired in time. Safe to retry."""

    kind = ErrorKind.EVENT_BUSY


ERRORS_BY_KIND = {cls.kind: cls for cls in AdmissionError.__subclasses__()}


class InvariantViolation(Exception):
    """Stored enrollment state contradicts an invariant.

    Never converted into a result: the transaction is aborted and the
    error propagates as an internal failure.
    """
