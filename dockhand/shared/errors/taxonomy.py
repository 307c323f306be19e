"""
Closed error taxonomy.

Every failure that may reach a client is one of seven classifiers.
Anything else collapses to INTERNAL_SERVER_ERROR with a fixed message;
the original value is kept for logging only.
No framework imports allowed.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Union

GENERIC_FAILURE_MESSAGE = "Internal server error"


class StatusClassifier(IntEnum):
    """Symbolic status codes. The value is the HTTP status."""

    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    CONFLICT = 409
    INTERNAL_SERVER_ERROR = 500
    SERVICE_UNAVAILABLE = 503

    @property
    def http_status(self) -> int:
        return int(self.value)

    @classmethod
    def from_http_status(cls, status: int) -> "StatusClassifier":
        """Map an arbitrary HTTP status onto the closed set.

        Unknown 4xx statuses become BAD_REQUEST, everything else that is
        not a member becomes INTERNAL_SERVER_ERROR.
        """
        try:
            return cls(status)
        except ValueError:
            if 400 <= status < 500:
                return cls.BAD_REQUEST
            return cls.INTERNAL_SERVER_ERROR


@dataclass(frozen=True)
class ClassifiedFailure:
    """A failure that is safe to show to a client."""

    classifier: StatusClassifier
    message: str


@dataclass(frozen=True)
class UnclassifiedFailure:
    """Anything raised that nobody classified. Never shown to a client."""

    original: object


Failure = Union[ClassifiedFailure, UnclassifiedFailure]


class ServiceError(Exception):
    """Base error for all classified failures raised by this service."""

    def __init__(self, classifier: StatusClassifier, message: str) -> None:
        self.classifier = StatusClassifier(classifier)
        self.message = message
        super().__init__(self.message)

    @property
    def failure(self) -> ClassifiedFailure:
        return ClassifiedFailure(self.classifier, self.message)


class BadRequestError(ServiceError):
    """Raised when the caller sent something unusable."""

    def __init__(self, message: str) -> None:
        super().__init__(StatusClassifier.BAD_REQUEST, message)


class UnauthorizedError(ServiceError):
    """Raised when the caller is not authenticated."""

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(StatusClassifier.UNAUTHORIZED, message)


class ForbiddenError(ServiceError):
    """Raised when the caller may not perform the operation."""

    def __init__(self, message: str = "Forbidden") -> None:
        super().__init__(StatusClassifier.FORBIDDEN, message)


class NotFoundError(ServiceError):
    """Raised when a requested resource does not exist."""

    def __init__(self, message: str) -> None:
        super().__init__(StatusClassifier.NOT_FOUND, message)


class ConflictError(ServiceError):
    """Raised when the operation clashes with current state."""

    def __init__(self, message: str) -> None:
        super().__init__(StatusClassifier.CONFLICT, message)


class ServiceUnavailableError(ServiceError):
    """Raised when a dependency is temporarily unreachable."""

    def __init__(self, message: str = "Service unavailable") -> None:
        super().__init__(StatusClassifier.SERVICE_UNAVAILABLE, message)


def classify(value: object) -> Failure:
    """Tag a raised value as classified or unclassified."""
    if isinstance(value, ClassifiedFailure):
        return value
    if isinstance(value, ServiceError):
        return value.failure
    if isinstance(value, UnclassifiedFailure):
        return value
    return UnclassifiedFailure(original=value)


def normalize(value: object) -> ClassifiedFailure:
    """Return the client-facing failure for any raised value.

    Classified failures pass through unchanged. Unclassified ones become
    INTERNAL_SERVER_ERROR with a fixed message; their original text is
    discarded from every user-visible surface.
    """
    match classify(value):
        case ClassifiedFailure() as failure:
            return failure
        case UnclassifiedFailure():
            return ClassifiedFailure(
                StatusClassifier.INTERNAL_SERVER_ERROR, GENERIC_FAILURE_MESSAGE
            )
