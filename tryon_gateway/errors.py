"""Failure taxonomy shared by every generation strategy."""

from enum import Enum


class ErrorKind(str, Enum):
    """Classified reason a request or strategy attempt failed."""

    MISSING_INPUT = "MissingInput"
    INVALID_IMAGE_ENCODING = "InvalidImageEncoding"
    INVALID_IMAGE_FORMAT = "InvalidImageFormat"
    NO_SUBJECT_DETECTED = "NoSubjectDetected"
    INSUFFICIENT_QUOTA = "InsufficientQuota"
    REMOTE_SERVICE_ERROR = "RemoteServiceError"
    MALFORMED_REMOTE_RESPONSE = "MalformedRemoteResponse"
    AUTOMATION_UNAVAILABLE = "AutomationUnavailable"
    AUTOMATION_TIMEOUT = "AutomationTimeout"
    AUTOMATION_PAGE_LAYOUT_MISMATCH = "AutomationPageLayoutMismatch"


class TryOnError(Exception):
    """Raised with a classification so callers can decide on fallback."""

    def __init__(self, kind: ErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"
