"""User-visible notices and fetch status for the interaction layer."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class NoticeLevel(str, Enum):
    """Severity of a notice."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class NoticeCode(str, Enum):
    """Machine-readable notice codes."""

    IMAGES_LOADED = "images_loaded"
    IMAGES_EMPTY = "images_empty"
    SERVICE_UNAVAILABLE = "service_unavailable"
    NOT_FOUND = "not_found"
    PRECONDITION_FAILED = "precondition_failed"
    VALIDATION_ERROR = "validation_error"
    UPLOAD_ERROR = "upload_error"
    UPLOAD_COMPLETE = "upload_complete"
    PENDING_LOCATION_SET = "pending_location_set"
    MARKERS_CLEARED = "markers_cleared"
    LOCATION_FOUND = "location_found"


class Notice(BaseModel, frozen=True):
    """A message surfaced to the user."""

    level: NoticeLevel
    code: NoticeCode
    message: str


class FetchStatus(str, Enum):
    """State of the image list as last fetched.

    EMPTY (server has no located images) and FAILED (server unreachable) are
    distinct so the UI can tell them apart.
    """

    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    EMPTY = "empty"
    FAILED = "failed"


class PreconditionFailed(Exception):
    """Raised when an operation is attempted without its inputs.

    Attributes:
        missing: Names of the missing inputs (e.g. "file", "location").
    """

    def __init__(self, message: str, *, missing: tuple[str, ...] = ()) -> None:
        self.missing = missing
        super().__init__(message)
