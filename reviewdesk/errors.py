"""Domain errors raised by the review services.

Each error carries the HTTP status it maps to and a short message that is safe
to show to anonymous token holders. Anything more detailed goes to the log.
"""
from __future__ import annotations


class ReviewDeskError(Exception):
    status_code = 500
    public_message = "Something went wrong"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.public_message)
        self.message = message or self.public_message


class NotFound(ReviewDeskError):
    status_code = 404
    public_message = "Not found"


class Gone(ReviewDeskError):
    status_code = 410
    public_message = "This review link is no longer active"


class RevisionLimitExceeded(ReviewDeskError):
    status_code = 409
    public_message = "Revision limit reached for this container."


class ProcessingError(ReviewDeskError):
    status_code = 500
    public_message = "Failed to process document"


class ValidationError(ReviewDeskError):
    status_code = 400
    public_message = "Invalid request"


__all__ = [
    "ReviewDeskError",
    "NotFound",
    "Gone",
    "RevisionLimitExceeded",
    "ProcessingError",
    "ValidationError",
]
