"""
Error taxonomy shared by the sync, transform and transcription operations.

Each error carries the HTTP status the API layer should answer with:
- NotFoundError (404): referenced recording or connection absent
- ValidationError (400): invalid transform output, nothing was written
- ConflictError (409): synthetic-id collision, uploaded blob was removed
- PayloadTooLargeError (413): uploaded file exceeds the size limit
- UpstreamError (502): remote API failed after retries
"""


class PipelineError(Exception):
    """Base class for expected, user-visible pipeline failures."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message, "code": type(self).__name__}


class NotFoundError(PipelineError):
    status_code = 404


class ValidationError(PipelineError):
    status_code = 400


class ConflictError(PipelineError):
    status_code = 409


class PayloadTooLargeError(PipelineError):
    status_code = 413


class UpstreamError(PipelineError):
    status_code = 502


__all__ = [
    "PipelineError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "PayloadTooLargeError",
    "UpstreamError",
]
