"""
Error taxonomy for the paid traffic API.
Every error carries the HTTP status the blueprint error handler renders.
"""


class PaidTrafficError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BadRequest(PaidTrafficError):
    status_code = 400


class InvalidWindow(BadRequest):
    """Year/week pair that does not map to an ISO week."""


class NotFound(PaidTrafficError):
    status_code = 404


class Forbidden(PaidTrafficError):
    status_code = 403


class UpstreamFailure(PaidTrafficError):
    """Query engine failed. Surfaced to the caller as 500, never retried."""
    status_code = 500


class CacheFailure(PaidTrafficError):
    """Object store read/write failed. Always recovered by the orchestrator."""
    status_code = 500
