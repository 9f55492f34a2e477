"""
Error taxonomy for procurement lifecycle calls.

Every error carries the message that should be shown to the caller verbatim.
Server failures keep the server's `message` field; client-side checks use the
same wording the portal forms use.
"""

from typing import Optional

DEFAULT_ERROR_MESSAGE = "Something went wrong. Please try again."


class ProcurementError(Exception):
    def __init__(self, message: str = DEFAULT_ERROR_MESSAGE, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ValidationError(ProcurementError):
    """Malformed input: caught before the network call, or a 400/422 from the server."""


class InvalidStateError(ProcurementError):
    """Transition not permitted from the request's current status."""


class PreconditionError(ProcurementError):
    """Transition permitted by status but blocked by a missing prerequisite (e.g. no proof)."""


class NetworkError(ProcurementError):
    """Transport-level failure; the server never answered."""


class ServerError(ProcurementError):
    """Any other rejected call, including `success: false` envelopes."""


_STATUS_ERRORS = {
    400: ValidationError,
    409: InvalidStateError,
    412: PreconditionError,
    422: ValidationError,
}


def error_for_status(status_code: int, message: Optional[str]) -> ProcurementError:
    cls = _STATUS_ERRORS.get(status_code, ServerError)
    return cls(message or DEFAULT_ERROR_MESSAGE, status_code=status_code)
