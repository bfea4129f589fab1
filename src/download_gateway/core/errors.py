"""Exception taxonomy for the download gateway.

Every error carries the HTTP status and the client-facing message the API
layer answers with. Messages never reveal more than the status contract does.
"""

from __future__ import annotations


class GatewayError(Exception):
    """Base exception for gateway failures surfaced to clients."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class MalformedInputError(GatewayError):
    """Missing or unparseable request parameters."""

    status_code = 400


class ExpiredError(GatewayError):
    """A time-boxed capability presented after its window."""

    status_code = 403


class UnauthenticatedError(GatewayError):
    """Signature mismatch or a failed proof-of-work redemption."""

    status_code = 403


class QuotaExceededError(GatewayError):
    """The identity has no download tokens left in its bucket."""

    status_code = 429

    def __init__(self, message: str, reset_at: int) -> None:
        super().__init__(message)
        self.reset_at = reset_at


class NotFoundError(GatewayError):
    """The catalog has no file with the requested id."""

    status_code = 404


class FileUnavailableError(GatewayError):
    """The catalog knows the file but it is missing from disk."""

    status_code = 500


class QuotaStorageError(GatewayError):
    """Quota persistence failed; the request fails closed."""

    status_code = 500

    def __init__(self, message: str = "Internal server error") -> None:
        super().__init__(message)
