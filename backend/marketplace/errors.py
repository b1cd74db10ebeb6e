"""Domain errors raised by the service layer.

Each error carries the HTTP status the API answers with, so routers never
translate errors themselves; the handler registered in ``marketplace.main``
does it once for every request.
"""


class MarketplaceError(Exception):
    status_code = 500
    retryable = False

    def __init__(self, message: str, details: list[dict] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body: dict = {"message": self.message}
        if self.details:
            body["details"] = self.details
        if self.retryable:
            body["retryable"] = True
        return body


class ValidationError(MarketplaceError):
    """Malformed input. ``details`` holds one entry per offending field."""

    status_code = 400


class AuthenticationError(MarketplaceError):
    """Bad credentials or a payment signature that does not match."""

    status_code = 401


class AuthorizationError(MarketplaceError):
    status_code = 403


class NotFoundError(MarketplaceError):
    status_code = 404


class ConflictError(MarketplaceError):
    """A state-machine precondition does not hold."""

    status_code = 409


class RateLimitedError(MarketplaceError):
    status_code = 429

    def __init__(self, message: str, retry_after_seconds: float):
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["retry_after_seconds"] = round(self.retry_after_seconds, 1)
        return body


class GatewayError(MarketplaceError):
    """The payment gateway could not be reached or refused the request."""

    status_code = 503
    retryable = True
