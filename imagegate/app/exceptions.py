"""Custom exceptions for the image gateway."""


class GatewayException(Exception):
    """Base class for gateway exceptions with HTTP status code.

    All custom exceptions inherit from this class and define their
    status_code and error category, so one exception handler can turn
    any of them into a ``{"error", "message"}`` response.
    """
    status_code: int = 500
    error: str = "internal_error"

    def __init__(self, message: str = "Gateway error"):
        self.message = message
        super().__init__(message)

    def to_response(self) -> dict:
        return {"error": self.error, "message": self.message}


class InvalidInputError(GatewayException):
    """Raised when a required field is missing, empty or undecodable.

    Maps to HTTP 400 Bad Request.
    """
    status_code = 400
    error = "invalid_input"


class ContentRejectedError(GatewayException):
    """Raised when a prompt matches the moderation blacklist.

    Maps to HTTP 400 Bad Request. The upstream provider is never called.
    """
    status_code = 400
    error = "content_not_allowed"

    def __init__(self, reason: str = "Content blocked by policy"):
        self.reason = reason
        super().__init__(reason)


class RateLimitedError(GatewayException):
    """Raised when a client exceeded one of the rate limit windows.

    Maps to HTTP 429 Too Many Requests. The error category is the
    window-specific code, e.g. ``daily_limit_exceeded``.
    """
    status_code = 429

    def __init__(
        self,
        error: str = "too_many_requests",
        message: str = "Rate limit exceeded. Please try again later.",
        retry_after: int | None = None,
    ):
        self.error = error
        self.retry_after = retry_after
        super().__init__(message)


class UpstreamError(GatewayException):
    """Raised when the image provider fails or returns no usable image.

    Maps to HTTP 500 Internal Server Error.
    """
    status_code = 500
    error = "upstream_error"

    def __init__(self, message: str = "Failed to generate image", provider: str | None = None):
        self.provider = provider
        super().__init__(message)


class StorageError(GatewayException):
    """Raised when a stored image cannot be written to disk.

    Maps to HTTP 500 Internal Server Error.
    """
    status_code = 500
    error = "storage_error"
