from typing import Optional


class AlpacaClientError(Exception):
    """
    Base class for every failure raised by the Alpaca client.

    Each subclass carries only the data a caller needs to act on it.
    None of them triggers a retry inside the library; backoff and
    reconnect policies are left to the caller.
    """


class TransportError(AlpacaClientError):
    """Network or connection level failure (DNS, refused, timeout...)."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"HTTP error: {detail}")


class APIError(AlpacaClientError):
    """
    A completed HTTP exchange whose status is outside the 2xx range.

    Attributes
    ----------
    status : int
        HTTP status code returned by the server.
    body : str
        Raw response text, kept for diagnostics.
    """

    def __init__(self, status: int, body: str) -> None:
        self.status = status
        self.body = body
        super().__init__(f"Alpaca API error {status}: {body}")


class DeserializeError(AlpacaClientError):
    """Response body could not be parsed into the expected shape."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"JSON deserialization error: {detail}")


class RateLimitedError(AlpacaClientError):
    """
    HTTP 429 response.

    Kept apart from `APIError` so callers can back off without
    inspecting response bodies.
    """

    def __init__(self, retry_after_seconds: Optional[int] = 1) -> None:
        self.retry_after_seconds = (
            1 if retry_after_seconds is None else retry_after_seconds
        )
        super().__init__(
            f"Rate limited, retry after {self.retry_after_seconds}s"
        )


class ConfigError(AlpacaClientError):
    """Invalid client configuration, raised before any network call."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Configuration error: {detail}")


class StreamingError(AlpacaClientError):
    """Failure on the WebSocket connect/send/receive/close path."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"WebSocket error: {detail}")
