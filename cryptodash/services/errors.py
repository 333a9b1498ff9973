"""Exceptions raised by the market data services."""


class MarketDataError(Exception):
    """Base class for failures surfaced to HTTP clients as a 500."""


class UpstreamError(MarketDataError):
    """
    The upstream call failed.

    Covers non-2xx responses other than a recovered 429, timeouts, transport
    failures and undecodable bodies. ``status_code`` is None when no HTTP
    response was received.
    """

    def __init__(self, message: str, status_code: int | None = None, path: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.path = path


class UpstreamThrottled(UpstreamError):
    """The upstream answered 429 again after the cool-down retry."""

    def __init__(self, path: str | None = None):
        super().__init__("429 Too Many Requests", status_code=429, path=path)


class UpstreamSchemaError(UpstreamError):
    """The upstream answered 2xx with a payload that does not match the expected schema."""


class RefreshFailed(MarketDataError):
    """A refresh cycle produced no records."""
