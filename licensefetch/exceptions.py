"""licensefetch exception hierarchy.

All custom exceptions inherit from LicenseFetchError, allowing callers
to catch broad or specific error categories as needed.
"""


class LicenseFetchError(Exception):
    """Base exception for all licensefetch errors."""

    def __init__(self, message: str = "", url: str | None = None) -> None:
        self.url = url
        super().__init__(message)


class ConfigError(LicenseFetchError):
    """Raised when a required credential or setting is missing.

    Examples: no ledger API key configured before a license acquisition.
    This is the only error type allowed to reach the immediate caller
    of a privileged ledger operation.
    """


class TransportError(LicenseFetchError):
    """Raised when a network call fails before a response arrives.

    Examples: DNS failure, connection refused, request deadline exceeded.
    """

    def __init__(
        self,
        message: str = "",
        url: str | None = None,
        service: str | None = None,
    ) -> None:
        self.service = service
        super().__init__(message, url)


class ProtocolError(LicenseFetchError):
    """Raised when a peer speaks the protocol incorrectly.

    Examples: HTTP 402 without an x402 challenge, acquisition response
    missing licensed_url, non-JSON ledger body.
    """


class RemoteError(LicenseFetchError):
    """Raised when the ledger answers with a non-success status."""

    def __init__(
        self,
        message: str = "",
        url: str | None = None,
        status_code: int | None = None,
        service: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.service = service
        super().__init__(message, url)
