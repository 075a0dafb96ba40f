"""
Exception hierarchy raised by the gateway client.

Every error carries enough context (URL, status, headers, raw body) for a
caller to log it or decide to retry with a fresh parameter set.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:  # pragma: no cover
    from .transport import TransportResult

__all__ = [
    "CancelledError",
    "CertificateError",
    "DecodeError",
    "GatewayError",
    "GatewayHTMLError",
    "NetworkError",
    "TransportError",
    "UnsupportedModeError",
    "ValidationError",
]


class GatewayError(Exception):
    """Base class for every error raised by this package."""


class ValidationError(GatewayError):
    """A required field is missing or invalid; raised before any network call."""

    def __init__(self, message: str, *, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class UnsupportedModeError(GatewayError):
    """The operation is not available in the client's sandbox/production mode."""


class CertificateError(GatewayError):
    """Client certificate material is malformed or missing when required."""


class NetworkError(GatewayError):
    """The HTTP exchange failed below the protocol level (DNS, TLS, timeout, I/O)."""

    def __init__(self, url: str, cause: Optional[BaseException] = None) -> None:
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Request to {url} failed{detail}")
        self.url = url
        self.cause = cause


class CancelledError(NetworkError):
    """The caller cancelled the exchange before it completed."""

    def __init__(self, url: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(url, cause)
        self.args = (f"Request to {url} was cancelled",)


class _ResponseError(GatewayError):
    def __init__(self, message: str, result: "TransportResult") -> None:
        super().__init__(message)
        self.result = result

    @property
    def url(self) -> str:
        return self.result.url

    @property
    def status_code(self) -> int:
        return self.result.status_code

    @property
    def headers(self):
        return self.result.headers

    @property
    def body(self) -> bytes:
        return self.result.body


class TransportError(_ResponseError):
    """The gateway answered with a status other than 200."""

    def __init__(self, result: "TransportResult") -> None:
        super().__init__(
            f"HTTP Request Error, StatusCode = {result.status_code}", result
        )


class GatewayHTMLError(_ResponseError):
    """
    The gateway returned an HTML page instead of protocol XML.

    This usually means a malformed request, an IP allow-list rejection or a
    gateway outage. The body is never parsed further.
    """

    def __init__(self, result: "TransportResult") -> None:
        super().__init__(result.text, result)


class DecodeError(GatewayError):
    """The response body is not well-formed XML or lacks the expected fields."""

    def __init__(
        self,
        raw: bytes,
        cause: Optional[BaseException] = None,
        *,
        result: Optional["TransportResult"] = None,
    ) -> None:
        text = raw.decode("utf-8", errors="replace")
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Failed to decode gateway response ({text}){detail}")
        self.raw = raw
        self.cause = cause
        self.result = result
