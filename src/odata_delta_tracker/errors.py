"""
Exception types raised by the OData delta tracker.

Every failure inside the library surfaces as a subclass of ``ODataError``;
deciding whether to terminate the process is left to the caller.
"""

from typing import Optional


class ODataError(Exception):
    """Base class for all errors raised by this package."""


class TransportError(ODataError):
    """The request could not be executed (DNS, TCP, TLS or timeout failure)."""

    def __init__(self, method: str, url: str, message: str):
        super().__init__(f"{method} {url} failed: {message}")
        self.method = method
        self.url = url


class UnexpectedStatusError(ODataError):
    """The server answered with a status code other than the expected one."""

    def __init__(
        self,
        context: str,
        status: int,
        reason: Optional[str],
        body: str,
        expected: Optional[int] = None,
    ):
        status_line = f"{status} {reason}" if reason else str(status)
        message = f"Server responded with: {status_line}\r\n{body}"
        if context:
            message = f"{context}\r\n{message}"
        super().__init__(message)
        self.context = context
        self.status = status
        self.reason = reason
        self.body = body
        self.expected = expected


class DecodingError(ODataError):
    """A response body could not be interpreted by a processor."""

    def __init__(self, message: str, body: bytes = b""):
        excerpt = body[:200].decode("utf-8", errors="replace")
        super().__init__(f"{message} (body: {excerpt!r})" if body else message)
        self.body = body


class ConfigurationError(ODataError):
    """Required configuration is missing or invalid."""


class UnsupportedServerVersionError(ODataError):
    """The server is too old to support change tracking."""

    def __init__(self, version: str, minimum: str):
        super().__init__(
            f"The server version is {version}, minimal required version "
            f"to use a tracker is {minimum}"
        )
        self.version = version
        self.minimum = minimum
