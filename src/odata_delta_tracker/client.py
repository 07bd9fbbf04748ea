"""
OData v4 client built on aiohttp.

This module provides the transport used by the collection iterator and the
delta tracker: a single cookie-retaining session, request construction with
the OData protocol headers, and status validation of responses.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional, Union

import aiohttp

from .errors import TransportError, UnexpectedStatusError
from .models import ODataResponse, RequestDescriptor

logger = logging.getLogger(__name__)

PreRequestHook = Callable[[RequestDescriptor], None]


def validate_status_code(
    response: ODataResponse,
    expected_status: int,
    context: Union[str, Callable[[], str]] = "",
) -> ODataResponse:
    """
    Ensure a response carries the expected status code.

    Args:
        response: The response to check
        expected_status: Status code the operation requires
        context: Description of the operation, or a callable producing one,
                 used as the first line of the error message

    Returns:
        The response itself, so calls can be chained

    Raises:
        UnexpectedStatusError: If the status differs from ``expected_status``
    """
    if response.status != expected_status:
        description = context() if callable(context) else context
        raise UnexpectedStatusError(
            description,
            response.status,
            response.reason,
            response.text(),
            expected=expected_status,
        )
    return response


class ODataClient:
    """
    Async client for an OData v4 service.

    Every request carries the ``OData-Version`` and ``Accept`` headers. One
    ``aiohttp.ClientSession`` is created lazily and reused for all requests
    so that the server session cookie and pooled connections are kept.
    """

    ODATA_VERSION = "4.0"
    ACCEPT_JSON = "application/json"
    TRACK_CHANGES_PREFERENCE = "odata.track-changes"

    def __init__(
        self,
        service_root_url: str,
        verify_ssl: bool = True,
        verbose: bool = False,
        timeout: Optional[float] = None,
        session: Optional[aiohttp.ClientSession] = None,
        logger_: Optional[logging.Logger] = None,
    ):
        """
        Initialize the client.

        Args:
            service_root_url: Base URL that relative links are appended to
            verify_ssl: Set to False to skip TLS certificate verification
            verbose: Log every request and response body at INFO level
            timeout: Total timeout per request in seconds (aiohttp default if None)
            session: Externally managed session to use instead of creating one
        """
        self.service_root_url = service_root_url
        self.verify_ssl = verify_ssl
        self.verbose = verbose
        self.timeout = aiohttp.ClientTimeout(total=timeout) if timeout else None
        self.logger = logger_ or logger
        self._session = session
        self._owns_session = session is None
        self._closed = False
        self._set_external_log_levels()

    def _set_external_log_levels(self) -> None:
        """Align the aiohttp client logger with this client's effective level."""
        logging.getLogger("aiohttp.client").setLevel(self.logger.getEffectiveLevel())

    @property
    def session(self) -> aiohttp.ClientSession:
        """Get or create the session."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(ssl=self.verify_ssl)
            # unsafe=True keeps cookies for servers addressed by IP
            kwargs: Dict[str, Any] = {
                "connector": connector,
                "cookie_jar": aiohttp.CookieJar(unsafe=True),
            }
            if self.timeout is not None:
                kwargs["timeout"] = self.timeout
            self._session = aiohttp.ClientSession(**kwargs)
            self._owns_session = True
            self._closed = False
            self.logger.debug("Created aiohttp ClientSession")
        return self._session

    def url_for(self, link: str) -> str:
        """Compose the URL for a collection path or a server supplied link."""
        if link.startswith(("http://", "https://")):
            return link
        return self.service_root_url + link

    def build_request(
        self,
        method: str,
        url: str,
        body: Optional[str] = None,
        content_type: Optional[str] = None,
        pre_request: Optional[PreRequestHook] = None,
    ) -> RequestDescriptor:
        """Build a request with the OData protocol headers and run the hook on it."""
        headers = {
            "OData-Version": self.ODATA_VERSION,
            "Accept": self.ACCEPT_JSON,
        }
        if content_type:
            headers["Content-Type"] = content_type

        request = RequestDescriptor(method=method, url=url, headers=headers, body=body)
        if pre_request is not None:
            pre_request(request)
        return request

    async def send(self, request: RequestDescriptor) -> ODataResponse:
        """
        Execute a request and read its body completely.

        The body is read inside the response context so the connection goes
        back to the pool whether reading succeeds, fails or is cancelled.

        Raises:
            TransportError: If the request could not be executed
        """
        if self.verbose:
            self.logger.info(f"{request.method} {request.url}")
            if request.body is not None:
                self.logger.info(request.body)

        try:
            async with self.session.request(
                request.method,
                request.url,
                headers=request.headers,
                data=request.body,
            ) as resp:
                body = await resp.read()
                response = ODataResponse(
                    status=resp.status,
                    reason=resp.reason,
                    headers=resp.headers,
                    body=body,
                    url=request.url,
                )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(
                request.method, request.url, str(e) or type(e).__name__
            ) from e

        if self.verbose:
            self.logger.info(response.text())
        return response

    async def execute_get(
        self,
        url: str,
        pre_request: Optional[PreRequestHook] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> ODataResponse:
        """Execute a GET request; ``headers`` override the protocol defaults."""
        request = self.build_request("GET", url, pre_request=pre_request)
        if headers:
            request.headers.update(headers)
        return await self.send(request)

    async def execute_post(
        self,
        url: str,
        content_type: str,
        body: str,
        pre_request: Optional[PreRequestHook] = None,
    ) -> ODataResponse:
        """Execute a POST request with the given body."""
        request = self.build_request(
            "POST", url, body=body, content_type=content_type, pre_request=pre_request
        )
        return await self.send(request)

    async def iterate_collection(self, collection_path: str, processor: Any) -> int:
        """Walk a collection to exhaustion; returns the number of pages processed."""
        from .tracker import CollectionIterator

        return await CollectionIterator(self, processor).iterate(collection_path)

    async def track_collection(
        self, collection_path: str, interval: float, processor: Any
    ) -> Any:
        """Track a collection until the server stops handing out delta links."""
        from .tracker import DeltaTracker

        tracker = DeltaTracker(self, processor, interval=interval)
        return await tracker.track(collection_path)

    async def close(self) -> None:
        """Close the session if this client created it. Safe to call repeatedly."""
        if self._closed:
            return
        self._closed = True
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
            self.logger.debug("Closed aiohttp ClientSession")

    async def __aenter__(self) -> "ODataClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
