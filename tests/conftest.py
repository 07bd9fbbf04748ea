"""Test configuration and fixtures."""

import json
import logging
import time
from typing import Any, Dict, List, Optional, Tuple
from unittest.mock import AsyncMock, MagicMock, Mock

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from odata_delta_tracker.models import ODataResponse


def pytest_configure(config):
    """Configure pytest with custom settings."""
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def make_response(
    payload: Any = None, status: int = 200, reason: str = "OK", text: Optional[str] = None
) -> ODataResponse:
    """Build an ODataResponse from a JSON payload or raw text."""
    body = text.encode() if text is not None else json.dumps(payload or {}).encode()
    return ODataResponse(status=status, reason=reason, headers={}, body=body)


def page(
    entities: Optional[List[Dict]] = None,
    next_link: Optional[str] = None,
    delta_link: Optional[str] = None,
) -> Dict[str, Any]:
    """Build an OData collection payload."""
    payload: Dict[str, Any] = {"value": entities or []}
    if next_link is not None:
        payload["@odata.nextLink"] = next_link
    if delta_link is not None:
        payload["@odata.deltaLink"] = delta_link
    return payload


def make_mock_session(*responses: Tuple[int, bytes]):
    """
    Provide a mock aiohttp session returning the given (status, body) pairs.

    Returns the session and the list of response context managers so tests
    can check that every response was released.
    """
    contexts = []
    for status, body in responses:
        resp = MagicMock()
        resp.status = status
        resp.reason = "OK" if status == 200 else "Not Found"
        resp.headers = {}
        if isinstance(body, BaseException):
            resp.read = AsyncMock(side_effect=body)
        else:
            resp.read = AsyncMock(return_value=body)

        ctx = MagicMock()
        ctx.__aenter__ = AsyncMock(return_value=resp)
        ctx.__aexit__ = AsyncMock(return_value=False)
        contexts.append(ctx)

    session = MagicMock()
    session.closed = False
    session.request = Mock(side_effect=contexts)
    session.close = AsyncMock()
    return session, contexts


class FakeODataService:
    """Serves queued responses and records every request it receives."""

    def __init__(self) -> None:
        self.responses: List[Tuple[int, bytes, str]] = []
        self.requests: List[Dict[str, Any]] = []
        self.root_url = ""

    def add_json(self, payload: Dict[str, Any], status: int = 200) -> None:
        self.responses.append((status, json.dumps(payload).encode(), "application/json"))

    def add_text(self, text: str, status: int = 200) -> None:
        self.responses.append((status, text.encode(), "text/plain"))

    async def handle(self, request: web.Request) -> web.Response:
        self.requests.append(
            {
                "method": request.method,
                "path": request.path,
                "path_qs": request.path_qs,
                "headers": dict(request.headers),
                "cookies": dict(request.cookies),
                "body": await request.text(),
                "time": time.monotonic(),
            }
        )
        if not self.responses:
            return web.Response(status=500, text="No more responses queued")

        status, body, content_type = self.responses.pop(0)
        response = web.Response(status=status, body=body, content_type=content_type)
        if "TM1SessionId" not in request.cookies:
            response.set_cookie("TM1SessionId", "session-1")
        return response

    @property
    def paths(self) -> List[str]:
        return [r["path_qs"] for r in self.requests]


@pytest_asyncio.fixture
async def odata_service():
    """Run a FakeODataService on a local port for the duration of a test."""
    service = FakeODataService()
    app = web.Application()
    app.router.add_route("*", "/{tail:.*}", service.handle)

    server = TestServer(app)
    await server.start_server()
    service.root_url = str(server.make_url("/api/v1/"))
    try:
        yield service
    finally:
        await server.close()
