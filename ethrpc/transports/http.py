"""JSON-RPC over HTTP POST requests."""

from __future__ import annotations

import asyncio
import base64
import itertools
import json
import logging
import threading
from typing import Any, Callable, Iterable
from urllib.parse import SplitResult, urlsplit, urlunsplit

import aiohttp

from ..jsonrpc import (
    BatchTransport,
    InvalidResponseError,
    TransportError,
    build_request,
    to_response_from_slice,
    to_result_from_output,
    to_results_from_outputs,
)
from .shared import Response

_log = logging.getLogger(__name__)

MAX_SINGLE_CHUNK = 256
"""Requests shorter than this many bytes are sent with a Content-Length header."""

DEFAULT_MAX_PARALLEL = 64
USER_AGENT = "ethrpc"


def _wire(request: Any) -> Any:
    return request.to_json() if hasattr(request, "to_json") else request


def _encode(request: Any) -> bytes:
    payload = [_wire(item) for item in request] if isinstance(request, list) else _wire(request)
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def _parse_url(url: str) -> SplitResult:
    try:
        parts = urlsplit(url)
        hostname = parts.hostname
    except ValueError as exc:
        raise TransportError(f"invalid URL {url!r}: {exc}") from exc
    if parts.scheme not in ("http", "https") or not hostname:
        raise TransportError(f"invalid URL {url!r}")
    return parts


def _without_credentials(parts: SplitResult) -> str:
    netloc = parts.netloc.rpartition("@")[2]
    return urlunsplit((parts.scheme, netloc, parts.path or "/", parts.query, parts.fragment))


def basic_auth_header(url: str) -> str | None:
    """The Authorization value for the user and password in ``url``, if it names a user."""
    parts = _parse_url(url)
    user = parts.username
    if not user:
        return None
    credentials = f"{user}:{parts.password or ''}"
    return "Basic " + base64.b64encode(credentials.encode("utf-8")).decode("ascii")


def single_response(data: bytes) -> Any:
    """Parse the body of a reply to a single call into its result."""
    response = to_response_from_slice(data)
    if isinstance(response, list):
        raise InvalidResponseError("Expected single, got batch.")
    return to_result_from_output(response)


def batch_response(data: bytes) -> list:
    """Parse the body of a reply to a batch into one outcome per call."""
    response = to_response_from_slice(data)
    if not isinstance(response, list):
        raise InvalidResponseError("Expected batch, got single.")
    return to_results_from_outputs(response)


class Http(BatchTransport):
    """Sends each call, or each batch, as one POST request to a JSON-RPC endpoint."""

    def __init__(self, url: str, max_parallel: int = DEFAULT_MAX_PARALLEL) -> None:
        if isinstance(max_parallel, bool) or not isinstance(max_parallel, int) or max_parallel < 1:
            raise ValueError("max_parallel must be a positive integer")
        parts = _parse_url(url)
        self.url = url
        self._target = _without_credentials(parts)
        self._basic_auth = basic_auth_header(url)
        self._max_parallel = max_parallel
        self._ids = itertools.count()
        self._id_lock = threading.Lock()
        self._session: aiohttp.ClientSession | None = None
        self._limit: asyncio.Semaphore | None = None
        self._closed = False

    def prepare(self, method: str, params: list) -> tuple[int, Any]:
        """Number a call and build its request."""
        with self._id_lock:
            request_id = next(self._ids)
        return request_id, build_request(request_id, method, list(params))

    def send(self, id: int, request: Any) -> Response:
        """Send a prepared call; await the response for its result."""
        return self._send_request(id, request, single_response)

    def send_batch(self, requests: Iterable[tuple[int, Any]]) -> Response:
        """Send prepared calls as one batch; await the response for their outcomes."""
        items = list(requests)
        request_id = items[0][0] if items else 0
        return self._send_request(request_id, [request for _, request in items], batch_response)

    def _send_request(self, id: int, request: Any, extract: Callable[[bytes], Any]) -> Response:
        body = _encode(request)
        _log.debug("[%s] Sending: %s to %s", id, body.decode("utf-8"), self._target)
        error = BrokenPipeError("the transport has been closed") if self._closed else None
        return Response(id, error, self._fetch(body), extract)

    def _open(self) -> tuple[aiohttp.ClientSession, asyncio.Semaphore]:
        if self._closed:
            raise BrokenPipeError("the transport has been closed")
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._limit = asyncio.Semaphore(self._max_parallel)
        assert self._limit is not None
        return self._session, self._limit

    async def _fetch(self, body: bytes) -> bytes:
        session, limit = self._open()
        headers = {"Content-Type": "application/json", "User-Agent": USER_AGENT}
        if self._basic_auth is not None:
            headers["Authorization"] = self._basic_auth
        chunked = True if len(body) >= MAX_SINGLE_CHUNK else None
        async with limit:
            try:
                async with session.post(
                    self._target, data=body, headers=headers, chunked=chunked
                ) as response:
                    if not 200 <= response.status < 300:
                        raise TransportError(
                            f"Unexpected response status code: {response.status} {response.reason}"
                        )
                    return await response.read()
            except aiohttp.ClientError as exc:
                raise TransportError(repr(exc)) from exc

    async def close(self) -> None:
        """Close the connection pool; later calls fail."""
        self._closed = True
        if self._session is not None:
            session, self._session = self._session, None
            await session.close()

    async def __aenter__(self) -> Http:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()