"""JSON-RPC over a WebSocket, with subscriptions."""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
from collections.abc import Mapping
from typing import Any, Callable, Iterable

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from ..jsonrpc import (
    BatchTransport,
    DuplexTransport,
    InvalidResponseError,
    TransportError,
    Web3Error,
    build_request,
    to_notification_from_slice,
    to_response_from_slice,
    to_results_from_outputs,
)
from .shared import Response

_log = logging.getLogger(__name__)

_END = object()


def _wire(request: Any) -> Any:
    return request.to_json() if hasattr(request, "to_json") else request


def _encode(request: Any) -> str:
    payload = [_wire(item) for item in request] if isinstance(request, list) else _wire(request)
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def _single(results: list) -> Any:
    if not results:
        raise InvalidResponseError("Expected single, got batch.")
    first = results[0]
    if isinstance(first, BaseException):
        raise first
    return first


def _batch(results: list) -> list:
    return list(results)


class _NotificationStream:
    """Values pushed to one subscription; iteration ends when it is dropped."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()

    def push(self, value: Any) -> None:
        self._queue.put_nowait(value)

    def end(self) -> None:
        self._queue.put_nowait(_END)

    def __aiter__(self) -> _NotificationStream:
        return self

    async def __anext__(self) -> Any:
        item = await self._queue.get()
        if item is _END:
            self._queue.put_nowait(_END)
            raise StopAsyncIteration
        return item


class WebSocket(DuplexTransport, BatchTransport):
    """A WebSocket connection carrying calls, batches and subscription notifications."""

    def __init__(self, url: str, connection: Any) -> None:
        self.url = url
        self._connection = connection
        self._loop = asyncio.get_running_loop()
        self._ids = itertools.count(1)
        self._pending: dict[int, asyncio.Future] = {}
        self._subscriptions: dict[Any, _NotificationStream] = {}
        self._outgoing: asyncio.Queue = asyncio.Queue()
        self._closed = False
        self._reader = asyncio.create_task(self._read())
        self._writer = asyncio.create_task(self._write())

    @classmethod
    async def connect(cls, url: str) -> WebSocket:
        """Open a connection to ``url``."""
        _log.debug("Connecting to: %r", url)
        try:
            connection = await websockets.connect(url, max_size=None)
        except (OSError, WebSocketException, ValueError) as exc:
            raise TransportError(repr(exc)) from exc
        return cls(url, connection)

    def prepare(self, method: str, params: list) -> tuple[int, Any]:
        """Number a call and build its request."""
        request_id = next(self._ids)
        return request_id, build_request(request_id, method, list(params))

    def send(self, id: int, request: Any) -> Response:
        """Send a prepared call; await the response for its result."""
        return self._send_request(id, request, _single)

    def send_batch(self, requests: Iterable[tuple[int, Any]]) -> Response:
        """Send prepared calls as one batch; await the response for their outcomes."""
        items = list(requests)
        request_id = items[0][0] if items else 0
        return self._send_request(request_id, [request for _, request in items], _batch)

    def _send_request(self, id: int, request: Any, extract: Callable[[list], Any]) -> Response:
        text = _encode(request)
        _log.debug("[%s] Calling: %s", id, text)
        future = self._loop.create_future()
        error = None
        if self._closed:
            error = TransportError("Error sending request")
        else:
            replaced = self._pending.get(id)
            self._pending[id] = future
            if replaced is not None and not replaced.done():
                replaced.set_exception(TransportError(f"request {id} was replaced"))
            self._outgoing.put_nowait(text)
        return Response(id, error, future, extract)

    def subscribe(self, id: Any) -> _NotificationStream:
        """Route notifications for subscription ``id`` to the returned async iterator."""
        stream = _NotificationStream()
        if self._closed:
            stream.end()
            return stream
        old = self._subscriptions.get(id)
        self._subscriptions[id] = stream
        if old is not None:
            _log.warning("Replacing already-registered subscription with id %r", id)
            old.end()
        return stream

    def unsubscribe(self, id: Any) -> None:
        """Stop routing notifications for ``id``; its iterator ends."""
        stream = self._subscriptions.pop(id, None)
        if stream is not None:
            stream.end()

    async def _read(self) -> None:
        try:
            async for message in self._connection:
                _log.debug("Message received: %r", message)
                if isinstance(message, str):
                    self._handle_text(message)
        except ConnectionClosed as exc:
            _log.error("WebSocketError: %r", exc)
        finally:
            self._shutdown(TransportError("the connection was closed"))
            if asyncio.current_task() is not self._writer:
                self._writer.cancel()

    async def _write(self) -> None:
        while True:
            text = await self._outgoing.get()
            try:
                await self._connection.send(text)
            except (ConnectionClosed, OSError) as exc:
                _log.error("WebSocketError: %r", exc)
                self._shutdown(TransportError("Error sending request"))
                return

    def _handle_text(self, text: str) -> None:
        data = text.encode("utf-8")
        try:
            notification = to_notification_from_slice(data)
        except (Web3Error, ValueError):
            notification = None
        if notification is not None:
            self._notify(notification)
            return

        try:
            response = to_response_from_slice(data)
        except (Web3Error, ValueError):
            outputs: list = []
        else:
            outputs = response if isinstance(response, list) else [response]

        request_id = getattr(outputs[0], "id", None) if outputs else 0
        if isinstance(request_id, int) and not isinstance(request_id, bool):
            future = self._pending.pop(request_id, None)
            if future is None:
                _log.warning("Got response for unknown request (id: %r)", request_id)
            elif not future.done():
                _log.debug("Responding to (id: %r) with %r", request_id, outputs)
                future.set_result(to_results_from_outputs(outputs))
        else:
            _log.warning("Got unsupported response (id: %r)", request_id)

    def _notify(self, notification: Any) -> None:
        params = getattr(notification, "params", None)
        if not isinstance(params, Mapping):
            return
        subscription = params.get("subscription")
        if isinstance(subscription, str) and "result" in params:
            stream = self._subscriptions.get(subscription)
            if stream is None:
                _log.warning("Got notification for unknown subscription (id: %r)", subscription)
            else:
                stream.push(params["result"])
        else:
            _log.error("Got unsupported notification (id: %r)", subscription)

    def _shutdown(self, error: Exception) -> None:
        self._closed = True
        pending, self._pending = self._pending, {}
        for future in pending.values():
            if not future.done():
                future.set_exception(error)
        subscriptions, self._subscriptions = self._subscriptions, {}
        for stream in subscriptions.values():
            stream.end()

    async def close(self) -> None:
        """Close the connection; pending calls fail and subscriptions end."""
        self._shutdown(TransportError("the transport has been closed"))
        await self._connection.close()
        for task in (self._reader, self._writer):
            task.cancel()
        await asyncio.gather(self._reader, self._writer, return_exceptions=True)

    async def __aenter__(self) -> WebSocket:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()