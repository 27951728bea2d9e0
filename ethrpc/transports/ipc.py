"""JSON-RPC over a Unix domain socket, with subscriptions."""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import json
import logging
import os
from collections.abc import Mapping
from typing import Any, Callable, Iterable

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

_READ_SIZE = 4096
_END = object()
_CLOSERS = (ord("]"), ord("}"))


def _wire(request: Any) -> Any:
    return request.to_json() if hasattr(request, "to_json") else request


def _encode(request: Any) -> bytes:
    payload = [_wire(item) for item in request] if isinstance(request, list) else _wire(request)
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def _single(results: list) -> Any:
    if not results:
        raise InvalidResponseError("Expected single, got batch.")
    first = results[0]
    if isinstance(first, BaseException):
        raise first
    return first


def _batch(results: list) -> list:
    return list(results)


def extract_response(buffer: bytes, start: int = 0) -> tuple[Any, int] | None:
    """Find the longest complete message at the front of ``buffer``.

    Only closing brackets at or after ``start`` are tried. Returns the message
    (a list of response outputs, or a notification) and the number of bytes it
    took, or None when no complete message is there yet.
    """
    data = bytes(buffer)
    for pos in range(len(data) - 1, max(start, 0) - 1, -1):
        if data[pos] not in _CLOSERS:
            continue
        end = pos + 1
        chunk = data[:end]
        try:
            response = to_response_from_slice(chunk)
        except (Web3Error, ValueError):
            pass
        else:
            outputs = response if isinstance(response, list) else [response]
            return outputs, end
        try:
            notification = to_notification_from_slice(chunk)
        except (Web3Error, ValueError):
            continue
        return notification, end
    return None


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


class Ipc(DuplexTransport, BatchTransport):
    """A socket connection carrying calls, batches and subscription notifications."""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._stream_reader = reader
        self._stream_writer = writer
        self._loop = asyncio.get_running_loop()
        self._ids = itertools.count(1)
        self._pending: dict[int, asyncio.Future] = {}
        self._subscriptions: dict[Any, _NotificationStream] = {}
        self._outgoing: asyncio.Queue = asyncio.Queue()
        self._closed = False
        self._reader_task = asyncio.create_task(self._read())
        self._writer_task = asyncio.create_task(self._write())

    @classmethod
    async def connect(cls, path: str | os.PathLike) -> Ipc:
        """Connect to the socket at ``path``; only Unix systems have one."""
        if not hasattr(asyncio, "open_unix_connection"):
            raise TransportError("IPC transport is only supported on Unix")
        _log.debug("Connecting to: %r", path)
        reader, writer = await asyncio.open_unix_connection(os.fspath(path))
        return cls(reader, writer)

    @classmethod
    def from_streams(cls, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> Ipc:
        """Build the transport over an already open pair of streams."""
        return cls(reader, writer)

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
        data = _encode(request)
        _log.debug("[%s] Calling: %s", id, data.decode("utf-8"))
        future = self._loop.create_future()
        error = None
        if self._closed:
            error = BrokenPipeError("the transport has been closed")
        else:
            replaced = self._pending.get(id)
            self._pending[id] = future
            if replaced is not None and not replaced.done():
                replaced.set_exception(TransportError(f"request {id} was replaced"))
            self._outgoing.put_nowait(data)
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
        buffer = bytearray()
        try:
            while True:
                chunk = await self._stream_reader.read(_READ_SIZE)
                if not chunk:
                    break
                start = len(buffer)
                buffer.extend(chunk)
                while (found := extract_response(buffer, start)) is not None:
                    message, consumed = found
                    self._respond(message)
                    del buffer[:consumed]
                    start = 0
        except OSError as exc:
            _log.warning("Unexpected IO error: %r", exc)
        finally:
            self._shutdown(TransportError("the connection was closed"))

    async def _write(self) -> None:
        while True:
            data = await self._outgoing.get()
            _log.debug("Got new message to write: %s", data.decode("utf-8", "replace"))
            try:
                self._stream_writer.write(data)
                await self._stream_writer.drain()
            except OSError as exc:
                _log.warning("Unexpected IO error: %r", exc)
                self._shutdown(BrokenPipeError("the connection was closed"))
                return

    def _respond(self, message: Any) -> None:
        if isinstance(message, list):
            self._respond_rpc(message)
        else:
            self._notify(message)

    def _respond_rpc(self, outputs: list) -> None:
        request_id = getattr(outputs[0], "id", None) if outputs else 0
        if not isinstance(request_id, int) or isinstance(request_id, bool):
            _log.warning("Got unsupported response (id: %r)", request_id)
            return
        future = self._pending.pop(request_id, None)
        if future is None:
            _log.warning("Got response for unknown request (id: %r)", request_id)
        elif not future.done():
            _log.debug("Responding to (id: %r) with %r", request_id, outputs)
            future.set_result(to_results_from_outputs(outputs))

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
        tasks = (self._reader_task, self._writer_task)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._stream_writer.close()
        with contextlib.suppress(OSError):
            await self._stream_writer.wait_closed()

    async def __aenter__(self) -> Ipc:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()