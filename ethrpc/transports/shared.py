"""A background event loop for transports, and pending responses."""

from __future__ import annotations

import asyncio
import inspect
import logging
import queue
import threading
from typing import Any, Awaitable, Callable, Generator

from ..jsonrpc import UnreachableError

_log = logging.getLogger(__name__)


async def _await(awaitable: Awaitable[Any]) -> Any:
    return await awaitable


def _as_coroutine(awaitable: Awaitable[Any]) -> Any:
    return awaitable if inspect.iscoroutine(awaitable) else _await(awaitable)


def _discard(awaitable: Any) -> None:
    if inspect.iscoroutine(awaitable):
        awaitable.close()


class Remote:
    """A way into an event loop running on a background thread."""

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        self._stopped = False

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        """The background event loop."""
        return self._loop

    def run(self, coroutine: Awaitable[Any]) -> Any:
        """Run an awaitable on the background loop and wait for its result."""
        if self._stopped or self._loop.is_closed():
            _discard(coroutine)
            raise RuntimeError("the event loop has been stopped")
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            _discard(coroutine)
            raise RuntimeError("cannot wait for the event loop from inside it")
        return asyncio.run_coroutine_threadsafe(_as_coroutine(coroutine), self._loop).result()

    def stop(self) -> None:
        """Stop the background loop; its thread then exits."""
        if self._stopped:
            return
        self._stopped = True
        try:
            self._loop.call_soon_threadsafe(self._loop.stop)
        except RuntimeError:
            pass


def _serve(factory: Callable[[asyncio.AbstractEventLoop], Any], ready: queue.Queue) -> None:
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    async def init() -> Any:
        result = factory(loop)
        if inspect.isawaitable(result):
            result = await result
        return result

    try:
        try:
            transport = loop.run_until_complete(init())
        except BaseException as exc:  # handed over to the spawning thread
            ready.put((None, None, exc))
            return
        ready.put((loop, transport, None))
        loop.run_forever()
    finally:
        pending = asyncio.all_tasks(loop)
        for task in pending:
            task.cancel()
        if pending:
            loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
        loop.run_until_complete(loop.shutdown_asyncgens())
        asyncio.set_event_loop(None)
        loop.close()


class EventLoopHandle:
    """Owns a background event loop; closing the handle stops the loop."""

    def __init__(self, remote: Remote, thread: threading.Thread) -> None:
        self._remote: Remote | None = remote
        self._thread = thread

    @classmethod
    def spawn(
        cls, factory: Callable[[asyncio.AbstractEventLoop], Any]
    ) -> tuple[EventLoopHandle, Any]:
        """Start a loop thread and build a transport on it with ``factory(loop)``."""
        ready: queue.Queue = queue.Queue(maxsize=1)
        thread = threading.Thread(
            target=_serve, args=(factory, ready), name="ethrpc-event-loop", daemon=True
        )
        thread.start()
        loop, transport, error = ready.get()
        if error is not None:
            thread.join()
            raise error
        return cls(Remote(loop), thread), transport

    def _require_remote(self) -> Remote:
        if self._remote is None:
            raise RuntimeError("the remote is not available: the handle was closed or taken")
        return self._remote

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        """The background event loop."""
        return self._require_remote().loop

    def run(self, coroutine: Awaitable[Any]) -> Any:
        """Run an awaitable on the background loop and wait for its result."""
        if self._remote is None:
            _discard(coroutine)
        return self._require_remote().run(coroutine)

    def into_remote(self) -> Remote:
        """Give up ownership: the loop keeps running until the Remote is stopped."""
        if self._remote is None:
            raise RuntimeError("the remote can be taken only once")
        remote, self._remote = self._remote, None
        return remote

    def close(self) -> None:
        """Stop the loop and wait for its thread to finish."""
        if self._remote is None:
            return
        remote, self._remote = self._remote, None
        remote.stop()
        self._thread.join()

    def __enter__(self) -> EventLoopHandle:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


class Response:
    """A response to a request that has been handed to a transport."""

    def __init__(
        self,
        id: int,
        error: BaseException | None,
        receiver: Awaitable[Any],
        extract: Callable[[Any], Any],
    ) -> None:
        self.id = id
        self._error = error
        self._receiver = receiver
        self._extract = extract
        self._done = False

    async def result(self) -> Any:
        """Wait for the reply and return what ``extract`` makes of it."""
        if self._done:
            raise UnreachableError("the response has already been taken")
        self._done = True
        _log.debug("[%s] Request pending.", self.id)
        if self._error is not None:
            _discard(self._receiver)
            raise self._error
        _log.debug("[%s] Checking response.", self.id)
        receiver = self._receiver
        try:
            value = await receiver
        except asyncio.CancelledError:
            if isinstance(receiver, asyncio.Future) and receiver.cancelled():
                raise TimeoutError(f"request {self.id} was abandoned") from None
            raise
        _log.debug("[%s] Extracting result.", self.id)
        return self._extract(value)

    def __await__(self) -> Generator[Any, None, Any]:
        return self.result().__await__()