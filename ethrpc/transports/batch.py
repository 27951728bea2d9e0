"""A transport that collects calls and sends them together as one batch."""

from __future__ import annotations

import asyncio
import threading
from typing import Any, Awaitable, Generator

from ..jsonrpc import InternalError, Transport


class _Slot:
    """A one-shot place for a single call's outcome."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._value: Any = None
        self._error: BaseException | None = None

    @property
    def done(self) -> bool:
        return self._event.is_set()

    def set_result(self, value: Any) -> None:
        if not self.done:
            self._value = value
            self._event.set()

    def set_exception(self, error: BaseException) -> None:
        if not self.done:
            self._error = error
            self._event.set()

    def deliver(self, outcome: Any) -> None:
        if isinstance(outcome, BaseException):
            self.set_exception(outcome)
        else:
            self.set_result(outcome)

    async def wait(self) -> Any:
        await self._event.wait()
        if self._error is not None:
            raise self._error
        return self._value


class _SingleResult:
    """The result of one call that is part of a batch."""

    def __init__(self, slot: _Slot) -> None:
        self._slot = slot

    def __await__(self) -> Generator[Any, None, Any]:
        return self._slot.wait().__await__()


class Batch(Transport):
    """Queues calls until ``submit_batch`` sends them through a batch transport."""

    def __init__(self, transport: Any) -> None:
        self.transport = transport
        self._lock = threading.Lock()
        self._pending: dict[int, _Slot] = {}
        self._batch: list[tuple[int, Any]] = []

    def prepare(self, method: str, params: list) -> tuple[int, Any]:
        """Prepare a call with the underlying transport."""
        return self.transport.prepare(method, params)

    def send(self, id: int, request: Any) -> _SingleResult:
        """Queue a prepared call; await the result after the batch is submitted."""
        slot = _Slot()
        with self._lock:
            replaced = self._pending.get(id)
            self._pending[id] = slot
            self._batch.append((id, request))
        if replaced is not None:
            replaced.set_exception(InternalError(f"request {id} was replaced"))
        return _SingleResult(slot)

    def submit_batch(self) -> Awaitable[list]:
        """Send every queued call as one batch; await the list of results."""
        with self._lock:
            batch, self._batch = self._batch, []
        ids = [request_id for request_id, _ in batch]
        sending = self.transport.send_batch(batch)
        return self._resolve(sending, ids)

    async def _resolve(self, sending: Awaitable[list], ids: list[int]) -> list:
        error: Exception | None = None
        results: list = []
        try:
            results = list(await sending)
        except Exception as exc:
            error = exc
        with self._lock:
            slots = [(idx, self._pending.pop(request_id, None)) for idx, request_id in enumerate(ids)]
        for idx, slot in slots:
            if slot is None:
                continue
            if error is not None:
                slot.set_exception(error)
            elif idx < len(results):
                slot.deliver(results[idx])
            else:
                slot.set_exception(InternalError("no result for request in batch"))
        if error is not None:
            raise error
        return results