import pytest

from ethrpc.jsonrpc import InternalError
from ethrpc.transports.batch import Batch


class FakeBatchTransport:
    def __init__(self, results=None, error=None):
        self.next_id = 1
        self.sent = []
        self.results = results if results is not None else []
        self.error = error

    def prepare(self, method, params):
        request_id = self.next_id
        self.next_id += 1
        return request_id, ("call", method, tuple(params))

    def send(self, id, request):
        raise AssertionError("single sends are not expected")

    def send_batch(self, requests):
        self.sent.append(list(requests))
        return self._reply()

    async def _reply(self):
        if self.error is not None:
            raise self.error
        return self.results


def _queue(batch, method, params):
    request_id, request = batch.prepare(method, params)
    return request_id, request, batch.send(request_id, request)


def test_prepare_delegates_to_transport():
    batch = Batch(FakeBatchTransport())
    assert batch.prepare("eth_accounts", ["1"]) == (1, ("call", "eth_accounts", ("1",)))


@pytest.mark.asyncio
async def test_submit_sends_queued_calls_and_resolves_each():
    transport = FakeBatchTransport(results=["a", "b"])
    batch = Batch(transport)
    id1, call1, first = _queue(batch, "eth_accounts", [])
    id2, call2, second = _queue(batch, "eth_blockNumber", [])

    assert await batch.submit_batch() == ["a", "b"]
    assert transport.sent == [[(id1, call1), (id2, call2)]]
    assert await first == "a"
    assert await second == "b"


@pytest.mark.asyncio
async def test_batch_error_reaches_every_call():
    failure = ConnectionError("down")
    batch = Batch(FakeBatchTransport(error=failure))
    _, _, first = _queue(batch, "eth_accounts", [])
    _, _, second = _queue(batch, "eth_accounts", [])

    with pytest.raises(ConnectionError):
        await batch.submit_batch()
    with pytest.raises(ConnectionError):
        await first
    with pytest.raises(ConnectionError):
        await second


@pytest.mark.asyncio
async def test_missing_result_is_internal_error():
    batch = Batch(FakeBatchTransport(results=["a"]))
    _, _, first = _queue(batch, "eth_accounts", [])
    _, _, second = _queue(batch, "eth_accounts", [])

    assert await batch.submit_batch() == ["a"]
    assert await first == "a"
    with pytest.raises(InternalError):
        await second


@pytest.mark.asyncio
async def test_failed_entry_raises_for_its_call_only():
    failure = ValueError("bad call")
    batch = Batch(FakeBatchTransport(results=[failure, "ok"]))
    _, _, first = _queue(batch, "eth_call", [])
    _, _, second = _queue(batch, "eth_accounts", [])

    await batch.submit_batch()
    with pytest.raises(ValueError):
        await first
    assert await second == "ok"


@pytest.mark.asyncio
async def test_replaced_request_is_internal_error():
    batch = Batch(FakeBatchTransport(results=["a", "b"]))
    old = batch.send(5, "first")
    new = batch.send(5, "second")

    await batch.submit_batch()
    with pytest.raises(InternalError):
        await old
    assert await new == "a"


@pytest.mark.asyncio
async def test_queue_is_emptied_after_submit():
    transport = FakeBatchTransport(results=["a"])
    batch = Batch(transport)
    _queue(batch, "eth_accounts", [])

    await batch.submit_batch()
    transport.results = []
    assert await batch.submit_batch() == []
    assert len(transport.sent) == 2
    assert transport.sent[1] == []