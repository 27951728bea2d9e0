import asyncio
import json
import socket

import pytest

from ethrpc.jsonrpc import RpcError, TransportError, to_results_from_outputs, to_string
from ethrpc.transports.ipc import Ipc, extract_response

RESPONSE_1 = b'{"jsonrpc":"2.0","id":1,"result":"x"}'
RESPONSE_2 = b'{"jsonrpc":"2.0","id":2,"result":"x"}'
EXPECTED_REQUEST = {"jsonrpc": "2.0", "method": "eth_accounts", "params": ["1"], "id": 1}


async def _pair():
    client_sock, server_sock = socket.socketpair()
    reader, writer = await asyncio.open_connection(sock=client_sock)
    server_reader, server_writer = await asyncio.open_connection(sock=server_sock)
    return Ipc.from_streams(reader, writer), server_reader, server_writer


async def _read_until(reader, marker, count):
    data = b""
    while data.count(marker) < count:
        chunk = await asyncio.wait_for(reader.read(2048), 5)
        assert chunk
        data += chunk
    return data


def test_extract_response_single():
    found = extract_response(RESPONSE_1, 0)
    assert found is not None
    message, consumed = found
    assert consumed == len(RESPONSE_1)
    assert to_results_from_outputs(message) == ["x"]


def test_extract_response_takes_first_of_two():
    found = extract_response(RESPONSE_1 + RESPONSE_2, 0)
    assert found is not None
    message, consumed = found
    assert consumed == len(RESPONSE_1)
    assert message[0].id == 1


def test_extract_response_incomplete():
    assert extract_response(RESPONSE_1[:-5], 0) is None
    assert extract_response(b"", 0) is None


def test_extract_response_respects_start():
    assert extract_response(RESPONSE_1, len(RESPONSE_1)) is None


def test_extract_response_notification():
    text = b'{"jsonrpc":"2.0","method":"eth_subscription","params":{"subscription":"0x1","result":5}}'
    found = extract_response(text, 0)
    assert found is not None
    message, consumed = found
    assert consumed == len(text)
    assert message.params["result"] == 5


@pytest.mark.asyncio
async def test_should_send_a_request():
    ipc, server_reader, server_writer = await _pair()
    request_id, request = ipc.prepare("eth_accounts", ["1"])
    response = ipc.send(request_id, request)
    data = await _read_until(server_reader, b"}", 1)
    assert json.loads(data) == EXPECTED_REQUEST
    server_writer.write(RESPONSE_1)
    await server_writer.drain()
    assert await asyncio.wait_for(response, 5) == "x"
    await ipc.close()
    server_writer.close()


@pytest.mark.asyncio
async def test_should_handle_double_response():
    ipc, server_reader, server_writer = await _pair()
    first = ipc.send(*ipc.prepare("eth_accounts", ["1"]))
    second = ipc.send(*ipc.prepare("eth_accounts", ["1"]))
    data = await _read_until(server_reader, b"eth_accounts", 2)
    decoder = json.JSONDecoder()
    text = data.decode()
    one, end = decoder.raw_decode(text)
    two, _ = decoder.raw_decode(text[end:])
    assert one == EXPECTED_REQUEST
    assert two == dict(EXPECTED_REQUEST, id=2)
    server_writer.write(RESPONSE_1 + RESPONSE_2)
    await server_writer.drain()
    results = await asyncio.wait_for(asyncio.gather(first, second), 5)
    assert results == ["x", "x"]
    await ipc.close()
    server_writer.close()


@pytest.mark.asyncio
async def test_batch_request():
    ipc, server_reader, server_writer = await _pair()
    calls = [ipc.prepare("eth_accounts", []), ipc.prepare("eth_blockNumber", [])]
    response = ipc.send_batch(calls)
    data = await _read_until(server_reader, b"]", 2)
    sent = json.loads(data)
    assert [item["method"] for item in sent] == ["eth_accounts", "eth_blockNumber"]
    server_writer.write(
        b'[{"jsonrpc":"2.0","id":1,"result":"a"},{"jsonrpc":"2.0","id":2,"result":"b"}]'
    )
    await server_writer.drain()
    assert await asyncio.wait_for(response, 5) == ["a", "b"]
    await ipc.close()
    server_writer.close()


@pytest.mark.asyncio
async def test_error_response_raises():
    ipc, server_reader, server_writer = await _pair()
    response = ipc.send(*ipc.prepare("eth_accounts", []))
    await _read_until(server_reader, b"}", 1)
    server_writer.write(b'{"jsonrpc":"2.0","id":1,"error":{"code":-32000,"message":"boom"}}')
    await server_writer.drain()
    with pytest.raises(RpcError):
        await asyncio.wait_for(response, 5)
    await ipc.close()
    server_writer.close()


@pytest.mark.asyncio
async def test_response_split_across_writes():
    ipc, server_reader, server_writer = await _pair()
    response = ipc.send(*ipc.prepare("eth_accounts", []))
    await _read_until(server_reader, b"}", 1)
    server_writer.write(RESPONSE_1[:10])
    await server_writer.drain()
    await asyncio.sleep(0.05)
    server_writer.write(RESPONSE_1[10:])
    await server_writer.drain()
    assert await asyncio.wait_for(response, 5) == "x"
    await ipc.close()
    server_writer.close()


@pytest.mark.asyncio
async def test_subscription_receives_notifications():
    ipc, _server_reader, server_writer = await _pair()
    stream = ipc.subscribe("0x1")
    server_writer.write(
        b'{"jsonrpc":"2.0","method":"eth_subscription","params":{"subscription":"0x1","result":5}}'
    )
    await server_writer.drain()
    assert await asyncio.wait_for(stream.__anext__(), 5) == 5
    ipc.unsubscribe("0x1")
    with pytest.raises(StopAsyncIteration):
        await asyncio.wait_for(stream.__anext__(), 5)
    await ipc.close()
    server_writer.close()


@pytest.mark.asyncio
async def test_pending_request_fails_when_connection_closes():
    ipc, server_reader, server_writer = await _pair()
    response = ipc.send(*ipc.prepare("eth_accounts", []))
    await _read_until(server_reader, b"}", 1)
    server_writer.close()
    with pytest.raises(TransportError):
        await asyncio.wait_for(response, 5)
    await ipc.close()


@pytest.mark.asyncio
async def test_send_after_close_fails():
    ipc, _server_reader, server_writer = await _pair()
    await ipc.close()
    request_id, request = ipc.prepare("eth_accounts", [])
    assert request_id == 1
    assert to_string(request) == (
        '{"jsonrpc":"2.0","method":"eth_accounts","params":[],"id":1}'
    )
    response = ipc.send(request_id, request)
    with pytest.raises(BrokenPipeError) as info:
        await response
    assert isinstance(info.value, OSError)
    server_writer.close()


@pytest.mark.asyncio
async def test_prepare_numbers_from_one():
    ipc, _server_reader, server_writer = await _pair()
    ids = [ipc.prepare("eth_accounts", [])[0] for _ in range(3)]
    assert ids == [1, 2, 3]
    await ipc.close()
    server_writer.close()


@pytest.mark.asyncio
async def test_connect_to_missing_socket(tmp_path):
    with pytest.raises(OSError):
        await Ipc.connect(tmp_path / "missing.ipc")