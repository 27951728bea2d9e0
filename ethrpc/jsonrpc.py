"""JSON-RPC 2.0 messages, errors and the transport interfaces."""

from __future__ import annotations

import abc
import enum
import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Iterable, TypeVar, Union

T = TypeVar("T")

RequestId = int
RpcId = Union[int, str, None]


class Web3Error(Exception):
    """Base class of every error the client reports."""


class RpcError(Web3Error):
    """An error object returned by the remote node."""

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        super().__init__(f"RPC error {code}: {message}")
        self.code = code
        self.message = message
        self.data = data


class InvalidResponseError(Web3Error):
    """The node answered with something that is not a valid response."""


class TransportError(Web3Error):
    """The transport failed to deliver a request or a response."""


class InternalError(Web3Error):
    """A request was dropped inside the client before it got an answer."""


class UnreachableError(Web3Error):
    """A state that should never be reached was reached."""


@dataclass
class MethodCall:
    """A single JSON-RPC method call."""

    method: str
    params: list
    id: RpcId
    jsonrpc: str = "2.0"

    def to_json(self) -> dict:
        """Return the call as a JSON-compatible dict in wire order."""
        return {
            "jsonrpc": self.jsonrpc,
            "method": self.method,
            "params": serialize(self.params),
            "id": self.id,
        }


@dataclass
class Success:
    """A successful response output."""

    id: RpcId
    result: Any
    jsonrpc: str | None = "2.0"


@dataclass
class Failure:
    """A failed response output carrying the node's error."""

    id: RpcId
    error: RpcError
    jsonrpc: str | None = "2.0"


Output = Union[Success, Failure]


@dataclass
class Notification:
    """A server-sent notification (a call without an id)."""

    method: str
    params: list | dict | None = None
    jsonrpc: str | None = "2.0"


def serialize(value: Any) -> Any:
    """Turn a value into plain JSON-compatible data."""
    if hasattr(value, "to_json"):
        return serialize(value.to_json())
    if isinstance(value, enum.Enum):
        return serialize(value.value)
    if isinstance(value, Mapping):
        return {str(key): serialize(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize(item) for item in value]
    return value


def to_string(request: Any) -> str:
    """Serialize a request, or a list of requests, to compact JSON text."""
    return json.dumps(serialize(request), separators=(",", ":"), ensure_ascii=False)


def build_request(id: int, method: str, params: Iterable[Any]) -> MethodCall:
    """Build a JSON-RPC 2.0 method call."""
    return MethodCall(method=method, params=list(params), id=id)


def _load(data: bytes | bytearray | memoryview | str) -> Any:
    if isinstance(data, (bytearray, memoryview)):
        data = bytes(data)
    try:
        return json.loads(data)
    except (ValueError, TypeError) as exc:
        raise InvalidResponseError(f"malformed JSON: {exc}") from exc


def _check_version(obj: Mapping) -> str | None:
    version = obj.get("jsonrpc")
    if version not in (None, "2.0"):
        raise InvalidResponseError(f"unsupported jsonrpc version: {version!r}")
    return version


def _check_id(value: Any) -> RpcId:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
        return value
    raise InvalidResponseError(f"invalid id: {value!r}")


def _parse_error(obj: Any) -> RpcError:
    if not isinstance(obj, Mapping):
        raise InvalidResponseError("error must be an object")
    code = obj.get("code")
    message = obj.get("message")
    if isinstance(code, bool) or not isinstance(code, int):
        raise InvalidResponseError(f"invalid error code: {code!r}")
    if not isinstance(message, str):
        raise InvalidResponseError(f"invalid error message: {message!r}")
    return RpcError(code, message, obj.get("data"))


def _parse_output(obj: Any) -> Output:
    if not isinstance(obj, Mapping):
        raise InvalidResponseError("response output must be an object")
    if "result" in obj:
        allowed, kind = {"jsonrpc", "result", "id"}, "success"
    elif "error" in obj:
        allowed, kind = {"jsonrpc", "error", "id"}, "failure"
    else:
        raise InvalidResponseError("response has neither result nor error")
    unknown = set(obj) - allowed
    if unknown:
        raise InvalidResponseError(f"unknown fields in response: {sorted(unknown)}")
    if "id" not in obj:
        raise InvalidResponseError("response is missing an id")
    version = _check_version(obj)
    ident = _check_id(obj["id"])
    if kind == "success":
        return Success(id=ident, result=obj["result"], jsonrpc=version)
    return Failure(id=ident, error=_parse_error(obj["error"]), jsonrpc=version)


def to_response_from_slice(data: bytes | str) -> Output | list[Output]:
    """Parse a response: one output, or a list of outputs for a batch."""
    obj = _load(data)
    if isinstance(obj, list):
        return [_parse_output(item) for item in obj]
    return _parse_output(obj)


def to_notification_from_slice(data: bytes | str) -> Notification:
    """Parse a notification message."""
    obj = _load(data)
    if not isinstance(obj, Mapping):
        raise InvalidResponseError("notification must be an object")
    unknown = set(obj) - {"jsonrpc", "method", "params"}
    if unknown:
        raise InvalidResponseError(f"unknown fields in notification: {sorted(unknown)}")
    method = obj.get("method")
    if not isinstance(method, str):
        raise InvalidResponseError("notification is missing a method")
    params = obj.get("params")
    if params is not None and not isinstance(params, (list, dict)):
        raise InvalidResponseError("notification params must be an array or an object")
    return Notification(method=method, params=params, jsonrpc=_check_version(obj))


def to_result_from_output(output: Output) -> Any:
    """Return the result of a success, or raise the error of a failure."""
    if isinstance(output, Failure):
        raise output.error
    return output.result


def to_results_from_outputs(outputs: Iterable[Output]) -> list[Any]:
    """Return each output's result, with the RpcError in place of a failure."""
    return [
        output.error if isinstance(output, Failure) else output.result
        for output in outputs
    ]


async def decode_call(awaitable: Awaitable[Any], decoder: Callable[[Any], T]) -> T:
    """Await a raw result and decode it, reporting decode failures as invalid responses."""
    value = await awaitable
    try:
        return decoder(value)
    except (ValueError, TypeError, KeyError) as exc:
        raise InvalidResponseError(f"cannot decode {value!r}: {exc}") from exc


class Transport(abc.ABC):
    """Something that can send JSON-RPC calls and deliver their results."""

    @abc.abstractmethod
    def prepare(self, method: str, params: Iterable[Any]) -> tuple[RequestId, MethodCall]:
        """Assign an id and build the call for a method with its parameters."""

    @abc.abstractmethod
    def send(self, id: RequestId, request: MethodCall) -> Awaitable[Any]:
        """Send a prepared call; the returned awaitable yields its result."""

    def execute(self, method: str, params: Iterable[Any]) -> Awaitable[Any]:
        """Prepare and send a call; the returned awaitable yields its result."""
        request_id, request = self.prepare(method, params)
        return self.send(request_id, request)


class BatchTransport(Transport):
    """A transport that can send several prepared calls in one batch."""

    @abc.abstractmethod
    def send_batch(
        self, requests: Iterable[tuple[RequestId, MethodCall]]
    ) -> Awaitable[list[Any]]:
        """Send prepared calls together; results come back in request order,
        with a Web3Error in place of each failed call."""


class DuplexTransport(Transport):
    """A transport that can receive subscription notifications."""

    @abc.abstractmethod
    def subscribe(self, id: str) -> AsyncIterator[Any]:
        """Register a subscription and return the stream of its results."""

    @abc.abstractmethod
    def unsubscribe(self, id: str) -> None:
        """Forget a subscription."""