"""Types of the transaction-trace filtering API."""

from __future__ import annotations

import enum
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Union

from .block import BlockNumber, block_number_to_json
from .primitives import H160, H256, Bytes, decode_quantity, encode_quantity

_USIZE_BITS = 64
_U64_BITS = 64


def _mapping(data: Any, what: str) -> Mapping:
    if not isinstance(data, Mapping):
        raise ValueError(f"{what} must be a JSON object")
    return data


def _field(data: Mapping, key: str) -> Any:
    try:
        return data[key]
    except KeyError:
        raise ValueError(f"missing field `{key}`") from None


def _check_uint(value: Any, what: str, bits: int = _USIZE_BITS) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{what} must be an integer")
    if not 0 <= value < (1 << bits):
        raise ValueError(f"{what} does not fit in {bits} bits")
    return value


def _uint(data: Mapping, key: str, bits: int = _USIZE_BITS) -> int:
    return _check_uint(_field(data, key), f"field `{key}`", bits)


def _optional(data: Mapping, key: str, decode: Callable[[Any], Any]) -> Any:
    value = data.get(key)
    return None if value is None else decode(value)


def _enum(kind: type[enum.Enum], value: Any, key: str) -> Any:
    try:
        return kind(value)
    except (ValueError, TypeError):
        raise ValueError(f"unknown value {value!r} for field `{key}`") from None


@dataclass
class TraceFilter:
    """A trace filter; unset parts are left out of the request."""

    from_block: BlockNumber | None = None
    to_block: BlockNumber | None = None
    from_address: list[H160] | None = None
    to_address: list[H160] | None = None
    after: int | None = None
    count: int | None = None

    def to_json(self) -> dict:
        """Encode the filter, leaving out unset parts."""
        out: dict[str, Any] = {}
        if self.from_block is not None:
            out["fromBlock"] = block_number_to_json(self.from_block)
        if self.to_block is not None:
            out["toBlock"] = block_number_to_json(self.to_block)
        if self.from_address is not None:
            out["fromAddress"] = [address.to_json() for address in self.from_address]
        if self.to_address is not None:
            out["toAddress"] = [address.to_json() for address in self.to_address]
        if self.after is not None:
            out["after"] = self.after
        if self.count is not None:
            out["count"] = self.count
        return out


@dataclass(frozen=True)
class TraceFilterBuilder:
    """Builds a TraceFilter; every step returns a new builder."""

    filter: TraceFilter = field(default_factory=TraceFilter)

    def from_block(self, block: BlockNumber) -> TraceFilterBuilder:
        """Set the first block to search."""
        block_number_to_json(block)
        return TraceFilterBuilder(replace(self.filter, from_block=block))

    def to_block(self, block: BlockNumber) -> TraceFilterBuilder:
        """Set the last block to search."""
        block_number_to_json(block)
        return TraceFilterBuilder(replace(self.filter, to_block=block))

    def to_address(self, addresses: Sequence[H160]) -> TraceFilterBuilder:
        """Match traces sent to any of these addresses."""
        return TraceFilterBuilder(replace(self.filter, to_address=list(addresses)))

    def from_address(self, addresses: Sequence[H160]) -> TraceFilterBuilder:
        """Match traces sent from any of these addresses."""
        return TraceFilterBuilder(replace(self.filter, from_address=list(addresses)))

    def after(self, after: int) -> TraceFilterBuilder:
        """Skip this many traces."""
        _check_uint(after, "after")
        return TraceFilterBuilder(replace(self.filter, after=after))

    def count(self, count: int) -> TraceFilterBuilder:
        """Return at most this many traces."""
        _check_uint(count, "count")
        return TraceFilterBuilder(replace(self.filter, count=count))

    def build(self) -> TraceFilter:
        """Return a copy of the filter built so far."""
        current = self.filter
        return replace(
            current,
            from_address=None if current.from_address is None else list(current.from_address),
            to_address=None if current.to_address is None else list(current.to_address),
        )


class ActionType(enum.Enum):
    """The kind of action a trace records."""

    CALL = "call"
    CREATE = "create"
    SUICIDE = "suicide"
    REWARD = "reward"


class CallType(enum.Enum):
    """The kind of call."""

    NONE = "none"
    CALL = "call"
    CALL_CODE = "callcode"
    DELEGATE_CALL = "delegatecall"
    STATIC_CALL = "staticcall"


class RewardType(enum.Enum):
    """The reason a reward was paid."""

    BLOCK = "block"
    UNCLE = "uncle"
    EMPTY_STEP = "emptyStep"
    EXTERNAL = "external"


@dataclass
class Call:
    """A call action."""

    from_: H160 = field(default_factory=H160)
    to: H160 = field(default_factory=H160)
    value: int = 0
    gas: int = 0
    input: Bytes = field(default_factory=Bytes)
    call_type: CallType = CallType.NONE

    @classmethod
    def from_json(cls, data: Any) -> Call:
        """Decode a call action."""
        data = _mapping(data, "call action")
        return cls(
            from_=H160.from_hex(_field(data, "from")),
            to=H160.from_hex(_field(data, "to")),
            value=decode_quantity(_field(data, "value")),
            gas=decode_quantity(_field(data, "gas")),
            input=Bytes.from_json(_field(data, "input")),
            call_type=_enum(CallType, _field(data, "callType"), "callType"),
        )

    def to_json(self) -> dict:
        """Encode the call action."""
        return {
            "from": self.from_.to_json(),
            "to": self.to.to_json(),
            "value": encode_quantity(self.value),
            "gas": encode_quantity(self.gas),
            "input": self.input.to_json(),
            "callType": self.call_type.value,
        }


@dataclass
class Create:
    """A contract creation action."""

    from_: H160 = field(default_factory=H160)
    value: int = 0
    gas: int = 0
    init: Bytes = field(default_factory=Bytes)

    @classmethod
    def from_json(cls, data: Any) -> Create:
        """Decode a create action."""
        data = _mapping(data, "create action")
        return cls(
            from_=H160.from_hex(_field(data, "from")),
            value=decode_quantity(_field(data, "value")),
            gas=decode_quantity(_field(data, "gas")),
            init=Bytes.from_json(_field(data, "init")),
        )

    def to_json(self) -> dict:
        """Encode the create action."""
        return {
            "from": self.from_.to_json(),
            "value": encode_quantity(self.value),
            "gas": encode_quantity(self.gas),
            "init": self.init.to_json(),
        }


@dataclass
class Suicide:
    """A self-destruct action."""

    address: H160 = field(default_factory=H160)
    refund_address: H160 = field(default_factory=H160)
    balance: int = 0

    @classmethod
    def from_json(cls, data: Any) -> Suicide:
        """Decode a self-destruct action."""
        data = _mapping(data, "suicide action")
        return cls(
            address=H160.from_hex(_field(data, "address")),
            refund_address=H160.from_hex(_field(data, "refundAddress")),
            balance=decode_quantity(_field(data, "balance")),
        )

    def to_json(self) -> dict:
        """Encode the self-destruct action."""
        return {
            "address": self.address.to_json(),
            "refundAddress": self.refund_address.to_json(),
            "balance": encode_quantity(self.balance),
        }


@dataclass
class Reward:
    """A reward action."""

    author: H160
    value: int
    reward_type: RewardType

    @classmethod
    def from_json(cls, data: Any) -> Reward:
        """Decode a reward action."""
        data = _mapping(data, "reward action")
        return cls(
            author=H160.from_hex(_field(data, "author")),
            value=decode_quantity(_field(data, "value")),
            reward_type=_enum(RewardType, _field(data, "rewardType"), "rewardType"),
        )

    def to_json(self) -> dict:
        """Encode the reward action."""
        return {
            "author": self.author.to_json(),
            "value": encode_quantity(self.value),
            "rewardType": self.reward_type.value,
        }


@dataclass
class CallResult:
    """The result of a call."""

    gas_used: int = 0
    output: Bytes = field(default_factory=Bytes)

    @classmethod
    def from_json(cls, data: Any) -> CallResult:
        """Decode a call result."""
        data = _mapping(data, "call result")
        return cls(
            gas_used=decode_quantity(_field(data, "gasUsed")),
            output=Bytes.from_json(_field(data, "output")),
        )

    def to_json(self) -> dict:
        """Encode the call result."""
        return {"gasUsed": encode_quantity(self.gas_used), "output": self.output.to_json()}


@dataclass
class CreateResult:
    """The result of a contract creation."""

    gas_used: int = 0
    code: Bytes = field(default_factory=Bytes)
    address: H160 = field(default_factory=H160)

    @classmethod
    def from_json(cls, data: Any) -> CreateResult:
        """Decode a create result."""
        data = _mapping(data, "create result")
        return cls(
            gas_used=decode_quantity(_field(data, "gasUsed")),
            code=Bytes.from_json(_field(data, "code")),
            address=H160.from_hex(_field(data, "address")),
        )

    def to_json(self) -> dict:
        """Encode the create result."""
        return {
            "gasUsed": encode_quantity(self.gas_used),
            "code": self.code.to_json(),
            "address": self.address.to_json(),
        }


Action = Union[Call, Create, Suicide, Reward]
Res = Union[CallResult, CreateResult, str, None]

_ACTION_DECODERS: tuple[Callable[[Any], Action], ...] = (
    Call.from_json,
    Create.from_json,
    Suicide.from_json,
    Reward.from_json,
)


def parse_action(data: Any) -> Action:
    """Decode an action: the first of call, create, suicide or reward that fits."""
    if not isinstance(data, Mapping):
        raise ValueError("action must be a JSON object")
    for decode in _ACTION_DECODERS:
        try:
            return decode(data)
        except (ValueError, TypeError):
            continue
    raise ValueError("data did not match any variant of Action")


def action_to_json(action: Action) -> dict:
    """Encode an action."""
    if not isinstance(action, (Call, Create, Suicide, Reward)):
        raise TypeError(f"not an action: {action!r}")
    return action.to_json()


def parse_res(data: Any) -> Res:
    """Decode a result: a call result, a create result, a failure message or nothing."""
    if data is None:
        return None
    if isinstance(data, str):
        return data
    if isinstance(data, Mapping):
        for decode in (CallResult.from_json, CreateResult.from_json):
            try:
                return decode(data)
            except (ValueError, TypeError):
                continue
    raise ValueError("data did not match any variant of Res")


def res_to_json(res: Res) -> Any:
    """Encode a result."""
    if res is None or isinstance(res, str):
        return res
    if isinstance(res, (CallResult, CreateResult)):
        return res.to_json()
    raise TypeError(f"not a trace result: {res!r}")


def _trace_address(data: Mapping) -> list[int]:
    value = _field(data, "traceAddress")
    if not isinstance(value, list):
        raise ValueError("field `traceAddress` must be an array")
    return [_check_uint(item, "trace address item") for item in value]


@dataclass
class Trace:
    """A trace located in a block, as returned by trace filtering."""

    action: Action
    result: Res
    trace_address: list[int]
    subtraces: int
    transaction_position: int | None
    transaction_hash: H256 | None
    block_number: int
    block_hash: H256
    action_type: ActionType
    error: str | None = None

    @classmethod
    def from_json(cls, data: Any) -> Trace:
        """Decode a trace from its JSON object."""
        data = _mapping(data, "trace")
        error = data.get("error")
        if error is not None and not isinstance(error, str):
            raise ValueError("field `error` must be a string")
        return cls(
            action=parse_action(_field(data, "action")),
            result=parse_res(data.get("result")),
            trace_address=_trace_address(data),
            subtraces=_uint(data, "subtraces"),
            transaction_position=_optional(
                data, "transactionPosition", lambda v: _check_uint(v, "transactionPosition")
            ),
            transaction_hash=_optional(data, "transactionHash", H256.from_hex),
            block_number=_uint(data, "blockNumber", _U64_BITS),
            block_hash=H256.from_hex(_field(data, "blockHash")),
            action_type=_enum(ActionType, _field(data, "type"), "type"),
            error=error,
        )

    def to_json(self) -> dict:
        """Encode the trace as a JSON object."""
        return {
            "action": action_to_json(self.action),
            "result": res_to_json(self.result),
            "traceAddress": list(self.trace_address),
            "subtraces": self.subtraces,
            "transactionPosition": self.transaction_position,
            "transactionHash": (
                None if self.transaction_hash is None else self.transaction_hash.to_json()
            ),
            "blockNumber": self.block_number,
            "blockHash": self.block_hash.to_json(),
            "type": self.action_type.value,
            "error": self.error,
        }