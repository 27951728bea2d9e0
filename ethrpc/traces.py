"""Types of the ad-hoc trace API: transaction traces, VM traces and state diffs."""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable

from .primitives import H160, H256, Bytes, decode_quantity, encode_quantity
from .trace_filtering import Action, Res, action_to_json, parse_action, parse_res, res_to_json

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


def _list(data: Mapping, key: str) -> list:
    value = _field(data, key)
    if not isinstance(value, list):
        raise ValueError(f"field `{key}` must be an array")
    return value


class TraceType(enum.Enum):
    """A kind of trace to ask for."""

    TRACE = "trace"
    VM_TRACE = "vmTrace"
    STATE_DIFF = "stateDiff"


class DiffKind(enum.Enum):
    """How a value changed."""

    SAME = "="
    BORN = "+"
    DIED = "-"
    CHANGED = "*"


@dataclass(frozen=True)
class Diff:
    """A change of one value: ``before`` is set when died or changed, ``after`` when born or changed."""

    kind: DiffKind
    before: Any = None
    after: Any = None

    @classmethod
    def from_json(cls, data: Any, decode: Callable[[Any], Any]) -> Diff:
        """Decode ``"="`` or a one-key object tagged ``+``, ``-`` or ``*``."""
        if isinstance(data, str):
            if data == DiffKind.SAME.value:
                return cls(DiffKind.SAME)
            raise ValueError(f"unknown diff {data!r}")
        if not isinstance(data, Mapping) or len(data) != 1:
            raise ValueError("diff must be \"=\" or an object with exactly one key")
        (key, value), = data.items()
        try:
            kind = DiffKind(key)
        except ValueError:
            raise ValueError(f"unknown diff `{key}`") from None
        if kind is DiffKind.SAME:
            if value is not None:
                raise ValueError("an unchanged diff carries no value")
            return cls(kind)
        if kind is DiffKind.BORN:
            return cls(kind, after=decode(value))
        if kind is DiffKind.DIED:
            return cls(kind, before=decode(value))
        value = _mapping(value, "changed diff")
        return cls(kind, before=decode(_field(value, "from")), after=decode(_field(value, "to")))

    def to_json(self, encode: Callable[[Any], Any]) -> Any:
        """Encode the diff, encoding its values with ``encode``."""
        if self.kind is DiffKind.SAME:
            return self.kind.value
        if self.kind is DiffKind.BORN:
            return {self.kind.value: encode(self.after)}
        if self.kind is DiffKind.DIED:
            return {self.kind.value: encode(self.before)}
        return {self.kind.value: {"from": encode(self.before), "to": encode(self.after)}}


@dataclass
class AccountDiff:
    """Changes to one account's balance, nonce, code and storage."""

    balance: Diff
    nonce: Diff
    code: Diff
    storage: dict[H256, Diff] = field(default_factory=dict)

    @classmethod
    def from_json(cls, data: Any) -> AccountDiff:
        """Decode an account diff."""
        data = _mapping(data, "account diff")
        storage = _mapping(_field(data, "storage"), "storage diff")
        return cls(
            balance=Diff.from_json(_field(data, "balance"), decode_quantity),
            nonce=Diff.from_json(_field(data, "nonce"), decode_quantity),
            code=Diff.from_json(_field(data, "code"), Bytes.from_json),
            storage={
                H256.from_hex(key): Diff.from_json(value, H256.from_hex)
                for key, value in storage.items()
            },
        )

    def to_json(self) -> dict:
        """Encode the account diff, storage keys in ascending order."""
        return {
            "balance": self.balance.to_json(encode_quantity),
            "nonce": self.nonce.to_json(encode_quantity),
            "code": self.code.to_json(Bytes.to_json),
            "storage": {
                key.to_json(): self.storage[key].to_json(H256.to_json)
                for key in sorted(self.storage)
            },
        }


@dataclass
class TransactionTrace:
    """One call or creation inside a traced transaction."""

    trace_address: list[int]
    subtraces: int
    action: Action
    result: Res = None

    @classmethod
    def from_json(cls, data: Any) -> TransactionTrace:
        """Decode a transaction trace."""
        data = _mapping(data, "transaction trace")
        return cls(
            trace_address=[
                _check_uint(item, "trace address item") for item in _list(data, "traceAddress")
            ],
            subtraces=_uint(data, "subtraces"),
            action=parse_action(_field(data, "action")),
            result=parse_res(data.get("result")),
        )

    def to_json(self) -> dict:
        """Encode the transaction trace."""
        return {
            "traceAddress": list(self.trace_address),
            "subtraces": self.subtraces,
            "action": action_to_json(self.action),
            "result": res_to_json(self.result),
        }


@dataclass
class MemoryDiff:
    """A changed chunk of memory."""

    off: int = 0
    data: Bytes = field(default_factory=Bytes)

    @classmethod
    def from_json(cls, data: Any) -> MemoryDiff:
        """Decode a memory diff."""
        data = _mapping(data, "memory diff")
        return cls(off=_uint(data, "off"), data=Bytes.from_json(_field(data, "data")))

    def to_json(self) -> dict:
        """Encode the memory diff."""
        return {"off": self.off, "data": self.data.to_json()}


@dataclass
class StorageDiff:
    """A changed storage value."""

    key: int = 0
    val: int = 0

    @classmethod
    def from_json(cls, data: Any) -> StorageDiff:
        """Decode a storage diff."""
        data = _mapping(data, "storage diff")
        return cls(
            key=decode_quantity(_field(data, "key")),
            val=decode_quantity(_field(data, "val")),
        )

    def to_json(self) -> dict:
        """Encode the storage diff."""
        return {"key": encode_quantity(self.key), "val": encode_quantity(self.val)}


@dataclass
class VMExecutedOperation:
    """What executing one VM operation did."""

    used: int = 0
    push: list[int] = field(default_factory=list)
    mem: MemoryDiff | None = None
    store: StorageDiff | None = None

    @classmethod
    def from_json(cls, data: Any) -> VMExecutedOperation:
        """Decode an executed operation."""
        data = _mapping(data, "executed operation")
        mem = data.get("mem")
        store = data.get("store")
        return cls(
            used=_uint(data, "used", _U64_BITS),
            push=[decode_quantity(item) for item in _list(data, "push")],
            mem=None if mem is None else MemoryDiff.from_json(mem),
            store=None if store is None else StorageDiff.from_json(store),
        )

    def to_json(self) -> dict:
        """Encode the executed operation."""
        return {
            "used": self.used,
            "push": [encode_quantity(item) for item in self.push],
            "mem": None if self.mem is None else self.mem.to_json(),
            "store": None if self.store is None else self.store.to_json(),
        }


@dataclass
class VMOperation:
    """One executed VM operation."""

    pc: int = 0
    cost: int = 0
    ex: VMExecutedOperation | None = None
    sub: VMTrace | None = None

    @classmethod
    def from_json(cls, data: Any) -> VMOperation:
        """Decode a VM operation."""
        data = _mapping(data, "VM operation")
        ex = data.get("ex")
        sub = data.get("sub")
        return cls(
            pc=_uint(data, "pc"),
            cost=_uint(data, "cost", _U64_BITS),
            ex=None if ex is None else VMExecutedOperation.from_json(ex),
            sub=None if sub is None else VMTrace.from_json(sub),
        )

    def to_json(self) -> dict:
        """Encode the VM operation."""
        return {
            "pc": self.pc,
            "cost": self.cost,
            "ex": None if self.ex is None else self.ex.to_json(),
            "sub": None if self.sub is None else self.sub.to_json(),
        }


@dataclass
class VMTrace:
    """The full VM trace of a call or creation."""

    code: Bytes = field(default_factory=Bytes)
    ops: list[VMOperation] = field(default_factory=list)

    @classmethod
    def from_json(cls, data: Any) -> VMTrace:
        """Decode a VM trace."""
        data = _mapping(data, "VM trace")
        return cls(
            code=Bytes.from_json(_field(data, "code")),
            ops=[VMOperation.from_json(op) for op in _list(data, "ops")],
        )

    def to_json(self) -> dict:
        """Encode the VM trace."""
        return {"code": self.code.to_json(), "ops": [op.to_json() for op in self.ops]}


@dataclass
class BlockTrace:
    """The result of an ad-hoc trace: output and whichever traces were asked for."""

    output: Bytes
    trace: list[TransactionTrace] | None = None
    vm_trace: VMTrace | None = None
    state_diff: dict[H160, AccountDiff] | None = None

    @classmethod
    def from_json(cls, data: Any) -> BlockTrace:
        """Decode an ad-hoc trace result."""
        data = _mapping(data, "block trace")
        trace = data.get("trace")
        if trace is not None and not isinstance(trace, list):
            raise ValueError("field `trace` must be an array")
        vm_trace = data.get("vmTrace")
        state_diff = data.get("stateDiff")
        return cls(
            output=Bytes.from_json(_field(data, "output")),
            trace=None if trace is None else [TransactionTrace.from_json(t) for t in trace],
            vm_trace=None if vm_trace is None else VMTrace.from_json(vm_trace),
            state_diff=None
            if state_diff is None
            else {
                H160.from_hex(address): AccountDiff.from_json(diff)
                for address, diff in _mapping(state_diff, "state diff").items()
            },
        )

    def to_json(self) -> dict:
        """Encode the ad-hoc trace result, state diff addresses in ascending order."""
        return {
            "output": self.output.to_json(),
            "trace": None if self.trace is None else [t.to_json() for t in self.trace],
            "vmTrace": None if self.vm_trace is None else self.vm_trace.to_json(),
            "stateDiff": None
            if self.state_diff is None
            else {
                address.to_json(): self.state_diff[address].to_json()
                for address in sorted(self.state_diff)
            },
        }