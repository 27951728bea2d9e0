"""Parameters of eth_call, eth_estimateGas and eth_sendTransaction."""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable

from .primitives import H160, Bytes, encode_quantity

_U64_MAX = (1 << 64) - 1


def _put(out: dict, key: str, value: Any, encode: Callable[[Any], Any]) -> None:
    if value is not None:
        out[key] = encode(value)


class ConditionKind(enum.Enum):
    """What a transaction condition waits for."""

    BLOCK = "block"
    TIMESTAMP = "time"


@dataclass(frozen=True)
class TransactionCondition:
    """A minimum block number or unix time before a transaction is valid."""

    kind: ConditionKind
    value: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", ConditionKind(self.kind))
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise TypeError("condition value must be an integer")
        if not 0 <= self.value <= _U64_MAX:
            raise ValueError(f"condition value {self.value} does not fit in 64 bits")

    def to_json(self) -> dict:
        """Encode as a one-key object such as {"block": 5}."""
        return {self.kind.value: self.value}

    @classmethod
    def from_json(cls, data: Any) -> TransactionCondition:
        """Decode a one-key object naming the condition kind."""
        if not isinstance(data, Mapping) or len(data) != 1:
            raise ValueError("condition must be an object with exactly one key")
        (key, value), = data.items()
        try:
            kind = ConditionKind(key)
        except ValueError:
            raise ValueError(f"unknown condition `{key}`") from None
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError("condition value must be an integer")
        return cls(kind, value)


@dataclass
class CallRequest:
    """A contract call request; unset fields are left to the node."""

    to: H160
    from_: H160 | None = None
    gas: int | None = None
    gas_price: int | None = None
    value: int | None = None
    data: Bytes | None = None

    def to_json(self) -> dict:
        """Encode the request, leaving out unset fields."""
        out: dict[str, Any] = {}
        _put(out, "from", self.from_, H160.to_json)
        out["to"] = self.to.to_json()
        _put(out, "gas", self.gas, encode_quantity)
        _put(out, "gasPrice", self.gas_price, encode_quantity)
        _put(out, "value", self.value, encode_quantity)
        _put(out, "data", self.data, Bytes.to_json)
        return out


@dataclass
class TransactionRequest:
    """Parameters of a transaction to send; unset fields are left to the node."""

    from_: H160
    to: H160 | None = None
    gas: int | None = None
    gas_price: int | None = None
    value: int | None = None
    data: Bytes | None = None
    nonce: int | None = None
    condition: TransactionCondition | None = None

    def to_json(self) -> dict:
        """Encode the request, leaving out unset fields."""
        out: dict[str, Any] = {"from": self.from_.to_json()}
        _put(out, "to", self.to, H160.to_json)
        _put(out, "gas", self.gas, encode_quantity)
        _put(out, "gasPrice", self.gas_price, encode_quantity)
        _put(out, "value", self.value, encode_quantity)
        _put(out, "data", self.data, Bytes.to_json)
        _put(out, "nonce", self.nonce, encode_quantity)
        _put(out, "condition", self.condition, TransactionCondition.to_json)
        return out