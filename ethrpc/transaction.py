"""Transactions, their receipts and signed raw transactions."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable

from .logs import Log
from .primitives import H160, H256, H2048, Bytes, decode_quantity, encode_quantity

_U64_MAX = (1 << 64) - 1
_U128_MAX = (1 << 128) - 1


def _mapping(data: Any, what: str) -> Mapping:
    if not isinstance(data, Mapping):
        raise ValueError(f"{what} must be a JSON object")
    return data


def _field(data: Mapping, key: str) -> Any:
    try:
        return data[key]
    except KeyError:
        raise ValueError(f"missing field `{key}`") from None


def _optional(data: Mapping, key: str, decode: Callable[[Any], Any]) -> Any:
    value = data.get(key)
    return None if value is None else decode(value)


def _encode_optional(value: Any, encode: Callable[[Any], Any]) -> Any:
    return None if value is None else encode(value)


def _decode_index(text: Any) -> int:
    value = decode_quantity(text)
    if value > _U128_MAX:
        raise ValueError(f"{text} does not fit in 128 bits")
    return value


def _decode_u64(text: Any) -> int:
    value = decode_quantity(text)
    if value > _U64_MAX:
        raise ValueError(f"{text} does not fit in 64 bits")
    return value


def _decode_logs(value: Any) -> list[Log]:
    if not isinstance(value, list):
        raise ValueError("field `logs` must be an array")
    return [Log.from_json(item) for item in value]


@dataclass
class Transaction:
    """A transaction, pending or in the chain."""

    hash: H256 = field(default_factory=H256)
    nonce: int = 0
    block_hash: H256 | None = None
    block_number: int | None = None
    transaction_index: int | None = None
    from_: H160 = field(default_factory=H160)
    to: H160 | None = None
    value: int = 0
    gas_price: int = 0
    gas: int = 0
    input: Bytes = field(default_factory=Bytes)

    @classmethod
    def from_json(cls, data: Any) -> Transaction:
        """Decode a transaction from its JSON object."""
        data = _mapping(data, "transaction")
        return cls(
            hash=H256.from_hex(_field(data, "hash")),
            nonce=decode_quantity(_field(data, "nonce")),
            block_hash=_optional(data, "blockHash", H256.from_hex),
            block_number=_optional(data, "blockNumber", decode_quantity),
            transaction_index=_optional(data, "transactionIndex", _decode_index),
            from_=H160.from_hex(_field(data, "from")),
            to=_optional(data, "to", H160.from_hex),
            value=decode_quantity(_field(data, "value")),
            gas_price=decode_quantity(_field(data, "gasPrice")),
            gas=decode_quantity(_field(data, "gas")),
            input=Bytes.from_json(_field(data, "input")),
        )

    def to_json(self) -> dict:
        """Encode the transaction as a JSON object."""
        return {
            "hash": self.hash.to_json(),
            "nonce": encode_quantity(self.nonce),
            "blockHash": _encode_optional(self.block_hash, H256.to_json),
            "blockNumber": _encode_optional(self.block_number, encode_quantity),
            "transactionIndex": _encode_optional(self.transaction_index, encode_quantity),
            "from": self.from_.to_json(),
            "to": _encode_optional(self.to, H160.to_json),
            "value": encode_quantity(self.value),
            "gasPrice": encode_quantity(self.gas_price),
            "gas": encode_quantity(self.gas),
            "input": self.input.to_json(),
        }


@dataclass
class Receipt:
    """Details of an executed transaction."""

    transaction_hash: H256 = field(default_factory=H256)
    transaction_index: int = 0
    block_hash: H256 | None = None
    block_number: int | None = None
    cumulative_gas_used: int = 0
    gas_used: int | None = None
    contract_address: H160 | None = None
    logs: list[Log] = field(default_factory=list)
    status: int | None = None
    logs_bloom: H2048 = field(default_factory=H2048)

    @classmethod
    def from_json(cls, data: Any) -> Receipt:
        """Decode a receipt; gas used is absent for light clients."""
        data = _mapping(data, "receipt")
        return cls(
            transaction_hash=H256.from_hex(_field(data, "transactionHash")),
            transaction_index=_decode_index(_field(data, "transactionIndex")),
            block_hash=_optional(data, "blockHash", H256.from_hex),
            block_number=_optional(data, "blockNumber", decode_quantity),
            cumulative_gas_used=decode_quantity(_field(data, "cumulativeGasUsed")),
            gas_used=_optional(data, "gasUsed", decode_quantity),
            contract_address=_optional(data, "contractAddress", H160.from_hex),
            logs=_decode_logs(_field(data, "logs")),
            status=_optional(data, "status", _decode_u64),
            logs_bloom=H2048.from_hex(_field(data, "logsBloom")),
        )

    def to_json(self) -> dict:
        """Encode the receipt as a JSON object."""
        return {
            "transactionHash": self.transaction_hash.to_json(),
            "transactionIndex": encode_quantity(self.transaction_index),
            "blockHash": _encode_optional(self.block_hash, H256.to_json),
            "blockNumber": _encode_optional(self.block_number, encode_quantity),
            "cumulativeGasUsed": encode_quantity(self.cumulative_gas_used),
            "gasUsed": _encode_optional(self.gas_used, encode_quantity),
            "contractAddress": _encode_optional(self.contract_address, H160.to_json),
            "logs": [log.to_json() for log in self.logs],
            "status": _encode_optional(self.status, encode_quantity),
            "logsBloom": self.logs_bloom.to_json(),
        }


@dataclass
class RawTransactionDetails:
    """Details of a signed transaction."""

    hash: H256 = field(default_factory=H256)
    nonce: int = 0
    block_hash: H256 | None = None
    block_number: int | None = None
    transaction_index: int | None = None
    from_: H160 | None = None
    to: H160 | None = None
    value: int = 0
    gas_price: int = 0
    gas: int = 0
    input: Bytes = field(default_factory=Bytes)
    v: int | None = None
    r: Bytes | None = None
    s: Bytes | None = None

    @classmethod
    def from_json(cls, data: Any) -> RawTransactionDetails:
        """Decode signed transaction details."""
        data = _mapping(data, "transaction details")
        return cls(
            hash=H256.from_hex(_field(data, "hash")),
            nonce=decode_quantity(_field(data, "nonce")),
            block_hash=_optional(data, "blockHash", H256.from_hex),
            block_number=_optional(data, "blockNumber", decode_quantity),
            transaction_index=_optional(data, "transactionIndex", _decode_index),
            from_=_optional(data, "from", H160.from_hex),
            to=_optional(data, "to", H160.from_hex),
            value=decode_quantity(_field(data, "value")),
            gas_price=decode_quantity(_field(data, "gasPrice")),
            gas=decode_quantity(_field(data, "gas")),
            input=Bytes.from_json(_field(data, "input")),
            v=_optional(data, "v", _decode_u64),
            r=_optional(data, "r", Bytes.from_json),
            s=_optional(data, "s", Bytes.from_json),
        )

    def to_json(self) -> dict:
        """Encode signed transaction details."""
        return {
            "hash": self.hash.to_json(),
            "nonce": encode_quantity(self.nonce),
            "blockHash": _encode_optional(self.block_hash, H256.to_json),
            "blockNumber": _encode_optional(self.block_number, encode_quantity),
            "transactionIndex": _encode_optional(self.transaction_index, encode_quantity),
            "from": _encode_optional(self.from_, H160.to_json),
            "to": _encode_optional(self.to, H160.to_json),
            "value": encode_quantity(self.value),
            "gasPrice": encode_quantity(self.gas_price),
            "gas": encode_quantity(self.gas),
            "input": self.input.to_json(),
            "v": _encode_optional(self.v, encode_quantity),
            "r": _encode_optional(self.r, Bytes.to_json),
            "s": _encode_optional(self.s, Bytes.to_json),
        }


@dataclass
class RawTransaction:
    """A signed transaction not yet sent: its raw bytes and its details."""

    raw: Bytes = field(default_factory=Bytes)
    tx: RawTransactionDetails = field(default_factory=RawTransactionDetails)

    @classmethod
    def from_json(cls, data: Any) -> RawTransaction:
        """Decode a signed raw transaction."""
        data = _mapping(data, "raw transaction")
        return cls(
            raw=Bytes.from_json(_field(data, "raw")),
            tx=RawTransactionDetails.from_json(_field(data, "tx")),
        )

    def to_json(self) -> dict:
        """Encode the signed raw transaction."""
        return {"raw": self.raw.to_json(), "tx": self.tx.to_json()}