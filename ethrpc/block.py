"""Blocks, block headers and the ways to name a block or a transaction."""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Union

from .jsonrpc import serialize
from .primitives import (
    H64,
    H160,
    H256,
    H2048,
    Bytes,
    decode_quantity,
    encode_quantity,
)

_U64_MAX = (1 << 64) - 1
_U128_MAX = (1 << 128) - 1


class BlockTag(enum.Enum):
    """A block named by its position rather than its number."""

    LATEST = "latest"
    EARLIEST = "earliest"
    PENDING = "pending"


BlockNumber = Union[BlockTag, int]


def block_number_to_json(number: BlockNumber) -> str:
    """Encode a block tag or a 64-bit block number for the wire."""
    if isinstance(number, BlockTag):
        return number.value
    if isinstance(number, bool) or not isinstance(number, int):
        raise TypeError(f"block number must be a BlockTag or an int, got {number!r}")
    if not 0 <= number <= _U64_MAX:
        raise ValueError(f"block number {number} does not fit in 64 bits")
    return encode_quantity(number)


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


def _decode_list(value: Any, decode: Callable[[Any], Any]) -> list:
    if not isinstance(value, list):
        raise ValueError("expected a JSON array")
    return [decode(item) for item in value]


def _decode_u128(text: str) -> int:
    value = decode_quantity(text)
    if value > _U128_MAX:
        raise ValueError(f"{text} does not fit in 128 bits")
    return value


def _head_kwargs(data: Mapping) -> dict:
    return {
        "hash": _optional(data, "hash", H256.from_hex),
        "parent_hash": H256.from_hex(_field(data, "parentHash")),
        "uncles_hash": H256.from_hex(_field(data, "sha3Uncles")),
        "author": H160.from_hex(_field(data, "miner")),
        "state_root": H256.from_hex(_field(data, "stateRoot")),
        "transactions_root": H256.from_hex(_field(data, "transactionsRoot")),
        "receipts_root": H256.from_hex(_field(data, "receiptsRoot")),
        "number": _optional(data, "number", _decode_u128),
        "gas_used": decode_quantity(_field(data, "gasUsed")),
        "gas_limit": decode_quantity(_field(data, "gasLimit")),
        "extra_data": Bytes.from_json(_field(data, "extraData")),
        "logs_bloom": H2048.from_hex(_field(data, "logsBloom")),
        "timestamp": decode_quantity(_field(data, "timestamp")),
        "difficulty": decode_quantity(_field(data, "difficulty")),
    }


def _tail_kwargs(data: Mapping) -> dict:
    return {
        "mix_hash": _optional(data, "mixHash", H256.from_hex),
        "nonce": _optional(data, "nonce", H64.from_hex),
    }


def _head_json(block: BlockHeader | Block) -> dict:
    return {
        "hash": _encode_optional(block.hash, H256.to_json),
        "parentHash": block.parent_hash.to_json(),
        "sha3Uncles": block.uncles_hash.to_json(),
        "miner": block.author.to_json(),
        "stateRoot": block.state_root.to_json(),
        "transactionsRoot": block.transactions_root.to_json(),
        "receiptsRoot": block.receipts_root.to_json(),
        "number": _encode_optional(block.number, encode_quantity),
        "gasUsed": encode_quantity(block.gas_used),
        "gasLimit": encode_quantity(block.gas_limit),
        "extraData": block.extra_data.to_json(),
        "logsBloom": block.logs_bloom.to_json(),
        "timestamp": encode_quantity(block.timestamp),
        "difficulty": encode_quantity(block.difficulty),
    }


def _tail_json(block: BlockHeader | Block) -> dict:
    return {
        "mixHash": _encode_optional(block.mix_hash, H256.to_json),
        "nonce": _encode_optional(block.nonce, H64.to_json),
    }


@dataclass
class BlockHeader:
    """The block header returned by RPC calls and new-head subscriptions."""

    hash: H256 | None
    parent_hash: H256
    uncles_hash: H256
    author: H160
    state_root: H256
    transactions_root: H256
    receipts_root: H256
    number: int | None
    gas_used: int
    gas_limit: int
    extra_data: Bytes
    logs_bloom: H2048
    timestamp: int
    difficulty: int
    mix_hash: H256 | None
    nonce: H64 | None

    @classmethod
    def from_json(cls, data: Any) -> BlockHeader:
        """Decode a header from its JSON object."""
        data = _mapping(data, "block header")
        return cls(**_head_kwargs(data), **_tail_kwargs(data))

    def to_json(self) -> dict:
        """Encode the header as a JSON object."""
        return {**_head_json(self), **_tail_json(self)}


@dataclass
class Block:
    """A block as returned by RPC calls; transactions are of any one type."""

    hash: H256 | None = None
    parent_hash: H256 = field(default_factory=H256)
    uncles_hash: H256 = field(default_factory=H256)
    author: H160 = field(default_factory=H160)
    state_root: H256 = field(default_factory=H256)
    transactions_root: H256 = field(default_factory=H256)
    receipts_root: H256 = field(default_factory=H256)
    number: int | None = None
    gas_used: int = 0
    gas_limit: int = 0
    extra_data: Bytes = field(default_factory=Bytes)
    logs_bloom: H2048 = field(default_factory=H2048)
    timestamp: int = 0
    difficulty: int = 0
    total_difficulty: int = 0
    seal_fields: list[Bytes] = field(default_factory=list)
    uncles: list[H256] = field(default_factory=list)
    transactions: list[Any] = field(default_factory=list)
    size: int | None = None
    mix_hash: H256 | None = None
    nonce: H64 | None = None

    @classmethod
    def from_json(
        cls,
        data: Any,
        decode_transaction: Callable[[Any], Any] = H256.from_hex,
    ) -> Block:
        """Decode a block, decoding each transaction with ``decode_transaction``."""
        data = _mapping(data, "block")
        seal_fields = (
            _decode_list(data["sealFields"], Bytes.from_json)
            if "sealFields" in data
            else []
        )
        return cls(
            **_head_kwargs(data),
            total_difficulty=decode_quantity(_field(data, "totalDifficulty")),
            seal_fields=seal_fields,
            uncles=_decode_list(_field(data, "uncles"), H256.from_hex),
            transactions=_decode_list(_field(data, "transactions"), decode_transaction),
            size=_optional(data, "size", decode_quantity),
            **_tail_kwargs(data),
        )

    def to_json(self, encode_transaction: Callable[[Any], Any] = serialize) -> dict:
        """Encode the block, encoding each transaction with ``encode_transaction``."""
        return {
            **_head_json(self),
            "totalDifficulty": encode_quantity(self.total_difficulty),
            "sealFields": [seal.to_json() for seal in self.seal_fields],
            "uncles": [uncle.to_json() for uncle in self.uncles],
            "transactions": [encode_transaction(tx) for tx in self.transactions],
            "size": _encode_optional(self.size, encode_quantity),
            **_tail_json(self),
        }


@dataclass(frozen=True)
class BlockId:
    """A block named by its hash, its number or a tag."""

    value: H256 | BlockTag | int

    def __post_init__(self) -> None:
        if not isinstance(self.value, H256):
            block_number_to_json(self.value)

    def to_json(self) -> str:
        """Encode the identifier for the wire."""
        if isinstance(self.value, H256):
            return self.value.to_json()
        return block_number_to_json(self.value)


@dataclass(frozen=True)
class TransactionId:
    """A transaction named by its hash, or by its block and index in it."""

    hash: H256 | None = None
    block: BlockId | None = None
    index: int | None = None

    def __post_init__(self) -> None:
        if self.hash is not None:
            if self.block is not None or self.index is not None:
                raise ValueError("a transaction is named by hash or by block, not both")
            if not isinstance(self.hash, H256):
                raise TypeError("transaction hash must be an H256")
            return
        if self.block is None or self.index is None:
            raise ValueError("a transaction needs a hash, or a block and an index")
        if not isinstance(self.block, BlockId):
            object.__setattr__(self, "block", BlockId(self.block))
        if isinstance(self.index, bool) or not isinstance(self.index, int):
            raise TypeError("transaction index must be an integer")
        if not 0 <= self.index <= _U128_MAX:
            raise ValueError(f"transaction index {self.index} does not fit in 128 bits")