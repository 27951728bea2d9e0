"""Logs produced by transactions, and filters that select them."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import Any, Union

from .block import BlockNumber, block_number_to_json
from .primitives import H160, H256, Bytes, decode_quantity, encode_quantity

Topic = Union[None, H256, Sequence[H256]]


def _field(data: Mapping, key: str) -> Any:
    try:
        return data[key]
    except KeyError:
        raise ValueError(f"missing field `{key}`") from None


def _optional_quantity(data: Mapping, key: str) -> int | None:
    value = data.get(key)
    return None if value is None else decode_quantity(value)


def _optional_typed(data: Mapping, key: str, kind: type) -> Any:
    value = data.get(key)
    if value is not None and not isinstance(value, kind):
        raise ValueError(f"field `{key}` must be a {kind.__name__}")
    return value


def _quantity_or_none(value: int | None) -> str | None:
    return None if value is None else encode_quantity(value)


@dataclass
class Log:
    """A log entry produced by a transaction."""

    address: H160
    topics: list[H256]
    data: Bytes
    block_hash: H256 | None = None
    block_number: int | None = None
    transaction_hash: H256 | None = None
    transaction_index: int | None = None
    log_index: int | None = None
    transaction_log_index: int | None = None
    log_type: str | None = None
    removed: bool | None = None

    @classmethod
    def from_json(cls, data: Any) -> Log:
        """Decode a log from its JSON object."""
        if not isinstance(data, Mapping):
            raise ValueError("log must be a JSON object")
        topics = _field(data, "topics")
        if not isinstance(topics, list):
            raise ValueError("field `topics` must be an array")
        block_hash = data.get("blockHash")
        tx_hash = data.get("transactionHash")
        return cls(
            address=H160.from_hex(_field(data, "address")),
            topics=[H256.from_hex(topic) for topic in topics],
            data=Bytes.from_json(_field(data, "data")),
            block_hash=None if block_hash is None else H256.from_hex(block_hash),
            block_number=_optional_quantity(data, "blockNumber"),
            transaction_hash=None if tx_hash is None else H256.from_hex(tx_hash),
            transaction_index=_optional_quantity(data, "transactionIndex"),
            log_index=_optional_quantity(data, "logIndex"),
            transaction_log_index=_optional_quantity(data, "transactionLogIndex"),
            log_type=_optional_typed(data, "logType", str),
            removed=_optional_typed(data, "removed", bool),
        )

    def to_json(self) -> dict:
        """Encode the log as a JSON object."""
        return {
            "address": self.address.to_json(),
            "topics": [topic.to_json() for topic in self.topics],
            "data": self.data.to_json(),
            "blockHash": None if self.block_hash is None else self.block_hash.to_json(),
            "blockNumber": _quantity_or_none(self.block_number),
            "transactionHash": (
                None if self.transaction_hash is None else self.transaction_hash.to_json()
            ),
            "transactionIndex": _quantity_or_none(self.transaction_index),
            "logIndex": _quantity_or_none(self.log_index),
            "transactionLogIndex": _quantity_or_none(self.transaction_log_index),
            "logType": self.log_type,
            "removed": self.removed,
        }

    def is_removed(self) -> bool:
        """Return True if the log has been removed by a chain reorganisation."""
        if self.removed is not None:
            return self.removed
        return self.log_type == "removed"


def _value_or_array(items: Sequence[Any]) -> Any:
    if not items:
        return None
    if len(items) == 1:
        return items[0].to_json()
    return [item.to_json() for item in items]


@dataclass
class Filter:
    """A log filter; unset parts are left out of the request."""

    from_block: BlockNumber | None = None
    to_block: BlockNumber | None = None
    address: list[H160] | None = None
    topics: list[list[H256] | None] | None = None
    limit: int | None = None

    def to_json(self) -> dict:
        """Encode the filter, writing one-element lists as a single value."""
        out: dict[str, Any] = {}
        if self.from_block is not None:
            out["fromBlock"] = block_number_to_json(self.from_block)
        if self.to_block is not None:
            out["toBlock"] = block_number_to_json(self.to_block)
        if self.address is not None:
            out["address"] = _value_or_array(self.address)
        if self.topics is not None:
            out["topics"] = [
                None if topic is None else _value_or_array(topic) for topic in self.topics
            ]
        if self.limit is not None:
            out["limit"] = self.limit
        return out


@dataclass(frozen=True)
class TopicFilter:
    """Topics to match: None for any, one hash, or a sequence of alternatives."""

    topic0: Topic = None
    topic1: Topic = None
    topic2: Topic = None
    topic3: Topic = None


def _topic_to_option(topic: Topic) -> list[H256] | None:
    if topic is None:
        return None
    if isinstance(topic, H256):
        return [topic]
    return list(topic)


@dataclass(frozen=True)
class FilterBuilder:
    """Builds a Filter; every step returns a new builder."""

    filter: Filter = field(default_factory=Filter)

    def from_block(self, block: BlockNumber) -> FilterBuilder:
        """Set the first block to search."""
        block_number_to_json(block)
        return FilterBuilder(replace(self.filter, from_block=block))

    def to_block(self, block: BlockNumber) -> FilterBuilder:
        """Set the last block to search."""
        block_number_to_json(block)
        return FilterBuilder(replace(self.filter, to_block=block))

    def address(self, addresses: Sequence[H160]) -> FilterBuilder:
        """Match logs from any of these addresses."""
        return FilterBuilder(replace(self.filter, address=list(addresses)))

    def topics(
        self,
        topic1: Sequence[H256] | None = None,
        topic2: Sequence[H256] | None = None,
        topic3: Sequence[H256] | None = None,
        topic4: Sequence[H256] | None = None,
    ) -> FilterBuilder:
        """Set the topic positions, dropping trailing positions that match anything."""
        topics = [
            None if topic is None else list(topic)
            for topic in (topic1, topic2, topic3, topic4)
        ]
        while topics and topics[-1] is None:
            topics.pop()
        return FilterBuilder(replace(self.filter, topics=topics))

    def topic_filter(self, topic_filter: TopicFilter) -> FilterBuilder:
        """Set the topics from a TopicFilter."""
        return self.topics(
            _topic_to_option(topic_filter.topic0),
            _topic_to_option(topic_filter.topic1),
            _topic_to_option(topic_filter.topic2),
            _topic_to_option(topic_filter.topic3),
        )

    def limit(self, limit: int) -> FilterBuilder:
        """Limit the number of logs returned."""
        if isinstance(limit, bool) or not isinstance(limit, int):
            raise TypeError("limit must be an integer")
        if limit < 0:
            raise ValueError("limit must not be negative")
        return FilterBuilder(replace(self.filter, limit=limit))

    def build(self) -> Filter:
        """Return a copy of the filter built so far."""
        current = self.filter
        return replace(
            current,
            address=None if current.address is None else list(current.address),
            topics=None
            if current.topics is None
            else [None if topic is None else list(topic) for topic in current.topics],
        )